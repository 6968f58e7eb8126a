"""
Tests for utility functions.
"""

import json

import pytest

from taxacluster.assignment import ClusteringResult, TaxaCluster
from taxacluster.taxa import ComparedFauna
from taxacluster.utils import (
    create_provider,
    format_cluster_output,
    load_efforts_from_json,
    save_clusters_to_file,
)


RECORDS = [
    {'location_id': 1, 'total_species': 2, 'kingdom_names': 'k1', 'phylum_names': 'p1|p2',
     'locality_name': 'Bat Cave'},
    {'location_id': 2, 'total_species': 1, 'kingdom_names': 'k1', 'phylum_names': 'p3'},
]


class TestEffortLoading:
    """Test loading efforts from JSON."""

    def _write(self, tmp_path, data):
        path = tmp_path / "efforts.json"
        path.write_text(json.dumps(data))
        return str(path)

    def test_load_list(self, tmp_path):
        efforts = load_efforts_from_json(self._write(tmp_path, RECORDS))

        assert [e.location_id for e in efforts] == [1, 2]
        assert efforts[0].locality_name == 'Bat Cave'
        assert efforts[0].counter.names(1) == ['p1', 'p2']

    def test_load_object_with_efforts(self, tmp_path):
        efforts = load_efforts_from_json(self._write(tmp_path, {'efforts': RECORDS}))

        assert len(efforts) == 2

    def test_rejects_non_list(self, tmp_path):
        with pytest.raises(ValueError, match="Expected a list"):
            load_efforts_from_json(self._write(tmp_path, {'records': RECORDS}))

    def test_rejects_duplicate_location(self, tmp_path):
        with pytest.raises(ValueError, match="Duplicate location ID 1"):
            load_efforts_from_json(self._write(tmp_path, RECORDS + [RECORDS[0]]))

    def test_create_provider(self, tmp_path):
        efforts = load_efforts_from_json(self._write(tmp_path, RECORDS))

        provider = create_provider(efforts, ComparedFauna.CAVE_OBLIGATES)

        batch = provider.get_next_batch(ComparedFauna.CAVE_OBLIGATES, 0, 10, 0, 10)
        assert [e.location_id for e in batch] == [1, 2]
        assert provider.get_next_batch(ComparedFauna.ALL, 0, 10, 0, 10) == []


class TestClusterOutput:
    """Test formatting and saving of clustering results."""

    def setup_method(self):
        """Set up test fixtures."""
        self.result = ClusteringResult(clusters=[
            TaxaCluster(0, 3, [1, 3], {}, {'k1': 2}),
            TaxaCluster(1, 2, [2], {}, {'k2': 1}),
        ], passes=2)
        self.locality_names = {1: 'Bat Cave'}

    def test_format_cluster_output(self):
        output = format_cluster_output(self.result, self.locality_names)

        assert "Cluster 1 (seed 3, 2 locations):" in output
        assert "  - 1\tBat Cave" in output
        assert "  - 3" in output
        assert "Cluster 2 (seed 2, 1 locations):" in output

    def test_save_json(self, tmp_path):
        output_path = tmp_path / "clusters.json"

        save_clusters_to_file(self.result, str(output_path), format="json")

        data = json.loads(output_path.read_text())
        assert data['passes'] == 2
        assert data['converged'] is True
        assert data['clusters'][0]['location_ids'] == [1, 3]
        assert data['clusters'][1]['visits_by_taxon_unique'] == {'k2': 1}

    def test_save_tsv(self, tmp_path):
        output_path = tmp_path / "clusters.tsv"

        save_clusters_to_file(self.result, str(output_path), format="tsv",
                              locality_names=self.locality_names)

        lines = output_path.read_text().splitlines()
        assert lines[0] == "location_id\tcluster_id\tlocality_name"
        assert lines[1] == "1\tcluster_1\tBat Cave"
        assert lines[2] == "3\tcluster_1\t"
        assert lines[3] == "2\tcluster_2\t"

    def test_save_text(self, tmp_path):
        output_path = tmp_path / "clusters.txt"

        save_clusters_to_file(self.result, str(output_path), format="text")

        assert output_path.read_text() == format_cluster_output(self.result)

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported output format"):
            save_clusters_to_file(self.result, str(tmp_path / "clusters.csv"), format="csv")
