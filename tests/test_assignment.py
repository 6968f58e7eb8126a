"""
Tests for iterative cluster assignment.
"""

import logging
import random
from unittest.mock import Mock

import pytest

from taxacluster.assignment import ClusterAssigner, ClusteringResult, distance_in_km
from taxacluster.dissimilarity import Dissimilarity, DissimilarityMetric, create_dissimilarity
from taxacluster.effort import InMemoryEffortProvider, LocationEffort
from taxacluster.taxa import ComparedFauna


def _effort(location_id, total_species, latitude=None, longitude=None, **names):
    record = {'location_id': location_id, 'total_species': total_species,
              'latitude': latitude, 'longitude': longitude}
    for rank, rank_names in names.items():
        record[f"{rank}_names"] = rank_names
    return LocationEffort.from_record(record)


def _partition(result: ClusteringResult):
    return sorted(sorted(cluster.location_ids) for cluster in result.clusters)


def _last_choice_rng():
    rng = Mock()
    rng.choice.side_effect = lambda seq: seq[-1]
    return rng


class TestClusterAssigner:
    """Test convergence of cluster assignment."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = InMemoryEffortProvider()
        self.metric = DissimilarityMetric(basis='cave diff - common taxa', weight='unweighted')

    def _assigner(self, metric=None, dissimilarity=None, **kwargs):
        dissimilarity = dissimilarity or create_dissimilarity(metric or self.metric)
        return ClusterAssigner(self.provider, dissimilarity, ComparedFauna.ALL,
                               kwargs.pop('min_species', 0), kwargs.pop('max_species', 10000),
                               show_progress=False, **kwargs)

    def _add(self, *efforts):
        self.provider.add_efforts(ComparedFauna.ALL, list(efforts))

    def _add_disjoint_groups(self):
        self._add(
            _effort(11, 1, kingdom='k1', phylum='p1'),
            _effort(12, 2, kingdom='k1', phylum='p1|p2'),
            _effort(13, 3, kingdom='k1', phylum='p1|p2|p3'),
            _effort(14, 1, kingdom='k1', phylum='p4'),
            _effort(15, 2, kingdom='k1', phylum='p4|p5'),
            _effort(16, 3, kingdom='k1', phylum='p4|p5|p6'),
        )

    def test_single_seed_takes_every_location(self):
        self._add_disjoint_groups()

        result = self._assigner().assign([11])

        assert _partition(result) == [[11, 12, 13, 14, 15, 16]]

    @pytest.mark.parametrize("seeds", [[13, 16], [11, 14], [12, 15], [16, 11]])
    def test_disjoint_groups_converge(self, seeds):
        self._add_disjoint_groups()

        result = self._assigner(max_passes=5).assign(seeds)

        assert _partition(result) == [[11, 12, 13], [14, 15, 16]]
        assert result.converged
        assert result.passes <= 5

    def test_disjoint_groups_converge_with_weights(self):
        self._add_disjoint_groups()
        metric = DissimilarityMetric(basis='cave diff - common taxa', weight='equal weighted')

        result = self._assigner(metric).assign([11, 14])

        assert _partition(result) == [[11, 12, 13], [14, 15, 16]]

    def test_clusters_follow_seed_order(self):
        self._add_disjoint_groups()

        result = self._assigner().assign([16, 11])

        assert result.seed_location_ids == [16, 11]
        assert result.clusters[0].location_ids == [14, 15, 16]
        assert result.clusters[1].location_ids == [11, 12, 13]
        assert result.cluster_by_location_id()[12] == 1

    def test_at_least_one_reassignment_pass(self):
        self._add_disjoint_groups()

        result = self._assigner().assign([13, 16])

        assert result.passes == 1

    def test_cluster_tallies_are_restricted_to_cutoff(self):
        self._add_disjoint_groups()
        metric = DissimilarityMetric(basis='cave diff - common taxa', highest_compared_rank='phylum')

        result = self._assigner(metric).assign([13, 16])

        cluster = result.clusters[0]
        assert cluster.visits_by_taxon_unique == {'p1': 3, 'p2': 2, 'p3': 1}
        assert cluster.tallies['k1'].localities == 3

    def test_seeds_only(self):
        self._add(_effort(1, 2, kingdom='k1', phylum='p1'), _effort(2, 2, kingdom='k2'))

        result = self._assigner().assign([1, 2])

        assert _partition(result) == [[1], [2]]

    def test_seed_outside_species_filter_stays_in_its_cluster(self):
        self._add_disjoint_groups()

        result = self._assigner(max_species=2).assign([13, 16])

        assert _partition(result) == [[11, 12, 13], [14, 15, 16]]

    def test_no_seeds(self):
        self._add_disjoint_groups()

        result = self._assigner().assign([])

        assert result.clusters == []

    def test_missing_seed_raises(self):
        self._add_disjoint_groups()

        with pytest.raises(ValueError, match=r"seed locations \[99\]"):
            self._assigner().assign([11, 99])

    def test_duplicate_seed_raises(self):
        self._add_disjoint_groups()

        with pytest.raises(ValueError, match="Duplicate seed"):
            self._assigner().assign([11, 11])

    def test_invalid_max_passes(self):
        with pytest.raises(ValueError, match="max_passes"):
            self._assigner(max_passes=0)

    def test_to_dict(self):
        self._add_disjoint_groups()

        data = self._assigner().assign([13, 16]).to_dict()

        assert data['converged'] is True
        assert data['clusters'][0]['seed_location_id'] == 13
        assert data['clusters'][0]['location_ids'] == [11, 12, 13]
        assert data['clusters'][0]['visits_by_taxon_unique']['k1'] == 3


class TestTieBreaking:
    """Test tie-breaking among equally dissimilar clusters."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = InMemoryEffortProvider()
        self.dissimilarity = create_dissimilarity(
            DissimilarityMetric(basis='cave diff - common taxa'))

    def _assigner(self, dissimilarity=None, **kwargs):
        return ClusterAssigner(self.provider, dissimilarity or self.dissimilarity,
                               ComparedFauna.ALL, 0, 10000, show_progress=False, **kwargs)

    def test_random_choice_then_stability(self):
        self.provider.add_efforts(ComparedFauna.ALL, [
            _effort(1, 1, kingdom='k1', phylum='p1'),
            _effort(2, 1, kingdom='k1', phylum='p2'),
            _effort(3, 1, kingdom='k1'),
        ])
        rng = _last_choice_rng()

        result = self._assigner(rng=rng).assign([1, 2])

        # tied on the initial pass, then kept in place on later passes
        rng.choice.assert_called_once_with([0, 1])
        assert result.clusters[0].location_ids == [1]
        assert result.clusters[1].location_ids == [2, 3]
        assert result.converged

    def test_seeded_random_source_is_reproducible(self):
        self.provider.add_efforts(ComparedFauna.ALL, [
            _effort(1, 1, kingdom='k1', phylum='p1'),
            _effort(2, 1, kingdom='k1', phylum='p2'),
        ] + [_effort(i, 1, kingdom='k1') for i in range(3, 20)])

        first = self._assigner(rng=random.Random(42)).assign([1, 2])
        second = self._assigner(rng=random.Random(42)).assign([1, 2])

        assert first.to_dict() == second.to_dict()

    def test_empty_cluster_is_retained(self):
        # scores 0 against any cluster holding k1, else 1
        def prefers_k1(weights, transform, cluster, location):
            return 0.0 if 'k1' in cluster else 1.0

        dissimilarity = Dissimilarity(self.dissimilarity.metric, self.dissimilarity.weights,
                                      self.dissimilarity.transform, prefers_k1)
        self.provider.add_efforts(ComparedFauna.ALL, [
            _effort(1, 1, kingdom='k1'),
            _effort(2, 1, kingdom='k2'),
            _effort(3, 1, kingdom='k3'),
        ])

        result = self._assigner(dissimilarity).assign([1, 2])

        assert len(result.clusters) == 2
        assert result.clusters[0].location_ids == [1, 2, 3]
        assert result.clusters[1].location_ids == []
        assert result.clusters[1].seed_location_id == 2
        assert result.clusters[1].tallies == {}
        assert result.non_empty_clusters() == [result.clusters[0]]

    def test_max_passes_stops_early(self, caplog):
        def prefers_k1(weights, transform, cluster, location):
            return 0.0 if 'k1' in cluster else 1.0

        dissimilarity = Dissimilarity(self.dissimilarity.metric, self.dissimilarity.weights,
                                      self.dissimilarity.transform, prefers_k1)
        self.provider.add_efforts(ComparedFauna.ALL, [
            _effort(1, 1, kingdom='k1'),
            _effort(2, 1, kingdom='k2'),
        ])

        with caplog.at_level(logging.WARNING):
            result = self._assigner(dissimilarity, max_passes=1).assign([1, 2])

        assert result.passes == 1
        assert not result.converged
        assert result.cluster_by_location_id()[2] == 0
        assert "Stopped after 1 passes" in caplog.text


class TestProximityResolution:
    """Test resolving final ties by distance to cluster centroids."""

    def setup_method(self):
        """Set up test fixtures."""
        self.provider = InMemoryEffortProvider()
        self.provider.add_efforts(ComparedFauna.ALL, [
            _effort(1, 1, 30.0, -97.0, kingdom='k1', phylum='p1'),
            _effort(2, 1, 40.0, -80.0, kingdom='k1', phylum='p2'),
            _effort(3, 1, 30.1, -97.1, kingdom='k1'),
        ])

    def _assign(self, proximity_resolution, rng, max_passes=None):
        metric = DissimilarityMetric(basis='cave diff - common taxa',
                                     proximity_resolution=proximity_resolution)
        assigner = ClusterAssigner(self.provider, create_dissimilarity(metric), ComparedFauna.ALL,
                                   0, 10000, rng=rng, max_passes=max_passes, show_progress=False)
        return assigner.assign([1, 2])

    def test_without_proximity_tie_keeps_random_assignment(self):
        result = self._assign(False, _last_choice_rng())

        assert result.clusters[1].location_ids == [2, 3]
        assert result.passes == 1

    def test_proximity_moves_tied_location_to_nearest_centroid(self):
        result = self._assign(True, _last_choice_rng())

        assert result.clusters[0].location_ids == [1, 3]
        assert result.clusters[1].location_ids == [2]
        # one pass to converge, then the proximity pass
        assert result.passes == 2
        assert result.converged

    def test_pass_cap_includes_proximity_pass(self):
        result = self._assign(True, _last_choice_rng(), max_passes=1)

        assert result.passes == 1
        assert result.converged
        assert result.clusters[1].location_ids == [2, 3]

    def test_proximity_pass_within_pass_cap(self):
        result = self._assign(True, _last_choice_rng(), max_passes=2)

        assert result.passes == 2
        assert result.clusters[0].location_ids == [1, 3]

    def test_locations_without_coordinates_fall_back_to_tie_break(self):
        self.provider.add_effort(ComparedFauna.ALL, _effort(4, 1, kingdom='k1'))
        rng = _last_choice_rng()

        result = self._assign(True, rng)

        assert 4 in result.clusters[1].location_ids


class TestDistance:

    def test_distance_in_km(self):
        distances = distance_in_km(0.0, 0.0, [0.0, 0.0, 1.0], [0.0, 180.0, 0.0])

        assert distances[0] == pytest.approx(0.0)
        # half the earth's circumference
        assert distances[1] == pytest.approx(12742.0 * 3.141592653589793 / 2, rel=1e-6)
        assert distances[2] == pytest.approx(111.19, rel=1e-3)
