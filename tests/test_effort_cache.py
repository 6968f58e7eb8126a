"""
Tests for the effort cache.
"""

from unittest.mock import Mock

from taxacluster.effort import LocationEffort
from taxacluster.effort_cache import EffortCache
from taxacluster.taxa import ComparedFauna


def _effort(location_id, names='k1'):
    return LocationEffort.from_record({'location_id': location_id, 'kingdom_names': names})


class TestEffortCache:
    """Test caching and sample-location invalidation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.cache = EffortCache()
        self.existing = {1, 2, 3}
        self.location_exists = Mock(side_effect=lambda location_id: location_id in self.existing)

    def test_caches_decoded_taxa(self):
        effort = _effort(1)

        first = self.cache.get_ranked_taxa(ComparedFauna.ALL, effort, self.location_exists)
        second = self.cache.get_ranked_taxa(ComparedFauna.ALL, effort, self.location_exists)

        assert first is second
        assert first == effort.names_and_visits_by_rank()
        assert self.cache.get_cache_stats() == {
            'cached_efforts': 1, 'hits': 1, 'misses': 1, 'invalidations': 0,
        }

    def test_first_entry_becomes_sample_without_lookup(self):
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(1), self.location_exists)

        self.location_exists.assert_not_called()

    def test_misses_check_sample_location(self):
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(1), self.location_exists)
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(2), self.location_exists)
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(2), self.location_exists)

        self.location_exists.assert_called_once_with(1)
        assert len(self.cache) == 2

    def test_missing_sample_location_clears_scope(self):
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(1), self.location_exists)
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(2), self.location_exists)
        self.existing.discard(1)

        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(3), self.location_exists)

        assert len(self.cache) == 1
        assert self.cache.invalidations == 1

        # location 3 is now the sample
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(2), self.location_exists)
        self.location_exists.assert_called_with(3)
        assert len(self.cache) == 2

    def test_partial_staleness_is_not_detected(self):
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(1), self.location_exists)
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(2, 'k1'), self.location_exists)

        # location 2's effort changes but the sample location still exists
        ranked_taxa = self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(2, 'k2'),
                                                 self.location_exists)

        assert ranked_taxa[0][0] == ['k1']

    def test_scopes_are_independent(self):
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(1), self.location_exists)
        self.cache.get_ranked_taxa(ComparedFauna.CAVE_OBLIGATES, _effort(1, 'k2'),
                                   self.location_exists)

        all_taxa = self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(1), self.location_exists)
        cave_taxa = self.cache.get_ranked_taxa(ComparedFauna.CAVE_OBLIGATES, _effort(1),
                                               self.location_exists)

        assert all_taxa[0][0] == ['k1']
        assert cave_taxa[0][0] == ['k2']
        assert self.cache.hits == 2

    def test_clear(self):
        self.cache.get_ranked_taxa(ComparedFauna.ALL, _effort(1), self.location_exists)
        self.cache.get_ranked_taxa(ComparedFauna.CAVE_OBLIGATES, _effort(1), self.location_exists)

        self.cache.clear(ComparedFauna.ALL)
        assert len(self.cache) == 1

        self.cache.clear()
        assert len(self.cache) == 0
