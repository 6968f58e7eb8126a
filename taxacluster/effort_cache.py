"""Cache of decoded effort taxa, shared across clustering runs per compared fauna."""

import logging
from typing import Callable, Dict, Optional

from .effort import LocationEffort
from .taxa import ComparedFauna
from .tally import RankedTaxa

logger = logging.getLogger(__name__)


class EffortCache:
    """Caches each location's taxon names and visits by rank, per compared fauna.

    Invalidation is coarse: the first location cached for a scope is kept
    as a sample, and when the backing store no longer has that location,
    the whole scope is cleared before caching anything new. Partially stale
    entries are not detected.

    Caching never changes clustering results, only how often efforts are
    decoded. Concurrent use without locking can only cause redundant decoding.
    """

    def __init__(self):
        self._ranked_taxa: Dict[ComparedFauna, Dict[int, RankedTaxa]] = {}
        self._sample_location_ids: Dict[ComparedFauna, int] = {}
        self.hits = 0
        self.misses = 0
        self.invalidations = 0

    def get_ranked_taxa(self, compared_fauna: ComparedFauna, effort: LocationEffort,
                        location_exists: Callable[[int], bool]) -> RankedTaxa:
        """Return the effort's names and visits by rank, decoding on a miss.

        Args:
            compared_fauna: Scope the effort belongs to
            effort: Effort to decode
            location_exists: Lookup reporting whether a location is still stored
        """
        scope_cache = self._ranked_taxa.setdefault(compared_fauna, {})
        ranked_taxa = scope_cache.get(effort.location_id)
        if ranked_taxa is not None:
            self.hits += 1
            return ranked_taxa

        self.misses += 1
        sample_location_id: Optional[int] = self._sample_location_ids.get(compared_fauna)
        if sample_location_id is not None and not location_exists(sample_location_id):
            logger.debug(f"Sample location {sample_location_id} no longer exists; "
                         f"clearing {len(scope_cache)} cached efforts for {compared_fauna.value}")
            self.invalidations += 1
            sample_location_id = None
        if sample_location_id is None:
            # clear in place; other runs may hold the same scope map
            scope_cache.clear()
            self._sample_location_ids[compared_fauna] = effort.location_id

        ranked_taxa = effort.names_and_visits_by_rank()
        scope_cache[effort.location_id] = ranked_taxa
        return ranked_taxa

    def clear(self, compared_fauna: Optional[ComparedFauna] = None) -> None:
        """Clear one scope, or every scope when none is given."""
        if compared_fauna is None:
            self._ranked_taxa.clear()
            self._sample_location_ids.clear()
        else:
            self._ranked_taxa.pop(compared_fauna, None)
            self._sample_location_ids.pop(compared_fauna, None)

    def __len__(self) -> int:
        return sum(len(scope_cache) for scope_cache in self._ranked_taxa.values())

    def get_cache_stats(self) -> Dict[str, int]:
        return {
            'cached_efforts': len(self),
            'hits': self.hits,
            'misses': self.misses,
            'invalidations': self.invalidations,
        }
