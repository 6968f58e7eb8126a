"""
Clustering of locations by the similarity of their taxa.

TaxaClusterer wires a ClusterSpec to an effort provider: it builds the
dissimilarity function once, decodes efforts through an optional shared
EffortCache, and runs seed selection and cluster assignment.
"""

import logging
import random
from typing import Any, Dict, List, Optional, Union

from .assignment import ClusterAssigner, ClusteringResult
from .config import ClusterSpec
from .dissimilarity import create_dissimilarity
from .effort import EffortProvider, LocationEffort
from .effort_cache import EffortCache
from .seeds import SeedSelector
from .tally import TaxonTallyMap, tally_taxa


class TaxaClusterer:
    """Selects seed locations and clusters locations around them.

    Usage:
        clusterer = TaxaClusterer(spec, provider)
        seed_ids = clusterer.get_seed_location_ids(spec.max_clusters, True)
        result = clusterer.get_taxa_clusters(seed_ids)

    Configuration errors are raised on construction, before any efforts are
    fetched. Errors raised by the provider propagate unchanged.
    """

    def __init__(self, cluster_spec: ClusterSpec, provider: EffortProvider,
                 effort_cache: Optional[EffortCache] = None,
                 rng: Optional[random.Random] = None,
                 max_passes: Optional[int] = None,
                 show_progress: bool = True,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            cluster_spec: Configuration of the clustering
            provider: Source of location efforts
            effort_cache: Cache of decoded efforts to share across runs; None disables caching
            rng: Random source for tie-breaking (default: unseeded random.Random())
            max_passes: Maximum number of reassignment passes, or None for no limit
            show_progress: If True, show progress bars during assignment
            logger: Optional logger instance
        """
        self.cluster_spec = cluster_spec
        self.provider = provider
        self.effort_cache = effort_cache
        self.logger = logger or logging.getLogger(__name__)
        self.dissimilarity = create_dissimilarity(cluster_spec.metric)

        self.seed_selector = SeedSelector(
            provider, self.dissimilarity, cluster_spec.compared_fauna,
            cluster_spec.min_species, cluster_spec.max_species,
            batch_size=cluster_spec.batch_size,
            tally_source=self._tally_taxa,
            logger=self.logger,
        )
        self.assigner = ClusterAssigner(
            provider, self.dissimilarity, cluster_spec.compared_fauna,
            cluster_spec.min_species, cluster_spec.max_species,
            batch_size=cluster_spec.batch_size,
            tally_source=self._tally_taxa,
            rng=rng,
            max_passes=max_passes,
            show_progress=show_progress,
            logger=self.logger,
        )

    def _tally_taxa(self, effort: LocationEffort) -> TaxonTallyMap:
        if self.effort_cache is None:
            return effort.get_tallies()
        ranked_taxa = self.effort_cache.get_ranked_taxa(
            self.cluster_spec.compared_fauna, effort, self.provider.location_exists)
        return tally_taxa(ranked_taxa)

    def get_seed_location_ids(self, max_clusters: int, use_cumulative_taxa: bool) -> List[int]:
        """Return up to `max_clusters` diverse seed location IDs, richest first."""
        return self.seed_selector.select_seeds(max_clusters, use_cumulative_taxa)

    def get_taxa_clusters(self, seed_location_ids: List[int]) -> ClusteringResult:
        """Partition all eligible locations around the given seed locations."""
        return self.assigner.assign(seed_location_ids)

    def run(self, seed_location_ids: Optional[List[int]] = None) -> ClusteringResult:
        """Cluster using the given seeds, or seeds selected per the ClusterSpec."""
        if seed_location_ids is None:
            seed_location_ids = self.get_seed_location_ids(
                self.cluster_spec.max_clusters, self.cluster_spec.use_cumulative_taxa)
        return self.get_taxa_clusters(seed_location_ids)


def create_clusterer(provider: EffortProvider,
                     cluster_spec: Union[ClusterSpec, Dict[str, Any]],
                     effort_cache: Optional[EffortCache] = None,
                     **kwargs) -> TaxaClusterer:
    """
    Factory function to create a clusterer from a spec or its dict form.

    Args:
        provider: Source of location efforts
        cluster_spec: ClusterSpec, or keyword arguments for one
        effort_cache: Optional cache of decoded efforts
        **kwargs: Passed through to TaxaClusterer

    Returns:
        Configured TaxaClusterer

    Raises:
        ClusterConfigError: If the configuration is unsupported
    """
    if isinstance(cluster_spec, dict):
        cluster_spec = ClusterSpec(**cluster_spec)
    return TaxaClusterer(cluster_spec, provider, effort_cache=effort_cache, **kwargs)
