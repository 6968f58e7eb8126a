"""
taxacluster: Clustering of survey locations by taxonomic effort

A Python package that groups survey locations into clusters of similar
species composition, seeding clusters with maximally diverse locations and
reassigning locations until the partition is stable.
"""

__version__ = "0.1.0"

from .taxa import ComparedFauna, TaxonPath, TaxonRank, TaxonRankIndex
from .taxon_counter import TaxonCounter, TaxonEntry
from .tally import TaxonTally, tally_taxa, update_taxon_tallies, visits_by_taxon_unique
from .effort import EffortProvider, InMemoryEffortProvider, LocationEffort
from .effort_cache import EffortCache
from .errors import ClusterConfigError
from .config import ClusterSpec, SeedComparison, MAX_ALLOWED_CLUSTERS
from .dissimilarity import (
    Dissimilarity,
    DissimilarityBasis,
    DissimilarityMetric,
    DissimilarityTransform,
    TaxonWeight,
    create_dissimilarity
)
from .seeds import SeedSelector
from .assignment import ClusterAssigner, ClusteringResult, TaxaCluster
from .clusterer import TaxaClusterer, create_clusterer
from .utils import (
    load_efforts_from_json,
    create_provider,
    save_clusters_to_file,
    format_cluster_output
)
from .analyze import (
    summarize_clusters,
    partition_agreement,
    format_cluster_report
)

__all__ = [
    "ComparedFauna",
    "TaxonPath",
    "TaxonRank",
    "TaxonRankIndex",
    "TaxonCounter",
    "TaxonEntry",
    "TaxonTally",
    "tally_taxa",
    "update_taxon_tallies",
    "visits_by_taxon_unique",
    "EffortProvider",
    "InMemoryEffortProvider",
    "LocationEffort",
    "EffortCache",
    "ClusterConfigError",
    "ClusterSpec",
    "SeedComparison",
    "MAX_ALLOWED_CLUSTERS",
    "Dissimilarity",
    "DissimilarityBasis",
    "DissimilarityMetric",
    "DissimilarityTransform",
    "TaxonWeight",
    "create_dissimilarity",
    "SeedSelector",
    "ClusterAssigner",
    "ClusteringResult",
    "TaxaCluster",
    "TaxaClusterer",
    "create_clusterer",
    "load_efforts_from_json",
    "create_provider",
    "save_clusters_to_file",
    "format_cluster_output",
    "summarize_clusters",
    "partition_agreement",
    "format_cluster_report"
]
