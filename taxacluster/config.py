"""
Per-invocation clustering configuration.

ClusterSpec gathers everything a clustering run needs besides its data:
the dissimilarity metric, the compared-fauna scope, the species-count
filter, the seed count and how seed candidates are compared. Every value
is validated on construction so that configuration errors surface before
any efforts are fetched.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .dissimilarity import DissimilarityMetric
from .errors import ClusterConfigError
from .taxa import ComparedFauna

DEFAULT_MIN_SPECIES = 0
DEFAULT_MAX_SPECIES = 1_000_000
DEFAULT_MAX_CLUSTERS = 10
MAX_ALLOWED_CLUSTERS = 50
DEFAULT_BATCH_SIZE = 100


class SeedComparison(str, Enum):
    # compare candidates against the union of all prior seeds' taxa
    CUMULATIVE = "cumulative"
    # compare candidates against each prior seed, keeping the minimum
    PER_SEED = "per_seed"


@dataclass(frozen=True)
class ClusterSpec:
    """Configuration of one clustering invocation.

    Attributes:
        metric: How dissimilarity is scored (a DissimilarityMetric or its dict form)
        compared_fauna: Scope of the efforts being clustered
        min_species: Smallest total species count of an eligible location
        max_species: Largest total species count of an eligible location
        max_clusters: Number of seeds to look for
        seed_comparison: How seed candidates are compared with prior seeds
        batch_size: Number of efforts requested per upstream read
    """
    metric: Union[DissimilarityMetric, Dict[str, Any]]
    compared_fauna: Optional[ComparedFauna]
    min_species: int = DEFAULT_MIN_SPECIES
    max_species: int = DEFAULT_MAX_SPECIES
    max_clusters: int = DEFAULT_MAX_CLUSTERS
    seed_comparison: SeedComparison = SeedComparison.CUMULATIVE
    batch_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self):
        if self.metric is None:
            raise ClusterConfigError("DissimilarityMetric not specified")
        if isinstance(self.metric, dict):
            object.__setattr__(self, 'metric', DissimilarityMetric(**self.metric))
        elif not isinstance(self.metric, DissimilarityMetric):
            raise ClusterConfigError(f"Unsupported metric: {self.metric!r}")

        if self.compared_fauna is None:
            raise ClusterConfigError("ComparedFauna not specified")
        try:
            object.__setattr__(self, 'compared_fauna', ComparedFauna(self.compared_fauna))
        except ValueError:
            raise ClusterConfigError(f"Unsupported ComparedFauna: {self.compared_fauna!r}") from None

        try:
            object.__setattr__(self, 'seed_comparison', SeedComparison(self.seed_comparison))
        except ValueError:
            raise ClusterConfigError(f"Unsupported SeedComparison: {self.seed_comparison!r}") from None

        if self.min_species < 0:
            raise ClusterConfigError(f"min_species must be non-negative, got {self.min_species}")
        if self.min_species > self.max_species:
            raise ClusterConfigError(
                f"min_species ({self.min_species}) exceeds max_species ({self.max_species})")
        if not 1 <= self.max_clusters <= MAX_ALLOWED_CLUSTERS:
            raise ClusterConfigError(
                f"max_clusters must be between 1 and {MAX_ALLOWED_CLUSTERS}, got {self.max_clusters}")
        if self.batch_size <= 0:
            raise ClusterConfigError(f"batch_size must be positive, got {self.batch_size}")

    @property
    def use_cumulative_taxa(self) -> bool:
        return self.seed_comparison == SeedComparison.CUMULATIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metric': self.metric.to_dict(),
            'compared_fauna': self.compared_fauna.value,
            'min_species': self.min_species,
            'max_species': self.max_species,
            'max_clusters': self.max_clusters,
            'seed_comparison': self.seed_comparison.value,
            'batch_size': self.batch_size,
        }
