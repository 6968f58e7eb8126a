"""
Dissimilarity metrics between cluster and location taxon tallies.

A metric combines three choices made once from configuration:
- a weight per rank index, zero above the highest compared rank
- a transform applied to the aggregated weight
- a basis formula combining weights of shared and differing taxa

create_dissimilarity() turns a DissimilarityMetric into a Dissimilarity
value that is called as score(cluster_tallies, location_tallies). Lower
scores mean more similar for every basis.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Tuple

import numpy as np

from .errors import ClusterConfigError
from .taxa import RANK_COUNT, TaxonRank, TaxonRankIndex, rank_index
from .tally import TaxonTallyMap


class DissimilarityBasis(str, Enum):
    # -1 * taxa the location has in common with the cluster
    MINUS_COMMON_TAXA = "- common taxa"
    # taxa in the location but not the cluster, minus taxa in common
    DIFF_MINUS_COMMON_TAXA = "cave diff - common taxa"
    # taxa in only one of the two, minus taxa in common
    BOTH_DIFFS_MINUS_COMMON_TAXA = "both diffs - common taxa"
    # taxa in the location but not the cluster
    DIFF_TAXA = "cave diff taxa"
    # taxa in only one of the two
    BOTH_DIFF_TAXA = "- both diff taxa"


class DissimilarityTransform(str, Enum):
    NONE = "none"
    LN = "ln"
    SQRT = "sqrt"
    TO_1_5 = "^1.5"


class TaxonWeight(str, Enum):
    UNWEIGHTED = "unweighted"
    EQUAL_WEIGHTED = "equal weighted"
    HALF_AGAIN_WEIGHT = "1.5x weight"
    DOUBLE_WEIGHT = "2x weight"
    WEIGHT_TO_1_5 = "weight^1.5"
    SQUARED_WEIGHT = "weight^2"
    GENUS_SPECIES_ONLY = "genus/species only"


def _coerce(enum_class, value, what: str):
    if value is None:
        raise ClusterConfigError(f"{what} not specified")
    try:
        return enum_class(value)
    except ValueError:
        raise ClusterConfigError(f"Unsupported {what}: {value!r}") from None


@dataclass(frozen=True)
class DissimilarityMetric:
    """Immutable description of how to score dissimilarity.

    Attributes:
        basis: Formula combining shared and differing taxa
        weight: Per-rank weighting scheme
        highest_compared_rank: Taxa of ranks above this one are ignored
        transform: Transform applied to the aggregated weight
        proximity_resolution: Resolve final ties by distance to cluster centroids
    """
    basis: DissimilarityBasis
    weight: TaxonWeight = TaxonWeight.UNWEIGHTED
    highest_compared_rank: TaxonRank = TaxonRank.KINGDOM
    transform: DissimilarityTransform = DissimilarityTransform.NONE
    proximity_resolution: bool = False

    def __post_init__(self):
        # frozen dataclass; coerce string values through object.__setattr__
        object.__setattr__(self, 'basis', _coerce(DissimilarityBasis, self.basis, "DissimilarityBasis"))
        object.__setattr__(self, 'weight', _coerce(TaxonWeight, self.weight, "TaxonWeight"))
        object.__setattr__(self, 'highest_compared_rank',
                           _coerce(TaxonRank, self.highest_compared_rank, "highest compared rank"))
        object.__setattr__(self, 'transform',
                           _coerce(DissimilarityTransform, self.transform, "DissimilarityTransform"))

    @property
    def highest_rank_index(self) -> int:
        return rank_index(self.highest_compared_rank)

    def to_dict(self) -> Dict:
        return {
            'basis': self.basis.value,
            'weight': self.weight.value,
            'highest_compared_rank': self.highest_compared_rank.value,
            'transform': self.transform.value,
            'proximity_resolution': self.proximity_resolution,
        }


def build_weights(weight: TaxonWeight, highest_rank_index: int) -> np.ndarray:
    """Return the weight of each rank index under a weighting scheme.

    Ranks above `highest_rank_index` weigh zero. Linear schemes grow with
    the distance below the highest compared rank, starting at 1.
    """
    weights = np.zeros(RANK_COUNT)
    base_weights = np.arange(RANK_COUNT - highest_rank_index, dtype=float) + 1
    compared = slice(highest_rank_index, RANK_COUNT)

    if weight == TaxonWeight.UNWEIGHTED:
        weights[compared] = 1
    elif weight == TaxonWeight.EQUAL_WEIGHTED:
        weights[compared] = base_weights
    elif weight == TaxonWeight.HALF_AGAIN_WEIGHT:
        weights[compared] = 1.5 * base_weights
    elif weight == TaxonWeight.DOUBLE_WEIGHT:
        weights[compared] = 2 * base_weights
    elif weight == TaxonWeight.WEIGHT_TO_1_5:
        weights[compared] = np.power(base_weights, 1.5)
    elif weight == TaxonWeight.SQUARED_WEIGHT:
        weights[compared] = np.power(base_weights, 2)
    elif weight == TaxonWeight.GENUS_SPECIES_ONLY:
        weights[max(highest_rank_index, TaxonRankIndex.GENUS):] = 1
    else:
        raise ClusterConfigError(f"Unsupported TaxonWeight: {weight!r}")
    return weights


def _ln(value: float) -> float:
    return 0.0 if value <= 0 else math.log(value)


def _sqrt(value: float) -> float:
    return 0.0 if value <= 0 else math.sqrt(value)


TRANSFORMS: Dict[DissimilarityTransform, Callable[[float], float]] = {
    DissimilarityTransform.NONE: lambda value: value,
    DissimilarityTransform.LN: _ln,
    DissimilarityTransform.SQRT: _sqrt,
    DissimilarityTransform.TO_1_5: lambda value: math.pow(value, 1.5),
}


def signed_transform(transform: Callable[[float], float], value: float) -> float:
    """Apply `transform` to the magnitude of `value`, keeping its sign."""
    return -transform(-value) if value < 0 else transform(value)


Weights = Tuple[float, ...]
BasisFunction = Callable[[Weights, Callable[[float], float], TaxonTallyMap, TaxonTallyMap], float]


def _minus_common_taxa(weights: Weights, transform, cluster: TaxonTallyMap,
                       location: TaxonTallyMap) -> float:
    common = 0.0
    for tally in location.values():
        if tally.taxon_unique in cluster:
            common += weights[tally.rank_index]
    return -transform(common)


def _diff_minus_common_taxa(weights: Weights, transform, cluster: TaxonTallyMap,
                            location: TaxonTallyMap) -> float:
    count = 0.0
    for tally in location.values():
        if tally.taxon_unique in cluster:
            count -= weights[tally.rank_index]
        else:
            count += weights[tally.rank_index]
    return signed_transform(transform, count)


def _both_diffs_minus_common_taxa(weights: Weights, transform, cluster: TaxonTallyMap,
                                  location: TaxonTallyMap) -> float:
    count = 0.0
    for tally in location.values():
        if tally.taxon_unique in cluster:
            count -= weights[tally.rank_index]
        else:
            count += weights[tally.rank_index]
    for tally in cluster.values():
        if tally.taxon_unique not in location:
            count += weights[tally.rank_index]
    return signed_transform(transform, count)


def _diff_taxa(weights: Weights, transform, cluster: TaxonTallyMap,
               location: TaxonTallyMap) -> float:
    count = 0.0
    for tally in location.values():
        if tally.taxon_unique not in cluster:
            count += weights[tally.rank_index]
    return transform(count)


def _both_diff_taxa(weights: Weights, transform, cluster: TaxonTallyMap,
                    location: TaxonTallyMap) -> float:
    count = 0.0
    for tally in location.values():
        if tally.taxon_unique not in cluster:
            count += weights[tally.rank_index]
    for tally in cluster.values():
        if tally.taxon_unique not in location:
            count += weights[tally.rank_index]
    return transform(count)


BASIS_FUNCTIONS: Dict[DissimilarityBasis, BasisFunction] = {
    DissimilarityBasis.MINUS_COMMON_TAXA: _minus_common_taxa,
    DissimilarityBasis.DIFF_MINUS_COMMON_TAXA: _diff_minus_common_taxa,
    DissimilarityBasis.BOTH_DIFFS_MINUS_COMMON_TAXA: _both_diffs_minus_common_taxa,
    DissimilarityBasis.DIFF_TAXA: _diff_taxa,
    DissimilarityBasis.BOTH_DIFF_TAXA: _both_diff_taxa,
}


@dataclass(frozen=True)
class Dissimilarity:
    """Dissimilarity scoring function built from a metric.

    Called as dissimilarity(cluster_tallies, location_tallies).
    """
    metric: DissimilarityMetric
    weights: Weights
    transform: Callable[[float], float]
    basis_function: BasisFunction

    def __call__(self, cluster_tallies: TaxonTallyMap, location_tallies: TaxonTallyMap) -> float:
        return self.basis_function(self.weights, self.transform, cluster_tallies, location_tallies)

    def greatest_lower_dissimilarity(self) -> float:
        """Baseline a seed candidate must exceed to become a seed."""
        return 0.0


def create_dissimilarity(metric: DissimilarityMetric) -> Dissimilarity:
    """Create the scoring function for a metric.

    Raises:
        ClusterConfigError: If the metric names an unsupported option
    """
    basis_function = BASIS_FUNCTIONS.get(metric.basis)
    if basis_function is None:
        raise ClusterConfigError(f"{metric.basis} not yet supported")
    transform = TRANSFORMS.get(metric.transform)
    if transform is None:
        raise ClusterConfigError(f"Unsupported DissimilarityTransform: {metric.transform!r}")

    weights = tuple(float(w) for w in build_weights(metric.weight, metric.highest_rank_index))
    return Dissimilarity(metric, weights, transform, basis_function)
