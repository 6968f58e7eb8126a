"""
Taxonomic ranks, compared-fauna scopes and taxonomic paths.

Ranks are ordered broad to narrow; a rank's index is its position in
TAXON_RANKS, so higher ranks have lower indexes.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import List, Optional, Tuple


class TaxonRank(str, Enum):
    """Taxonomic rank names, kingdom through subspecies."""
    KINGDOM = "kingdom"
    PHYLUM = "phylum"
    CLASS = "class"
    ORDER = "order"
    FAMILY = "family"
    GENUS = "genus"
    SPECIES = "species"
    SUBSPECIES = "subspecies"


class TaxonRankIndex(IntEnum):
    KINGDOM = 0
    PHYLUM = 1
    CLASS = 2
    ORDER = 3
    FAMILY = 4
    GENUS = 5
    SPECIES = 6
    SUBSPECIES = 7


TAXON_RANKS: List[TaxonRank] = list(TaxonRank)
RANK_COUNT = len(TAXON_RANKS)


class ComparedFauna(str, Enum):
    """Scope of the taxa that efforts were tallied over."""
    ALL = "all_taxa"
    CAVE_OBLIGATES = "cave_obligates"
    GENERA_HAVING_CAVE_OBLIGATES = "cave_genera"


def rank_index(rank) -> int:
    """Return the index of a rank given as a TaxonRank or its name."""
    return TAXON_RANKS.index(TaxonRank(rank))


@dataclass(frozen=True)
class TaxonPath:
    """Unique names of a taxon and of each taxon containing it.

    A rank below the most specific recorded rank is None. Species and
    subspecies names are the unique (binomial/trinomial) names.
    """
    kingdom: str
    phylum: Optional[str] = None
    class_: Optional[str] = None
    order: Optional[str] = None
    family: Optional[str] = None
    genus: Optional[str] = None
    species: Optional[str] = None
    subspecies: Optional[str] = None

    def names(self) -> Tuple[Optional[str], ...]:
        """Return the names indexed by rank index."""
        return (self.kingdom, self.phylum, self.class_, self.order,
                self.family, self.genus, self.species, self.subspecies)

    def rank_pairs(self) -> List[Tuple[Optional[str], Optional[str]]]:
        """Return (upper, lower) name pairs for each rank, kingdom first."""
        names = self.names()
        return [(names[i], names[i + 1] if i + 1 < RANK_COUNT else None)
                for i in range(RANK_COUNT)]
