"""
Taxon tallies decoded from location efforts and accumulated per cluster.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .taxa import RANK_COUNT

# Taxon names and visit counts by rank index; None for an unobserved rank.
NamesByRank = List[Optional[List[str]]]
VisitsByRank = List[Optional[List[int]]]
RankedTaxa = Tuple[NamesByRank, VisitsByRank]


@dataclass
class TaxonTally:
    """Accumulated occurrence of one taxon over one or more locations."""
    taxon_unique: str
    rank_index: int
    localities: int
    visits: int

    def copy(self) -> 'TaxonTally':
        return TaxonTally(self.taxon_unique, self.rank_index, self.localities, self.visits)


TaxonTallyMap = Dict[str, TaxonTally]


def tally_taxa(ranked_taxa: RankedTaxa) -> TaxonTallyMap:
    """Build a tally map from a location's taxon names and visits by rank."""
    names_by_rank, visits_by_rank = ranked_taxa
    tallies: TaxonTallyMap = {}
    for rank_index in range(RANK_COUNT):
        taxon_names = names_by_rank[rank_index]
        if taxon_names is not None:
            _tally_taxon_rank(tallies, rank_index, taxon_names, visits_by_rank[rank_index])
    return tallies


def _tally_taxon_rank(tallies: TaxonTallyMap, rank_index: int,
                      taxon_names: Sequence[str], taxon_visits: Sequence[int]) -> None:
    for taxon_unique, visits in zip(taxon_names, taxon_visits):
        tally = tallies.get(taxon_unique)
        if tally is None:
            tallies[taxon_unique] = TaxonTally(taxon_unique, rank_index, 1, visits)
        else:
            tally.localities += 1
            tally.visits += visits


def update_taxon_tallies(tallies: TaxonTallyMap, from_tallies: TaxonTallyMap) -> TaxonTallyMap:
    """Fold `from_tallies` into `tallies` in place and return `tallies`.

    A taxon new to `tallies` is copied in; a known taxon gains one locality
    and the incoming visits.
    """
    for from_tally in from_tallies.values():
        tally = tallies.get(from_tally.taxon_unique)
        if tally is None:
            tallies[from_tally.taxon_unique] = from_tally.copy()
        else:
            tally.localities += 1
            tally.visits += from_tally.visits
    return tallies


def copy_tally_map(tallies: TaxonTallyMap) -> TaxonTallyMap:
    return {taxon_unique: tally.copy() for taxon_unique, tally in tallies.items()}


def visits_by_taxon_unique(tallies: TaxonTallyMap, highest_rank_index: int) -> Dict[str, int]:
    """Map each taxon at or below `highest_rank_index` to its visit total."""
    # higher ranks have lower indexes
    return {
        taxon_unique: tally.visits
        for taxon_unique, tally in tallies.items()
        if tally.rank_index >= highest_rank_index
    }
