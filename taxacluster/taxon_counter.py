"""
Rank-indexed taxon counters for locations and clusters.

A TaxonCounter records, for each of the eight ranks, the taxa observed at
that rank along with a leaf marker and a visit count per taxon. A taxon is
a leaf when no more specific taxon was recorded for the same occurrence, so
summing leaf markers across ranks counts species without double-counting a
genus whose species was also recorded.

The compact storage form (names joined by '|', markers as a string of '0'
and '1', visits joined by ',') only exists at the from_series()/to_series()
boundary.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .taxa import RANK_COUNT, TAXON_RANKS, TaxonPath


NAME_SEPARATOR = "|"
VISITS_SEPARATOR = ","
LEAF_MARKER = "1"
NON_LEAF_MARKER = "0"


@dataclass
class TaxonEntry:
    """One taxon recorded at a rank of a counter."""
    name: str
    is_leaf: bool
    visits: int = 1

    @property
    def marker(self) -> str:
        return LEAF_MARKER if self.is_leaf else NON_LEAF_MARKER


class TaxonCounter:
    """Taxa recorded at each rank, with leaf markers and visit counts.

    A rank with no observations is None rather than an empty list.
    """

    def __init__(self, entries_by_rank: Optional[List[Optional[List[TaxonEntry]]]] = None):
        if entries_by_rank is None:
            entries_by_rank = [None] * RANK_COUNT
        if len(entries_by_rank) != RANK_COUNT:
            raise ValueError(f"Expected {RANK_COUNT} ranks, got {len(entries_by_rank)}")
        self.entries_by_rank = entries_by_rank

    @classmethod
    def from_path(cls, path: TaxonPath) -> 'TaxonCounter':
        """Create a counter for a single occurrence of the taxon at `path`."""
        counter = cls()
        counter.update_for_path(path)
        return counter

    @classmethod
    def from_series(cls, names_by_rank: List[Optional[str]],
                    markers_by_rank: Optional[List[Optional[str]]] = None,
                    visits_by_rank: Optional[List[Optional[str]]] = None) -> 'TaxonCounter':
        """Decode a counter from its storage series.

        Args:
            names_by_rank: '|'-joined taxon names per rank, None for absent ranks
            markers_by_rank: '0'/'1' marker strings per rank; markers default to leaf
            visits_by_rank: ','-joined visit counts per rank; visits default to 1

        Raises:
            ValueError: If a rank's series have different lengths
        """
        entries_by_rank: List[Optional[List[TaxonEntry]]] = []
        for i in range(RANK_COUNT):
            names_series = names_by_rank[i] if i < len(names_by_rank) else None
            if names_series is None or names_series == "":
                entries_by_rank.append(None)
                continue

            names = names_series.split(NAME_SEPARATOR)
            markers_series = markers_by_rank[i] if markers_by_rank and i < len(markers_by_rank) else None
            visits_series = visits_by_rank[i] if visits_by_rank and i < len(visits_by_rank) else None

            markers = markers_series if markers_series else LEAF_MARKER * len(names)
            if visits_series:
                visits = [int(v) for v in visits_series.split(VISITS_SEPARATOR)]
            else:
                visits = [1] * len(names)

            if len(markers) != len(names) or len(visits) != len(names):
                raise ValueError(
                    f"Mismatched {TAXON_RANKS[i].value} series: {len(names)} names, "
                    f"{len(markers)} markers, {len(visits)} visits"
                )
            entries_by_rank.append([
                TaxonEntry(name, marker == LEAF_MARKER, visit_count)
                for name, marker, visit_count in zip(names, markers, visits)
            ])
        return cls(entries_by_rank)

    def to_series(self) -> Tuple[List[Optional[str]], List[Optional[str]], List[Optional[str]]]:
        """Encode the counter as (names, markers, visits) series by rank."""
        names_by_rank: List[Optional[str]] = []
        markers_by_rank: List[Optional[str]] = []
        visits_by_rank: List[Optional[str]] = []
        for entries in self.entries_by_rank:
            if entries is None:
                names_by_rank.append(None)
                markers_by_rank.append(None)
                visits_by_rank.append(None)
            else:
                names_by_rank.append(NAME_SEPARATOR.join(e.name for e in entries))
                markers_by_rank.append("".join(e.marker for e in entries))
                visits_by_rank.append(VISITS_SEPARATOR.join(str(e.visits) for e in entries))
        return names_by_rank, markers_by_rank, visits_by_rank

    def names(self, rank_index: int) -> Optional[List[str]]:
        entries = self.entries_by_rank[rank_index]
        return None if entries is None else [e.name for e in entries]

    def markers(self, rank_index: int) -> Optional[str]:
        entries = self.entries_by_rank[rank_index]
        return None if entries is None else "".join(e.marker for e in entries)

    def visits(self, rank_index: int) -> Optional[List[int]]:
        entries = self.entries_by_rank[rank_index]
        return None if entries is None else [e.visits for e in entries]

    def get_species_count(self) -> int:
        """Count leaf markers over all ranks."""
        count = 0
        for entries in self.entries_by_rank:
            if entries is not None:
                count += sum(1 for e in entries if e.is_leaf)
        return count

    def update_for_path(self, path: TaxonPath) -> None:
        """Merge one taxonomic path into the counter, kingdom first.

        Merging the same path again leaves names and markers unchanged.
        """
        for i, (upper, lower) in enumerate(path.rank_pairs()):
            self._update_for_taxon(i, upper, lower)

    def _update_for_taxon(self, rank_index: int, upper: Optional[str], lower: Optional[str]) -> None:
        if upper is None:
            return

        entries = self.entries_by_rank[rank_index]
        if entries is None:
            self.entries_by_rank[rank_index] = [TaxonEntry(upper, lower is None)]
            return

        entry = _find_entry(entries, upper)
        if entry is None:
            entries.append(TaxonEntry(upper, lower is None))
        elif lower is not None and entry.is_leaf:
            # a more specific descendant now carries the species count
            entry.is_leaf = False

    def merge_counter(self, other: 'TaxonCounter') -> None:
        """Fold another counter into this one, counting one visit per taxon."""
        for i in range(RANK_COUNT):
            other_entries = other.entries_by_rank[i]
            if other_entries is None:
                continue

            entries = self.entries_by_rank[i]
            if entries is None:
                self.entries_by_rank[i] = [
                    TaxonEntry(e.name, e.is_leaf, 1) for e in other_entries
                ]
                continue

            for other_entry in other_entries:
                entry = _find_entry(entries, other_entry.name)
                if entry is None:
                    entries.append(TaxonEntry(other_entry.name, other_entry.is_leaf, 1))
                else:
                    if not other_entry.is_leaf:
                        entry.is_leaf = False
                    entry.visits += 1

    def copy(self) -> 'TaxonCounter':
        return TaxonCounter([
            None if entries is None else [TaxonEntry(e.name, e.is_leaf, e.visits) for e in entries]
            for entries in self.entries_by_rank
        ])

    def to_dict(self) -> Dict[str, Optional[List[Dict]]]:
        """Return a JSON-safe mapping of rank name to entries."""
        return {
            TAXON_RANKS[i].value: None if entries is None else [
                {'name': e.name, 'leaf': e.is_leaf, 'visits': e.visits} for e in entries
            ]
            for i, entries in enumerate(self.entries_by_rank)
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, TaxonCounter):
            return NotImplemented
        return self.entries_by_rank == other.entries_by_rank

    def __repr__(self) -> str:
        ranks = []
        for i, entries in enumerate(self.entries_by_rank):
            if entries is not None:
                ranks.append(f"{TAXON_RANKS[i].value}={self.names(i)}/{self.markers(i)}")
        return f"TaxonCounter({', '.join(ranks)})"


def _find_entry(entries: List[TaxonEntry], name: str) -> Optional[TaxonEntry]:
    for entry in entries:
        if entry.name == name:
            return entry
    return None
