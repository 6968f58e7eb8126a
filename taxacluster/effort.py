"""Location efforts and the providers that page through them."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .taxa import TAXON_RANKS, ComparedFauna
from .taxon_counter import TaxonCounter
from .tally import RankedTaxa, TaxonTallyMap, tally_taxa

logger = logging.getLogger(__name__)

EFFORT_BATCH_SIZE = 100


@dataclass
class LocationEffort:
    """Accumulated survey effort at one location for one compared-fauna scope.

    Read-only to the clustering engine; efforts are built and invalidated by
    the upstream tallying process.
    """
    location_id: int
    total_species: int
    counter: TaxonCounter = field(default_factory=TaxonCounter)
    total_visits: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    locality_name: str = ""

    def names_and_visits_by_rank(self) -> RankedTaxa:
        """Return the taxon names and visit counts by rank index."""
        names_by_rank = [self.counter.names(i) for i in range(len(TAXON_RANKS))]
        visits_by_rank = [self.counter.visits(i) for i in range(len(TAXON_RANKS))]
        return names_by_rank, visits_by_rank

    def get_tallies(self) -> TaxonTallyMap:
        return tally_taxa(self.names_and_visits_by_rank())

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'LocationEffort':
        """Create an effort from its storage record.

        Per-rank fields are `<rank>_names`, `<rank>_counts` (leaf markers) and
        `<rank>_visits`, e.g. `genus_names`, `genus_counts`, `genus_visits`.
        """
        names = [record.get(f"{rank.value}_names") for rank in TAXON_RANKS]
        markers = [record.get(f"{rank.value}_counts") for rank in TAXON_RANKS]
        visits = [record.get(f"{rank.value}_visits") for rank in TAXON_RANKS]
        counter = TaxonCounter.from_series(names, markers, visits)

        if 'total_species' in record:
            total_species = int(record['total_species'])
        else:
            total_species = counter.get_species_count()

        return cls(
            location_id=int(record['location_id']),
            total_species=total_species,
            counter=counter,
            total_visits=int(record.get('total_visits', 0)),
            latitude=record.get('latitude'),
            longitude=record.get('longitude'),
            locality_name=record.get('locality_name', ""),
        )

    def to_record(self) -> Dict[str, Any]:
        """Return the storage record for this effort."""
        record: Dict[str, Any] = {
            'location_id': self.location_id,
            'total_species': self.total_species,
            'total_visits': self.total_visits,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'locality_name': self.locality_name,
        }
        names, markers, visits = self.counter.to_series()
        for i, rank in enumerate(TAXON_RANKS):
            record[f"{rank.value}_names"] = names[i]
            record[f"{rank.value}_counts"] = markers[i]
            record[f"{rank.value}_visits"] = visits[i]
        return record


class EffortProvider(ABC):
    """Source of location efforts for the clustering engine.

    Implementations must return batches in a stable order: descending total
    species, then ascending location ID.
    """

    @abstractmethod
    def get_next_batch(self, compared_fauna: ComparedFauna, min_species: int, max_species: int,
                       skip: int, limit: int) -> List[LocationEffort]:
        """Return up to `limit` efforts with total species in [min_species, max_species],
        skipping the first `skip` in order."""
        pass

    @abstractmethod
    def get_by_location_ids(self, compared_fauna: ComparedFauna,
                            location_ids: List[int]) -> List[LocationEffort]:
        """Return the efforts of the given locations, in the order requested."""
        pass

    @abstractmethod
    def location_exists(self, location_id: int) -> bool:
        """Return whether the location is still present in the backing store."""
        pass

    def iterate_efforts(self, compared_fauna: ComparedFauna, min_species: int, max_species: int,
                        batch_size: int = EFFORT_BATCH_SIZE) -> Iterator[LocationEffort]:
        """Yield every eligible effort, fetching one batch at a time."""
        skip = 0
        batch = self.get_next_batch(compared_fauna, min_species, max_species, skip, batch_size)
        while batch:
            yield from batch
            skip += len(batch)
            batch = self.get_next_batch(compared_fauna, min_species, max_species, skip, batch_size)


class InMemoryEffortProvider(EffortProvider):
    """Effort provider holding efforts in memory, keyed by compared fauna.

    Used by the command-line tool and tests in place of a database.
    """

    def __init__(self):
        self._efforts: Dict[ComparedFauna, Dict[int, LocationEffort]] = {}
        self._location_ids: set = set()
        self.batch_requests = 0

    def add_effort(self, compared_fauna: ComparedFauna, effort: LocationEffort) -> None:
        self._efforts.setdefault(ComparedFauna(compared_fauna), {})[effort.location_id] = effort
        self._location_ids.add(effort.location_id)

    def add_efforts(self, compared_fauna: ComparedFauna, efforts: List[LocationEffort]) -> None:
        for effort in efforts:
            self.add_effort(compared_fauna, effort)

    def drop_all(self, compared_fauna: ComparedFauna) -> None:
        """Drop the efforts of a scope; the locations themselves remain."""
        self._efforts.pop(ComparedFauna(compared_fauna), None)

    def remove_location(self, location_id: int) -> None:
        """Remove a location and its efforts in every scope."""
        self._location_ids.discard(location_id)
        for efforts in self._efforts.values():
            efforts.pop(location_id, None)

    def get_next_batch(self, compared_fauna: ComparedFauna, min_species: int, max_species: int,
                       skip: int, limit: int) -> List[LocationEffort]:
        self.batch_requests += 1
        efforts = self._efforts.get(ComparedFauna(compared_fauna), {})
        eligible = [e for e in efforts.values() if min_species <= e.total_species <= max_species]
        eligible.sort(key=lambda e: (-e.total_species, e.location_id))
        return eligible[skip:skip + limit]

    def get_by_location_ids(self, compared_fauna: ComparedFauna,
                            location_ids: List[int]) -> List[LocationEffort]:
        efforts = self._efforts.get(ComparedFauna(compared_fauna), {})
        return [efforts[location_id] for location_id in location_ids if location_id in efforts]

    def location_exists(self, location_id: int) -> bool:
        return location_id in self._location_ids
