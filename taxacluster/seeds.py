"""
Farthest-first selection of diverse seed locations.

Efforts arrive sorted by total species, most species first, so the first
seed is always the richest eligible location. Each further seed is the
candidate most dissimilar from the seeds chosen so far, compared either
against the union of the seeds' taxa (cumulative) or against each seed
individually (per-seed, keeping the minimum).
"""

import logging
from typing import Callable, List, Optional

from .dissimilarity import Dissimilarity
from .effort import EFFORT_BATCH_SIZE, EffortProvider, LocationEffort
from .taxa import ComparedFauna
from .tally import TaxonTallyMap, copy_tally_map, update_taxon_tallies

logger = logging.getLogger(__name__)

TallySource = Callable[[LocationEffort], TaxonTallyMap]


class SeedSelector:
    """Chooses up to K seed locations maximizing dissimilarity between seeds."""

    def __init__(self, provider: EffortProvider, dissimilarity: Dissimilarity,
                 compared_fauna: ComparedFauna, min_species: int, max_species: int,
                 batch_size: int = EFFORT_BATCH_SIZE,
                 tally_source: Optional[TallySource] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            provider: Source of eligible location efforts
            dissimilarity: Scoring function between a seed tally and a candidate tally
            compared_fauna: Scope of the efforts
            min_species: Smallest total species count of a candidate
            max_species: Largest total species count of a candidate
            batch_size: Number of efforts requested per read
            tally_source: Decodes an effort's tallies; defaults to decoding directly
            logger: Optional logger instance
        """
        self.provider = provider
        self.dissimilarity = dissimilarity
        self.compared_fauna = compared_fauna
        self.min_species = min_species
        self.max_species = max_species
        self.batch_size = batch_size
        self.tally_source = tally_source or LocationEffort.get_tallies
        self.logger = logger or logging.getLogger(__name__)

    def select_seeds(self, max_clusters: int, use_cumulative_taxa: bool = True) -> List[int]:
        """Return the IDs of up to `max_clusters` seed locations, in selection order.

        Fewer seeds are returned when no remaining candidate is more
        dissimilar than the greatest lower dissimilarity. No seeds are
        returned when `max_clusters` is less than 1.
        """
        if max_clusters < 1:
            return []

        first_batch = self.provider.get_next_batch(
            self.compared_fauna, self.min_species, self.max_species, 0, self.batch_size)
        if not first_batch:
            self.logger.info("No eligible efforts from which to select seeds")
            return []

        first_seed = first_batch[0]
        seed_location_ids = [first_seed.location_id]
        if max_clusters == 1:
            return seed_location_ids

        first_tallies = self.tally_source(first_seed)
        seed_tallies: List[TaxonTallyMap] = [first_tallies]
        all_seeds_tallies = copy_tally_map(first_tallies)

        while len(seed_location_ids) < max_clusters:
            found = self._find_next_seed(seed_location_ids, seed_tallies,
                                         all_seeds_tallies, use_cumulative_taxa)
            if found is None:
                self.logger.debug(f"No further seed found after {len(seed_location_ids)} seeds")
                break

            effort, tallies, dissimilarity = found
            self.logger.debug(f"Seed {len(seed_location_ids) + 1}: location {effort.location_id} "
                              f"(dissimilarity {dissimilarity:.4f})")
            seed_location_ids.append(effort.location_id)
            seed_tallies.append(tallies)
            update_taxon_tallies(all_seeds_tallies, tallies)

        mode = "cumulative" if use_cumulative_taxa else "per-seed"
        self.logger.info(f"Selected {len(seed_location_ids)} of up to {max_clusters} seeds "
                         f"({mode} comparison): {seed_location_ids}")
        return seed_location_ids

    def _find_next_seed(self, seed_location_ids: List[int], seed_tallies: List[TaxonTallyMap],
                        all_seeds_tallies: TaxonTallyMap, use_cumulative_taxa: bool):
        max_dissimilarity = self.dissimilarity.greatest_lower_dissimilarity()
        best = None

        for effort in self.provider.iterate_efforts(self.compared_fauna, self.min_species,
                                                    self.max_species, self.batch_size):
            # Every observed rank adds a taxon, so species counts do not bound
            # the score; each candidate is scored.
            if effort.location_id in seed_location_ids:
                continue

            tallies = self.tally_source(effort)
            if use_cumulative_taxa:
                dissimilarity = self.dissimilarity(all_seeds_tallies, tallies)
            else:
                dissimilarity = min(self.dissimilarity(seed_tally_map, tallies)
                                    for seed_tally_map in seed_tallies)

            if dissimilarity > max_dissimilarity:
                max_dissimilarity = dissimilarity
                best = (effort, tallies, dissimilarity)

        return best
