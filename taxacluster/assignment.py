"""
Iterative assignment of locations to clusters founded on seed locations.

Each pass reads a snapshot of every cluster's taxon tallies and writes the
tallies of the locations it assigns into a fresh accumulator, which becomes
the snapshot of the next pass. Passes repeat until one moves no location.
Ties between equally dissimilar clusters keep a location where it is when
possible and are otherwise broken at random.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
from tqdm import tqdm

from .dissimilarity import Dissimilarity
from .effort import EFFORT_BATCH_SIZE, EffortProvider, LocationEffort
from .seeds import TallySource
from .taxa import ComparedFauna
from .tally import TaxonTallyMap, copy_tally_map, update_taxon_tallies, visits_by_taxon_unique

logger = logging.getLogger(__name__)

EARTH_DIAMETER_KM = 12742.0


@dataclass
class TaxaCluster:
    """One cluster of the final partition."""
    index: int
    seed_location_id: int
    location_ids: List[int]
    tallies: TaxonTallyMap
    visits_by_taxon_unique: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'seed_location_id': self.seed_location_id,
            'location_ids': list(self.location_ids),
            'visits_by_taxon_unique': dict(self.visits_by_taxon_unique),
        }


@dataclass
class ClusteringResult:
    """Final partition of a clustering run, one cluster per seed in seed order.

    Clusters that ended with no locations are retained so that indexes
    keep matching seed positions.
    """
    clusters: List[TaxaCluster] = field(default_factory=list)
    passes: int = 0
    converged: bool = True

    @property
    def seed_location_ids(self) -> List[int]:
        return [cluster.seed_location_id for cluster in self.clusters]

    def cluster_by_location_id(self) -> Dict[int, int]:
        """Map each clustered location to its cluster index."""
        return {
            location_id: cluster.index
            for cluster in self.clusters
            for location_id in cluster.location_ids
        }

    def non_empty_clusters(self) -> List[TaxaCluster]:
        return [cluster for cluster in self.clusters if cluster.location_ids]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'passes': self.passes,
            'converged': self.converged,
            'clusters': [cluster.to_dict() for cluster in self.clusters],
        }


class _Centroid:
    """Mean coordinates of the locations folded into a cluster on the previous pass."""

    def __init__(self):
        self.latitude: Optional[float] = None
        self.longitude: Optional[float] = None
        self._latitude_sum = 0.0
        self._longitude_sum = 0.0
        self._count = 0

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def add(self, effort: LocationEffort) -> None:
        if effort.has_coordinates:
            self._latitude_sum += effort.latitude
            self._longitude_sum += effort.longitude
            self._count += 1

    def advance(self) -> None:
        if self._count == 0:
            self.latitude = None
            self.longitude = None
        else:
            self.latitude = self._latitude_sum / self._count
            self.longitude = self._longitude_sum / self._count
        self._latitude_sum = 0.0
        self._longitude_sum = 0.0
        self._count = 0


def distance_in_km(latitude: float, longitude: float, latitudes, longitudes) -> np.ndarray:
    """Great-circle (haversine) distances from one point to arrays of points."""
    lat1 = np.radians(latitude)
    lat2 = np.radians(np.asarray(latitudes, dtype=float))
    delta_lat = lat2 - lat1
    delta_lon = np.radians(np.asarray(longitudes, dtype=float) - longitude)
    a = np.sin(delta_lat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(delta_lon / 2) ** 2
    return EARTH_DIAMETER_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


class ClusterAssigner:
    """Partitions all eligible locations around seed locations.

    The random source only matters when a location is equally dissimilar to
    several clusters, none of which it currently belongs to. It defaults to
    an unseeded random.Random(), so results with such ties vary between runs.
    """

    def __init__(self, provider: EffortProvider, dissimilarity: Dissimilarity,
                 compared_fauna: ComparedFauna, min_species: int, max_species: int,
                 batch_size: int = EFFORT_BATCH_SIZE,
                 tally_source: Optional[TallySource] = None,
                 rng: Optional[random.Random] = None,
                 max_passes: Optional[int] = None,
                 show_progress: bool = True,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            provider: Source of eligible location efforts
            dissimilarity: Scoring function between a cluster tally and a location tally
            compared_fauna: Scope of the efforts
            min_species: Smallest total species count of an eligible location
            max_species: Largest total species count of an eligible location
            batch_size: Number of efforts requested per read
            tally_source: Decodes an effort's tallies; defaults to decoding directly
            rng: Random source for tie-breaking
            max_passes: Maximum number of passes, including any proximity pass, or None for no limit
            show_progress: If True, show a progress bar for each pass
            logger: Optional logger instance
        """
        if max_passes is not None and max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {max_passes}")
        self.provider = provider
        self.dissimilarity = dissimilarity
        self.compared_fauna = compared_fauna
        self.min_species = min_species
        self.max_species = max_species
        self.batch_size = batch_size
        self.tally_source = tally_source or LocationEffort.get_tallies
        self.rng = rng or random.Random()
        self.max_passes = max_passes
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger(__name__)

        self.highest_rank_index = dissimilarity.metric.highest_rank_index
        self.proximity_resolution = dissimilarity.metric.proximity_resolution

    def assign(self, seed_location_ids: List[int]) -> ClusteringResult:
        """Cluster every eligible location around the given seeds.

        Raises:
            ValueError: If seed IDs repeat or a seed has no effort in scope
        """
        seed_efforts = self._get_seed_efforts(seed_location_ids)
        if not seed_efforts:
            return ClusteringResult()

        seed_ids = set(seed_location_ids)
        cluster_by_location_id: Dict[int, int] = {}
        centroids: List[_Centroid] = []
        cluster_tallies: List[TaxonTallyMap] = []
        next_cluster_tallies: List[TaxonTallyMap] = []

        for i, seed_effort in enumerate(seed_efforts):
            cluster_by_location_id[seed_effort.location_id] = i
            centroid = _Centroid()
            centroid.add(seed_effort)
            centroids.append(centroid)
            tallies = self.tally_source(seed_effort)
            cluster_tallies.append(tallies)
            next_cluster_tallies.append(copy_tally_map(tallies))

        # Initial assignment; seeds already belong to their own clusters.
        assigned = 0
        for effort in self._iterate_efforts("Initial assignment"):
            if effort.location_id in seed_ids:
                continue
            tallies = self.tally_source(effort)
            nearest_index = self._get_nearest_cluster_index(
                cluster_tallies, centroids, effort, tallies, None, False)
            cluster_by_location_id[effort.location_id] = nearest_index
            centroids[nearest_index].add(effort)
            update_taxon_tallies(next_cluster_tallies[nearest_index], tallies)
            assigned += 1
        self._advance_centroids(centroids)
        self.logger.info(f"Initially assigned {assigned} locations to {len(seed_efforts)} clusters")

        passes = 0
        last_pass = False
        converged = False
        while True:
            cluster_tallies = next_cluster_tallies
            next_cluster_tallies = [{} for _ in cluster_tallies]
            passes += 1

            reassigned = 0
            for effort in self._iterate_efforts(f"Pass {passes}"):
                tallies = self.tally_source(effort)
                current_index = cluster_by_location_id.get(effort.location_id)
                nearest_index = self._get_nearest_cluster_index(
                    cluster_tallies, centroids, effort, tallies, current_index, last_pass)
                if nearest_index != current_index:
                    cluster_by_location_id[effort.location_id] = nearest_index
                    reassigned += 1
                centroids[nearest_index].add(effort)
                update_taxon_tallies(next_cluster_tallies[nearest_index], tallies)
            self._advance_centroids(centroids)

            if last_pass:
                self.logger.info(f"Proximity pass {passes}: reassigned {reassigned} locations")
                break
            self.logger.info(f"Pass {passes}: reassigned {reassigned} locations")

            at_pass_cap = self.max_passes is not None and passes >= self.max_passes
            if reassigned == 0:
                converged = True
                if not self.proximity_resolution:
                    break
                if at_pass_cap:
                    self.logger.debug(f"Skipping proximity pass; reached {passes} passes")
                    break
                last_pass = True
            elif at_pass_cap:
                self.logger.warning(f"Stopped after {passes} passes with {reassigned} locations "
                                    f"still moving; returning the current partition")
                break

        result = self._build_result(seed_efforts, cluster_by_location_id,
                                    next_cluster_tallies, passes, converged)
        sizes = [len(cluster.location_ids) for cluster in result.clusters]
        self.logger.info(f"{len(result.clusters)} clusters {sizes} after {passes} passes")
        return result

    def _get_seed_efforts(self, seed_location_ids: List[int]) -> List[LocationEffort]:
        if len(set(seed_location_ids)) != len(seed_location_ids):
            raise ValueError(f"Duplicate seed location IDs: {seed_location_ids}")
        if not seed_location_ids:
            return []

        seed_efforts = self.provider.get_by_location_ids(self.compared_fauna, seed_location_ids)
        found_ids = {effort.location_id for effort in seed_efforts}
        missing_ids = [location_id for location_id in seed_location_ids
                       if location_id not in found_ids]
        if missing_ids:
            raise ValueError(f"No {self.compared_fauna.value} efforts for seed locations {missing_ids}")

        efforts_by_id = {effort.location_id: effort for effort in seed_efforts}
        return [efforts_by_id[location_id] for location_id in seed_location_ids]

    def _iterate_efforts(self, desc: str) -> Iterator[LocationEffort]:
        efforts = self.provider.iterate_efforts(self.compared_fauna, self.min_species,
                                                self.max_species, self.batch_size)
        if self.show_progress:
            efforts = tqdm(efforts, desc=desc, unit=" locations")
        return efforts

    def _get_nearest_cluster_index(self, cluster_tallies: List[TaxonTallyMap],
                                   centroids: List[_Centroid], effort: LocationEffort,
                                   tallies: TaxonTallyMap, current_index: Optional[int],
                                   last_pass: bool) -> int:
        min_dissimilarity = math.inf
        tied_indexes: List[int] = []
        for i, cluster_tally_map in enumerate(cluster_tallies):
            dissimilarity = self.dissimilarity(cluster_tally_map, tallies)
            if dissimilarity == min_dissimilarity:
                tied_indexes.append(i)
            elif dissimilarity < min_dissimilarity:
                tied_indexes = [i]
                min_dissimilarity = dissimilarity

        if len(tied_indexes) == 1:
            return tied_indexes[0]

        if last_pass and self.proximity_resolution and effort.has_coordinates:
            nearest_indexes = self._get_nearest_centroid_indexes(tied_indexes, centroids, effort)
            if len(nearest_indexes) == 1:
                return nearest_indexes[0]
            if nearest_indexes:
                tied_indexes = nearest_indexes

        # Staying put among equals keeps ties from oscillating between passes.
        if current_index in tied_indexes:
            return current_index

        chosen_index = self.rng.choice(tied_indexes)
        self.logger.debug(f"Location {effort.location_id} tied among clusters {tied_indexes}; "
                          f"randomly chose {chosen_index}")
        return chosen_index

    @staticmethod
    def _get_nearest_centroid_indexes(indexes: List[int], centroids: List[_Centroid],
                                      effort: LocationEffort) -> List[int]:
        located = [i for i in indexes if centroids[i].has_coordinates]
        if not located:
            return []
        distances = distance_in_km(effort.latitude, effort.longitude,
                                   [centroids[i].latitude for i in located],
                                   [centroids[i].longitude for i in located])
        min_distance = distances.min()
        return [i for i, distance in zip(located, distances) if distance == min_distance]

    @staticmethod
    def _advance_centroids(centroids: List[_Centroid]) -> None:
        for centroid in centroids:
            centroid.advance()

    def _build_result(self, seed_efforts: List[LocationEffort], cluster_by_location_id: Dict[int, int],
                      final_tallies: List[TaxonTallyMap], passes: int,
                      converged: bool) -> ClusteringResult:
        location_ids_by_cluster: List[List[int]] = [[] for _ in seed_efforts]
        for location_id in sorted(cluster_by_location_id):
            location_ids_by_cluster[cluster_by_location_id[location_id]].append(location_id)

        clusters = []
        for i, seed_effort in enumerate(seed_efforts):
            clusters.append(TaxaCluster(
                index=i,
                seed_location_id=seed_effort.location_id,
                location_ids=location_ids_by_cluster[i],
                tallies=final_tallies[i],
                visits_by_taxon_unique=visits_by_taxon_unique(final_tallies[i],
                                                              self.highest_rank_index),
            ))
        return ClusteringResult(clusters=clusters, passes=passes, converged=converged)
