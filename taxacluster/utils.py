"""
Utility functions for loading efforts and writing clustering results.
"""

import json
import logging
from typing import Dict, List, Optional

from .assignment import ClusteringResult
from .effort import InMemoryEffortProvider, LocationEffort
from .taxa import ComparedFauna


def load_efforts_from_json(json_path: str) -> List[LocationEffort]:
    """
    Load location efforts from a JSON file of storage records.

    The file holds either a list of records or an object whose "efforts"
    member is that list.

    Args:
        json_path: Path to JSON file

    Returns:
        List of LocationEffort

    Raises:
        ValueError: If the file does not hold a list of records, or a record
            repeats a location ID
    """
    with open(json_path) as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get('efforts')
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of effort records in {json_path}")

    efforts = []
    seen_ids = set()
    for record in data:
        effort = LocationEffort.from_record(record)
        if effort.location_id in seen_ids:
            raise ValueError(f"Duplicate location ID {effort.location_id} in {json_path}")
        seen_ids.add(effort.location_id)
        efforts.append(effort)

    logging.debug(f"Loaded {len(efforts)} efforts from {json_path}")
    return efforts


def create_provider(efforts: List[LocationEffort],
                    compared_fauna: ComparedFauna = ComparedFauna.ALL) -> InMemoryEffortProvider:
    """Create an in-memory provider holding `efforts` under one compared fauna."""
    provider = InMemoryEffortProvider()
    provider.add_efforts(compared_fauna, efforts)
    return provider


def format_cluster_output(result: ClusteringResult,
                          locality_names: Optional[Dict[int, str]] = None) -> str:
    """
    Format clustering results for output.

    Args:
        result: Clustering result
        locality_names: Optional locality name per location ID

    Returns:
        Formatted string representation of clusters
    """
    output_lines = []

    for cluster in result.clusters:
        output_lines.append(f"Cluster {cluster.index + 1} (seed {cluster.seed_location_id}, "
                            f"{len(cluster.location_ids)} locations):")
        for location_id in cluster.location_ids:
            if locality_names and location_id in locality_names:
                output_lines.append(f"  - {location_id}\t{locality_names[location_id]}")
            else:
                output_lines.append(f"  - {location_id}")

    return "\n".join(output_lines)


def save_clusters_to_file(result: ClusteringResult,
                          output_path: str,
                          format: str = "json",
                          locality_names: Optional[Dict[int, str]] = None):
    """
    Save clustering results to a file.

    Args:
        result: Clustering result
        output_path: Path to output file
        format: Output format ("json", "tsv", or "text")
        locality_names: Optional locality name per location ID (tsv and text)
    """
    if format == "json":
        with open(output_path, 'w') as f:
            json.dump(result.to_dict(), f, indent=2)

    elif format == "tsv":
        # Tab-separated format: location_id<tab>cluster_id<tab>locality_name
        with open(output_path, 'w') as f:
            f.write("location_id\tcluster_id\tlocality_name\n")
            for cluster in result.clusters:
                for location_id in cluster.location_ids:
                    name = locality_names.get(location_id, "") if locality_names else ""
                    f.write(f"{location_id}\tcluster_{cluster.index + 1}\t{name}\n")

    elif format == "text":
        output_text = format_cluster_output(result, locality_names)
        with open(output_path, 'w') as f:
            f.write(output_text)

    else:
        raise ValueError(f"Unsupported output format: {format}")

    logging.debug(f"Wrote {len(result.clusters)} clusters to {output_path}")
