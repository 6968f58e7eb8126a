"""
Analysis of clustering results.

This module summarizes the clusters of a run, measures how closely two runs
agree (random tie-breaking can make runs differ), and formats a text report.
"""

import warnings
from typing import Dict, List, Optional

import numpy as np
from sklearn.metrics import adjusted_mutual_info_score

from .assignment import ClusteringResult, TaxaCluster
from .taxa import RANK_COUNT, TAXON_RANKS


def summarize_cluster(cluster: TaxaCluster) -> Dict:
    """
    Summarize one cluster's membership and taxa.

    Args:
        cluster: Cluster to summarize

    Returns:
        Dict with the cluster index, seed, location and taxon counts, taxon
        counts by rank name, and total visits over all taxa
    """
    taxa_by_rank = np.zeros(RANK_COUNT, dtype=int)
    for tally in cluster.tallies.values():
        taxa_by_rank[tally.rank_index] += 1

    return {
        'index': cluster.index,
        'seed_location_id': cluster.seed_location_id,
        'n_locations': len(cluster.location_ids),
        'n_taxa': len(cluster.tallies),
        'taxa_by_rank': {TAXON_RANKS[i].value: int(taxa_by_rank[i]) for i in range(RANK_COUNT)},
        'total_visits': sum(tally.visits for tally in cluster.tallies.values()),
    }


def summarize_clusters(result: ClusteringResult) -> List[Dict]:
    return [summarize_cluster(cluster) for cluster in result.clusters]


def partition_agreement(result_a: ClusteringResult, result_b: ClusteringResult) -> float:
    """
    Adjusted mutual information between the partitions of two runs.

    Only locations clustered by both runs are compared. Cluster indexes need
    not correspond between the runs.

    Returns:
        AMI score; 1.0 when fewer than two locations are shared
    """
    labels_a = result_a.cluster_by_location_id()
    labels_b = result_b.cluster_by_location_id()
    common_ids = sorted(set(labels_a) & set(labels_b))
    if len(common_ids) < 2:
        return 1.0

    input_labels = np.array([labels_a[location_id] for location_id in common_ids])
    output_labels = np.array([labels_b[location_id] for location_id in common_ids])

    # Suppress sklearn warning about many clusters looking like regression
    with warnings.catch_warnings():
        warnings.filterwarnings('ignore', category=UserWarning, module='sklearn')
        return float(adjusted_mutual_info_score(input_labels, output_labels))


def format_cluster_report(result: ClusteringResult,
                          locality_names: Optional[Dict[int, str]] = None,
                          top_taxa: int = 10) -> str:
    """
    Format clustering results into a readable text report.

    Args:
        result: Clustering result to report
        locality_names: Optional locality name per location ID
        top_taxa: Number of most-visited taxa to list per cluster

    Returns:
        Formatted report string
    """
    lines = []
    lines.append("=" * 80)
    lines.append("TAXACLUSTER CLUSTERING REPORT")
    lines.append("=" * 80)
    lines.append("")

    non_empty = result.non_empty_clusters()
    lines.append(f"Clusters: {len(result.clusters)} ({len(non_empty)} non-empty)")
    lines.append(f"Locations: {sum(len(c.location_ids) for c in result.clusters):,}")
    lines.append(f"Reassignment passes: {result.passes}")
    lines.append(f"Converged: {'Yes' if result.converged else 'No'}")
    lines.append("")

    lines.append("INDIVIDUAL CLUSTER ANALYSIS")
    lines.append("-" * 40)

    for cluster, summary in zip(result.clusters, summarize_clusters(result)):
        seed_label = str(cluster.seed_location_id)
        if locality_names and cluster.seed_location_id in locality_names:
            seed_label += f" ({locality_names[cluster.seed_location_id]})"
        lines.append(f"\nCluster {cluster.index + 1}: seed {seed_label}")
        lines.append(f"  Locations: {summary['n_locations']:,}")
        lines.append(f"  Taxa: {summary['n_taxa']:,}")

        if summary['n_taxa'] > 0:
            lines.append("  Taxa by rank:")
            for rank_name, count in summary['taxa_by_rank'].items():
                if count > 0:
                    lines.append(f"    {rank_name}: {count}")

            ranked = sorted(cluster.visits_by_taxon_unique.items(), key=lambda item: (-item[1], item[0]))
            if ranked:
                lines.append("  Most visited taxa:")
                for taxon_unique, visits in ranked[:top_taxa]:
                    lines.append(f"    {taxon_unique}: {visits}")
        else:
            lines.append("  No taxa (empty cluster)")

    lines.append("")
    lines.append("=" * 80)

    return "\n".join(lines)
