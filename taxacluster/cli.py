"""
Command-line interface for taxacluster.
"""

import argparse
import logging
import random
import sys
from pathlib import Path

from .analyze import format_cluster_report, summarize_clusters
from .clusterer import create_clusterer
from .config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_CLUSTERS,
    DEFAULT_MAX_SPECIES,
    DEFAULT_MIN_SPECIES,
    ClusterSpec,
    SeedComparison,
)
from .dissimilarity import DissimilarityBasis, DissimilarityMetric, DissimilarityTransform, TaxonWeight
from .effort_cache import EffortCache
from .taxa import ComparedFauna, TaxonRank
from .utils import create_provider, load_efforts_from_json, save_clusters_to_file


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_seed_ids(value: str):
    """Parse a comma-separated list of location IDs."""
    try:
        return [int(v) for v in value.split(',') if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid seed location IDs: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='taxacluster: Cluster survey locations by the similarity of their taxa',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  taxacluster efforts.json                          # Creates efforts.clusters.json
  taxacluster efforts.json --format tsv -o clusters.tsv
  taxacluster efforts.json --max-clusters 5 --weight "equal weighted" --transform sqrt
  taxacluster efforts.json --seeds 3,7,12 --export-report report.txt -v
  taxacluster efforts.json --highest-rank family --proximity-resolution
        """
    )

    # Required arguments
    parser.add_argument(
        'input',
        help='Input JSON file of location effort records'
    )

    # Output options
    parser.add_argument(
        '-o', '--output',
        help='Output path for clustering results (default: input basename with .clusters extension)'
    )
    parser.add_argument(
        '--format',
        choices=['json', 'tsv', 'text'],
        default='json',
        help='Output format (default: json)'
    )
    parser.add_argument(
        '--export-report',
        help='Write a text report of the clusters to this file'
    )

    # Metric options
    parser.add_argument(
        '--basis',
        choices=[basis.value for basis in DissimilarityBasis],
        default=DissimilarityBasis.DIFF_MINUS_COMMON_TAXA.value,
        help='Dissimilarity basis (default: %(default)s)'
    )
    parser.add_argument(
        '--weight',
        choices=[weight.value for weight in TaxonWeight],
        default=TaxonWeight.UNWEIGHTED.value,
        help='Per-rank taxon weighting (default: %(default)s)'
    )
    parser.add_argument(
        '--transform',
        choices=[transform.value for transform in DissimilarityTransform],
        default=DissimilarityTransform.NONE.value,
        help='Transform applied to the aggregated weight (default: %(default)s)'
    )
    parser.add_argument(
        '--highest-rank',
        choices=[rank.value for rank in TaxonRank],
        default=TaxonRank.KINGDOM.value,
        help='Highest taxonomic rank compared (default: %(default)s)'
    )
    parser.add_argument(
        '--proximity-resolution',
        action='store_true',
        help='Resolve remaining ties by distance to cluster centroids'
    )

    # Selection options
    parser.add_argument(
        '--compared-fauna',
        choices=[fauna.value for fauna in ComparedFauna],
        default=ComparedFauna.ALL.value,
        help='Scope the efforts were tallied over (default: %(default)s)'
    )
    parser.add_argument(
        '--min-species',
        type=int,
        default=DEFAULT_MIN_SPECIES,
        help=f'Minimum total species of a clustered location (default: {DEFAULT_MIN_SPECIES})'
    )
    parser.add_argument(
        '--max-species',
        type=int,
        default=DEFAULT_MAX_SPECIES,
        help=f'Maximum total species of a clustered location (default: {DEFAULT_MAX_SPECIES})'
    )
    parser.add_argument(
        '--max-clusters',
        type=int,
        default=DEFAULT_MAX_CLUSTERS,
        help=f'Number of seed locations to select (default: {DEFAULT_MAX_CLUSTERS})'
    )
    parser.add_argument(
        '--seeds',
        type=parse_seed_ids,
        help='Comma-separated seed location IDs to use instead of selecting seeds'
    )
    parser.add_argument(
        '--per-seed',
        action='store_true',
        help='Compare seed candidates with each prior seed rather than with all prior seeds combined'
    )

    # Run options
    parser.add_argument(
        '--batch-size',
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f'Number of efforts read per batch (default: {DEFAULT_BATCH_SIZE})'
    )
    parser.add_argument(
        '--max-passes',
        type=int,
        help='Maximum number of reassignment passes (default: until stable)'
    )
    parser.add_argument(
        '--random-seed',
        type=int,
        help='Seed for random tie-breaking, for reproducible results'
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser


def main(argv=None):
    """Main entry point for the taxacluster CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)

    try:
        input_path = Path(args.input)
        if not input_path.exists():
            logging.error(f"Input file not found: {args.input}")
            sys.exit(1)

        if args.output is None:
            ext = {'json': '.json', 'tsv': '.tsv', 'text': '.txt'}[args.format]
            args.output = str(input_path.with_suffix('.clusters' + ext))

        # Configuration errors surface before any efforts are loaded
        metric = DissimilarityMetric(
            basis=args.basis,
            weight=args.weight,
            highest_compared_rank=args.highest_rank,
            transform=args.transform,
            proximity_resolution=args.proximity_resolution,
        )
        cluster_spec = ClusterSpec(
            metric=metric,
            compared_fauna=args.compared_fauna,
            min_species=args.min_species,
            max_species=args.max_species,
            max_clusters=len(args.seeds) if args.seeds else args.max_clusters,
            seed_comparison=SeedComparison.PER_SEED if args.per_seed else SeedComparison.CUMULATIVE,
            batch_size=args.batch_size,
        )

        logging.info(f"Loading efforts from {args.input}")
        efforts = load_efforts_from_json(str(input_path))
        logging.info(f"Loaded {len(efforts)} efforts")
        locality_names = {e.location_id: e.locality_name for e in efforts if e.locality_name}

        provider = create_provider(efforts, cluster_spec.compared_fauna)
        effort_cache = EffortCache()
        rng = random.Random(args.random_seed) if args.random_seed is not None else None
        clusterer = create_clusterer(
            provider,
            cluster_spec,
            effort_cache=effort_cache,
            rng=rng,
            max_passes=args.max_passes,
            show_progress=not args.no_progress,
        )

        if args.seeds:
            seed_location_ids = args.seeds
            logging.info(f"Using {len(seed_location_ids)} provided seed locations")
        else:
            logging.info(f"Selecting up to {cluster_spec.max_clusters} seed locations...")
            seed_location_ids = clusterer.get_seed_location_ids(
                cluster_spec.max_clusters, cluster_spec.use_cumulative_taxa)
            if not seed_location_ids:
                logging.error("No eligible locations from which to select seeds")
                sys.exit(1)

        logging.info("Clustering locations...")
        result = clusterer.get_taxa_clusters(seed_location_ids)

        stats = effort_cache.get_cache_stats()
        logging.debug(f"Effort cache: {stats['cached_efforts']} cached, {stats['hits']} hits, "
                      f"{stats['misses']} misses")
        for summary in summarize_clusters(result):
            logging.debug(f"Cluster {summary['index'] + 1}: {summary['n_locations']} locations, "
                          f"{summary['n_taxa']} taxa")

        logging.debug(f"Saving results to {args.output}")
        save_clusters_to_file(result, args.output, format=args.format,
                              locality_names=locality_names)

        if args.export_report:
            logging.info(f"Exporting report to {args.export_report}")
            with open(args.export_report, 'w') as f:
                f.write(format_cluster_report(result, locality_names))

        logging.debug("Done!")

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
