#!/usr/bin/env python
"""
taxadelta Change CLI - Paired baseline/follow-up taxon changes
===============================================================

Aggregates a feature table to one or more taxonomic levels, pairs each
subject's baseline and follow-up samples, and writes per-level tables of
individual changes and group-level summaries.

Usage:
    taxadelta-change --features data/feature_table.tsv \\
                     --taxonomy data/taxonomy.tsv \\
                     --metadata data/metadata.tsv \\
                     --subject subject --time visit --change-base 1 \\
                     --feature-level Phylum Family \\
                     --change-func lfc \\
                     --output results/paired_change

Outputs (per feature level, names encode the analysis parameters):
    - taxa_abundance_*.tsv          aggregated label x sample table
    - taxa_indiv_change_*.tsv       one row per label x subject
    - taxa_change_summary_*.tsv     one row per group x label
    - config_used.yaml              effective configuration
"""

import argparse
import logging
import sys
from pathlib import Path

from taxadelta.analysis.pipeline import run_paired_analysis
from taxadelta.config.manager import ConfigManager
from taxadelta.data.loader import load_dataset
from taxadelta.utils.logging import setup_logging
from taxadelta.utils.naming import build_output_name

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> ConfigManager:
    """Defaults, then the config file, then command-line overrides."""
    config = ConfigManager.from_file(args.config) if args.config else ConfigManager()

    overrides = {
        "data.feature_table": args.features,
        "data.taxonomy": args.taxonomy,
        "data.metadata": args.metadata,
        "data.feature_dat_type": args.data_type,
        "analysis.subject_var": args.subject,
        "analysis.time_var": args.time,
        "analysis.group_var": args.group,
        "analysis.strata_var": args.strata,
        "analysis.change_base": args.change_base,
        "analysis.change_after": args.change_after,
        "analysis.feature_level": args.feature_level,
        "analysis.feature_change_func": args.change_func,
        "analysis.features_plot": args.features_plot,
        "analysis.top_k_plot": args.top_k,
        "analysis.top_k_func": args.top_k_func,
        "analysis.prev_filter": args.prev_filter,
        "analysis.abund_filter": args.abund_filter,
        "output.base_dir": args.output,
        "output.file_ann": args.file_ann,
    }
    config.update(overrides)
    return config


def save_results(results: dict, config: ConfigManager, output_dir: Path):
    """Write per-level tables and the effective configuration."""
    output_dir.mkdir(parents=True, exist_ok=True)

    naming = dict(
        subject_var=config.get("analysis.subject_var"),
        time_var=config.get("analysis.time_var"),
        group_var=config.get("analysis.group_var"),
        strata_var=config.get("analysis.strata_var"),
        file_ann=config.get("output.file_ann"),
    )

    for level, result in results.items():
        common = dict(naming, feature_level=level,
                      prev_filter=result.prev_filter, abund_filter=result.abund_filter)

        table_path = output_dir / build_output_name("taxa_abundance", **common)
        result.table.to_csv(table_path, sep="\t")

        change_path = output_dir / build_output_name(
            "taxa_indiv_change", change_base=config.get("analysis.change_base"), **common)
        result.paired_change.to_csv(change_path, sep="\t", index=False)

        summary_path = output_dir / build_output_name(
            "taxa_change_summary", change_base=config.get("analysis.change_base"), **common)
        result.group_summary.to_csv(summary_path, sep="\t", index=False)

        logger.info(f"{level}: results written to {output_dir}")

    config.save(output_dir / "config_used.yaml")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Paired baseline/follow-up change analysis of taxon abundances',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('--config', type=Path,
                        help='YAML/JSON configuration (command-line options override it)')
    parser.add_argument('--features', type=Path,
                        help='Feature x sample abundance TSV')
    parser.add_argument('--taxonomy', type=Path,
                        help='Feature x level taxonomy TSV')
    parser.add_argument('--metadata', type=Path,
                        help='Sample metadata TSV')
    parser.add_argument('--data-type', choices=['count', 'proportion', 'other'],
                        help='Declared abundance type; counts are rarefied and TSS-normalized')
    parser.add_argument('--subject', help='Metadata column with subject IDs')
    parser.add_argument('--time', help='Metadata column with timepoints')
    parser.add_argument('--group', help='Optional grouping column')
    parser.add_argument('--strata', help='Optional strata column')
    parser.add_argument('--change-base', help='Baseline time value')
    parser.add_argument('--change-after',
                        help='Follow-up time value (required if the time column has more than two values)')
    parser.add_argument('--feature-level', nargs='+',
                        help='Taxonomy columns to aggregate on ("original" keeps raw features)')
    parser.add_argument('--change-func', choices=['difference', 'relative change', 'lfc'],
                        help='Change metric')
    parser.add_argument('--features-plot', nargs='+',
                        help='Explicit labels to report (disables filtering)')
    parser.add_argument('--top-k', type=int,
                        help='Report only the top k labels (with --top-k-func)')
    parser.add_argument('--top-k-func', choices=['mean', 'sd'],
                        help='Ranking statistic for top-k selection')
    parser.add_argument('--prev-filter', type=float, help='Minimum pooled prevalence')
    parser.add_argument('--abund-filter', type=float, help='Minimum pooled mean abundance')
    parser.add_argument('--file-ann', help='Suffix appended to output file names')
    parser.add_argument('--output', type=Path, help='Output directory')

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = build_config(args)

    output_dir = Path(config.get("output.base_dir"))
    setup_logging(config.get("logging"), log_file=output_dir / "taxadelta.log")

    logger.info("="*70)
    logger.info("taxadelta paired change analysis")
    logger.info("="*70)

    try:
        config.validate()
        dataset = load_dataset(
            config.get("data.feature_table"),
            config.get("data.taxonomy"),
            config.get("data.metadata"),
            data_type=config.get("data.feature_dat_type"),
        )
        results = run_paired_analysis(dataset, config)
    except (FileNotFoundError, TypeError, ValueError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    save_results(results, config, output_dir)
    logger.info("Analysis complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
