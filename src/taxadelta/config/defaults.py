"""
Default Configuration for taxadelta Paired Analyses
====================================================

This configuration can be loaded and overridden by user-provided YAML files.
"""

DEFAULT_CONFIG = {
    # Input tables (TSV)
    "data": {
        "feature_table": "data/feature_table.tsv",
        "taxonomy": "data/taxonomy.tsv",
        "metadata": "data/metadata.tsv",
        "feature_dat_type": "proportion",  # count, proportion or other
    },

    # Paired change analysis
    "analysis": {
        "subject_var": "subject",
        "time_var": "time",
        "group_var": None,
        "strata_var": None,
        "change_base": "1",
        "change_after": None,  # Inferred when the time column has two values
        "feature_level": ["Family"],
        "feature_change_func": "relative change",
        "features_plot": None,
        "top_k_plot": None,
        "top_k_func": None,  # mean or sd
        "prev_filter": 0.01,
        "abund_filter": 0.01,
        "with_prevalence": False,
        "max_workers": 4,  # One thread per feature level, up to this many
    },

    # Rarefy + TSS, applied to count data only
    "normalization": {
        "rarefy_depth": None,  # Minimum library size if None
        "random_seed": 42,
    },

    # Output directories
    "output": {
        "base_dir": "results/paired_change",
        "file_ann": None,
    },

    # Logging
    "logging": {
        "level": "INFO",
        "log_to_file": True,
        "log_to_console": True,
        "max_bytes": 10_000_000,  # Rotate the run log at 10MB
        "backup_count": 5,
    },
}
