"""Deterministic file names for per-level analysis outputs."""

from typing import Optional


def build_output_name(prefix: str,
                      subject_var: str,
                      time_var: str,
                      feature_level: str,
                      prev_filter: float,
                      abund_filter: float,
                      change_base: Optional[str] = None,
                      group_var: Optional[str] = None,
                      strata_var: Optional[str] = None,
                      file_ann: Optional[str] = None,
                      suffix: str = ".tsv") -> str:
    """
    Compose an output file name from the parameters of one analysis call.

    Example:
        >>> build_output_name("taxa_indiv_change", "subject", "time", "Family",
        ...                   0.01, 0.01, change_base="1", group_var="arm")
        'taxa_indiv_change_subject_subject_time_time_change_base_1_feature_level_Family_prev_filter_0.01_abund_filter_0.01_group_arm.tsv'
    """
    parts = [prefix, "subject", subject_var, "time", time_var]
    if change_base is not None:
        parts += ["change_base", str(change_base)]
    parts += [
        "feature_level", feature_level,
        "prev_filter", _format_threshold(prev_filter),
        "abund_filter", _format_threshold(abund_filter),
    ]
    if group_var is not None:
        parts += ["group", group_var]
    if strata_var is not None:
        parts += ["strata", strata_var]
    if file_ann is not None:
        parts.append(file_ann)

    return "_".join(str(p) for p in parts) + suffix


def _format_threshold(value: float) -> str:
    # 0 rather than 0.0 so overridden thresholds read the same as user-given zeros
    if float(value) == int(value):
        return str(int(value))
    return repr(float(value))
