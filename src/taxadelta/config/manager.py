"""
Configuration Manager for taxadelta
===================================

Analysis settings are layered: DEFAULT_CONFIG, then a YAML/JSON file, then
command-line overrides. Environment variables (``$VAR`` / ``${VAR}``) are
expanded in every string value, so input paths can point at shared storage:

    data:
      feature_table: ${PROJECT_DATA}/otu_table.tsv

The effective configuration is saved next to the results.
"""

import os
import yaml
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
from copy import deepcopy

from .defaults import DEFAULT_CONFIG
from ..data.preprocessing import check_data_type

logger = logging.getLogger(__name__)

REQUIRED_KEYS = (
    "analysis.subject_var",
    "analysis.time_var",
    "analysis.change_base",
    "analysis.feature_level",
    "output.base_dir",
)

_READERS = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.load,
}


class ConfigManager:
    """
    Layered configuration for paired change analyses.

    Example:
        config = ConfigManager.from_file("configs/antibiotics.yaml")
        config.update({"analysis.change_base": "baseline", "analysis.group_var": None})
        config.validate()
        levels = config.get("analysis.feature_level")
        config.save("results/antibiotics/config_used.yaml")
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Args:
            config_dict: Nested settings merged over DEFAULT_CONFIG
        """
        merged = _deep_merge(DEFAULT_CONFIG, config_dict or {})
        self.config = _expand_env(merged)

    @classmethod
    def from_file(cls, path: Path) -> "ConfigManager":
        """Load a YAML or JSON file (chosen by suffix). An empty file means defaults."""
        path = Path(path)
        reader = _READERS.get(path.suffix.lower())
        if reader is None:
            raise ValueError(f"Unsupported config format: {path.suffix} (expected .yaml, .yml or .json)")
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        logger.info(f"Loading configuration from {path}")
        with open(path, "r") as f:
            user_config = reader(f) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"Configuration file {path} must hold a mapping of sections")
        return cls(user_config)

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "ConfigManager":
        return cls.from_file(yaml_path)

    def get(self, key: str, default: Any = None) -> Any:
        """Value at a dotted key (e.g. "analysis.prev_filter"), or default."""
        value = self.config
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return default
            value = value[k]
        return value

    def set(self, key: str, value: Any):
        """Set a dotted key, creating intermediate sections as needed."""
        *parents, last = key.split(".")
        section = self.config
        for k in parents:
            section = section.setdefault(k, {})
            if not isinstance(section, dict):
                raise ValueError(f"Cannot set '{key}': '{k}' is not a section")
        section[last] = value

    def update(self, overrides: Dict[str, Any], skip_none: bool = True):
        """
        Apply dotted-key overrides, e.g. parsed command-line options.

        Args:
            overrides: {"analysis.change_base": "1", ...}
            skip_none: Leave keys whose override is None untouched
        """
        for key, value in overrides.items():
            if value is None and skip_none:
                continue
            self.set(key, str(value) if isinstance(value, Path) else value)

    def save(self, save_path: Path, format: Optional[str] = None):
        """
        Save the effective configuration.

        Args:
            save_path: Destination file
            format: 'yaml' or 'json'; inferred from the suffix if None
        """
        save_path = Path(save_path)
        if format is None:
            format = "json" if save_path.suffix.lower() == ".json" else "yaml"
        if format not in ("yaml", "json"):
            raise ValueError(f"Unsupported format: {format}")

        save_path.parent.mkdir(parents=True, exist_ok=True)
        with open(save_path, "w") as f:
            if format == "yaml":
                yaml.safe_dump(self.config, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(self.config, f, indent=2)
        logger.info(f"Configuration saved to {save_path}")

    def validate(self, required_keys: Iterable[str] = REQUIRED_KEYS):
        """
        Check the settings before any data is read.

        Raises:
            ValueError: Missing required keys, unknown data type, metric or
                ranking names, empty level list, out-of-range thresholds,
                identical baseline and follow-up, or a bad worker count
        """
        from ..analysis.metrics import METRIC_NAMES
        from ..analysis.selector import RANK_FUNCTIONS

        missing_keys = [key for key in required_keys if self.get(key) is None]
        if missing_keys:
            raise ValueError(f"Missing required configuration keys: {missing_keys}")

        check_data_type(self.get("data.feature_dat_type"))

        change_func = self.get("analysis.feature_change_func")
        if not callable(change_func) and change_func not in METRIC_NAMES:
            raise ValueError(f"analysis.feature_change_func must be one of "
                             f"{list(METRIC_NAMES)}, got {change_func!r}")

        top_k_func = self.get("analysis.top_k_func")
        if top_k_func is not None and not callable(top_k_func) and top_k_func not in RANK_FUNCTIONS:
            raise ValueError(f"analysis.top_k_func must be one of {list(RANK_FUNCTIONS)}, "
                             f"got {top_k_func!r}")
        top_k_plot = self.get("analysis.top_k_plot")
        if top_k_plot is not None and int(top_k_plot) < 1:
            raise ValueError(f"analysis.top_k_plot must be a positive integer, got {top_k_plot}")

        if not self.get("analysis.feature_level"):
            raise ValueError("analysis.feature_level must name at least one level")

        prev_filter = self.get("analysis.prev_filter", 0)
        abund_filter = self.get("analysis.abund_filter", 0)
        if not 0 <= prev_filter <= 1:
            raise ValueError(f"analysis.prev_filter must be in [0, 1], got {prev_filter}")
        if abund_filter < 0:
            raise ValueError(f"analysis.abund_filter must be >= 0, got {abund_filter}")

        change_after = self.get("analysis.change_after")
        if change_after is not None and str(change_after) == str(self.get("analysis.change_base")):
            raise ValueError("analysis.change_after must differ from analysis.change_base")

        if int(self.get("analysis.max_workers", 1)) < 1:
            raise ValueError("analysis.max_workers must be at least 1")

        logger.info("Configuration validation passed")

    def to_dict(self) -> dict:
        """Deep copy of the effective settings."""
        return deepcopy(self.config)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base; sections merge, values replace."""
    result = deepcopy(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result


def _expand_env(config: Any) -> Any:
    """Expand $VAR / ${VAR} in every string; unknown variables are left as written."""
    if isinstance(config, dict):
        return {k: _expand_env(v) for k, v in config.items()}
    if isinstance(config, list):
        return [_expand_env(item) for item in config]
    if isinstance(config, str):
        return os.path.expandvars(config)
    return config
