"""Logging and output naming helpers."""

from .logging import setup_logging
from .naming import build_output_name

__all__ = ["setup_logging", "build_output_name"]
