"""
taxadelta: Paired Longitudinal Microbiome Changes
=================================================

Aggregates feature abundances to taxonomic levels and scores the change of
each taxon between a baseline and a single follow-up timepoint per subject.
"""

__version__ = "0.1.0"

from . import config
from . import data
from . import analysis
from . import utils

__all__ = ["config", "data", "analysis", "utils"]
