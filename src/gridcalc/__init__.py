"""gridcalc -- formula engine for grid-editing applications."""

__version__ = "0.1.0"
