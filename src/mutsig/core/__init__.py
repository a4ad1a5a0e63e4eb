"""
Core shared components for mutsig inference.

This module contains the input validation, prior construction and
opportunity resolution shared by the fit, extract and fit-extract problems.
"""

from .categories import (
    mutation_types,
    strand_mutation_types,
    category_labels,
    is_strand_layout,
)
from .input_processor import InputProcessor, SIGNATURE_FLOOR
from .prior_factory import PriorFactory
from .opportunities import OpportunityResolver

__all__ = [
    "InputProcessor",
    "PriorFactory",
    "OpportunityResolver",
    "SIGNATURE_FLOOR",
    "mutation_types",
    "strand_mutation_types",
    "category_labels",
    "is_strand_layout",
]
