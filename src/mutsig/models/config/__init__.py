"""
Configuration system for mutsig models and inference.

Uses Pydantic for validation and enums for type safety. All configs are
immutable.
"""

from .enums import (
    ModelFamily,
    ProblemType,
    InferenceStrategy,
    OpportunityReference,
    SelectionRule,
)
from .groups import (
    SamplingConfig,
    OptimizingConfig,
    VariationalConfig,
    InferenceConfig,
    StrategyConfig,
)

__all__ = [
    # Config types
    "SamplingConfig",
    "OptimizingConfig",
    "VariationalConfig",
    "InferenceConfig",
    "StrategyConfig",
    # Enums
    "ModelFamily",
    "ProblemType",
    "InferenceStrategy",
    "OpportunityReference",
    "SelectionRule",
]
