"""
Models for mutsig.

Six NumPyro model functions (NMF and EMu formulations of the fit, extract
and fit-extract problems), the registry that maps a (family, problem) pair
to them, and the request assembled for one inference call.
"""

from .config import (
    InferenceConfig,
    InferenceStrategy,
    ModelFamily,
    OptimizingConfig,
    OpportunityReference,
    ProblemType,
    SamplingConfig,
    SelectionRule,
    VariationalConfig,
)
from .model_registry import ModelRegistry, ModelSpec, build_default_registry

__all__ = [
    "InferenceConfig",
    "SamplingConfig",
    "OptimizingConfig",
    "VariationalConfig",
    "InferenceStrategy",
    "ModelFamily",
    "ProblemType",
    "OpportunityReference",
    "SelectionRule",
    "ModelRegistry",
    "ModelSpec",
    "build_default_registry",
]
