"""
mutsig: Bayesian mutational signature fitting and extraction

Infers mutational signatures and their exposures from mutational catalogues
with multinomial (NMF) and opportunity-weighted Poisson (EMu) models, using
NumPyro for sampling, MAP optimization and variational inference.
"""

import logging

from .api import (
    SignatureEstimator,
    extract_signatures,
    extraction_initialiser,
    fit_extract_signatures,
    fit_signatures,
)
from .core import InputProcessor, OpportunityResolver, PriorFactory
from .errors import (
    BackendFailure,
    ConfigurationError,
    ConfigurationWarning,
    MutsigError,
    ShapeError,
    UsageError,
)
from .inference import (
    CandidateFailure,
    InferenceBackend,
    InferenceResult,
    OrderSearchResult,
)
from .mc import goodness_of_fit
from .models.config import (
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
from .models.model_registry import ModelRegistry, build_default_registry

from . import viz

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "fit_signatures",
    "extract_signatures",
    "fit_extract_signatures",
    "extraction_initialiser",
    "SignatureEstimator",
    # Results
    "InferenceResult",
    "OrderSearchResult",
    "CandidateFailure",
    "goodness_of_fit",
    # Configuration
    "InferenceConfig",
    "SamplingConfig",
    "OptimizingConfig",
    "VariationalConfig",
    "InferenceStrategy",
    "ModelFamily",
    "ProblemType",
    "OpportunityReference",
    "SelectionRule",
    # Components
    "InputProcessor",
    "PriorFactory",
    "OpportunityResolver",
    "ModelRegistry",
    "build_default_registry",
    "InferenceBackend",
    "viz",
    # Errors
    "MutsigError",
    "UsageError",
    "ShapeError",
    "ConfigurationError",
    "BackendFailure",
    "ConfigurationWarning",
]
