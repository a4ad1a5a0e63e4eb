"""
Inference for mutsig models.

This package runs a selected model specification on a request with one of
three strategies (sampling, optimizing, variational), and searches over the
number of signatures to extract.
"""

from .backend import InferenceBackend
from .inference_config import (
    create_default_inference_config,
    parse_strategy,
    prepare_inference_config,
)
from .initialiser import compute_init_values
from .order_search import (
    CandidateFailure,
    ModelOrderSearch,
    OrderSearchResult,
    select_best,
)
from .results import InferenceResult

__all__ = [
    "InferenceBackend",
    "InferenceResult",
    "ModelOrderSearch",
    "OrderSearchResult",
    "CandidateFailure",
    "select_best",
    "compute_init_values",
    "create_default_inference_config",
    "prepare_inference_config",
    "parse_strategy",
]
