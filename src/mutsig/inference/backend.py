"""
Inference routing using registry pattern.

``InferenceBackend.run`` dispatches a request to the handler registered for
the strategy of the inference configuration. Engine errors and
non-convergence are reported as ``BackendFailure``.
"""

import logging
from typing import Callable

from ..errors import BackendFailure, ConfigurationError, MutsigError
from ..models.config import (
    InferenceConfig,
    OptimizingConfig,
    SamplingConfig,
    StrategyConfig,
    VariationalConfig,
)
from ..models.config.enums import InferenceStrategy
from ..models.model_registry import ModelSpec
from ..models.request import ModelRequest
from .results import InferenceResult

logger = logging.getLogger(__name__)

# ==============================================================================
# Registry for strategy handlers
# ==============================================================================

_StrategyHandler = Callable[
    [ModelSpec, ModelRequest, StrategyConfig], InferenceResult
]

# Handlers are registered at module import time
_STRATEGY_HANDLERS: dict[InferenceStrategy, _StrategyHandler] = {}


def _register_strategy_handler(
    strategy: InferenceStrategy, handler: _StrategyHandler
) -> None:
    """Register the handler executing inference for ``strategy``."""
    _STRATEGY_HANDLERS[strategy] = handler


# ------------------------------------------------------------------------------
# Handler implementations (registered below)
# ------------------------------------------------------------------------------


def _sampling_handler(
    spec: ModelSpec, request: ModelRequest, config: StrategyConfig
) -> InferenceResult:
    """Handler for posterior sampling."""
    from .mcmc import MCMCInferenceEngine

    if not isinstance(config, SamplingConfig):
        raise ConfigurationError(
            f"Expected SamplingConfig for sampling, got {type(config)}"
        )
    return MCMCInferenceEngine.run_inference(spec, request, config)


def _optimizing_handler(
    spec: ModelSpec, request: ModelRequest, config: StrategyConfig
) -> InferenceResult:
    """Handler for MAP optimization."""
    from .svi import SVIInferenceEngine

    if not isinstance(config, OptimizingConfig):
        raise ConfigurationError(
            f"Expected OptimizingConfig for optimizing, got {type(config)}"
        )
    return SVIInferenceEngine.run_optimizing(spec, request, config)


def _variational_handler(
    spec: ModelSpec, request: ModelRequest, config: StrategyConfig
) -> InferenceResult:
    """Handler for variational inference."""
    from .svi import SVIInferenceEngine

    if not isinstance(config, VariationalConfig):
        raise ConfigurationError(
            f"Expected VariationalConfig for variational, got {type(config)}"
        )
    return SVIInferenceEngine.run_variational(spec, request, config)


_register_strategy_handler(InferenceStrategy.SAMPLING, _sampling_handler)
_register_strategy_handler(InferenceStrategy.OPTIMIZING, _optimizing_handler)
_register_strategy_handler(InferenceStrategy.VARIATIONAL, _variational_handler)

# ==============================================================================
# Backend
# ==============================================================================


class InferenceBackend:
    """Runs a model specification on a request with a given strategy."""

    def run(
        self,
        spec: ModelSpec,
        request: ModelRequest,
        inference_config: InferenceConfig,
    ) -> InferenceResult:
        """
        Execute inference for one request.

        Parameters
        ----------
        spec : ModelSpec
            Specification selected for the request.
        request : ModelRequest
            Validated payload.
        inference_config : InferenceConfig
            Strategy and its configuration group.

        Returns
        -------
        InferenceResult
            Result tagged with the strategy that produced it.

        Raises
        ------
        BackendFailure
            If the engine fails or does not converge. The failure carries the
            strategy and the total number of signatures of the request.
        ConfigurationError
            If no handler is registered for the strategy.
        """
        strategy = inference_config.strategy
        handler = _STRATEGY_HANDLERS.get(strategy)
        if handler is None:
            raise ConfigurationError(
                f"No handler registered for strategy '{strategy.value}'"
            )

        try:
            return handler(spec, request, inference_config.get_config())
        except BackendFailure as exc:
            if exc.n_signatures is None:
                exc.n_signatures = request.total_signatures
            if exc.strategy is None:
                exc.strategy = strategy
            raise
        except (RuntimeError, ValueError, FloatingPointError) as exc:
            if isinstance(exc, MutsigError):
                raise
            logger.debug("Engine error in '%s'", spec.name, exc_info=True)
            raise BackendFailure(
                f"{strategy.value.capitalize()} inference of '{spec.name}' "
                f"failed: {exc}",
                strategy=strategy,
                n_signatures=request.total_signatures,
            ) from exc
