"""
Inference configuration utilities.

This module provides helper functions for creating and preparing inference
configurations. Uses a registry pattern for extensible default config
creation.
"""

import warnings
from typing import Callable, Optional, Union

from ..errors import ConfigurationError, ConfigurationWarning
from ..models.config import (
    InferenceConfig,
    OptimizingConfig,
    SamplingConfig,
    VariationalConfig,
)
from ..models.config.enums import InferenceStrategy, ProblemType

# ==============================================================================
# Registry for default inference config factories
# ==============================================================================

_DEFAULT_CONFIG_FACTORIES: dict[
    InferenceStrategy, Callable[[], InferenceConfig]
] = {}


def _register_default_config_factory(
    strategy: InferenceStrategy, factory: Callable[[], InferenceConfig]
) -> None:
    """Register a factory function for creating default configs.

    Parameters
    ----------
    strategy : InferenceStrategy
        The inference strategy this factory handles.
    factory : Callable[[], InferenceConfig]
        Factory function that creates a default InferenceConfig.
    """
    _DEFAULT_CONFIG_FACTORIES[strategy] = factory


# ------------------------------------------------------------------------------
# Default config factory implementations
# ------------------------------------------------------------------------------


def _create_default_sampling_config() -> InferenceConfig:
    """Create default sampling config: 1000 samples, 1000 warmup, 1 chain."""
    return InferenceConfig.from_sampling(
        SamplingConfig(n_samples=1_000, n_warmup=1_000, n_chains=1)
    )


# ------------------------------------------------------------------------------


def _create_default_optimizing_config() -> InferenceConfig:
    """Create default optimizing config: 5k Adam steps."""
    return InferenceConfig.from_optimizing(
        OptimizingConfig(n_steps=5_000, step_size=0.01)
    )


# ------------------------------------------------------------------------------


def _create_default_variational_config() -> InferenceConfig:
    """Create default variational config: 10k steps, 1000 guide draws."""
    return InferenceConfig.from_variational(
        VariationalConfig(
            n_steps=10_000, step_size=0.01, n_posterior_samples=1_000
        )
    )


# ------------------------------------------------------------------------------
# Register factories
# ------------------------------------------------------------------------------

_register_default_config_factory(
    InferenceStrategy.SAMPLING, _create_default_sampling_config
)
_register_default_config_factory(
    InferenceStrategy.OPTIMIZING, _create_default_optimizing_config
)
_register_default_config_factory(
    InferenceStrategy.VARIATIONAL, _create_default_variational_config
)


# ==============================================================================
# Public API
# ==============================================================================


def parse_strategy(
    strategy: Union[str, InferenceStrategy],
) -> InferenceStrategy:
    """Convert a strategy name to ``InferenceStrategy``.

    Raises
    ------
    ConfigurationError
        If the name is not a known strategy.
    """
    try:
        return InferenceStrategy(strategy)
    except ValueError as exc:
        valid = [s.value for s in InferenceStrategy]
        raise ConfigurationError(
            f"'strategy' must be one of {valid}, got '{strategy}'"
        ) from exc


# ------------------------------------------------------------------------------


def create_default_inference_config(
    strategy: Union[str, InferenceStrategy],
) -> InferenceConfig:
    """Create the default InferenceConfig for a given strategy.

    Parameters
    ----------
    strategy : Union[str, InferenceStrategy]
        The strategy to create a default config for.

    Returns
    -------
    InferenceConfig
        Default configuration for the strategy.
    """
    strategy = parse_strategy(strategy)
    factory = _DEFAULT_CONFIG_FACTORIES.get(strategy)
    if factory is None:
        raise ConfigurationError(
            f"No default config registered for strategy '{strategy.value}'"
        )
    return factory()


# ------------------------------------------------------------------------------


def prepare_inference_config(
    problem: ProblemType,
    strategy: Optional[Union[str, InferenceStrategy]] = None,
    inference_config: Optional[InferenceConfig] = None,
    seed: Optional[int] = None,
) -> InferenceConfig:
    """
    Resolve the configuration used for one estimation call.

    The strategy is taken from ``strategy`` when given, otherwise from
    ``inference_config``, otherwise sampling. A missing config is replaced by
    the strategy's default. ``seed`` overrides the seed of the strategy
    group. Extraction-type problems are always sampled with a single chain;
    a request for more chains is overridden with a ``ConfigurationWarning``.

    Parameters
    ----------
    problem : ProblemType
        Problem being solved.
    strategy : Optional[Union[str, InferenceStrategy]], default=None
        Requested strategy.
    inference_config : Optional[InferenceConfig], default=None
        Caller-supplied configuration.
    seed : Optional[int], default=None
        Seed override.

    Returns
    -------
    InferenceConfig
        Configuration handed to the backend.

    Raises
    ------
    ConfigurationError
        If ``strategy`` and ``inference_config`` disagree, or the config is
        not an ``InferenceConfig``.
    """
    if inference_config is not None and not isinstance(
        inference_config, InferenceConfig
    ):
        raise ConfigurationError(
            "inference_config must be an InferenceConfig, got "
            f"{type(inference_config).__name__}"
        )

    if strategy is not None:
        strategy = parse_strategy(strategy)
    elif inference_config is not None:
        strategy = inference_config.strategy
    else:
        strategy = InferenceStrategy.SAMPLING

    if inference_config is None:
        inference_config = create_default_inference_config(strategy)
    elif inference_config.strategy != strategy:
        raise ConfigurationError(
            f"Strategy '{strategy.value}' does not match the "
            f"'{inference_config.strategy.value}' inference_config"
        )

    if seed is not None:
        inference_config = inference_config.with_updates(seed=int(seed))

    if (
        problem.extracts_signatures
        and strategy == InferenceStrategy.SAMPLING
        and inference_config.sampling.n_chains != 1
    ):
        warnings.warn(
            f"Signature extraction runs a single chain to avoid label "
            f"switching; ignoring n_chains="
            f"{inference_config.sampling.n_chains}.",
            ConfigurationWarning,
            stacklevel=3,
        )
        inference_config = inference_config.with_updates(n_chains=1)

    return inference_config
