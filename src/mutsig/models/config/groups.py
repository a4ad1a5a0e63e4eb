"""
Inference configuration groups using Pydantic for type safety and validation.

Each inference strategy has its own configuration group enumerating the
knobs it supports (iteration counts, chain count, step size, seed, ...).
``InferenceConfig`` bundles the strategy tag with exactly one matching group.
All groups are immutable; use ``model_copy(update=...)`` to derive variants.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import InferenceStrategy

# ==============================================================================
# Sampling Configuration Group
# ==============================================================================


class SamplingConfig(BaseModel):
    """Configuration for full posterior sampling with NUTS."""

    model_config = ConfigDict(
        frozen=True, arbitrary_types_allowed=True, extra="forbid"
    )

    n_samples: int = Field(1_000, gt=0, description="Number of MCMC samples")
    n_warmup: int = Field(1_000, gt=0, description="Number of warmup samples")
    n_chains: int = Field(1, gt=0, description="Number of chains")
    chain_method: Literal["sequential", "parallel", "vectorized"] = Field(
        "sequential", description="How chains are run by NumPyro"
    )
    seed: int = Field(42, description="Random seed")
    nuts_kwargs: Optional[Dict[str, Any]] = Field(
        None, description="Additional keyword arguments for the NUTS kernel"
    )
    init_values: Optional[Dict[str, Any]] = Field(
        None,
        description="Constrained-space initial values for the chains",
    )
    progress_bar: bool = Field(True, description="Show a progress bar")


# ==============================================================================
# Optimizing Configuration Group
# ==============================================================================


class OptimizingConfig(BaseModel):
    """Configuration for maximum a posteriori point estimation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    n_steps: int = Field(5_000, gt=0, description="Number of optimizer steps")
    step_size: float = Field(0.01, gt=0, description="Adam step size")
    seed: int = Field(42, description="Random seed")
    progress_bar: bool = Field(False, description="Show a progress bar")


# ==============================================================================
# Variational Configuration Group
# ==============================================================================


class VariationalConfig(BaseModel):
    """Configuration for mean-field variational inference."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    n_steps: int = Field(10_000, gt=0, description="Number of optimizer steps")
    step_size: float = Field(0.01, gt=0, description="Adam step size")
    n_posterior_samples: int = Field(
        1_000, gt=0, description="Draws taken from the fitted guide"
    )
    seed: int = Field(42, description="Random seed")
    progress_bar: bool = Field(False, description="Show a progress bar")


StrategyConfig = Union[SamplingConfig, OptimizingConfig, VariationalConfig]

# ==============================================================================
# Unified Inference Configuration
# ==============================================================================


class InferenceConfig(BaseModel):
    """Strategy tag plus the configuration group of that strategy.

    Examples
    --------
    >>> config = InferenceConfig.from_sampling(SamplingConfig(n_samples=500))
    >>> config.strategy
    <InferenceStrategy.SAMPLING: 'sampling'>
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    strategy: InferenceStrategy
    sampling: Optional[SamplingConfig] = None
    optimizing: Optional[OptimizingConfig] = None
    variational: Optional[VariationalConfig] = None

    # --------------------------------------------------------------------------
    # Validation Methods
    # --------------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_strategy_config(self) -> "InferenceConfig":
        """Validate that the group of the selected strategy is present."""
        required = {
            InferenceStrategy.SAMPLING: ("sampling", "SamplingConfig"),
            InferenceStrategy.OPTIMIZING: ("optimizing", "OptimizingConfig"),
            InferenceStrategy.VARIATIONAL: (
                "variational",
                "VariationalConfig",
            ),
        }
        field_name, class_name = required[self.strategy]
        if getattr(self, field_name) is None:
            raise ValueError(
                f"{class_name} required for {self.strategy.value} inference"
            )
        return self

    # --------------------------------------------------------------------------
    # Factory Methods
    # --------------------------------------------------------------------------

    @classmethod
    def from_sampling(cls, config: SamplingConfig) -> "InferenceConfig":
        """Create an inference config for posterior sampling."""
        return cls(strategy=InferenceStrategy.SAMPLING, sampling=config)

    @classmethod
    def from_optimizing(cls, config: OptimizingConfig) -> "InferenceConfig":
        """Create an inference config for MAP optimization."""
        return cls(strategy=InferenceStrategy.OPTIMIZING, optimizing=config)

    @classmethod
    def from_variational(cls, config: VariationalConfig) -> "InferenceConfig":
        """Create an inference config for variational inference."""
        return cls(strategy=InferenceStrategy.VARIATIONAL, variational=config)

    # --------------------------------------------------------------------------
    # Accessors
    # --------------------------------------------------------------------------

    def get_config(self) -> StrategyConfig:
        """Return the configuration group of the selected strategy."""
        if self.strategy == InferenceStrategy.SAMPLING:
            return self.sampling
        if self.strategy == InferenceStrategy.OPTIMIZING:
            return self.optimizing
        return self.variational

    def with_updates(self, **updates: Any) -> "InferenceConfig":
        """Return a copy whose strategy group has ``updates`` applied.

        The updated group is validated again, so out-of-range or unknown
        fields raise a ``ValidationError``.
        """
        current = self.get_config()
        group = type(current).model_validate({**dict(current), **updates})
        return self.model_copy(update={self.strategy.value: group})

    @property
    def seed(self) -> int:
        """Random seed of the selected strategy."""
        return self.get_config().seed
