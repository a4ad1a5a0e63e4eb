"""
MCMC chain initialization from a MAP extraction.

A short optimizing run usually lands near a posterior mode. Its point
estimate, converted here to constrained-space values, is passed to NUTS via
``SamplingConfig.init_values`` (``init_to_value``) so that the single
extraction chain starts from that mode.

NumPyro's ``init_to_value`` maps constrained values to unconstrained space
itself; the only work needed is to keep simplex entries off the support
boundary and to recover the hidden EMu multiplier.
"""

from typing import Dict

import jax.numpy as jnp
import numpy as np

from ..errors import UsageError
from ..models.config.enums import InferenceStrategy, ModelFamily, ProblemType
from .results import InferenceResult

# Simplex entries are clamped to at least this value before renormalizing;
# NumPyro rejects initial values where the log-density is -inf
_EPS = 1e-6

# ------------------------------------------------------------------------------


def _clamp_simplex(values: np.ndarray) -> np.ndarray:
    """Move simplex rows away from the boundary and renormalize."""
    clamped = np.clip(values, _EPS, None)
    return clamped / clamped.sum(axis=-1, keepdims=True)


# ------------------------------------------------------------------------------


def compute_init_values(result: InferenceResult) -> Dict[str, jnp.ndarray]:
    """
    Initial values for an extraction chain from a MAP extraction result.

    Parameters
    ----------
    result : InferenceResult
        Result of an optimizing extraction.

    Returns
    -------
    Dict[str, jnp.ndarray]
        ``signatures`` (n_signatures, n_categories) and ``exposures``
        (n_samples, n_signatures); EMu results add ``multiplier``
        (n_samples,), the total activity of each catalogue.

    Raises
    ------
    UsageError
        If the result is not an optimizing extraction result.
    """
    if result.problem != ProblemType.EXTRACT:
        raise UsageError(
            "Initial values can only be computed from an extraction result, "
            f"got '{result.problem.value}'"
        )
    if result.strategy != InferenceStrategy.OPTIMIZING:
        raise UsageError(
            "Initial values are computed from an optimizing result, got "
            f"'{result.strategy.value}'"
        )

    init = {
        "signatures": jnp.asarray(_clamp_simplex(result.signatures)),
        "exposures": jnp.asarray(_clamp_simplex(result.exposures)),
    }
    if result.family == ModelFamily.EMU:
        # Exposures sum to one, so each catalogue's activities sum to its
        # multiplier
        multiplier = result.posterior_mean("activities").sum(axis=-1)
        init["multiplier"] = jnp.asarray(np.maximum(multiplier, _EPS))
    return init
