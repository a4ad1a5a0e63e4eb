"""
Inference engine for SVI.

Two strategies run on NumPyro's SVI:

    - **optimizing**: MAP point estimate with an ``AutoDelta`` guide.
    - **variational**: mean-field approximation with an ``AutoNormal``
      guide, summarised by draws from the fitted guide.

Latent draws are obtained from the guide with ``Predictive`` and then pushed
through the model (with the observed ``counts`` site blocked) to recover the
deterministic sites.
"""

import logging
from typing import Any, Callable, Dict

import numpy as np
from jax import random
from numpyro.handlers import block
from numpyro.infer import SVI, Predictive, Trace_ELBO
from numpyro.infer.autoguide import AutoDelta, AutoNormal
from numpyro.optim import Adam

from ..errors import BackendFailure
from ..models.config import OptimizingConfig, VariationalConfig
from ..models.config.enums import InferenceStrategy
from ..models.model_registry import ModelSpec
from ..models.request import ModelRequest
from .mcmc import collect_reported_sites
from .results import InferenceResult

logger = logging.getLogger(__name__)

# ==============================================================================
# Helpers
# ==============================================================================


def _posterior_draws(
    model: Callable,
    guide: Callable,
    params: Dict[str, Any],
    rng_key,
    model_args: Dict[str, Any],
    n_samples: int,
) -> Dict[str, Any]:
    """Guide draws of the latent sites plus the deterministic model sites."""
    predictive_param = Predictive(guide, params=params, num_samples=n_samples)
    posterior_samples = predictive_param(rng_key, **model_args)

    # The observed site is blocked so Predictive does not resample it
    blocked_model = block(model, hide=["counts"])
    predictive_model = Predictive(
        blocked_model, posterior_samples=posterior_samples
    )
    model_samples = predictive_model(rng_key, **model_args)

    posterior_samples.update(model_samples)
    return posterior_samples


# ------------------------------------------------------------------------------


def _run_svi(
    spec: ModelSpec,
    request: ModelRequest,
    guide: Callable,
    n_steps: int,
    step_size: float,
    seed: int,
    progress_bar: bool,
    strategy: InferenceStrategy,
):
    """Run SVI and check that the final loss is finite."""
    model_args = request.model_args()
    svi = SVI(spec.model, guide, Adam(step_size=step_size), loss=Trace_ELBO())

    logger.info(
        "Running %s inference on '%s' for %d steps",
        strategy.value,
        spec.name,
        n_steps,
    )
    rng_key = random.PRNGKey(seed)
    svi_result = svi.run(
        rng_key,
        n_steps,
        progress_bar=progress_bar,
        stable_update=True,
        **model_args,
    )

    losses = np.asarray(svi_result.losses)
    if losses.size == 0 or not np.isfinite(losses[-1]):
        raise BackendFailure(
            f"{strategy.value.capitalize()} inference did not converge "
            f"(final loss {losses[-1] if losses.size else 'n/a'})",
            strategy=strategy,
        )
    return svi_result.params, losses, model_args, rng_key


# ==============================================================================
# SVI inference engine
# ==============================================================================


class SVIInferenceEngine:
    """Handles optimizing and variational inference execution."""

    @staticmethod
    def run_optimizing(
        spec: ModelSpec,
        request: ModelRequest,
        config: OptimizingConfig,
    ) -> InferenceResult:
        """
        Compute a MAP point estimate.

        The estimate is stored as a single draw so that result accessors
        behave as for the other strategies.
        """
        guide = AutoDelta(spec.model)
        params, losses, model_args, rng_key = _run_svi(
            spec,
            request,
            guide,
            config.n_steps,
            config.step_size,
            config.seed,
            config.progress_bar,
            InferenceStrategy.OPTIMIZING,
        )
        draws = _posterior_draws(
            spec.model, guide, params, rng_key, model_args, n_samples=1
        )
        return InferenceResult(
            strategy=InferenceStrategy.OPTIMIZING,
            request=request,
            samples=collect_reported_sites(
                spec, draws, InferenceStrategy.OPTIMIZING
            ),
            losses=losses,
            diagnostics={"final_loss": float(losses[-1])},
        )

    # --------------------------------------------------------------------------

    @staticmethod
    def run_variational(
        spec: ModelSpec,
        request: ModelRequest,
        config: VariationalConfig,
    ) -> InferenceResult:
        """
        Fit a mean-field ``AutoNormal`` guide by maximizing the ELBO.

        Parameters
        ----------
        spec : ModelSpec
            Model specification.
        request : ModelRequest
            Validated payload.
        config : VariationalConfig
            Step count, step size, seed and number of guide draws.

        Returns
        -------
        InferenceResult
            ``config.n_posterior_samples`` draws from the fitted guide, with
            the ELBO loss trace.
        """
        guide = AutoNormal(spec.model)
        params, losses, model_args, rng_key = _run_svi(
            spec,
            request,
            guide,
            config.n_steps,
            config.step_size,
            config.seed,
            config.progress_bar,
            InferenceStrategy.VARIATIONAL,
        )
        _, sample_key = random.split(rng_key)
        draws = _posterior_draws(
            spec.model,
            guide,
            params,
            sample_key,
            model_args,
            n_samples=config.n_posterior_samples,
        )
        return InferenceResult(
            strategy=InferenceStrategy.VARIATIONAL,
            request=request,
            samples=collect_reported_sites(
                spec, draws, InferenceStrategy.VARIATIONAL
            ),
            losses=losses,
            diagnostics={"final_loss": float(losses[-1])},
        )
