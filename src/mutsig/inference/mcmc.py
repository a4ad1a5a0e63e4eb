"""
Inference engine for posterior sampling.

This module handles the execution of MCMC inference using NUTS and packs the
draws of the reported sites into an ``InferenceResult``.
"""

import logging
import warnings
from typing import Any, Dict

import numpy as np
from jax import random
from numpyro.infer import MCMC, NUTS
from numpyro.infer.initialization import init_to_value

from ..errors import BackendFailure
from ..models.config import SamplingConfig
from ..models.config.enums import InferenceStrategy
from ..models.model_registry import ModelSpec
from ..models.request import ModelRequest
from .results import InferenceResult

logger = logging.getLogger(__name__)

# ==============================================================================
# Helpers
# ==============================================================================


def collect_reported_sites(
    spec: ModelSpec,
    samples: Dict[str, Any],
    strategy: InferenceStrategy,
) -> Dict[str, np.ndarray]:
    """
    Keep the reported sites of ``spec`` and check that every draw is finite.

    Hidden nuisance sites and the observed ``counts`` site are dropped.

    Raises
    ------
    BackendFailure
        If a reported site is missing or contains non-finite values.
    """
    reported = {}
    for site in spec.latent_sites:
        if site not in samples:
            raise BackendFailure(
                f"Site '{site}' missing from the {strategy.value} output",
                strategy=strategy,
            )
        values = np.asarray(samples[site])
        if not np.all(np.isfinite(values)):
            raise BackendFailure(
                f"Non-finite draws for site '{site}'", strategy=strategy
            )
        reported[site] = values
    return reported


# ==============================================================================
# MCMC inference engine
# ==============================================================================


class MCMCInferenceEngine:
    """Handles MCMC inference execution."""

    @staticmethod
    def run_inference(
        spec: ModelSpec,
        request: ModelRequest,
        config: SamplingConfig,
    ) -> InferenceResult:
        """Execute MCMC inference using NUTS.

        Parameters
        ----------
        spec : ModelSpec
            Model specification to sample from.
        request : ModelRequest
            Validated payload; ``request.model_args()`` is passed to the
            model.
        config : SamplingConfig
            Sampling configuration. When ``init_values`` is set, chains are
            initialized through ``init_to_value``; if ``nuts_kwargs`` already
            holds an ``init_strategy`` a warning is emitted and it is
            overridden.

        Returns
        -------
        InferenceResult
            Draws of the reported sites with chains concatenated.
        """
        # Build effective NUTS kwargs, optionally injecting init_to_value
        effective_kwargs: Dict[str, Any] = dict(config.nuts_kwargs or {})
        if config.init_values is not None:
            if "init_strategy" in effective_kwargs:
                warnings.warn(
                    "init_values overrides the existing init_strategy "
                    "in nuts_kwargs.",
                    UserWarning,
                    stacklevel=2,
                )
            effective_kwargs["init_strategy"] = init_to_value(
                values=config.init_values
            )

        nuts_kernel = NUTS(spec.model, **effective_kwargs)
        mcmc = MCMC(
            nuts_kernel,
            num_samples=config.n_samples,
            num_warmup=config.n_warmup,
            num_chains=config.n_chains,
            chain_method=config.chain_method,
            progress_bar=config.progress_bar,
        )

        logger.info(
            "Sampling '%s' with %d chain(s), %d warmup and %d samples",
            spec.name,
            config.n_chains,
            config.n_warmup,
            config.n_samples,
        )
        rng_key = random.PRNGKey(config.seed)
        mcmc.run(rng_key, extra_fields=("diverging",), **request.model_args())

        samples = collect_reported_sites(
            spec, mcmc.get_samples(), InferenceStrategy.SAMPLING
        )
        n_divergences = int(np.sum(mcmc.get_extra_fields()["diverging"]))
        if n_divergences:
            logger.warning(
                "%d divergent transitions while sampling '%s'",
                n_divergences,
                spec.name,
            )

        return InferenceResult(
            strategy=InferenceStrategy.SAMPLING,
            request=request,
            samples=samples,
            n_chains=config.n_chains,
            diagnostics={"n_divergences": n_divergences},
        )
