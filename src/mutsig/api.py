"""
Simplified API for mutsig inference.

This module provides the public entry points for fitting known signatures,
extracting signatures de novo and fitting known signatures while extracting
additional ones. Every entry point validates its inputs, builds the priors
and the opportunity matrix, selects one of the six model specifications and
runs it with the requested inference strategy.

Functions
---------
fit_signatures
    Infer exposures to a fixed set of signatures.
extract_signatures
    Infer signatures and exposures jointly, for one or a range of
    signature counts.
fit_extract_signatures
    Fit fixed signatures and extract a number of additional ones.
extraction_initialiser
    MAP-based initial values for an extraction chain.

Examples
--------
>>> import mutsig
>>>
>>> # Exposures to known signatures under the multinomial model
>>> result = mutsig.fit_signatures(counts, signatures)
>>> result.exposures
>>>
>>> # Search over 2 to 6 signatures with the Poisson (EMu) model
>>> search = mutsig.extract_signatures(
...     counts,
...     n_signatures=range(2, 7),
...     model="emu",
...     opportunities="human-genome",
... )
>>> search.best, search.best_result.signatures
>>>
>>> # Power users can pass explicit config objects
>>> from mutsig.models.config import InferenceConfig, SamplingConfig
>>> config = InferenceConfig.from_sampling(
...     SamplingConfig(n_samples=2_000, n_warmup=1_000, n_chains=4)
... )
>>> result = mutsig.fit_signatures(counts, signatures, inference_config=config)
"""

import logging
import numbers
import warnings
from typing import Any, Iterable, Optional, Sequence, Union

import numpy as np
from rich.console import Console

from .core import InputProcessor, PriorFactory
from .errors import BackendFailure, ConfigurationWarning, UsageError
from .inference import (
    InferenceBackend,
    InferenceResult,
    ModelOrderSearch,
    OrderSearchResult,
    compute_init_values,
    prepare_inference_config,
)
from .models.config import (
    InferenceConfig,
    InferenceStrategy,
    ModelFamily,
    ProblemType,
    SelectionRule,
)
from .models.model_registry import ModelRegistry, build_default_registry
from .models.request import ModelVariantSelector

logger = logging.getLogger(__name__)

# Built once at import; frozen, so shared estimators cannot modify it
_DEFAULT_REGISTRY = build_default_registry()

# ------------------------------------------------------------------------------
# Argument helpers
# ------------------------------------------------------------------------------


def _is_scalar_count(value: Any) -> bool:
    """Whether ``value`` is a single integer (not a range or sequence)."""
    return isinstance(value, (numbers.Integral, np.integer)) and not isinstance(
        value, bool
    )


def _positive_count(value: Any, name: str) -> int:
    if not _is_scalar_count(value):
        raise UsageError(f"'{name}' must be a single integer, got {value!r}")
    if int(value) < 1:
        raise UsageError(f"'{name}' must be at least 1, got {value}")
    return int(value)


def _scalar_exposure_prior(exposure_prior: Any) -> float:
    """Exposure concentration shared by every signature of a range search."""
    if np.ndim(exposure_prior) != 0:
        raise UsageError(
            "'exposure_prior' must be a scalar when 'n_signatures' is a range"
        )
    value = float(exposure_prior)
    if not np.isfinite(value) or value <= 0:
        raise UsageError(f"'exposure_prior' must be positive, got {value}")
    return value


# ==============================================================================
# Estimator
# ==============================================================================


class SignatureEstimator:
    """
    Orchestrates validation, prior construction, model selection and
    inference for the three estimation problems.

    Parameters
    ----------
    registry : Optional[ModelRegistry], default=None
        Model registry. Defaults to the built-in registry.
    backend : Optional[InferenceBackend], default=None
        Inference backend. Defaults to ``InferenceBackend()``.
    console : Optional[rich.console.Console], default=None
        Console used for the model-order search summary.
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        backend: Optional[InferenceBackend] = None,
        console: Optional[Console] = None,
    ):
        self.registry = registry if registry is not None else _DEFAULT_REGISTRY
        self.backend = backend if backend is not None else InferenceBackend()
        self.console = console
        self.selector = ModelVariantSelector(self.registry)

    # --------------------------------------------------------------------------
    # Fit
    # --------------------------------------------------------------------------

    def fit(
        self,
        counts: Any,
        signatures: Any,
        exposure_prior: Optional[Any] = None,
        model: Union[str, ModelFamily] = "nmf",
        opportunities: Optional[Any] = None,
        strategy: Optional[Union[str, InferenceStrategy]] = None,
        inference_config: Optional[InferenceConfig] = None,
        categories: Optional[Sequence[str]] = None,
        seed: Optional[int] = None,
    ) -> InferenceResult:
        """
        Infer the exposures of each catalogue to a fixed set of signatures.

        Parameters
        ----------
        counts : array-like
            Mutational catalogues, one row per sample and one column per
            category (96, 192 or ``len(categories)`` columns).
        signatures : array-like
            Known signatures, one row per signature. Also accepts a
            parameter summary (mapping with a ``"mean"`` entry) or a
            previous ``InferenceResult``.
        exposure_prior : Optional[array-like], default=None
            Dirichlet concentration of the exposures: None (uniform), a
            scalar or one value per signature.
        model : str or ModelFamily, default="nmf"
            ``"nmf"`` (multinomial) or ``"emu"`` (Poisson with
            opportunities).
        opportunities : Optional[Any], default=None
            EMu only: a matrix like ``counts``, a single row, or
            ``"human-genome"`` / ``"human-exome"``.
        strategy : Optional[str or InferenceStrategy], default=None
            ``"sampling"``, ``"optimizing"`` or ``"variational"``. Defaults
            to the strategy of ``inference_config``, or sampling.
        inference_config : Optional[InferenceConfig], default=None
            Strategy configuration. The strategy's default when None.
            Multiple chains are honoured.
        categories : Optional[Sequence[str]], default=None
            Custom category vocabulary.
        seed : Optional[int], default=None
            Overrides the seed of the strategy configuration.

        Returns
        -------
        InferenceResult
            Exposures (and activities for EMu) draws.
        """
        count_data, _, n_categories, strand, vocabulary = (
            InputProcessor.process_counts(counts, categories)
        )
        signature_data = InputProcessor.process_signatures(
            signatures,
            n_categories,
            vocabulary,
            labelled_counts=InputProcessor.has_labels(counts),
        )
        n_signatures = signature_data.shape[0]
        exposure_data = PriorFactory.exposure_prior(
            exposure_prior, n_signatures
        )
        config = prepare_inference_config(
            ProblemType.FIT, strategy, inference_config, seed
        )

        request = self.selector.build_request(
            model,
            ProblemType.FIT,
            count_data,
            n_signatures,
            strand,
            categories=vocabulary,
            signatures=signature_data,
            opportunities=opportunities,
            exposure_prior=exposure_data,
        )
        logger.info(
            "Fitting %d signature(s) to %d catalogue(s)",
            n_signatures,
            request.n_samples,
        )
        return self.backend.run(request.spec, request, config)

    # --------------------------------------------------------------------------
    # Extract
    # --------------------------------------------------------------------------

    def extract(
        self,
        counts: Any,
        n_signatures: Union[int, Iterable[int]],
        model: Union[str, ModelFamily] = "nmf",
        opportunities: Optional[Any] = None,
        signature_prior: Optional[Any] = None,
        exposure_prior: Any = 1.0,
        strategy: Optional[Union[str, InferenceStrategy]] = None,
        inference_config: Optional[InferenceConfig] = None,
        categories: Optional[Sequence[str]] = None,
        max_workers: int = 1,
        selection: Union[str, SelectionRule] = SelectionRule.MAX_SCORE,
        plot_path: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> Union[InferenceResult, OrderSearchResult]:
        """
        Extract signatures and their exposures from the catalogues.

        Sampling always runs a single chain to avoid label switching.

        Parameters
        ----------
        counts : array-like
            Mutational catalogues.
        n_signatures : int or iterable of int
            Number of signatures to extract, or a range of candidate
            numbers (e.g. ``range(2, 7)``) for a model-order search.
        model : str or ModelFamily, default="nmf"
            Model family.
        opportunities : Optional[Any], default=None
            EMu only, see ``fit``.
        signature_prior : Optional[array-like], default=None
            Dirichlet concentrations of shape (n_signatures, n_categories).
            Only admitted for a single number of signatures.
        exposure_prior : float or array-like, default=1.0
            Dirichlet concentration of the exposures; a scalar for a range.
        strategy, inference_config, categories, seed
            See ``fit``.
        max_workers : int, default=1
            Candidates evaluated concurrently during a range search.
        selection : str or SelectionRule, default="max_score"
            Rule selecting the best candidate of a range search.
        plot_path : Optional[str], default=None
            Where to save the goodness-of-fit plot of a range search.

        Returns
        -------
        InferenceResult or OrderSearchResult
            A single result for a scalar ``n_signatures``, otherwise the
            search result keyed by number of signatures.
        """
        count_data, _, n_categories, strand, vocabulary = (
            InputProcessor.process_counts(counts, categories)
        )

        if _is_scalar_count(n_signatures):
            candidates = [_positive_count(n_signatures, "n_signatures")]
        else:
            try:
                candidates = ModelOrderSearch.normalize_candidates(n_signatures)
            except (TypeError, ValueError) as exc:
                raise UsageError(
                    "'n_signatures' must be an integer or an iterable of "
                    f"integers, got {n_signatures!r}"
                ) from exc
        PriorFactory.check_signature_prior_usage(signature_prior, candidates)

        config = prepare_inference_config(
            ProblemType.EXTRACT, strategy, inference_config, seed
        )

        if _is_scalar_count(n_signatures):
            n = candidates[0]
            request = self.selector.build_request(
                model,
                ProblemType.EXTRACT,
                count_data,
                n,
                strand,
                categories=vocabulary,
                opportunities=opportunities,
                signature_prior=PriorFactory.signature_prior(
                    signature_prior, n, n_categories
                ),
                exposure_prior=PriorFactory.exposure_prior(exposure_prior, n),
            )
            logger.info("Extracting %d signature(s)", n)
            return self.backend.run(request.spec, request, config)

        prior_value = _scalar_exposure_prior(exposure_prior)
        search = ModelOrderSearch(
            self.backend, max_workers=max_workers, selection=selection
        )
        first = candidates[0]
        base_request = self.selector.build_request(
            model,
            ProblemType.EXTRACT,
            count_data,
            first,
            strand,
            categories=vocabulary,
            opportunities=opportunities,
            signature_prior=PriorFactory.signature_prior(
                None, first, n_categories
            ),
            exposure_prior=PriorFactory.exposure_prior(prior_value, first),
        )
        search_result = search.run(
            base_request.spec,
            base_request,
            candidates,
            config,
            exposure_prior=prior_value,
        )

        search_result.print_summary(self.console)
        if plot_path is not None:
            from .viz import save_goodness_of_fit

            save_goodness_of_fit(search_result, plot_path)
            logger.info("Saved goodness-of-fit plot to %s", plot_path)
        return search_result

    # --------------------------------------------------------------------------
    # Fit-extract
    # --------------------------------------------------------------------------

    def fit_extract(
        self,
        counts: Any,
        signatures: Any,
        n_extra: int,
        model: Union[str, ModelFamily] = "nmf",
        opportunities: Optional[Any] = None,
        signature_prior: Optional[Any] = None,
        exposure_prior: Any = 1.0,
        strategy: Optional[Union[str, InferenceStrategy]] = None,
        inference_config: Optional[InferenceConfig] = None,
        categories: Optional[Sequence[str]] = None,
        seed: Optional[int] = None,
    ) -> InferenceResult:
        """
        Fit fixed signatures while extracting ``n_extra`` additional ones.

        The ``signatures`` site of the result holds the fixed signatures
        followed by the extracted ones. Sampling runs a single chain.

        Parameters
        ----------
        counts, signatures, model, opportunities
            See ``fit``.
        n_extra : int
            Number of additional signatures to extract (a single integer).
        signature_prior : Optional[array-like], default=None
            Dirichlet concentrations of the extra signatures, shape
            (n_extra, n_categories).
        exposure_prior : float or array-like, default=1.0
            Dirichlet concentration over all fixed and extra signatures.
        strategy, inference_config, categories, seed
            See ``fit``.

        Returns
        -------
        InferenceResult
            Draws of all signatures and exposures.
        """
        n_extra = _positive_count(n_extra, "n_extra")
        count_data, _, n_categories, strand, vocabulary = (
            InputProcessor.process_counts(counts, categories)
        )
        signature_data = InputProcessor.process_signatures(
            signatures,
            n_categories,
            vocabulary,
            labelled_counts=InputProcessor.has_labels(counts),
        )
        n_fixed = signature_data.shape[0]
        config = prepare_inference_config(
            ProblemType.FIT_EXTRACT, strategy, inference_config, seed
        )

        request = self.selector.build_request(
            model,
            ProblemType.FIT_EXTRACT,
            count_data,
            n_fixed,
            strand,
            categories=vocabulary,
            signatures=signature_data,
            n_extra=n_extra,
            opportunities=opportunities,
            signature_prior=PriorFactory.signature_prior(
                signature_prior, n_extra, n_categories
            ),
            exposure_prior=PriorFactory.exposure_prior(
                exposure_prior, n_fixed + n_extra
            ),
        )
        logger.info(
            "Fitting %d signature(s) and extracting %d more",
            n_fixed,
            n_extra,
        )
        return self.backend.run(request.spec, request, config)

    # --------------------------------------------------------------------------
    # Initialisation
    # --------------------------------------------------------------------------

    def extraction_initialiser(
        self,
        counts: Any,
        n_signatures: int,
        model: Union[str, ModelFamily] = "nmf",
        opportunities: Optional[Any] = None,
        signature_prior: Optional[Any] = None,
        exposure_prior: Any = 1.0,
        inference_config: Optional[InferenceConfig] = None,
        categories: Optional[Sequence[str]] = None,
        seed: Optional[int] = None,
    ):
        """
        Initial values for an extraction chain from a MAP extraction.

        Runs an optimizing extraction and converts its estimate into
        ``init_values`` for ``SamplingConfig``. If the optimization fails a
        ``ConfigurationWarning`` is emitted and None is returned, leaving
        the sampler's default initialization in place.

        Parameters
        ----------
        counts, n_signatures, model, opportunities, signature_prior,
        exposure_prior, categories, seed
            See ``extract``; ``n_signatures`` must be a single integer.
        inference_config : Optional[InferenceConfig], default=None
            Optimizing configuration.

        Returns
        -------
        Optional[Dict[str, jnp.ndarray]]
            Initial values, or None if optimization failed.
        """
        n_signatures = _positive_count(n_signatures, "n_signatures")
        try:
            result = self.extract(
                counts,
                n_signatures,
                model=model,
                opportunities=opportunities,
                signature_prior=signature_prior,
                exposure_prior=exposure_prior,
                strategy=InferenceStrategy.OPTIMIZING,
                inference_config=inference_config,
                categories=categories,
                seed=seed,
            )
        except BackendFailure as exc:
            warnings.warn(
                f"Parameter optimization failed ({exc}); using the "
                "sampler's default initialization.",
                ConfigurationWarning,
                stacklevel=2,
            )
            return None
        return compute_init_values(result)


# ==============================================================================
# Module-level entry points
# ==============================================================================


def fit_signatures(
    counts: Any,
    signatures: Any,
    exposure_prior: Optional[Any] = None,
    model: Union[str, ModelFamily] = "nmf",
    opportunities: Optional[Any] = None,
    strategy: Optional[Union[str, InferenceStrategy]] = None,
    inference_config: Optional[InferenceConfig] = None,
    categories: Optional[Sequence[str]] = None,
    seed: Optional[int] = None,
) -> InferenceResult:
    """Infer exposures to fixed signatures. See ``SignatureEstimator.fit``."""
    return SignatureEstimator().fit(
        counts,
        signatures,
        exposure_prior=exposure_prior,
        model=model,
        opportunities=opportunities,
        strategy=strategy,
        inference_config=inference_config,
        categories=categories,
        seed=seed,
    )


def extract_signatures(
    counts: Any,
    n_signatures: Union[int, Iterable[int]],
    model: Union[str, ModelFamily] = "nmf",
    opportunities: Optional[Any] = None,
    signature_prior: Optional[Any] = None,
    exposure_prior: Any = 1.0,
    strategy: Optional[Union[str, InferenceStrategy]] = None,
    inference_config: Optional[InferenceConfig] = None,
    categories: Optional[Sequence[str]] = None,
    max_workers: int = 1,
    selection: Union[str, SelectionRule] = SelectionRule.MAX_SCORE,
    plot_path: Optional[str] = None,
    seed: Optional[int] = None,
) -> Union[InferenceResult, OrderSearchResult]:
    """Extract signatures. See ``SignatureEstimator.extract``."""
    return SignatureEstimator().extract(
        counts,
        n_signatures,
        model=model,
        opportunities=opportunities,
        signature_prior=signature_prior,
        exposure_prior=exposure_prior,
        strategy=strategy,
        inference_config=inference_config,
        categories=categories,
        max_workers=max_workers,
        selection=selection,
        plot_path=plot_path,
        seed=seed,
    )


def fit_extract_signatures(
    counts: Any,
    signatures: Any,
    n_extra: int,
    model: Union[str, ModelFamily] = "nmf",
    opportunities: Optional[Any] = None,
    signature_prior: Optional[Any] = None,
    exposure_prior: Any = 1.0,
    strategy: Optional[Union[str, InferenceStrategy]] = None,
    inference_config: Optional[InferenceConfig] = None,
    categories: Optional[Sequence[str]] = None,
    seed: Optional[int] = None,
) -> InferenceResult:
    """Fit and extract signatures. See ``SignatureEstimator.fit_extract``."""
    return SignatureEstimator().fit_extract(
        counts,
        signatures,
        n_extra,
        model=model,
        opportunities=opportunities,
        signature_prior=signature_prior,
        exposure_prior=exposure_prior,
        strategy=strategy,
        inference_config=inference_config,
        categories=categories,
        seed=seed,
    )


def extraction_initialiser(
    counts: Any,
    n_signatures: int,
    model: Union[str, ModelFamily] = "nmf",
    opportunities: Optional[Any] = None,
    signature_prior: Optional[Any] = None,
    exposure_prior: Any = 1.0,
    inference_config: Optional[InferenceConfig] = None,
    categories: Optional[Sequence[str]] = None,
    seed: Optional[int] = None,
):
    """MAP-based chain initial values. See
    ``SignatureEstimator.extraction_initialiser``."""
    return SignatureEstimator().extraction_initialiser(
        counts,
        n_signatures,
        model=model,
        opportunities=opportunities,
        signature_prior=signature_prior,
        exposure_prior=exposure_prior,
        inference_config=inference_config,
        categories=categories,
        seed=seed,
    )
