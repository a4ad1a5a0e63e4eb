"""
Shared test fixtures and configuration for mutsig tests.
"""

import pytest
import numpy as np
import os

import matplotlib

# Headless plotting for the goodness-of-fit figure
matplotlib.use("Agg")


def pytest_addoption(parser):
    parser.addoption(
        "--device",
        default="cpu",
        choices=["cpu", "gpu"],
        help="Device to run tests on: cpu or gpu",
    )


def pytest_configure(config):
    """Configure JAX device before any imports happen."""
    device = config.getoption("--device")
    if device == "cpu":
        os.environ["JAX_PLATFORM_NAME"] = "cpu"
    else:
        # Remove the environment variable to allow JAX to use GPU
        if "JAX_PLATFORM_NAME" in os.environ:
            del os.environ["JAX_PLATFORM_NAME"]


@pytest.fixture(scope="session")
def device_type(request):
    return request.config.getoption("--device")


# ------------------------------------------------------------------------------
# Synthetic catalogues
# ------------------------------------------------------------------------------


@pytest.fixture(scope="session")
def true_signatures():
    """Three random signatures over the 96-category layout."""
    rng = np.random.default_rng(0)
    return rng.dirichlet(np.full(96, 0.5), size=3)


@pytest.fixture(scope="session")
def small_counts(true_signatures):
    """Eight catalogues of 300 mutations drawn from ``true_signatures``."""
    rng = np.random.default_rng(1)
    exposures = rng.dirichlet(np.ones(3), size=8)
    probs = exposures @ true_signatures
    return np.stack([rng.multinomial(300, p / p.sum()) for p in probs])


@pytest.fixture(scope="session")
def strand_counts():
    """Four catalogues over the 192-category strand-aware layout."""
    rng = np.random.default_rng(2)
    return rng.poisson(3.0, size=(4, 192))


# ------------------------------------------------------------------------------
# Small inference configurations
# ------------------------------------------------------------------------------


@pytest.fixture
def tiny_sampling():
    """Very short NUTS run: enough to exercise the code path."""
    from mutsig.models.config import InferenceConfig, SamplingConfig

    return InferenceConfig.from_sampling(
        SamplingConfig(n_samples=20, n_warmup=20, progress_bar=False, seed=3)
    )


@pytest.fixture
def tiny_optimizing():
    from mutsig.models.config import InferenceConfig, OptimizingConfig

    return InferenceConfig.from_optimizing(
        OptimizingConfig(n_steps=200, step_size=0.05, seed=3)
    )


@pytest.fixture
def tiny_variational():
    from mutsig.models.config import InferenceConfig, VariationalConfig

    return InferenceConfig.from_variational(
        VariationalConfig(
            n_steps=200, step_size=0.05, n_posterior_samples=10, seed=3
        )
    )


@pytest.fixture(scope="session")
def registry():
    from mutsig.models.model_registry import build_default_registry

    return build_default_registry()


# ------------------------------------------------------------------------------
# Hand-built results
# ------------------------------------------------------------------------------


@pytest.fixture
def make_extract_result(registry, small_counts):
    """Factory for NMF extraction results with given draws.

    ``signatures`` has shape (n_draws, n, 96) and ``exposures`` shape
    (n_draws, 8, n); both default to a single uniform draw.
    """
    from mutsig.inference import InferenceResult
    from mutsig.models.config.enums import InferenceStrategy
    from mutsig.models.request import ModelVariantSelector

    selector = ModelVariantSelector(registry)

    def _make(n, signatures=None, exposures=None, counts=None):
        counts = small_counts if counts is None else counts
        n_samples, n_categories = counts.shape
        request = selector.build_request(
            "nmf",
            "extract",
            counts,
            n,
            False,
            signature_prior=np.ones((n, n_categories)),
            exposure_prior=np.ones(n),
        )
        if signatures is None:
            signatures = np.full((1, n, n_categories), 1 / n_categories)
        if exposures is None:
            exposures = np.full((1, n_samples, n), 1 / n)
        return InferenceResult(
            strategy=InferenceStrategy.OPTIMIZING,
            request=request,
            samples={
                "signatures": np.asarray(signatures),
                "exposures": np.asarray(exposures),
            },
        )

    return _make
