"""Tests for the model registry and request assembly."""

import warnings

import jax.numpy as jnp
import numpy as np
import pytest

from mutsig.errors import ConfigurationError, ConfigurationWarning, ShapeError
from mutsig.models import signature_models
from mutsig.models.config.enums import ModelFamily, ProblemType
from mutsig.models.model_registry import (
    ModelRegistry,
    ModelSpec,
    build_default_registry,
    parse_model_family,
)
from mutsig.models.request import ModelVariantSelector

# ------------------------------------------------------------------------------
# Expected payloads per specification
# ------------------------------------------------------------------------------

_BASE = ("n_categories", "n_samples", "n_signatures", "counts")

EXPECTED_FIELDS = {
    ("nmf", "fit"): _BASE + ("signatures", "exposure_prior"),
    ("emu", "fit"): _BASE + ("signatures", "opportunities", "exposure_prior"),
    ("nmf", "extract"): _BASE + ("signature_prior", "exposure_prior"),
    ("emu", "extract"): _BASE
    + ("opportunities", "signature_prior", "exposure_prior"),
    ("nmf", "fit_extract"): _BASE
    + ("n_extra", "signatures", "signature_prior", "exposure_prior"),
    ("emu", "fit_extract"): _BASE
    + (
        "n_extra",
        "signatures",
        "opportunities",
        "signature_prior",
        "exposure_prior",
    ),
}


class TestModelRegistry:
    def test_six_specifications(self, registry):
        assert len(registry) == 6
        names = sorted(spec.name for spec in registry)
        assert names == sorted(
            f"{family}_{problem}" for family, problem in EXPECTED_FIELDS
        )

    @pytest.mark.parametrize("key", list(EXPECTED_FIELDS))
    def test_required_fields(self, registry, key):
        spec = registry.get(*key)
        assert set(spec.required_fields) == set(EXPECTED_FIELDS[key])

    def test_hidden_sites(self, registry):
        assert registry.get("emu", "fit").hidden_sites == ("multiplier",)
        assert "extra_signatures" in registry.get(
            "nmf", "fit_extract"
        ).hidden_sites
        assert registry.get("nmf", "extract").hidden_sites == ()

    def test_uses_opportunities(self, registry):
        assert registry.get("emu", "extract").uses_opportunities
        assert not registry.get("nmf", "extract").uses_opportunities

    def test_frozen(self, registry):
        spec = ModelSpec(
            family=ModelFamily.NMF,
            problem=ProblemType.FIT,
            model=signature_models.nmf_fit_model,
            required_fields=(),
        )
        with pytest.raises(ConfigurationError, match="frozen"):
            registry.register(spec)

    def test_duplicate_registration(self):
        spec = ModelSpec(
            family=ModelFamily.NMF,
            problem=ProblemType.FIT,
            model=signature_models.nmf_fit_model,
            required_fields=(),
        )
        registry = ModelRegistry().register(spec)
        with pytest.raises(ConfigurationError, match="already registered"):
            registry.register(spec)

    def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="No model registered"):
            ModelRegistry().get("nmf", "fit")

    def test_unknown_family(self, registry):
        with pytest.raises(ConfigurationError, match="'model' must be one of"):
            registry.get("pca", "fit")

    def test_family_is_case_insensitive(self):
        assert parse_model_family("EMu") is ModelFamily.EMU

    def test_registries_are_independent(self):
        assert build_default_registry() is not build_default_registry()


# ------------------------------------------------------------------------------
# Requests
# ------------------------------------------------------------------------------


@pytest.fixture
def selector(registry):
    return ModelVariantSelector(registry)


def _build(selector, family, problem, counts, **kwargs):
    n_signatures = kwargs.pop("n_signatures", 2)
    return selector.build_request(
        family, problem, counts, n_signatures, False, **kwargs
    )


class TestModelVariantSelector:
    @pytest.mark.parametrize("key", list(EXPECTED_FIELDS))
    def test_model_args_match_required_fields(
        self, selector, small_counts, true_signatures, key
    ):
        family, problem = key
        n_fixed, n_extra = 3, 2
        kwargs = {
            "signatures": true_signatures,
            "n_extra": n_extra,
            "opportunities": "human-genome",
            "signature_prior": np.ones((2, 96)),
        }
        if problem == "fit":
            kwargs["exposure_prior"] = np.ones(n_fixed)
        elif problem == "extract":
            kwargs["exposure_prior"] = np.ones(2)
            kwargs["n_extra"] = None
        else:
            kwargs["exposure_prior"] = np.ones(n_fixed + n_extra)
        n_signatures = 2 if problem == "extract" else n_fixed

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConfigurationWarning)
            request = _build(
                selector,
                family,
                problem,
                small_counts,
                n_signatures=n_signatures,
                **kwargs,
            )

        assert set(request.model_args()) == set(EXPECTED_FIELDS[key])
        if family == "nmf":
            assert request.opportunities is None
        if problem == "extract":
            assert request.signatures is None

    def test_counts_are_integer_arrays(self, selector, small_counts):
        request = _build(
            selector,
            "nmf",
            "extract",
            small_counts,
            signature_prior=np.ones((2, 96)),
            exposure_prior=np.ones(2),
        )
        assert request.counts.dtype == jnp.int32
        assert request.n_samples == 8
        assert request.n_categories == 96

    def test_missing_required_field(self, selector, small_counts):
        with pytest.raises(ConfigurationError, match="requires"):
            _build(
                selector,
                "nmf",
                "extract",
                small_counts,
                exposure_prior=np.ones(2),
            )

    def test_exposure_prior_length_checked(self, selector, small_counts):
        with pytest.raises(ShapeError):
            _build(
                selector,
                "nmf",
                "extract",
                small_counts,
                signature_prior=np.ones((2, 96)),
                exposure_prior=np.ones(3),
            )

    def test_unknown_family(self, selector, small_counts):
        with pytest.raises(ConfigurationError):
            _build(selector, "lda", "extract", small_counts)

    def test_resized(self, selector, small_counts):
        request = _build(
            selector,
            "nmf",
            "extract",
            small_counts,
            signature_prior=np.ones((2, 96)),
            exposure_prior=np.ones(2),
        )
        resized = request.resized(5, 0.5)
        assert resized.n_signatures == 5
        assert resized.signature_prior.shape == (5, 96)
        np.testing.assert_allclose(resized.exposure_prior, np.full(5, 0.5))
        # The original request is unchanged
        assert request.n_signatures == 2

    def test_resize_fit_request_rejected(
        self, selector, small_counts, true_signatures
    ):
        request = _build(
            selector,
            "nmf",
            "fit",
            small_counts,
            n_signatures=3,
            signatures=true_signatures,
            exposure_prior=np.ones(3),
        )
        with pytest.raises(ConfigurationError):
            request.resized(4, 1.0)
