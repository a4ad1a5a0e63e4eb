"""Tests for the InferenceResult container."""

import numpy as np
import pandas as pd
import pytest

from mutsig.inference import InferenceResult
from mutsig.models.config.enums import (
    InferenceStrategy,
    ModelFamily,
    ProblemType,
)
from mutsig.models.request import ModelVariantSelector


@pytest.fixture
def fit_result(registry, small_counts, true_signatures):
    """NMF fit result with two exposure draws."""
    request = ModelVariantSelector(registry).build_request(
        "nmf",
        "fit",
        small_counts,
        3,
        False,
        signatures=true_signatures,
        exposure_prior=np.ones(3),
    )
    rng = np.random.default_rng(5)
    exposures = rng.dirichlet(np.ones(3), size=(2, 8))
    return InferenceResult(
        strategy=InferenceStrategy.SAMPLING,
        request=request,
        samples={"exposures": exposures},
    )


@pytest.fixture
def emu_fit_result(registry, small_counts, true_signatures):
    request = ModelVariantSelector(registry).build_request(
        "emu",
        "fit",
        small_counts,
        3,
        False,
        signatures=true_signatures,
        opportunities=np.full((8, 96), 2.0),
        exposure_prior=np.ones(3),
    )
    activities = np.full((1, 8, 3), 10.0)
    return InferenceResult(
        strategy=InferenceStrategy.OPTIMIZING,
        request=request,
        samples={"exposures": activities / 30.0, "activities": activities},
    )


class TestTags:
    def test_fit_tags(self, fit_result):
        assert fit_result.family is ModelFamily.NMF
        assert fit_result.problem is ProblemType.FIT
        assert fit_result.n_signatures == 3
        assert fit_result.n_draws == 2
        assert fit_result.categories == []

    def test_extract_tags(self, make_extract_result):
        result = make_extract_result(4)
        assert result.problem is ProblemType.EXTRACT
        assert result.n_signatures == 4
        assert result.n_draws == 1


class TestDraws:
    def test_unknown_site(self, fit_result):
        with pytest.raises(KeyError, match="Available sites"):
            fit_result.get_samples("signatures")

    def test_all_sites(self, fit_result):
        assert set(fit_result.get_samples()) == {"exposures"}

    def test_fit_signatures_are_fixed(self, fit_result, true_signatures):
        np.testing.assert_allclose(
            fit_result.signatures, true_signatures, rtol=1e-6
        )

    def test_exposures_are_posterior_mean(self, fit_result):
        np.testing.assert_allclose(
            fit_result.exposures,
            fit_result.get_samples("exposures").mean(axis=0),
        )
        assert fit_result.exposures.shape == (8, 3)

    def test_extracted_signatures(self, make_extract_result):
        draws = np.random.default_rng(0).dirichlet(np.ones(96), size=(3, 2))
        result = make_extract_result(2, signatures=draws)
        np.testing.assert_allclose(result.signatures, draws.mean(axis=0))


class TestReconstruct:
    def test_nmf_fit(self, fit_result, small_counts, true_signatures):
        mean_exposures = fit_result.get_samples("exposures").mean(axis=0)
        expected = (mean_exposures @ true_signatures) * small_counts.sum(
            axis=1, keepdims=True
        )
        np.testing.assert_allclose(
            fit_result.reconstruct(), expected, rtol=1e-5
        )

    def test_totals_preserved(self, fit_result, small_counts):
        np.testing.assert_allclose(
            fit_result.reconstruct().sum(axis=1),
            small_counts.sum(axis=1),
            rtol=1e-5,
        )

    def test_emu_uses_activities_and_opportunities(
        self, emu_fit_result, true_signatures
    ):
        expected = 2.0 * (np.full((8, 3), 10.0) @ true_signatures)
        np.testing.assert_allclose(
            emu_fit_result.reconstruct(), expected, rtol=1e-5
        )

    def test_extract_shape(self, make_extract_result):
        assert make_extract_result(2).reconstruct().shape == (8, 96)


class TestSummarise:
    def test_signature_tables(self, make_extract_result):
        draws = np.random.default_rng(1).dirichlet(
            np.full(96, 50.0), size=(50, 2)
        )
        summary = make_extract_result(2, signatures=draws).summarise(
            "signatures", prob=0.9
        )

        assert set(summary) == {"mean", "lower", "upper"}
        mean = summary["mean"]
        assert isinstance(mean, pd.DataFrame)
        assert mean.shape == (2, 96)
        assert list(mean.index) == ["Signature 1", "Signature 2"]
        assert np.all(summary["lower"].values <= mean.values)
        assert np.all(summary["upper"].values >= mean.values)

    def test_exposure_tables(self, fit_result):
        summary = fit_result.summarise("exposures")
        assert summary["mean"].shape == (8, 3)
        assert summary["mean"].index[0] == "Sample 1"
        assert list(summary["mean"].columns) == [
            "Signature 1",
            "Signature 2",
            "Signature 3",
        ]

    def test_invalid_prob(self, fit_result):
        with pytest.raises(ValueError):
            fit_result.summarise("exposures", prob=1.5)
