"""End-to-end inference tests running NumPyro on small catalogues.

Iteration counts are kept tiny: these tests exercise the execution paths of
every strategy and model family, not the quality of the estimates.
"""

import io
import warnings

import numpy as np
import pytest
from rich.console import Console

import mutsig
from mutsig.errors import BackendFailure, ConfigurationWarning
from mutsig.inference import InferenceBackend, OrderSearchResult
from mutsig.inference import backend as backend_module
from mutsig.models.config import InferenceConfig, SamplingConfig
from mutsig.models.config.enums import InferenceStrategy
from mutsig.models.request import ModelVariantSelector

pytestmark = pytest.mark.slow


def _assert_simplex_rows(values):
    np.testing.assert_allclose(values.sum(axis=-1), 1.0, rtol=1e-4)
    assert np.all(values >= 0)


# --------------------------------------------------------------------------
# Fitting
# --------------------------------------------------------------------------


class TestFit:
    def test_nmf_sampling(self, small_counts, true_signatures, tiny_sampling):
        result = mutsig.fit_signatures(
            small_counts, true_signatures, inference_config=tiny_sampling
        )

        assert result.strategy is InferenceStrategy.SAMPLING
        assert set(result.get_samples()) == {"exposures"}
        assert result.get_samples("exposures").shape == (20, 8, 3)
        assert result.exposures.shape == (8, 3)
        _assert_simplex_rows(result.exposures)
        assert "n_divergences" in result.diagnostics

    def test_emu_sampling_hides_multiplier(
        self, small_counts, true_signatures, tiny_sampling
    ):
        result = mutsig.fit_signatures(
            small_counts,
            true_signatures,
            model="emu",
            opportunities="human-genome",
            inference_config=tiny_sampling,
        )

        assert set(result.get_samples()) == {"exposures", "activities"}
        assert result.get_samples("activities").shape == (20, 8, 3)
        assert np.all(result.get_samples("activities") >= 0)

    def test_multiple_chains(self, small_counts, true_signatures):
        config = InferenceConfig.from_sampling(
            SamplingConfig(
                n_samples=10, n_warmup=10, n_chains=2, progress_bar=False
            )
        )
        result = mutsig.fit_signatures(
            small_counts, true_signatures, inference_config=config
        )
        assert result.n_chains == 2
        assert result.n_draws == 20

    def test_optimizing_is_reproducible(
        self, small_counts, true_signatures, tiny_optimizing
    ):
        first = mutsig.fit_signatures(
            small_counts, true_signatures, inference_config=tiny_optimizing
        )
        second = mutsig.fit_signatures(
            small_counts, true_signatures, inference_config=tiny_optimizing
        )

        assert first.n_draws == 1
        np.testing.assert_allclose(first.exposures, second.exposures)
        assert np.isfinite(first.diagnostics["final_loss"])
        assert first.losses.shape == (200,)

    def test_sampling_is_reproducible(
        self, small_counts, true_signatures, tiny_sampling
    ):
        first, second = (
            mutsig.fit_signatures(
                small_counts,
                true_signatures,
                inference_config=tiny_sampling,
                seed=7,
            )
            for _ in range(2)
        )
        np.testing.assert_array_equal(
            first.get_samples("exposures"), second.get_samples("exposures")
        )

    def test_sampling_seed_changes_draws(
        self, small_counts, true_signatures, tiny_sampling
    ):
        first, second = (
            mutsig.fit_signatures(
                small_counts,
                true_signatures,
                inference_config=tiny_sampling,
                seed=seed,
            )
            for seed in (7, 8)
        )
        assert not np.array_equal(
            first.get_samples("exposures"), second.get_samples("exposures")
        )

    def test_variational_is_reproducible(
        self, small_counts, true_signatures, tiny_variational
    ):
        first, second = (
            mutsig.fit_signatures(
                small_counts,
                true_signatures,
                inference_config=tiny_variational,
                seed=7,
            )
            for _ in range(2)
        )
        np.testing.assert_array_equal(
            first.get_samples("exposures"), second.get_samples("exposures")
        )

    def test_variational(self, small_counts, true_signatures, tiny_variational):
        result = mutsig.fit_signatures(
            small_counts, true_signatures, inference_config=tiny_variational
        )
        assert result.strategy is InferenceStrategy.VARIATIONAL
        assert result.n_draws == 10
        _assert_simplex_rows(result.get_samples("exposures"))


# --------------------------------------------------------------------------
# Extraction
# --------------------------------------------------------------------------


class TestExtract:
    def test_nmf_optimizing(self, small_counts, tiny_optimizing):
        result = mutsig.extract_signatures(
            small_counts, 2, inference_config=tiny_optimizing
        )

        assert set(result.get_samples()) == {"signatures", "exposures"}
        assert result.signatures.shape == (2, 96)
        assert result.exposures.shape == (8, 2)
        _assert_simplex_rows(result.signatures)
        assert result.reconstruct().shape == (8, 96)

    def test_emu_variational(self, small_counts, tiny_variational):
        result = mutsig.extract_signatures(
            small_counts,
            2,
            model="emu",
            opportunities="human-exome",
            inference_config=tiny_variational,
        )

        assert set(result.get_samples()) == {
            "signatures",
            "exposures",
            "activities",
        }
        assert result.get_samples("signatures").shape == (10, 2, 96)

    def test_nmf_sampling(self, small_counts, tiny_sampling):
        result = mutsig.extract_signatures(
            small_counts, 2, inference_config=tiny_sampling
        )
        assert result.n_chains == 1
        assert result.get_samples("signatures").shape == (20, 2, 96)

    def test_strand_counts(self, strand_counts, tiny_optimizing):
        with pytest.warns(ConfigurationWarning, match="no opportunities"):
            result = mutsig.extract_signatures(
                strand_counts, 2, model="emu", inference_config=tiny_optimizing
            )
        assert result.signatures.shape == (2, 192)

    def test_range_search(self, small_counts, tiny_optimizing):
        estimator = mutsig.SignatureEstimator(
            console=Console(file=io.StringIO())
        )
        result = estimator.extract(
            small_counts, range(2, 5), inference_config=tiny_optimizing
        )

        assert isinstance(result, OrderSearchResult)
        assert result.candidates == [2, 3, 4]
        assert all(0.0 <= s <= 1.0 for s in result.scores.values())
        assert result.best_result.signatures.shape == (result.best, 96)

    def test_concurrent_range_search(self, small_counts, tiny_optimizing):
        estimator = mutsig.SignatureEstimator(
            console=Console(file=io.StringIO())
        )
        sequential = estimator.extract(
            small_counts, [2, 3], inference_config=tiny_optimizing
        )
        concurrent = estimator.extract(
            small_counts,
            [2, 3],
            inference_config=tiny_optimizing,
            max_workers=2,
        )
        assert concurrent.scores == pytest.approx(sequential.scores, rel=1e-4)


# --------------------------------------------------------------------------
# Fit-extract
# --------------------------------------------------------------------------


class TestFitExtract:
    def test_nmf_sampling(self, small_counts, true_signatures, tiny_sampling):
        fixed = true_signatures[:2]
        result = mutsig.fit_extract_signatures(
            small_counts, fixed, 1, inference_config=tiny_sampling
        )

        draws = result.get_samples("signatures")
        assert draws.shape == (20, 3, 96)
        assert "extra_signatures" not in result.get_samples()
        # The fixed signatures lead every draw
        np.testing.assert_allclose(
            draws[:, :2, :],
            np.broadcast_to(
                np.asarray(result.request.signatures), (20, 2, 96)
            ),
            rtol=1e-5,
        )
        assert result.exposures.shape == (8, 3)
        assert result.n_signatures == 3

    def test_emu_optimizing(
        self, small_counts, true_signatures, tiny_optimizing
    ):
        result = mutsig.fit_extract_signatures(
            small_counts,
            true_signatures[:1],
            2,
            model="emu",
            opportunities="human-genome",
            inference_config=tiny_optimizing,
        )
        assert result.signatures.shape == (3, 96)
        assert set(result.get_samples()) == {
            "signatures",
            "exposures",
            "activities",
        }


# --------------------------------------------------------------------------
# Initialisation
# --------------------------------------------------------------------------


class TestInitialisation:
    def test_nmf_initialiser_feeds_sampler(
        self, small_counts, tiny_optimizing
    ):
        init = mutsig.extraction_initialiser(
            small_counts, 2, inference_config=tiny_optimizing
        )

        assert set(init) == {"signatures", "exposures"}
        assert np.all(np.asarray(init["signatures"]) > 0)

        config = InferenceConfig.from_sampling(
            SamplingConfig(
                n_samples=10,
                n_warmup=10,
                progress_bar=False,
                init_values=init,
            )
        )
        result = mutsig.extract_signatures(
            small_counts, 2, inference_config=config
        )
        assert result.signatures.shape == (2, 96)

    def test_emu_initialiser_has_multiplier(
        self, small_counts, tiny_optimizing
    ):
        init = mutsig.extraction_initialiser(
            small_counts,
            2,
            model="emu",
            opportunities="human-genome",
            inference_config=tiny_optimizing,
        )
        assert init["multiplier"].shape == (8,)
        assert np.all(np.asarray(init["multiplier"]) > 0)


# --------------------------------------------------------------------------
# Backend failures
# --------------------------------------------------------------------------


class TestBackendFailure:
    @pytest.fixture
    def request_and_spec(self, registry, small_counts):
        request = ModelVariantSelector(registry).build_request(
            "nmf",
            "extract",
            small_counts,
            2,
            False,
            signature_prior=np.ones((2, 96)),
            exposure_prior=np.ones(2),
        )
        return request, request.spec

    def test_engine_errors_are_wrapped(
        self, monkeypatch, request_and_spec, tiny_optimizing
    ):
        def _broken(spec, request, config):
            raise FloatingPointError("nan in gradient")

        monkeypatch.setitem(
            backend_module._STRATEGY_HANDLERS,
            InferenceStrategy.OPTIMIZING,
            _broken,
        )
        request, spec = request_and_spec
        with pytest.raises(BackendFailure, match="nan in gradient") as info:
            InferenceBackend().run(spec, request, tiny_optimizing)

        assert info.value.strategy is InferenceStrategy.OPTIMIZING
        assert info.value.n_signatures == 2

    def test_backend_failure_is_annotated(
        self, monkeypatch, request_and_spec, tiny_optimizing
    ):
        def _diverged(spec, request, config):
            raise BackendFailure("did not converge")

        monkeypatch.setitem(
            backend_module._STRATEGY_HANDLERS,
            InferenceStrategy.OPTIMIZING,
            _diverged,
        )
        request, spec = request_and_spec
        with pytest.raises(BackendFailure) as info:
            InferenceBackend().run(spec, request, tiny_optimizing)
        assert info.value.strategy is InferenceStrategy.OPTIMIZING
        assert info.value.n_signatures == 2

    def test_initialiser_falls_back(self, monkeypatch, small_counts):
        def _diverged(spec, request, config):
            raise BackendFailure("did not converge")

        monkeypatch.setitem(
            backend_module._STRATEGY_HANDLERS,
            InferenceStrategy.OPTIMIZING,
            _diverged,
        )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            assert mutsig.extraction_initialiser(small_counts, 2) is None
        assert any(
            issubclass(w.category, ConfigurationWarning) for w in caught
        )
