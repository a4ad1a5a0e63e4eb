"""Tests for inference configuration."""

import numpy as np
import pytest
from pydantic import ValidationError

from mutsig.errors import ConfigurationError, ConfigurationWarning
from mutsig.inference.inference_config import (
    create_default_inference_config,
    parse_strategy,
    prepare_inference_config,
)
from mutsig.models.config import (
    InferenceConfig,
    OptimizingConfig,
    SamplingConfig,
    VariationalConfig,
)
from mutsig.models.config.enums import InferenceStrategy, ProblemType


class TestCreateDefaultInferenceConfig:
    """Test create_default_inference_config function."""

    def test_default_sampling_config(self):
        config = create_default_inference_config(InferenceStrategy.SAMPLING)

        assert config.strategy == InferenceStrategy.SAMPLING
        assert config.sampling is not None
        assert config.optimizing is None
        assert config.sampling.n_samples == 1_000
        assert config.sampling.n_warmup == 1_000
        assert config.sampling.n_chains == 1

    def test_default_optimizing_config(self):
        config = create_default_inference_config("optimizing")

        assert config.strategy == InferenceStrategy.OPTIMIZING
        assert config.optimizing.n_steps == 5_000

    def test_default_variational_config(self):
        config = create_default_inference_config("variational")

        assert config.strategy == InferenceStrategy.VARIATIONAL
        assert config.variational.n_posterior_samples == 1_000

    def test_unknown_strategy(self):
        with pytest.raises(ConfigurationError, match="'strategy' must be"):
            create_default_inference_config("laplace")

    def test_vb_alias(self):
        assert parse_strategy("vb") is InferenceStrategy.VARIATIONAL


class TestInferenceConfig:
    """Test InferenceConfig class."""

    def test_from_sampling(self):
        sampling = SamplingConfig(n_samples=500, n_chains=4)
        config = InferenceConfig.from_sampling(sampling)

        assert config.strategy == InferenceStrategy.SAMPLING
        assert config.get_config() == sampling

    def test_missing_group_rejected(self):
        with pytest.raises(ValidationError, match="OptimizingConfig required"):
            InferenceConfig(strategy=InferenceStrategy.OPTIMIZING)

    def test_groups_are_frozen(self):
        config = OptimizingConfig()
        with pytest.raises(ValidationError):
            config.n_steps = 10

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            VariationalConfig(n_iterations=10)

    def test_positive_counts(self):
        with pytest.raises(ValidationError):
            SamplingConfig(n_samples=0)

    def test_with_updates(self):
        config = InferenceConfig.from_sampling(SamplingConfig(seed=1))
        updated = config.with_updates(seed=7, n_chains=2)

        assert updated.seed == 7
        assert updated.sampling.n_chains == 2
        assert config.seed == 1

    def test_with_updates_is_validated(self):
        config = InferenceConfig.from_sampling(SamplingConfig())
        with pytest.raises(ValidationError):
            config.with_updates(n_chains=0)
        with pytest.raises(ValidationError):
            config.with_updates(n_iterations=10)

    def test_with_updates_keeps_init_values(self):
        init = {"exposures": np.ones((2, 3))}
        config = InferenceConfig.from_sampling(
            SamplingConfig(init_values=init)
        )
        updated = config.with_updates(seed=3)
        assert updated.sampling.init_values["exposures"] is init["exposures"]


class TestPrepareInferenceConfig:
    """Test strategy resolution, seed override and chain pinning."""

    def test_default_is_sampling(self):
        config = prepare_inference_config(ProblemType.FIT)
        assert config.strategy == InferenceStrategy.SAMPLING

    def test_strategy_from_config(self):
        given = InferenceConfig.from_optimizing(OptimizingConfig(n_steps=10))
        config = prepare_inference_config(
            ProblemType.FIT, inference_config=given
        )
        assert config == given

    def test_strategy_mismatch(self):
        given = InferenceConfig.from_optimizing(OptimizingConfig())
        with pytest.raises(ConfigurationError, match="does not match"):
            prepare_inference_config(
                ProblemType.FIT, strategy="sampling", inference_config=given
            )

    def test_seed_override(self):
        config = prepare_inference_config(
            ProblemType.FIT, strategy="variational", seed=123
        )
        assert config.seed == 123

    def test_fit_honours_chains(self, recwarn):
        given = InferenceConfig.from_sampling(SamplingConfig(n_chains=4))
        config = prepare_inference_config(
            ProblemType.FIT, inference_config=given
        )
        assert config.sampling.n_chains == 4
        assert not [w for w in recwarn if w.category is ConfigurationWarning]

    @pytest.mark.parametrize(
        "problem", [ProblemType.EXTRACT, ProblemType.FIT_EXTRACT]
    )
    def test_extraction_pins_one_chain(self, problem):
        given = InferenceConfig.from_sampling(SamplingConfig(n_chains=4))
        with pytest.warns(ConfigurationWarning, match="single chain"):
            config = prepare_inference_config(
                problem, inference_config=given
            )
        assert config.sampling.n_chains == 1

    def test_single_chain_extraction_is_silent(self, recwarn):
        config = prepare_inference_config(ProblemType.EXTRACT)
        assert config.sampling.n_chains == 1
        assert not [w for w in recwarn if w.category is ConfigurationWarning]

    def test_not_an_inference_config(self):
        with pytest.raises(ConfigurationError):
            prepare_inference_config(
                ProblemType.FIT, inference_config=SamplingConfig()
            )
