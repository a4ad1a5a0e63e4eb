"""Model registry for mutsig models.

A ``ModelRegistry`` maps a (model family, problem type) pair to a
``ModelSpec``: the NumPyro model function together with the payload fields
it requires and the nuisance sites that are hidden from reported results.

The registry is an explicit value. ``build_default_registry()`` constructs
the six built-in specifications; the result is frozen so that it can be
shared by reference between estimators without hidden mutable state.

Examples
--------
>>> registry = build_default_registry()
>>> spec = registry.get("nmf", "extract")
>>> spec.name
'nmf_extract'
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Tuple, Union

from ..errors import ConfigurationError
from .config.enums import ModelFamily, ProblemType
from . import signature_models

# ------------------------------------------------------------------------------
# Model specification
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelSpec:
    """Description of one pre-built model.

    Attributes
    ----------
    family : ModelFamily
        Statistical formulation of the model.
    problem : ProblemType
        Estimation problem solved by the model.
    model : Callable
        NumPyro model function.
    required_fields : Tuple[str, ...]
        Names of the keyword arguments the model function takes.
    hidden_sites : Tuple[str, ...]
        Nuisance sites removed from reported results.
    latent_sites : Tuple[str, ...]
        Sites reported in results (sampled and deterministic).
    """

    family: ModelFamily
    problem: ProblemType
    model: Callable
    required_fields: Tuple[str, ...]
    hidden_sites: Tuple[str, ...] = ()
    latent_sites: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        """Registry name, e.g. ``"emu_fit_extract"``."""
        return f"{self.family.value}_{self.problem.value}"

    @property
    def uses_opportunities(self) -> bool:
        """Whether the model takes an opportunity matrix."""
        return "opportunities" in self.required_fields


# ------------------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------------------

_RegistryKey = Tuple[ModelFamily, ProblemType]


class ModelRegistry:
    """Lookup table of model specifications keyed by family and problem."""

    def __init__(self):
        self._specs: Dict[_RegistryKey, ModelSpec] = {}
        self._frozen = False

    # --------------------------------------------------------------------------

    def register(self, spec: ModelSpec) -> "ModelRegistry":
        """Add a specification. Returns the registry for chaining.

        Raises
        ------
        ConfigurationError
            If the registry is frozen or the key is already taken.
        """
        if self._frozen:
            raise ConfigurationError("Cannot register into a frozen registry")
        key = (spec.family, spec.problem)
        if key in self._specs:
            raise ConfigurationError(f"Model '{spec.name}' already registered")
        self._specs[key] = spec
        return self

    # --------------------------------------------------------------------------

    def freeze(self) -> "ModelRegistry":
        """Forbid further registrations. Returns the registry."""
        self._frozen = True
        return self

    # --------------------------------------------------------------------------

    def get(
        self,
        family: Union[str, ModelFamily],
        problem: Union[str, ProblemType],
    ) -> ModelSpec:
        """Return the specification for ``family`` and ``problem``.

        Raises
        ------
        ConfigurationError
            If the family or problem is unknown or not registered.
        """
        key = (parse_model_family(family), parse_problem_type(problem))
        spec = self._specs.get(key)
        if spec is None:
            raise ConfigurationError(
                f"No model registered for family '{key[0].value}' and "
                f"problem '{key[1].value}'. Registered models: "
                f"{sorted(s.name for s in self._specs.values())}"
            )
        return spec

    # --------------------------------------------------------------------------

    def __contains__(self, key: _RegistryKey) -> bool:
        return key in self._specs

    def __iter__(self) -> Iterator[ModelSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


# ------------------------------------------------------------------------------
# Parsing helpers
# ------------------------------------------------------------------------------


def parse_model_family(family: Union[str, ModelFamily]) -> ModelFamily:
    """Convert a family name to ``ModelFamily``.

    Raises
    ------
    ConfigurationError
        If the name is not a known family.
    """
    try:
        return ModelFamily(family)
    except ValueError as exc:
        valid = [f.value for f in ModelFamily]
        raise ConfigurationError(
            f"'model' must be one of {valid}, got '{family}'"
        ) from exc


def parse_problem_type(problem: Union[str, ProblemType]) -> ProblemType:
    """Convert a problem name to ``ProblemType``."""
    try:
        return ProblemType(problem)
    except ValueError as exc:
        valid = [p.value for p in ProblemType]
        raise ConfigurationError(
            f"Problem type must be one of {valid}, got '{problem}'"
        ) from exc


# ------------------------------------------------------------------------------
# Default registry
# ------------------------------------------------------------------------------


def build_default_registry() -> ModelRegistry:
    """Build and freeze the registry holding the six built-in models."""
    fit_fields = (
        "n_categories",
        "n_samples",
        "n_signatures",
        "counts",
        "signatures",
    )
    extract_fields = ("n_categories", "n_samples", "n_signatures", "counts")
    fit_extract_fields = (
        "n_categories",
        "n_samples",
        "n_signatures",
        "n_extra",
        "counts",
        "signatures",
    )

    registry = ModelRegistry()
    registry.register(
        ModelSpec(
            family=ModelFamily.NMF,
            problem=ProblemType.FIT,
            model=signature_models.nmf_fit_model,
            required_fields=fit_fields + ("exposure_prior",),
            latent_sites=("exposures",),
        )
    )
    registry.register(
        ModelSpec(
            family=ModelFamily.EMU,
            problem=ProblemType.FIT,
            model=signature_models.emu_fit_model,
            required_fields=fit_fields + ("opportunities", "exposure_prior"),
            hidden_sites=("multiplier",),
            latent_sites=("exposures", "activities"),
        )
    )
    registry.register(
        ModelSpec(
            family=ModelFamily.NMF,
            problem=ProblemType.EXTRACT,
            model=signature_models.nmf_extract_model,
            required_fields=extract_fields
            + ("signature_prior", "exposure_prior"),
            latent_sites=("signatures", "exposures"),
        )
    )
    registry.register(
        ModelSpec(
            family=ModelFamily.EMU,
            problem=ProblemType.EXTRACT,
            model=signature_models.emu_extract_model,
            required_fields=extract_fields
            + ("opportunities", "signature_prior", "exposure_prior"),
            hidden_sites=("multiplier",),
            latent_sites=("signatures", "exposures", "activities"),
        )
    )
    registry.register(
        ModelSpec(
            family=ModelFamily.NMF,
            problem=ProblemType.FIT_EXTRACT,
            model=signature_models.nmf_fit_extract_model,
            required_fields=fit_extract_fields
            + ("signature_prior", "exposure_prior"),
            hidden_sites=("extra_signatures",),
            latent_sites=("signatures", "exposures"),
        )
    )
    registry.register(
        ModelSpec(
            family=ModelFamily.EMU,
            problem=ProblemType.FIT_EXTRACT,
            model=signature_models.emu_fit_extract_model,
            required_fields=fit_extract_fields
            + ("opportunities", "signature_prior", "exposure_prior"),
            hidden_sites=("extra_signatures", "multiplier"),
            latent_sites=("signatures", "exposures", "activities"),
        )
    )
    return registry.freeze()
