"""
Model variant selection and request assembly.

``ModelVariantSelector`` picks one of the registered model specifications
for a (family, problem) pair and assembles the immutable ``ModelRequest``
that is handed to the inference backend. The request carries exactly the
payload fields the selected specification requires.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
import numpy as np

from ..core.opportunities import OpportunityResolver
from ..errors import ConfigurationError, ShapeError
from .config.enums import ModelFamily, ProblemType
from .model_registry import (
    ModelRegistry,
    ModelSpec,
    parse_model_family,
    parse_problem_type,
)

logger = logging.getLogger(__name__)

# ==============================================================================
# Model request
# ==============================================================================


@dataclass(frozen=True)
class ModelRequest:
    """Validated payload for one inference call.

    Attributes
    ----------
    spec : ModelSpec
        Selected model specification.
    counts : jnp.ndarray
        Count matrix of shape (n_samples, n_categories).
    n_samples : int
        Number of catalogues.
    n_categories : int
        Number of mutation categories.
    n_signatures : int
        Number of fixed signatures (fit, fit-extract) or signatures to
        extract (extract).
    strand : bool
        Whether the strand-aware 192-category layout is used.
    categories : Tuple[str, ...]
        Category labels.
    signatures : Optional[jnp.ndarray]
        Fixed signatures of shape (n_signatures, n_categories).
    n_extra : Optional[int]
        Number of additional signatures extracted by fit-extract models.
    opportunities : Optional[jnp.ndarray]
        Opportunity matrix (EMu models only).
    signature_prior : Optional[jnp.ndarray]
        Dirichlet prior of the extracted signatures.
    exposure_prior : Optional[jnp.ndarray]
        Dirichlet prior of the exposures, one value per signature.
    """

    spec: ModelSpec
    counts: jnp.ndarray
    n_samples: int
    n_categories: int
    n_signatures: int
    strand: bool = False
    categories: Tuple[str, ...] = field(default=(), repr=False)
    signatures: Optional[jnp.ndarray] = field(default=None, repr=False)
    n_extra: Optional[int] = None
    opportunities: Optional[jnp.ndarray] = field(default=None, repr=False)
    signature_prior: Optional[jnp.ndarray] = field(default=None, repr=False)
    exposure_prior: Optional[jnp.ndarray] = field(default=None, repr=False)

    # --------------------------------------------------------------------------

    @property
    def family(self) -> ModelFamily:
        return self.spec.family

    @property
    def problem(self) -> ProblemType:
        return self.spec.problem

    @property
    def total_signatures(self) -> int:
        """Number of signatures in the model, fixed and extracted."""
        return self.n_signatures + (self.n_extra or 0)

    # --------------------------------------------------------------------------

    def model_args(self) -> Dict[str, Any]:
        """Keyword arguments for the specification's model function.

        Raises
        ------
        ConfigurationError
            If a field required by the specification is missing.
        """
        args = {name: getattr(self, name) for name in self.spec.required_fields}
        missing = [name for name, value in args.items() if value is None]
        if missing:
            raise ConfigurationError(
                f"Model '{self.spec.name}' requires {missing}, which are "
                "missing from the request"
            )
        return args

    # --------------------------------------------------------------------------

    def resized(
        self, n_signatures: int, exposure_prior: float
    ) -> "ModelRequest":
        """Copy of an extraction request for a different signature count.

        The signature prior is rebuilt as a uniform (n_signatures ×
        n_categories) matrix and the exposure prior filled with
        ``exposure_prior``.
        """
        if self.problem != ProblemType.EXTRACT:
            raise ConfigurationError(
                "Only extraction requests can be resized, got "
                f"'{self.problem.value}'"
            )
        return replace(
            self,
            n_signatures=n_signatures,
            signature_prior=jnp.ones((n_signatures, self.n_categories)),
            exposure_prior=jnp.full(n_signatures, float(exposure_prior)),
        )


# ==============================================================================
# Model variant selector
# ==============================================================================


class ModelVariantSelector:
    """Selects a model specification and assembles its request.

    Parameters
    ----------
    registry : ModelRegistry
        Registry holding the available specifications.
    """

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    # --------------------------------------------------------------------------

    def select(
        self,
        family: Union[str, ModelFamily],
        problem: Union[str, ProblemType],
    ) -> ModelSpec:
        """Registered specification for ``family`` and ``problem``."""
        return self.registry.get(
            parse_model_family(family), parse_problem_type(problem)
        )

    # --------------------------------------------------------------------------

    def build_request(
        self,
        family: Union[str, ModelFamily],
        problem: Union[str, ProblemType],
        counts: np.ndarray,
        n_signatures: int,
        strand: bool,
        categories: Sequence[str] = (),
        signatures: Optional[np.ndarray] = None,
        n_extra: Optional[int] = None,
        opportunities: Any = None,
        signature_prior: Optional[np.ndarray] = None,
        exposure_prior: Optional[np.ndarray] = None,
    ) -> ModelRequest:
        """
        Assemble the request for the selected specification.

        Opportunities are resolved for the chosen family (see
        ``OpportunityResolver.resolve``). Fields the specification does not
        use are left out of the request.

        Parameters
        ----------
        family : Union[str, ModelFamily]
            Model family ("nmf" or "emu").
        problem : Union[str, ProblemType]
            Problem type ("fit", "extract" or "fit_extract").
        counts : np.ndarray
            Validated count matrix.
        n_signatures : int
            Number of fixed signatures, or of signatures to extract.
        strand : bool
            Whether the strand-aware layout is used.
        categories : Sequence[str], default=()
            Category labels.
        signatures : Optional[np.ndarray], default=None
            Validated fixed signatures.
        n_extra : Optional[int], default=None
            Number of extra signatures (fit-extract only).
        opportunities : Any, default=None
            Raw opportunities argument.
        signature_prior : Optional[np.ndarray], default=None
            Validated signature prior.
        exposure_prior : Optional[np.ndarray], default=None
            Validated exposure prior.

        Returns
        -------
        ModelRequest
            Immutable request.

        Raises
        ------
        ConfigurationError
            For an unknown family or problem, or missing required fields.
        ShapeError
            If opportunities do not match the count matrix.
        """
        spec = self.select(family, problem)
        n_samples, n_categories = counts.shape

        resolved_opportunities = OpportunityResolver.resolve(
            opportunities, spec.family, n_samples, n_categories, strand
        )

        if "n_extra" not in spec.required_fields:
            n_extra = None
        if exposure_prior is not None:
            expected = n_signatures + (n_extra or 0)
            if len(exposure_prior) != expected:
                raise ShapeError(
                    f"Exposure prior has {len(exposure_prior)} values but the "
                    f"model has {expected} signatures"
                )

        def _field(name, value):
            if value is None or name not in spec.required_fields:
                return None
            return jnp.asarray(value)

        request = ModelRequest(
            spec=spec,
            counts=jnp.asarray(counts, dtype=jnp.int32),
            n_samples=n_samples,
            n_categories=n_categories,
            n_signatures=int(n_signatures),
            strand=strand,
            categories=tuple(categories),
            signatures=_field("signatures", signatures),
            n_extra=int(n_extra) if n_extra is not None else None,
            opportunities=_field("opportunities", resolved_opportunities),
            signature_prior=_field("signature_prior", signature_prior),
            exposure_prior=_field("exposure_prior", exposure_prior),
        )
        # Fail before inference if a required field is missing
        request.model_args()
        logger.debug("Built request for model '%s'", spec.name)
        return request
