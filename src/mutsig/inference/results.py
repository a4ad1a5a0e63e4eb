"""
Results container for one inference call.

``InferenceResult`` holds the posterior draws of the reported sites
(``exposures``, ``signatures`` for extraction problems and ``activities``
for EMu models) together with the request that produced them and the
diagnostics of the strategy that was run. Point estimates from the
optimizing strategy are stored as a single draw so that every accessor
works the same way for all three strategies.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..models.config.enums import InferenceStrategy, ModelFamily, ProblemType
from ..models.request import ModelRequest

# ==============================================================================
# Inference result
# ==============================================================================


@dataclass
class InferenceResult:
    """
    Posterior draws and diagnostics of a single inference call.

    Attributes
    ----------
    strategy : InferenceStrategy
        Strategy that produced the result.
    request : ModelRequest
        Request the model was run on.
    samples : Dict[str, np.ndarray]
        Draws per reported site; the leading axis indexes draws (chains are
        concatenated).
    n_chains : int
        Number of chains the draws come from.
    losses : Optional[np.ndarray]
        Loss trace of the optimizer (optimizing and variational only).
    diagnostics : Dict[str, Any]
        Strategy-specific diagnostics, e.g. the number of divergent
        transitions for sampling.
    """

    strategy: InferenceStrategy
    request: ModelRequest
    samples: Dict[str, np.ndarray]
    n_chains: int = 1
    losses: Optional[np.ndarray] = field(default=None, repr=False)
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    # --------------------------------------------------------------------------
    # Tags
    # --------------------------------------------------------------------------

    @property
    def family(self) -> ModelFamily:
        return self.request.family

    @property
    def problem(self) -> ProblemType:
        return self.request.problem

    @property
    def n_signatures(self) -> int:
        """Total number of signatures in the model."""
        return self.request.total_signatures

    @property
    def n_draws(self) -> int:
        """Number of stored draws (1 for point estimates)."""
        return next(iter(self.samples.values())).shape[0]

    @property
    def categories(self) -> List[str]:
        return list(self.request.categories)

    # --------------------------------------------------------------------------
    # Draws
    # --------------------------------------------------------------------------

    def get_samples(self, site: Optional[str] = None):
        """Return the draws of ``site``, or all draws when ``site`` is None.

        Raises
        ------
        KeyError
            If ``site`` was not reported by the model.
        """
        if site is None:
            return dict(self.samples)
        if site not in self.samples:
            raise KeyError(
                f"Site '{site}' not in result. Available sites: "
                f"{sorted(self.samples)}"
            )
        return self.samples[site]

    def posterior_mean(self, site: str) -> np.ndarray:
        """Mean over draws of ``site``."""
        return np.asarray(self.get_samples(site)).mean(axis=0)

    # --------------------------------------------------------------------------

    @property
    def signatures(self) -> np.ndarray:
        """Signatures of shape (n_signatures, n_categories).

        For fitting problems these are the fixed input signatures, otherwise
        the posterior mean of the inferred ones.
        """
        if self.problem == ProblemType.FIT:
            return np.asarray(self.request.signatures)
        return self.posterior_mean("signatures")

    @property
    def exposures(self) -> np.ndarray:
        """Posterior-mean exposures of shape (n_samples, n_signatures)."""
        return self.posterior_mean("exposures")

    # --------------------------------------------------------------------------

    def reconstruct(self) -> np.ndarray:
        """
        Expected counts implied by the model, averaged over draws.

        For NMF models each catalogue's total is distributed according to
        ``exposures @ signatures``. For EMu models the Poisson rate
        ``opportunities * (activities @ signatures)`` is returned.

        Returns
        -------
        np.ndarray
            Reconstructed catalogues of shape (n_samples, n_categories).
        """
        if self.family == ModelFamily.EMU:
            weights = np.asarray(self.get_samples("activities"))
        else:
            weights = np.asarray(self.get_samples("exposures"))

        if self.problem == ProblemType.FIT:
            signatures = np.asarray(self.request.signatures)
            mixed = np.einsum("dgs,sc->gc", weights, signatures) / len(weights)
        else:
            signatures = np.asarray(self.get_samples("signatures"))
            mixed = np.einsum("dgs,dsc->gc", weights, signatures) / len(weights)

        if self.family == ModelFamily.EMU:
            return mixed * np.asarray(self.request.opportunities)
        totals = np.asarray(self.request.counts).sum(axis=1, keepdims=True)
        return mixed * totals

    # --------------------------------------------------------------------------
    # Summaries
    # --------------------------------------------------------------------------

    def summarise(
        self, site: str, prob: float = 0.95
    ) -> Dict[str, pd.DataFrame]:
        """
        Posterior mean and equal-tailed credible interval of a site.

        Parameters
        ----------
        site : str
            ``"signatures"``, ``"exposures"`` or ``"activities"``.
        prob : float, default=0.95
            Credible interval mass.

        Returns
        -------
        Dict[str, pd.DataFrame]
            ``"mean"``, ``"lower"`` and ``"upper"`` tables. The mapping can
            be passed back as signatures to a later fit.
        """
        if not 0 < prob < 1:
            raise ValueError(f"prob must be in (0, 1), got {prob}")
        draws = np.asarray(self.get_samples(site))
        tail = (1 - prob) / 2
        stats = {
            "mean": draws.mean(axis=0),
            "lower": np.quantile(draws, tail, axis=0),
            "upper": np.quantile(draws, 1 - tail, axis=0),
        }

        if site == "signatures":
            index = [f"Signature {i + 1}" for i in range(draws.shape[-2])]
            columns = self.categories or None
        else:
            index = [f"Sample {g + 1}" for g in range(draws.shape[-2])]
            columns = [f"Signature {i + 1}" for i in range(draws.shape[-1])]
        return {
            name: pd.DataFrame(values, index=index, columns=columns)
            for name, values in stats.items()
        }
