"""
Mutational opportunity resolution for the EMu (Poisson) models.

Opportunities weight the expected number of mutations of each category in
each sample, reflecting how often the reference trinucleotide of the
category occurs in the sequenced territory. They are resolved from a
caller-supplied matrix, from one of the built-in human reference tables, or
fall back to a uniform matrix.
"""

import logging
import warnings
from typing import Any, Dict, Optional, Union

import numpy as np

from ..errors import ConfigurationError, ConfigurationWarning, ShapeError
from ..models.config.enums import ModelFamily, OpportunityReference
from .categories import N_BASE_CATEGORIES, N_STRAND_CATEGORIES, trinucleotides

logger = logging.getLogger(__name__)

# ==============================================================================
# Reference trinucleotide counts
# ==============================================================================

# Occurrences of each pyrimidine-centred trinucleotide (counting both strands)
# in the human reference genome
HUMAN_GENOME_TRINUCLEOTIDES: Dict[str, int] = {
    "ACA": 115415924, "ACC": 66550070, "ACG": 14381094, "ACT": 92058521,
    "CCA": 105547494, "CCC": 75238432, "CCG": 15801411, "CCT": 101628749,
    "GCA": 82414996, "GCC": 68090959, "GCG": 13501443, "GCT": 80004597,
    "TCA": 112085102, "TCC": 88336520, "TCG": 12630107, "TCT": 126687814,
    "ATA": 117215115, "ATC": 76401714, "ATG": 105850607, "ATT": 144042091,
    "CTA": 73767209, "CTC": 96958462, "CTG": 115049510, "CTT": 116048698,
    "GTA": 64878279, "GTC": 54282216, "GTG": 86164211, "GTT": 83615566,
    "TTA": 119757738, "TTC": 112982693, "TTG": 112741012, "TTT": 228047451,
}  # fmt: skip

# Same counts restricted to the human exome
HUMAN_EXOME_TRINUCLEOTIDES: Dict[str, int] = {
    "ACA": 1940794, "ACC": 1436172, "ACG": 609055, "ACT": 1394703,
    "CCA": 2085050, "CCC": 1727868, "CCG": 823346, "CCT": 1901089,
    "GCA": 1634484, "GCC": 1666396, "GCG": 652048, "GCT": 1707232,
    "TCA": 1734016, "TCC": 1757312, "TCG": 521636, "TCT": 1906587,
    "ATA": 1098587, "ATC": 1436127, "ATG": 1763101, "ATT": 1473412,
    "CTA": 908837, "CTC": 1929380, "CTG": 2443906, "CTT": 1872060,
    "GTA": 781539, "GTC": 1043606, "GTG": 1646810, "GTT": 1166101,
    "TTA": 1023014, "TTC": 1658958, "TTG": 1474898, "TTT": 1854218,
}  # fmt: skip

_REFERENCE_TABLES: Dict[OpportunityReference, Dict[str, int]] = {
    OpportunityReference.HUMAN_GENOME: HUMAN_GENOME_TRINUCLEOTIDES,
    OpportunityReference.HUMAN_EXOME: HUMAN_EXOME_TRINUCLEOTIDES,
}

# ==============================================================================
# Opportunity resolver
# ==============================================================================


class OpportunityResolver:
    """Resolves the opportunity matrix used by the EMu models."""

    @staticmethod
    def reference_weights(
        reference: Optional[Union[str, OpportunityReference]] = None,
    ) -> np.ndarray:
        """
        Per-category opportunity weights of the 96-category layout.

        Parameters
        ----------
        reference : Optional[Union[str, OpportunityReference]], default=None
            Reference table name. None gives uniform weights.

        Returns
        -------
        np.ndarray
            Vector of 96 positive weights with mean 1.
        """
        if reference is None:
            return np.ones(N_BASE_CATEGORIES)

        key = OpportunityResolver._parse_reference(reference)
        table = _REFERENCE_TABLES[key]
        weights = np.array(
            [table[tri] for tri in trinucleotides()], dtype=float
        )
        return weights / weights.mean()

    # --------------------------------------------------------------------------

    @staticmethod
    def build_matrix(
        n_samples: int,
        n_categories: int,
        reference: Optional[Union[str, OpportunityReference]] = None,
        strand: bool = False,
    ) -> np.ndarray:
        """
        Synthesize an opportunity matrix with identical rows.

        In the strand-aware layout each 96-category block receives half of
        the per-category weight, so both layouts have the same total
        opportunity per trinucleotide.

        Parameters
        ----------
        n_samples : int
            Number of rows (samples).
        n_categories : int
            Number of categories of the count matrix.
        reference : Optional[Union[str, OpportunityReference]], default=None
            Reference table name. None gives a uniform matrix.
        strand : bool, default=False
            Whether the counts use the strand-aware 192-category layout.

        Returns
        -------
        np.ndarray
            Opportunity matrix of shape (n_samples, n_categories).

        Raises
        ------
        ShapeError
            If a reference table is requested for a custom vocabulary.
        """
        if reference is None and n_categories not in (
            N_BASE_CATEGORIES,
            N_STRAND_CATEGORIES,
        ):
            return np.ones((n_samples, n_categories))
        if n_categories not in (N_BASE_CATEGORIES, N_STRAND_CATEGORIES):
            raise ShapeError(
                "Reference opportunities are only defined for the 96 and 192 "
                f"category layouts, got {n_categories} categories"
            )

        weights = OpportunityResolver.reference_weights(reference)
        if strand:
            weights = np.concatenate([weights / 2.0, weights / 2.0])
        return np.tile(weights, (n_samples, 1))

    # --------------------------------------------------------------------------

    @staticmethod
    def resolve(
        opportunities: Any,
        family: ModelFamily,
        n_samples: int,
        n_categories: int,
        strand: bool,
    ) -> Optional[np.ndarray]:
        """
        Resolve the opportunity matrix for a request.

        Resolution order for the EMu family:

            1. A matrix is validated against the count matrix shape. A single
               row is repeated across samples, and a 96-column matrix given
               for strand-aware counts is split evenly over both strands.
            2. A reference name ("human-genome" or "human-exome") is expanded
               to a matrix of that table's weights.
            3. None emits a ``ConfigurationWarning`` and falls back to a
               uniform matrix.

        For the NMF family opportunities are not used; supplying them emits a
        ``ConfigurationWarning`` and None is returned.

        Parameters
        ----------
        opportunities : Any
            None, a reference name, or a matrix-like object.
        family : ModelFamily
            Model family of the request.
        n_samples : int
            Number of samples of the count matrix.
        n_categories : int
            Number of categories of the count matrix.
        strand : bool
            Whether the counts use the strand-aware layout.

        Returns
        -------
        Optional[np.ndarray]
            Strictly positive matrix of shape (n_samples, n_categories), or
            None for the NMF family.

        Raises
        ------
        ShapeError
            If a supplied matrix has the wrong shape or non-positive values.
        ConfigurationError
            If a reference name is not recognized.
        """
        if family == ModelFamily.NMF:
            if opportunities is not None:
                warnings.warn(
                    "Using the NMF model: 'opportunities' will not be used.",
                    ConfigurationWarning,
                    stacklevel=3,
                )
            return None

        if opportunities is None:
            warnings.warn(
                "Using the EMu model, but no opportunities were provided. "
                "Uniform opportunities will be used.",
                ConfigurationWarning,
                stacklevel=3,
            )
            return OpportunityResolver.build_matrix(
                n_samples, n_categories, None, strand
            )

        if isinstance(opportunities, (str, OpportunityReference)):
            logger.debug("Building opportunities from '%s'", opportunities)
            return OpportunityResolver.build_matrix(
                n_samples, n_categories, opportunities, strand
            )

        from .input_processor import InputProcessor

        matrix, _ = InputProcessor.to_matrix(opportunities)
        if strand and matrix.shape[1] == N_BASE_CATEGORIES:
            matrix = np.concatenate([matrix / 2.0, matrix / 2.0], axis=1)
        if matrix.shape[0] == 1 and n_samples > 1:
            matrix = np.tile(matrix, (n_samples, 1))

        if matrix.shape != (n_samples, n_categories):
            raise ShapeError(
                f"Opportunities must have the same shape as counts "
                f"({n_samples}, {n_categories}), got {matrix.shape}"
            )
        if not np.all(np.isfinite(matrix)) or np.any(matrix <= 0):
            raise ShapeError("Opportunities must be strictly positive")
        return matrix

    # --------------------------------------------------------------------------

    @staticmethod
    def _parse_reference(
        reference: Union[str, OpportunityReference],
    ) -> OpportunityReference:
        """Convert a reference name to an ``OpportunityReference``."""
        try:
            return OpportunityReference(reference)
        except ValueError as exc:
            valid = [r.value for r in OpportunityReference]
            raise ConfigurationError(
                f"Unknown opportunity reference '{reference}'. "
                f"Must be one of {valid}"
            ) from exc
