"""
Prior factory for mutsig inference.

This module creates the default Dirichlet priors used by the signature
models and validates caller-supplied priors against the shapes a request
requires.
"""

from typing import Any, Optional, Sequence, Union

import numpy as np

from ..errors import ShapeError, UsageError


class PriorFactory:
    """Factory for creating and validating exposure and signature priors."""

    @staticmethod
    def exposure_prior(
        prior: Optional[Union[float, Sequence[float], np.ndarray]],
        n_signatures: int,
    ) -> np.ndarray:
        """
        Build the Dirichlet concentration vector for the exposures.

        Parameters
        ----------
        prior : Optional[Union[float, Sequence[float], np.ndarray]]
            None for a uniform prior (all ones), a positive scalar to fill
            every entry, or a vector with one value per signature.
        n_signatures : int
            Total number of signatures in the model.

        Returns
        -------
        np.ndarray
            Concentration vector of length ``n_signatures``.

        Raises
        ------
        ShapeError
            If a vector prior has the wrong length.
        UsageError
            If any prior value is not strictly positive.
        """
        if prior is None:
            return np.ones(n_signatures)

        values = np.asarray(prior, dtype=float)
        if values.ndim == 0:
            values = np.full(n_signatures, float(values))
        elif values.ndim != 1 or values.shape[0] != n_signatures:
            raise ShapeError(
                f"Exposure prior must have one value per signature "
                f"({n_signatures}), got shape {values.shape}"
            )

        if not np.all(np.isfinite(values)) or np.any(values <= 0):
            raise UsageError(
                f"Exposure prior values must be positive, got {values}"
            )
        return values

    # --------------------------------------------------------------------------

    @staticmethod
    def signature_prior(
        prior: Optional[Any],
        n_signatures: int,
        n_categories: int,
    ) -> np.ndarray:
        """
        Build the Dirichlet concentration matrix for signatures to extract.

        Parameters
        ----------
        prior : Optional[Any]
            None for a uniform prior, otherwise a matrix-like object with one
            row per signature to extract and one column per category.
        n_signatures : int
            Number of signatures to extract.
        n_categories : int
            Number of mutation categories.

        Returns
        -------
        np.ndarray
            Concentration matrix of shape (n_signatures, n_categories).

        Raises
        ------
        ShapeError
            If the prior shape differs from (n_signatures, n_categories).
        UsageError
            If any prior value is not strictly positive.
        """
        if prior is None:
            return np.ones((n_signatures, n_categories))

        from .input_processor import InputProcessor

        values, _ = InputProcessor.to_matrix(prior)
        if values.shape != (n_signatures, n_categories):
            raise ShapeError(
                f"Signature prior must have shape ({n_signatures}, "
                f"{n_categories}), got {values.shape}"
            )
        if not np.all(np.isfinite(values)) or np.any(values <= 0):
            raise UsageError("Signature prior values must be positive")
        return values

    # --------------------------------------------------------------------------

    @staticmethod
    def check_signature_prior_usage(
        prior: Optional[Any], signature_counts: Sequence[int]
    ) -> None:
        """
        Reject a custom signature prior when a range of counts is requested.

        A range of signature counts implies one prior shape per candidate, so
        a single custom prior is ambiguous.

        Raises
        ------
        UsageError
            If ``prior`` is given and more than one count is requested.
        """
        if prior is not None and len(signature_counts) > 1:
            raise UsageError(
                "'signature_prior' is only admitted when 'n_signatures' is a "
                "scalar (single value)"
            )
