"""
Input processing and validation utilities for mutsig inference.

This module coerces user-supplied catalogues and signatures into rectangular
numeric matrices, checks that every matrix of a call shares the same category
vocabulary, and detects the strand-aware category layout.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import ShapeError
from .categories import (
    N_BASE_CATEGORIES,
    N_STRAND_CATEGORIES,
    category_labels,
    is_strand_layout,
)

logger = logging.getLogger(__name__)

# Floor applied to signature probabilities so that no category has an exactly
# zero probability under the multinomial / Poisson likelihoods
SIGNATURE_FLOOR = 1e-9


class InputProcessor:
    """Handles input processing and validation for mutsig inference."""

    @staticmethod
    def to_matrix(data: Any) -> Tuple[np.ndarray, Optional[List[str]]]:
        """
        Coerce rectangular data into a 2-D float matrix.

        Accepted inputs are numpy / JAX arrays, nested sequences, pandas
        DataFrames and Series, a mapping holding a ``"mean"`` entry (a
        parameter summary) and ``InferenceResult`` objects, from which the
        posterior mean signatures are taken. One-dimensional input is
        treated as a single row.

        Parameters
        ----------
        data : Any
            Data to coerce.

        Returns
        -------
        Tuple[np.ndarray, Optional[List[str]]]
            The matrix and its column labels, if the input carried any.

        Raises
        ------
        ShapeError
            If the data is ragged, empty or has more than two dimensions.
        """
        from ..inference.results import InferenceResult

        if isinstance(data, InferenceResult):
            data = pd.DataFrame(
                data.signatures, columns=data.categories or None
            )
        elif isinstance(data, Mapping):
            if "mean" not in data:
                raise ShapeError(
                    "Mappings are only accepted as parameter summaries with a "
                    f"'mean' entry, got keys {sorted(data)}"
                )
            data = data["mean"]

        labels = None
        if isinstance(data, pd.DataFrame):
            labels = [str(c) for c in data.columns]
            data = data.to_numpy()
        elif isinstance(data, pd.Series):
            labels = [str(i) for i in data.index]
            data = data.to_numpy()

        try:
            matrix = np.asarray(data, dtype=float)
        except (TypeError, ValueError) as exc:
            raise ShapeError(
                f"Could not coerce input to a rectangular numeric matrix: {exc}"
            ) from exc

        if matrix.ndim == 1:
            matrix = matrix[None, :]
        if matrix.ndim != 2:
            raise ShapeError(
                f"Expected a 2-D matrix, got an array with {matrix.ndim} "
                "dimensions"
            )
        if matrix.size == 0:
            raise ShapeError("Input matrix is empty")

        return matrix, labels

    # --------------------------------------------------------------------------

    @staticmethod
    def process_counts(
        counts: Any,
        categories: Optional[Sequence[str]] = None,
    ) -> Tuple[np.ndarray, int, int, bool, List[str]]:
        """
        Process a count matrix (samples as rows, categories as columns).

        Parameters
        ----------
        counts : Any
            Mutational catalogues in any form accepted by ``to_matrix``.
        categories : Optional[Sequence[str]], default=None
            Caller-declared category vocabulary. When None, the number of
            categories must be 96 or 192.

        Returns
        -------
        Tuple[np.ndarray, int, int, bool, List[str]]
            Count matrix, number of samples, number of categories, strand
            flag (True iff there are 192 categories) and category labels.

        Raises
        ------
        ShapeError
            If the category count is not admissible, or if counts are
            negative, non-finite or non-integer.

        Notes
        -----
        Column labels that are a permutation of the vocabulary are reordered
        to follow it. Any other labels are kept by position; without declared
        categories they then replace the built-in labels.
        """
        count_data, labels = InputProcessor.to_matrix(counts)
        n_samples, n_categories = count_data.shape

        if categories is not None:
            if n_categories != len(categories):
                raise ShapeError(
                    f"Counts have {n_categories} categories but the declared "
                    f"vocabulary has {len(categories)}"
                )
        elif n_categories not in (N_BASE_CATEGORIES, N_STRAND_CATEGORIES):
            raise ShapeError(
                f"Counts must have {N_BASE_CATEGORIES} or "
                f"{N_STRAND_CATEGORIES} categories (columns), got "
                f"{n_categories}. Pass 'categories' to use a custom "
                "vocabulary."
            )

        if not np.all(np.isfinite(count_data)):
            raise ShapeError("Counts contain non-finite values")
        if np.any(count_data < 0):
            raise ShapeError("Counts must be non-negative")
        if not np.allclose(count_data, np.round(count_data)):
            raise ShapeError("Counts must be integer-valued")

        vocabulary = category_labels(n_categories, categories)
        if InputProcessor._is_labelled(labels):
            # Custom labels on a built-in layout become the vocabulary
            if categories is None and not InputProcessor._is_permutation(
                labels, vocabulary
            ):
                vocabulary = list(labels)
            count_data = InputProcessor._align_columns(
                count_data, labels, vocabulary, "counts"
            )

        return (
            np.round(count_data),
            n_samples,
            n_categories,
            is_strand_layout(n_categories),
            vocabulary,
        )

    # --------------------------------------------------------------------------

    @staticmethod
    def process_signatures(
        signatures: Any,
        n_categories: int,
        vocabulary: Optional[Sequence[str]] = None,
        labelled_counts: bool = False,
    ) -> np.ndarray:
        """
        Process a signature matrix (signatures as rows).

        A floor of ``SIGNATURE_FLOOR`` is applied to every entry and each row
        is renormalized to sum to one.

        Parameters
        ----------
        signatures : Any
            Signatures in any form accepted by ``to_matrix``.
        n_categories : int
            Number of categories of the count matrix.
        vocabulary : Optional[Sequence[str]], default=None
            Category labels of the count matrix, used to align labelled
            signature columns.
        labelled_counts : bool, default=False
            Whether the count matrix carried its own column labels. Only
            then must labelled signatures agree with ``vocabulary``;
            otherwise labels that do not match are taken by position.

        Returns
        -------
        np.ndarray
            Signature matrix of shape (n_signatures, n_categories).

        Raises
        ------
        ShapeError
            If the number of categories differs from the counts, the
            signatures contain negative or non-finite values, or both inputs
            are labelled and the labels disagree.
        """
        signature_data, labels = InputProcessor.to_matrix(signatures)

        if signature_data.shape[1] != n_categories:
            raise ShapeError(
                f"Signatures have {signature_data.shape[1]} categories but "
                f"counts have {n_categories}"
            )
        if not np.all(np.isfinite(signature_data)):
            raise ShapeError("Signatures contain non-finite values")
        if np.any(signature_data < 0):
            raise ShapeError("Signatures must be non-negative")

        if InputProcessor._is_labelled(labels) and vocabulary is not None:
            signature_data = InputProcessor._align_columns(
                signature_data,
                labels,
                vocabulary,
                "signatures",
                strict=labelled_counts,
            )

        return InputProcessor.remove_zeros(signature_data)

    # --------------------------------------------------------------------------

    @staticmethod
    def remove_zeros(
        matrix: np.ndarray, floor: float = SIGNATURE_FLOOR
    ) -> np.ndarray:
        """Floor every entry at ``floor`` and renormalize rows to sum to 1."""
        floored = np.maximum(matrix, floor)
        return floored / floored.sum(axis=1, keepdims=True)

    # --------------------------------------------------------------------------

    @staticmethod
    def has_labels(data: Any) -> bool:
        """Whether ``data`` is a pandas object with named columns."""
        if isinstance(data, pd.DataFrame):
            labels = [str(c) for c in data.columns]
        elif isinstance(data, pd.Series):
            labels = [str(i) for i in data.index]
        else:
            return False
        return InputProcessor._is_labelled(labels)

    # --------------------------------------------------------------------------

    @staticmethod
    def _is_labelled(labels: Optional[List[str]]) -> bool:
        # Unlabelled frames carry positional integer column names
        if labels is None:
            return False
        return labels != [str(i) for i in range(len(labels))]

    @staticmethod
    def _is_permutation(
        labels: Sequence[str], vocabulary: Sequence[str]
    ) -> bool:
        return len(set(labels)) == len(labels) and set(labels) == set(
            vocabulary
        )

    @staticmethod
    def _align_columns(
        matrix: np.ndarray,
        labels: List[str],
        vocabulary: Sequence[str],
        name: str,
        strict: bool = False,
    ) -> np.ndarray:
        """
        Reorder labelled columns to follow ``vocabulary``.

        Labels that are not a permutation of the vocabulary are taken by
        position, unless ``strict`` is set, in which case they are rejected.
        """
        if list(labels) == list(vocabulary):
            return matrix
        if InputProcessor._is_permutation(labels, vocabulary):
            position = {label: i for i, label in enumerate(labels)}
            return matrix[:, [position[label] for label in vocabulary]]
        if strict:
            raise ShapeError(
                f"Column labels of {name} do not match the column labels of "
                "the counts"
            )
        logger.debug(
            "Column labels of %s are not category labels; columns are taken "
            "by position",
            name,
        )
        return matrix
