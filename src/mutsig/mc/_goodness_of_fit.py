"""Reconstruction-based goodness of fit.

The score of a fitted model is the mean cosine similarity between each
observed catalogue and the catalogue reconstructed from the posterior
(``InferenceResult.reconstruct``). It measures reconstruction accuracy only
and applies no penalty for model complexity.
"""

from typing import Any

import numpy as np


# ---------------------------------------------------------------------------
# Cosine similarity
# ---------------------------------------------------------------------------


def cosine_similarity(
    observed: np.ndarray, reconstructed: np.ndarray
) -> np.ndarray:
    """Row-wise cosine similarity of two (n_samples, n_categories) arrays.

    Rows that are zero in either array have similarity 0.
    """
    observed = np.atleast_2d(np.asarray(observed, dtype=float))
    reconstructed = np.atleast_2d(np.asarray(reconstructed, dtype=float))
    if observed.shape != reconstructed.shape:
        raise ValueError(
            f"Shapes differ: {observed.shape} vs {reconstructed.shape}"
        )

    dot = np.sum(observed * reconstructed, axis=1)
    norms = np.linalg.norm(observed, axis=1) * np.linalg.norm(
        reconstructed, axis=1
    )
    return np.divide(dot, norms, out=np.zeros_like(dot), where=norms > 0)


# ---------------------------------------------------------------------------
# Goodness of fit
# ---------------------------------------------------------------------------


def goodness_of_fit(result: Any, observed_counts: Any) -> float:
    """Mean cosine similarity between observed and reconstructed catalogues.

    Parameters
    ----------
    result : InferenceResult
        Fitted result exposing ``reconstruct()``.
    observed_counts : array-like
        Observed count matrix of shape (n_samples, n_categories).

    Returns
    -------
    float
        Score in [0, 1]; higher is better.
    """
    return float(
        np.mean(cosine_similarity(observed_counts, result.reconstruct()))
    )
