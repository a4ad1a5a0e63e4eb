"""
Exception and warning classes raised by mutsig.

Every error raised by the package derives from ``MutsigError``. The concrete
classes also derive from the matching built-in exception (``ValueError`` or
``RuntimeError``) so that callers catching the built-in types keep working.
"""

from typing import Optional

# ==============================================================================
# Errors
# ==============================================================================


class MutsigError(Exception):
    """Base class for all mutsig errors."""


# ------------------------------------------------------------------------------


class UsageError(MutsigError, ValueError):
    """Invalid combination of arguments (e.g. a signature prior together with
    a range of signature counts)."""


# ------------------------------------------------------------------------------


class ShapeError(MutsigError, ValueError):
    """Dimension or content mismatch among counts, signatures, priors or
    opportunities."""


# ------------------------------------------------------------------------------


class ConfigurationError(MutsigError, ValueError):
    """Unknown model family, inference strategy or opportunity reference, or
    a strategy configuration that does not match the requested strategy."""


# ------------------------------------------------------------------------------


class BackendFailure(MutsigError, RuntimeError):
    """The inference engine failed to produce a usable result.

    Parameters
    ----------
    message : str
        Human readable description of the failure.
    strategy : Optional[str]
        Inference strategy that failed ("sampling", "optimizing" or
        "variational").
    n_signatures : Optional[int]
        Number of signatures of the failed request, when known.
    """

    def __init__(
        self,
        message: str,
        strategy: Optional[str] = None,
        n_signatures: Optional[int] = None,
    ):
        super().__init__(message)
        self.strategy = strategy
        self.n_signatures = n_signatures


# ==============================================================================
# Warnings
# ==============================================================================


class ConfigurationWarning(UserWarning):
    """Non-fatal configuration problem; a documented default is used."""
