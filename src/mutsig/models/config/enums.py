"""
Enums and constants for model configuration.

Every closed choice exposed by mutsig (model family, problem type, inference
strategy, opportunity reference and model-order selection rule) is an
enumeration here. String values are accepted wherever an enum is expected
and converted with the enum constructor, so an unknown value fails at the
boundary instead of falling through a chain of string comparisons.
"""

from enum import Enum

# ==============================================================================
# Enums for model configuration
# ==============================================================================


class ModelFamily(str, Enum):
    """Supported statistical formulations."""

    # Multinomial likelihood over normalized catalogues
    NMF = "nmf"
    # Poisson likelihood weighted by mutational opportunities
    EMU = "emu"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.lower() != value:
            return cls(value.lower())
        return None


# ------------------------------------------------------------------------------


class ProblemType(str, Enum):
    """Supported estimation problems."""

    FIT = "fit"
    EXTRACT = "extract"
    FIT_EXTRACT = "fit_extract"

    @property
    def extracts_signatures(self) -> bool:
        """Whether signatures are inferred (and labels can switch)."""
        return self is not ProblemType.FIT


# ------------------------------------------------------------------------------


class InferenceStrategy(str, Enum):
    """Supported inference strategies."""

    SAMPLING = "sampling"
    OPTIMIZING = "optimizing"
    VARIATIONAL = "variational"

    @classmethod
    def _missing_(cls, value):
        # Short name for variational Bayes
        if value == "vb":
            return cls.VARIATIONAL
        return None


# ------------------------------------------------------------------------------


class OpportunityReference(str, Enum):
    """Built-in opportunity reference tables."""

    HUMAN_GENOME = "human-genome"
    HUMAN_EXOME = "human-exome"


# ------------------------------------------------------------------------------


class SelectionRule(str, Enum):
    """Rules for choosing the best number of signatures."""

    # Candidate with the highest goodness-of-fit
    MAX_SCORE = "max_score"
    # Candidate at the largest second difference of the goodness-of-fit curve
    ELBOW = "elbow"
