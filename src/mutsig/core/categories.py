"""
Mutation category vocabularies.

The base layout has 96 categories: six pyrimidine-centred substitution types
(C>A, C>G, C>T, T>A, T>C, T>G), each in the 16 possible trinucleotide
contexts given by the 5' and 3' neighbouring bases. The strand-aware layout
has 192 categories, formed by two consecutive copies of the 96-category
vocabulary, one per transcriptional strand.
"""

from typing import List, Optional, Sequence, Tuple

# ==============================================================================
# Constants
# ==============================================================================

BASES: Tuple[str, ...] = ("A", "C", "G", "T")

SUBSTITUTIONS: Tuple[str, ...] = ("C>A", "C>G", "C>T", "T>A", "T>C", "T>G")

N_BASE_CATEGORIES = 96
N_STRAND_CATEGORIES = 2 * N_BASE_CATEGORIES

# Strand labels used as prefixes for the strand-aware layout
STRANDS: Tuple[str, ...] = ("T", "U")

# ------------------------------------------------------------------------------
# Vocabulary builders
# ------------------------------------------------------------------------------


def mutation_types() -> List[str]:
    """Return the 96 base-layout category labels, e.g. ``"A[C>A]G"``."""
    return [
        f"{five}[{sub}]{three}"
        for sub in SUBSTITUTIONS
        for five in BASES
        for three in BASES
    ]


def trinucleotides() -> List[str]:
    """Return the reference trinucleotide of each of the 96 categories.

    For the category ``"A[C>T]G"`` the reference trinucleotide is ``"ACG"``.
    """
    return [
        f"{five}{sub[0]}{three}"
        for sub in SUBSTITUTIONS
        for five in BASES
        for three in BASES
    ]


def strand_mutation_types() -> List[str]:
    """Return the 192 strand-aware category labels, e.g. ``"T:A[C>A]G"``."""
    base = mutation_types()
    return [f"{strand}:{label}" for strand in STRANDS for label in base]


def category_labels(
    n_categories: int, categories: Optional[Sequence[str]] = None
) -> List[str]:
    """Return the category labels for a layout of ``n_categories`` columns.

    Parameters
    ----------
    n_categories : int
        Number of categories in the data.
    categories : Optional[Sequence[str]], default=None
        Caller-declared vocabulary. Takes precedence over the built-in
        layouts.

    Returns
    -------
    List[str]
        Labels, or generic ``"category_<i>"`` names when the size matches no
        known layout.
    """
    if categories is not None:
        return list(categories)
    if n_categories == N_BASE_CATEGORIES:
        return mutation_types()
    if n_categories == N_STRAND_CATEGORIES:
        return strand_mutation_types()
    return [f"category_{i}" for i in range(n_categories)]


# ------------------------------------------------------------------------------


def is_strand_layout(n_categories: int) -> bool:
    """Whether a category count corresponds to the strand-aware layout."""
    return n_categories == N_STRAND_CATEGORIES
