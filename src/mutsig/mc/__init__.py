"""Model comparison for mutsig.

The order search ranks candidate signature counts by how well their
posterior reconstructs the observed catalogues:

>>> from mutsig.mc import goodness_of_fit
>>> score = goodness_of_fit(result, counts)
"""

from ._goodness_of_fit import cosine_similarity, goodness_of_fit

__all__ = ["cosine_similarity", "goodness_of_fit"]
