"""
Mutational signature models for fitting and extraction.

Two statistical formulations are provided for each of the three problems
(fit, extract, fit-extract):

    - **NMF**: each catalogue is a multinomial draw whose category
      probabilities are a convex combination of the signatures.
    - **EMu**: each category count is a Poisson draw whose rate is the
      product of the sample's opportunity for that category and the
      signature activities of the sample.

All models share the same interface: keyword arguments named after the
fields of a ``ModelRequest`` payload, with the observed ``counts`` always
present.
"""

# Import JAX-related libraries
import jax.numpy as jnp

# Import Pyro-related libraries
import numpyro
import numpyro.distributions as dist

# ------------------------------------------------------------------------------
# Shared building blocks
# ------------------------------------------------------------------------------


def _sample_exposures(n_samples: int, exposure_prior: jnp.ndarray):
    """Sample one exposure simplex per catalogue."""
    with numpyro.plate("catalogues", n_samples):
        return numpyro.sample("exposures", dist.Dirichlet(exposure_prior))


# ------------------------------------------------------------------------------


def _sample_signatures(
    site: str, n_signatures: int, signature_prior: jnp.ndarray
):
    """Sample ``n_signatures`` signature simplices, one per prior row."""
    with numpyro.plate("components", n_signatures):
        return numpyro.sample(site, dist.Dirichlet(signature_prior))


# ------------------------------------------------------------------------------


def _multinomial_likelihood(
    n_samples: int,
    counts: jnp.ndarray,
    exposures: jnp.ndarray,
    signatures: jnp.ndarray,
):
    """Multinomial likelihood of each catalogue given its total count."""
    probs = exposures @ signatures
    with numpyro.plate("catalogues", n_samples):
        numpyro.sample(
            "counts",
            dist.Multinomial(total_count=counts.sum(axis=-1), probs=probs),
            obs=counts,
        )


# ------------------------------------------------------------------------------


def _poisson_likelihood(
    n_samples: int,
    counts: jnp.ndarray,
    exposures: jnp.ndarray,
    signatures: jnp.ndarray,
    opportunities: jnp.ndarray,
):
    """Opportunity-weighted Poisson likelihood of every category count.

    Exposures are scaled to absolute activities by a per-catalogue
    multiplier with a half-Cauchy prior whose scale is the catalogue's total
    mutation count.
    """
    scale = jnp.maximum(counts.sum(axis=-1), 1.0)
    with numpyro.plate("catalogues", n_samples):
        multiplier = numpyro.sample("multiplier", dist.HalfCauchy(scale))
    activities = numpyro.deterministic(
        "activities", exposures * multiplier[..., None]
    )
    rates = opportunities * (activities @ signatures)
    with numpyro.plate("catalogues", n_samples):
        numpyro.sample("counts", dist.Poisson(rates).to_event(1), obs=counts)


# ==============================================================================
# Fitting models
# ==============================================================================


def nmf_fit_model(
    n_categories: int,
    n_samples: int,
    n_signatures: int,
    counts: jnp.ndarray,
    signatures: jnp.ndarray,
    exposure_prior: jnp.ndarray,
):
    """
    Fit known signatures to catalogues under the multinomial (NMF) model.

    The generative process is:

        - exposures[g] ~ Dirichlet(exposure_prior)
        - counts[g] ~ Multinomial(sum(counts[g]), exposures[g] @ signatures)

    Parameters
    ----------
    n_categories : int
        Number of mutation categories.
    n_samples : int
        Number of catalogues.
    n_signatures : int
        Number of fixed signatures.
    counts : jnp.ndarray
        Observed counts of shape (n_samples, n_categories).
    signatures : jnp.ndarray
        Fixed signatures of shape (n_signatures, n_categories).
    exposure_prior : jnp.ndarray
        Dirichlet concentration of length n_signatures.
    """
    exposures = _sample_exposures(n_samples, exposure_prior)
    _multinomial_likelihood(n_samples, counts, exposures, signatures)


# ------------------------------------------------------------------------------


def emu_fit_model(
    n_categories: int,
    n_samples: int,
    n_signatures: int,
    counts: jnp.ndarray,
    signatures: jnp.ndarray,
    opportunities: jnp.ndarray,
    exposure_prior: jnp.ndarray,
):
    """
    Fit known signatures to catalogues under the Poisson (EMu) model.

    The generative process is:

        - exposures[g] ~ Dirichlet(exposure_prior)
        - multiplier[g] ~ HalfCauchy(sum(counts[g]))
        - activities[g] = exposures[g] * multiplier[g]
        - counts[g, c] ~ Poisson(opportunities[g, c] *
                                 (activities[g] @ signatures)[c])

    Parameters
    ----------
    n_categories : int
        Number of mutation categories.
    n_samples : int
        Number of catalogues.
    n_signatures : int
        Number of fixed signatures.
    counts : jnp.ndarray
        Observed counts of shape (n_samples, n_categories).
    signatures : jnp.ndarray
        Fixed signatures of shape (n_signatures, n_categories).
    opportunities : jnp.ndarray
        Opportunities of shape (n_samples, n_categories).
    exposure_prior : jnp.ndarray
        Dirichlet concentration of length n_signatures.
    """
    exposures = _sample_exposures(n_samples, exposure_prior)
    _poisson_likelihood(n_samples, counts, exposures, signatures, opportunities)


# ==============================================================================
# Extraction models
# ==============================================================================


def nmf_extract_model(
    n_categories: int,
    n_samples: int,
    n_signatures: int,
    counts: jnp.ndarray,
    signature_prior: jnp.ndarray,
    exposure_prior: jnp.ndarray,
):
    """
    Extract signatures and exposures jointly under the NMF model.

    The generative process is:

        - signatures[s] ~ Dirichlet(signature_prior[s])
        - exposures[g] ~ Dirichlet(exposure_prior)
        - counts[g] ~ Multinomial(sum(counts[g]), exposures[g] @ signatures)

    Parameters
    ----------
    n_categories : int
        Number of mutation categories.
    n_samples : int
        Number of catalogues.
    n_signatures : int
        Number of signatures to extract.
    counts : jnp.ndarray
        Observed counts of shape (n_samples, n_categories).
    signature_prior : jnp.ndarray
        Dirichlet concentrations of shape (n_signatures, n_categories).
    exposure_prior : jnp.ndarray
        Dirichlet concentration of length n_signatures.
    """
    signatures = _sample_signatures("signatures", n_signatures, signature_prior)
    exposures = _sample_exposures(n_samples, exposure_prior)
    _multinomial_likelihood(n_samples, counts, exposures, signatures)


# ------------------------------------------------------------------------------


def emu_extract_model(
    n_categories: int,
    n_samples: int,
    n_signatures: int,
    counts: jnp.ndarray,
    opportunities: jnp.ndarray,
    signature_prior: jnp.ndarray,
    exposure_prior: jnp.ndarray,
):
    """
    Extract signatures and activities jointly under the EMu model.

    Same as ``emu_fit_model`` with signatures drawn from
    ``Dirichlet(signature_prior[s])``.
    """
    signatures = _sample_signatures("signatures", n_signatures, signature_prior)
    exposures = _sample_exposures(n_samples, exposure_prior)
    _poisson_likelihood(n_samples, counts, exposures, signatures, opportunities)


# ==============================================================================
# Fit-extract models
# ==============================================================================


def _combined_signatures(
    signatures: jnp.ndarray, n_extra: int, signature_prior: jnp.ndarray
):
    """Sample the extra signatures and stack them below the fixed ones."""
    extra = _sample_signatures("extra_signatures", n_extra, signature_prior)
    return numpyro.deterministic(
        "signatures", jnp.concatenate([signatures, extra], axis=0)
    )


# ------------------------------------------------------------------------------


def nmf_fit_extract_model(
    n_categories: int,
    n_samples: int,
    n_signatures: int,
    n_extra: int,
    counts: jnp.ndarray,
    signatures: jnp.ndarray,
    signature_prior: jnp.ndarray,
    exposure_prior: jnp.ndarray,
):
    """
    Fit fixed signatures while extracting ``n_extra`` additional ones (NMF).

    The reported ``signatures`` site holds the fixed signatures followed by
    the extracted ones; exposures cover all ``n_signatures + n_extra``
    signatures in that order.

    Parameters
    ----------
    n_categories : int
        Number of mutation categories.
    n_samples : int
        Number of catalogues.
    n_signatures : int
        Number of fixed signatures.
    n_extra : int
        Number of additional signatures to extract.
    counts : jnp.ndarray
        Observed counts of shape (n_samples, n_categories).
    signatures : jnp.ndarray
        Fixed signatures of shape (n_signatures, n_categories).
    signature_prior : jnp.ndarray
        Dirichlet concentrations of shape (n_extra, n_categories).
    exposure_prior : jnp.ndarray
        Dirichlet concentration of length n_signatures + n_extra.
    """
    all_signatures = _combined_signatures(signatures, n_extra, signature_prior)
    exposures = _sample_exposures(n_samples, exposure_prior)
    _multinomial_likelihood(n_samples, counts, exposures, all_signatures)


# ------------------------------------------------------------------------------


def emu_fit_extract_model(
    n_categories: int,
    n_samples: int,
    n_signatures: int,
    n_extra: int,
    counts: jnp.ndarray,
    signatures: jnp.ndarray,
    opportunities: jnp.ndarray,
    signature_prior: jnp.ndarray,
    exposure_prior: jnp.ndarray,
):
    """Fit fixed signatures while extracting additional ones (EMu)."""
    all_signatures = _combined_signatures(signatures, n_extra, signature_prior)
    exposures = _sample_exposures(n_samples, exposure_prior)
    _poisson_likelihood(
        n_samples, counts, exposures, all_signatures, opportunities
    )
