"""
Plotting functions
"""

# Import matplotlib for plotting
import matplotlib.pyplot as plt

# Import seaborn for plotting
import seaborn as sns

# Import numpy for array manipulation
import numpy as np

# ------------------------------------------------------------------------------
# Model-order search plots
# ------------------------------------------------------------------------------


def plot_goodness_of_fit(search_result, ax=None, color=None):
    """
    Plot the goodness of fit of every candidate number of signatures.

    Successful candidates are joined by a line, failed candidates are
    marked on the x-axis and the selected ``best`` candidate is
    highlighted.

    Parameters
    ----------
    search_result : OrderSearchResult
        Result of a model-order search.
    ax : matplotlib.axes.Axes, optional
        Axis to plot on. A new figure is created when None.
    color : str, optional
        Line color. Defaults to the first color of the seaborn
        ``"colorblind"`` palette.

    Returns
    -------
    matplotlib.axes.Axes
        The axis holding the plot.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(4.5, 3))
    palette = sns.color_palette("colorblind")
    color = color or palette[0]

    ok = sorted(search_result.scores)
    scores = np.array([search_result.scores[n] for n in ok])
    ax.plot(ok, scores, marker="o", color=color, label="cosine similarity")

    failed = sorted(search_result.failures)
    if failed:
        ax.scatter(
            failed,
            np.full(len(failed), np.nanmin(scores)),
            marker="x",
            color=palette[3],
            label="failed",
        )

    ax.axvline(search_result.best, color=palette[1], linestyle="--", lw=1)
    ax.scatter(
        [search_result.best],
        [search_result.best_score],
        s=80,
        facecolor="none",
        edgecolor=palette[1],
        zorder=3,
        label=f"best ({search_result.best})",
    )

    ax.set_xticks(search_result.candidates)
    ax.set_xlabel("number of signatures")
    ax.set_ylabel("goodness of fit")
    ax.legend(frameon=False, fontsize=8)
    return ax


# ------------------------------------------------------------------------------


def save_goodness_of_fit(search_result, path):
    """Plot the goodness-of-fit curve and save it to ``path``."""
    fig, ax = plt.subplots(figsize=(4.5, 3))
    plot_goodness_of_fit(search_result, ax=ax)
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)
