"""
Model-order search over a range of signature counts.

``ModelOrderSearch`` runs an extraction for every candidate number of
signatures, scores each successful result by reconstruction goodness of fit
and selects a ``best`` candidate. A failing candidate is recorded as a
``CandidateFailure`` and does not stop the search. Candidates can be
evaluated concurrently on a thread pool; results are always keyed and
ordered by signature count.
"""

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd
from rich.console import Console
from rich.table import Table

from ..errors import BackendFailure, ConfigurationWarning, UsageError
from ..mc import goodness_of_fit
from ..models.config import InferenceConfig
from ..models.config.enums import InferenceStrategy, SelectionRule
from ..models.model_registry import ModelSpec
from ..models.request import ModelRequest
from .results import InferenceResult

logger = logging.getLogger(__name__)

# ==============================================================================
# Result containers
# ==============================================================================


@dataclass(frozen=True)
class CandidateFailure:
    """Marker stored for a candidate whose inference failed."""

    n_signatures: int
    message: str
    strategy: Optional[InferenceStrategy] = None

    def __bool__(self) -> bool:
        return False


# ------------------------------------------------------------------------------


@dataclass
class OrderSearchResult:
    """
    Outcome of a model-order search.

    Attributes
    ----------
    results : Dict[int, Union[InferenceResult, CandidateFailure]]
        Result (or failure marker) per candidate signature count, in
        ascending order.
    scores : Dict[int, float]
        Goodness of fit of every successful candidate.
    best : int
        Selected signature count.
    selection : SelectionRule
        Rule that was used to select ``best``.
    """

    results: Dict[int, Union[InferenceResult, CandidateFailure]]
    scores: Dict[int, float]
    best: int
    selection: SelectionRule = SelectionRule.MAX_SCORE

    # --------------------------------------------------------------------------

    def __getitem__(self, n_signatures: int):
        return self.results[n_signatures]

    def __iter__(self):
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __contains__(self, n_signatures: int) -> bool:
        return n_signatures in self.results

    # --------------------------------------------------------------------------

    @property
    def candidates(self) -> List[int]:
        return list(self.results)

    @property
    def successes(self) -> Dict[int, InferenceResult]:
        return {
            n: r
            for n, r in self.results.items()
            if isinstance(r, InferenceResult)
        }

    @property
    def failures(self) -> Dict[int, CandidateFailure]:
        return {
            n: r
            for n, r in self.results.items()
            if isinstance(r, CandidateFailure)
        }

    @property
    def best_result(self) -> InferenceResult:
        return self.results[self.best]

    @property
    def best_score(self) -> float:
        return self.scores[self.best]

    # --------------------------------------------------------------------------
    # Summaries
    # --------------------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        """One row per candidate with its status, score and selection flag."""
        rows = []
        for n, result in self.results.items():
            rows.append(
                {
                    "n_signatures": n,
                    "status": self._status(n, result),
                    "score": self.scores.get(n, np.nan),
                    "best": n == self.best,
                }
            )
        return pd.DataFrame(rows).set_index("n_signatures")

    def _status(self, n: int, result) -> str:
        if not result:
            return "failed"
        return "ok" if n in self.scores else "unscored"

    def summary_table(self) -> Table:
        """Rich table of candidates and goodness-of-fit scores."""
        table = Table(title="Goodness of fit per number of signatures")
        table.add_column("Signatures", justify="right")
        table.add_column("Status")
        table.add_column("Cosine similarity", justify="right")
        for n, result in self.results.items():
            if n in self.scores:
                score = f"{self.scores[n]:.4f}"
                status = "[green]ok[/green]"
            elif result:
                score = "-"
                status = "[yellow]unscored[/yellow]"
            else:
                score = "-"
                status = "[red]failed[/red]"
            if n == self.best:
                score = f"[bold]{score}[/bold] (best)"
            table.add_row(str(n), status, score)
        return table

    def print_summary(self, console: Optional[Console] = None) -> None:
        """Print the summary table and the selected number of signatures."""
        console = console or Console()
        console.print(self.summary_table())
        console.print(
            f"[bold cyan]Best number of signatures: {self.best}[/bold cyan] "
            f"({self.selection.value}, score {self.best_score:.4f})"
        )


# ==============================================================================
# Selection rules
# ==============================================================================


def select_best(
    scores: Dict[int, float], rule: SelectionRule = SelectionRule.MAX_SCORE
) -> int:
    """
    Select the best candidate from goodness-of-fit scores.

    ``MAX_SCORE`` picks the highest score (the smallest count wins ties).
    ``ELBOW`` picks the candidate where the score curve bends the most, i.e.
    the most negative second difference over the ordered candidates, divided
    by their spacing so that gapped ranges are handled; it needs at least
    three scored candidates and otherwise falls back to
    ``MAX_SCORE`` with a ``ConfigurationWarning``.

    Parameters
    ----------
    scores : Dict[int, float]
        Score per candidate signature count.
    rule : SelectionRule, default=SelectionRule.MAX_SCORE
        Selection rule.

    Returns
    -------
    int
        Selected signature count.
    """
    if not scores:
        raise ValueError("Cannot select from an empty set of scores")

    keys = sorted(scores)
    if rule == SelectionRule.ELBOW:
        if len(keys) >= 3:
            x = np.array(keys, dtype=float)
            y = np.array([scores[k] for k in keys])
            # Second difference over the actual spacing of the counts
            slopes = np.diff(y) / np.diff(x)
            second_diff = 2 * np.diff(slopes) / (x[2:] - x[:-2])
            return keys[int(np.argmin(second_diff)) + 1]
        warnings.warn(
            "Elbow selection needs at least three successful candidates; "
            "selecting the highest score instead.",
            ConfigurationWarning,
            stacklevel=2,
        )

    best = keys[0]
    for k in keys[1:]:
        if scores[k] > scores[best]:
            best = k
    return best


# ==============================================================================
# Model-order search
# ==============================================================================


class ModelOrderSearch:
    """
    Runs extraction for a range of signature counts.

    Parameters
    ----------
    backend : InferenceBackend
        Backend executing each candidate.
    max_workers : int, default=1
        Maximum number of candidates evaluated concurrently. 1 runs the
        candidates sequentially in ascending order.
    selection : SelectionRule, default=SelectionRule.MAX_SCORE
        Rule used to pick the best candidate.
    scorer : Callable, default=goodness_of_fit
        ``scorer(result, observed_counts) -> float``.
    """

    def __init__(
        self,
        backend,
        max_workers: int = 1,
        selection: Union[str, SelectionRule] = SelectionRule.MAX_SCORE,
        scorer: Callable[[InferenceResult, np.ndarray], float] = (
            goodness_of_fit
        ),
    ):
        if int(max_workers) < 1:
            raise UsageError(
                f"max_workers must be at least 1, got {max_workers}"
            )
        try:
            self.selection = SelectionRule(selection)
        except ValueError as exc:
            valid = [r.value for r in SelectionRule]
            raise UsageError(
                f"'selection' must be one of {valid}, got '{selection}'"
            ) from exc
        self.backend = backend
        self.max_workers = int(max_workers)
        self.scorer = scorer

    # --------------------------------------------------------------------------

    @staticmethod
    def normalize_candidates(candidates: Iterable[int]) -> List[int]:
        """Sorted, deduplicated candidate counts.

        Raises
        ------
        UsageError
            If the range is empty or holds a count below one.
        """
        values = sorted({int(n) for n in candidates})
        if not values:
            raise UsageError("The range of signature counts is empty")
        if values[0] < 1:
            raise UsageError(
                f"Signature counts must be at least 1, got {values[0]}"
            )
        return values

    # --------------------------------------------------------------------------

    def _evaluate(
        self,
        spec: ModelSpec,
        request: ModelRequest,
        inference_config: InferenceConfig,
    ) -> Union[InferenceResult, CandidateFailure]:
        """Run one candidate, turning a backend failure into a marker."""
        n = request.n_signatures
        logger.info("Extracting %d signature(s)", n)
        try:
            return self.backend.run(spec, request, inference_config)
        except BackendFailure as exc:
            logger.warning("Extraction of %d signature(s) failed: %s", n, exc)
            return CandidateFailure(
                n_signatures=n, message=str(exc), strategy=exc.strategy
            )

    def _score(
        self,
        results: Dict[int, Union[InferenceResult, CandidateFailure]],
        observed: np.ndarray,
    ) -> Dict[int, float]:
        """Score every successful candidate; scorer errors leave it unscored."""
        scores = {}
        for n, result in results.items():
            if not isinstance(result, InferenceResult):
                continue
            try:
                scores[n] = float(self.scorer(result, observed))
            except (ArithmeticError, LookupError, TypeError, ValueError) as exc:
                logger.warning(
                    "Scoring %d signature(s) failed, candidate left "
                    "unscored: %s",
                    n,
                    exc,
                )
        return scores

    # --------------------------------------------------------------------------

    def run(
        self,
        spec: ModelSpec,
        base_request: ModelRequest,
        candidates: Iterable[int],
        inference_config: InferenceConfig,
        exposure_prior: float = 1.0,
    ) -> OrderSearchResult:
        """
        Evaluate every candidate signature count and select the best one.

        Parameters
        ----------
        spec : ModelSpec
            Extraction specification.
        base_request : ModelRequest
            Extraction request; it is resized for every candidate, with a
            uniform signature prior and ``exposure_prior`` filled across
            signatures.
        candidates : Iterable[int]
            Candidate signature counts.
        inference_config : InferenceConfig
            Configuration shared by all candidates.
        exposure_prior : float, default=1.0
            Exposure concentration of every signature.

        Returns
        -------
        OrderSearchResult
            Results keyed by count, scores and the selected count.

        Raises
        ------
        BackendFailure
            If every candidate fails.
        """
        counts = self.normalize_candidates(candidates)
        requests = {
            n: base_request.resized(n, exposure_prior) for n in counts
        }

        outcomes: Dict[int, Union[InferenceResult, CandidateFailure]] = {}
        if self.max_workers == 1:
            for n in counts:
                outcomes[n] = self._evaluate(
                    spec, requests[n], inference_config
                )
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(
                        self._evaluate, spec, requests[n], inference_config
                    ): n
                    for n in counts
                }
                for future in as_completed(futures):
                    outcomes[futures[future]] = future.result()

        results = {n: outcomes[n] for n in counts}
        observed = np.asarray(base_request.counts)
        scores = self._score(results, observed)

        if not scores:
            raise BackendFailure(
                "Extraction or scoring failed for every candidate number of "
                f"signatures {counts}",
                strategy=inference_config.strategy,
            )

        best = select_best(scores, self.selection)
        logger.info(
            "Best number of signatures: %d (score %.4f)", best, scores[best]
        )
        return OrderSearchResult(
            results=results,
            scores=scores,
            best=best,
            selection=self.selection,
        )
