# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Best-configuration selection within one smoother family.

Lower error always wins among fits that respect the complexity ceiling. The
ceiling is supplied by the caller: it encodes how much flexibility a curve may
have before it starts tracking the seasonal cycle, which is a judgement about
the data rather than something the selector can infer.
"""

from dataclasses import dataclass
import logging

from .exceptions import NoViableConfigError
from .grid import ScoredFit
from .smoothing_estimator import FamilyTag, SmootherConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionResult:
    """
    Selected configuration of one family.

    Parameters
    ----------
    family : FamilyTag
    best : ScoredFit
        The selected fit.
    ranked : tuple of ScoredFit
        Every input fit: successes by increasing (mse, complexity), then
        failures in input order.
    ceiling : float or None
        Complexity ceiling the selection was made under.
    """
    family: FamilyTag
    best: ScoredFit
    ranked: tuple[ScoredFit, ...]
    ceiling: float | None = None

    @property
    def viable(self) -> tuple[ScoredFit, ...]:
        return tuple(s for s in self.ranked if s.ok)

    @property
    def failed(self) -> tuple[ScoredFit, ...]:
        return tuple(s for s in self.ranked if not s.ok)


def rank(scored) -> tuple[ScoredFit, ...]:
    """Order fits by (mse, complexity), failures last in their original order."""
    successes = sorted((s for s in scored if s.ok), key=lambda s: (s.mse, s.complexity))
    failures = [s for s in scored if not s.ok]
    return tuple(successes + failures)


def select(scored, ceiling: float | None = None, preferred: SmootherConfig | None = None) -> SelectionResult:
    """
    Pick the best fit of one family.

    Parameters
    ----------
    scored : sequence of ScoredFit
        Output of ``evaluate`` for a single family.
    ceiling : float or None, default=None
        Largest admissible complexity (effective degrees of freedom). None
        admits every fit.
    preferred : SmootherConfig or None, default=None
        Configuration to select whenever it fitted and respects the ceiling,
        regardless of its error.

    Returns
    -------
    result : SelectionResult

    Raises
    ------
    NoViableConfigError
        If every configuration failed to fit, or no successful fit respects
        the ceiling.
    ValueError
        If ``scored`` is empty or mixes families.
    """
    scored = list(scored)
    if not scored:
        raise ValueError("Nothing to select from: no scored fits given.")
    families = {s.config.family for s in scored}
    if len(families) != 1:
        raise ValueError(f"Scored fits must belong to one family, got {sorted(families)}")
    family = families.pop()

    ranked = rank(scored)
    viable = [s for s in ranked if s.ok]
    if not viable:
        reasons = "; ".join(f"{s.label}: {s.error}" for s in ranked)
        raise NoViableConfigError(f"every {family} configuration failed to fit ({reasons})")

    eligible = [s for s in viable if ceiling is None or s.complexity <= ceiling]
    if not eligible:
        lowest = min(s.complexity for s in viable)
        raise NoViableConfigError(
            f"no {family} fit within complexity ceiling {ceiling:g} "
            f"(lowest effective df {lowest:.2f})"
        )

    best = eligible[0]
    if preferred is not None:
        matches = [s for s in eligible if s.config == preferred]
        if matches:
            best = matches[0]
        else:
            logger.warning(
                "Preferred %s configuration %s is not available within the ceiling, "
                "using %s instead", family, preferred.label, best.label,
            )
    logger.info("Selected %s (mse=%.2f, effective df=%.2f)", best.label, best.mse, best.complexity)
    return SelectionResult(family=family, best=best, ranked=ranked, ceiling=ceiling)
