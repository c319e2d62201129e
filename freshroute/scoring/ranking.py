"""Batch-relative presentation helpers for raw overlap scores."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from freshroute.common.models import RouteScore

EXPLORE = "Explore"
FAMILIAR = "Familiar"
ROUTINE = "Routine"


def normalize_scores(scores: Sequence[Optional[float]]) -> List[Optional[float]]:
    """Min-max rescale scored values into [0, 1]; None passes through."""

    present = [score for score in scores if score is not None]
    if not present:
        return list(scores)
    low, high = min(present), max(present)
    span = high - low
    return [
        None if score is None else (0.0 if span == 0 else (score - low) / span)
        for score in scores
    ]


def diversity_label(normalized: Optional[float]) -> str:
    if normalized is None or normalized < 0.33:
        return EXPLORE
    if normalized < 0.67:
        return FAMILIAR
    return ROUTINE


def rank_routes(results: Iterable[RouteScore]) -> List[RouteScore]:
    """Freshest (lowest score) first; unscored routes go last."""

    return sorted(
        results,
        key=lambda result: (result.score is None, result.score if result.score is not None else 0.0),
    )
