"""Biometric signal aggregation.

Turns expression-probability vectors into a signed "yesness" signal and a
sequence of snapshots into a single admission score. Pure functions only;
the sampling loop that feeds them lives in velvet_rope.pipeline.bouncer.

Weights per category (probability × weight, summed, clamped to [-1, 1]):

    happy +1.0   surprised +0.6   neutral +0.1
    sad  -0.3    fearful  -0.2    angry  -0.7   disgusted -1.0
"""

from __future__ import annotations

import math
import random
from collections.abc import Mapping, Sequence

from velvet_rope.models import (
    EXPRESSION_CATEGORIES,
    BiometricResult,
    ExpressionSnapshot,
)

EXPRESSION_WEIGHTS: dict[str, float] = {
    "happy": 1.0,
    "surprised": 0.6,
    "neutral": 0.1,
    "sad": -0.3,
    "fearful": -0.2,
    "angry": -0.7,
    "disgusted": -1.0,
}

NEUTRAL_SCORE = 50
SAMPLE_INTERVAL_MS = 250


def round_half_up(x: float) -> int:
    """Halves round up (52.5 -> 53), unlike the builtin round()."""
    return math.floor(x + 0.5)


def signal_from_expressions(expressions: Mapping[str, float]) -> float:
    """Weighted sum of the vector, clamped to [-1, 1]. Unknown categories count 0."""
    signal = 0.0
    for category, prob in expressions.items():
        signal += EXPRESSION_WEIGHTS.get(category, 0.0) * prob
    return max(-1.0, min(1.0, signal))


def dominant_category(expressions: Mapping[str, float]) -> str:
    """Argmax over the seven categories; ties go to the earlier category."""
    dominant = EXPRESSION_CATEGORIES[0]
    best = -1.0
    for category in EXPRESSION_CATEGORIES:
        prob = expressions.get(category, 0.0)
        if prob > best:
            best = prob
            dominant = category
    return dominant


def score_from_snapshots(snapshots: Sequence[ExpressionSnapshot]) -> int:
    """Mean signal remapped from [-1, 1] to [0, 100]. Empty → 50."""
    if not snapshots:
        return NEUTRAL_SCORE
    mean = sum(s.signal for s in snapshots) / len(snapshots)
    return round_half_up(((mean + 1) / 2) * 100)


def make_snapshot(expressions: Mapping[str, float], timestamp: float) -> ExpressionSnapshot:
    known = {c: float(expressions.get(c, 0.0)) for c in EXPRESSION_CATEGORIES}
    return ExpressionSnapshot(
        timestamp=timestamp,
        expressions=known,
        dominant=dominant_category(known),
        signal=signal_from_expressions(expressions),
    )


def summarize(
    attendee_id: str,
    snapshots: Sequence[ExpressionSnapshot],
    duration_ms: int | None = None,
) -> BiometricResult:
    """Build the final BiometricResult for one pitch delivery."""
    signals = [s.signal for s in snapshots]
    if signals:
        engagement = round_half_up(sum(abs(s) for s in signals) / len(signals) * 100)
    else:
        engagement = NEUTRAL_SCORE
    if duration_ms is None:
        duration_ms = len(snapshots) * SAMPLE_INTERVAL_MS
    return BiometricResult(
        attendee_id=attendee_id,
        snapshots=list(snapshots),
        score=score_from_snapshots(snapshots),
        peak_positive=max(signals + [0.0]),
        peak_negative=min(signals + [0.0]),
        engagement=engagement,
        duration_ms=duration_ms,
    )


def synthetic_expressions(rng: random.Random) -> dict[str, float]:
    """Plausible, mildly positive expression vector for camera-less vetting."""
    return {
        "neutral": 0.5 + rng.random() * 0.3,
        "happy": rng.random() * 0.4,
        "surprised": rng.random() * 0.2,
        "sad": rng.random() * 0.1,
        "angry": rng.random() * 0.05,
        "disgusted": rng.random() * 0.05,
        "fearful": rng.random() * 0.05,
    }
