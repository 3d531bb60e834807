# =============================================================================
# core/downsample.py  —  Series Downsampling (LTTB, min-max, M4)
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Reduces a long numeric series to a handful of points that still look
#   like the original when plotted.  Charting agents call this before
#   handing data to a front-end so the tool output stays small.
#
# ALGORITHMS:
#   - lttb     Largest Triangle Three Buckets.  Exactly `target` points,
#              first and last sample always kept.
#   - min-max  Per bucket, the lowest and the highest sample.
#   - m4       Per bucket, first / min / max / last.
#
#   min-max and m4 may return more than `target` points (up to 2x and 4x);
#   their indices are de-duplicated and sorted.
# =============================================================================

import logging
import math

from core.models import DownsampleResult

logger = logging.getLogger(__name__)

ALGORITHMS = ("lttb", "min-max", "m4")


def downsample(values: list[float], target: int, algorithm: str = "lttb") -> DownsampleResult:
    """Downsample `values` to roughly `target` points.

    Args:
        values: The numeric series.  Non-finite values are tolerated.
        target: Desired number of samples (>= 2).
        algorithm: One of "lttb", "min-max", "m4".

    Returns:
        A DownsampleResult whose `values` are taken verbatim from the input.

    Raises:
        ValueError: target < 2 or an unknown algorithm.
    """
    if target < 2:
        raise ValueError(f"target must be at least 2, got {target}")
    if algorithm not in ALGORITHMS:
        raise ValueError(f"Unknown algorithm '{algorithm}'. Expected one of {list(ALGORITHMS)}")

    original_length = len(values)

    # Nothing to reduce: hand back the full series.
    if target >= original_length or original_length <= 2:
        return DownsampleResult(
            indices=list(range(original_length)),
            values=list(values),
            original_length=original_length,
            target=target,
            algorithm=algorithm,
        )

    try:
        if algorithm == "lttb":
            indices = lttb_indices(values, target)
        else:
            indices = bucket_indices(values, target, algorithm)
    except ArithmeticError as exc:
        logger.error("downsample failed (%s), falling back to uniform sampling: %s", algorithm, exc)
        indices = uniform_indices(original_length, target)
        algorithm = "uniform"

    return DownsampleResult(
        indices=indices,
        values=[values[i] for i in indices],
        original_length=original_length,
        target=target,
        algorithm=algorithm,
    )


def _finite(value: float) -> float:
    return value if isinstance(value, (int, float)) and math.isfinite(value) else math.nan


def lttb_indices(values: list[float], target: int) -> list[int]:
    """Indices selected by Largest Triangle Three Buckets.

    The first and last points are fixed.  The remaining n-2 points are split
    into target-2 buckets; from each bucket we keep the point forming the
    largest triangle with the previously kept point and the average of the
    next bucket.
    """
    ys = [_finite(v) for v in values]
    n = len(ys)
    every = (n - 2) / (target - 2) if target > 2 else 0

    selected = [0]
    a = 0
    for i in range(target - 2):
        # Average point of the NEXT bucket (the third triangle vertex)
        avg_start = int(math.floor((i + 1) * every)) + 1
        avg_end = min(int(math.floor((i + 2) * every)) + 1, n)
        span = avg_end - avg_start
        avg_x = sum(range(avg_start, avg_end)) / span
        avg_y = sum(ys[avg_start:avg_end]) / span

        # Current bucket
        range_start = int(math.floor(i * every)) + 1
        range_end = int(math.floor((i + 1) * every)) + 1

        ax, ay = a, ys[a]
        max_area = -1.0
        chosen = range_start
        for j in range(range_start, range_end):
            area = abs((ax - avg_x) * (ys[j] - ay) - (ax - j) * (avg_y - ay)) * 0.5
            # NaN areas never compare greater, so an all-NaN bucket keeps range_start.
            if area > max_area:
                max_area = area
                chosen = j

        selected.append(chosen)
        a = chosen

    selected.append(n - 1)
    return selected


def bucket_indices(values: list[float], target: int, algorithm: str) -> list[int]:
    """min-max / M4 selection over fixed-size buckets."""
    n = len(values)
    bucket_size = max(1, n // target)
    picked: set[int] = set()

    for start in range(0, n, bucket_size):
        end = min(start + bucket_size, n)
        min_idx = max_idx = start
        for j in range(start, end):
            if values[j] < values[min_idx]:
                min_idx = j
            if values[j] > values[max_idx]:
                max_idx = j

        picked.update((min_idx, max_idx))
        if algorithm == "m4":
            picked.update((start, end - 1))

    return sorted(picked)


def uniform_indices(length: int, target: int) -> list[int]:
    """Every `length // target`-th index, at most `target` of them."""
    step = max(1, length // target)
    return [min(length - 1, i * step) for i in range(min(target, length))]
