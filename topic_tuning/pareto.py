"""
Pareto frontier utilities for the (coherence, accuracy) objective pair.

Both objectives are maximized. Coherence lives in [-1, 1] and accuracy in
[0, 1], so (-1, 0) is the worst attainable point and serves as the default
hypervolume reference.
"""

from typing import Dict, List, Sequence, Tuple

import numpy as np


REFERENCE_POINT = (-1.0, 0.0)

# Objective values recorded for evaluations that raised
FAILED_SCORES = {"coherence": -1.0, "accuracy": 0.0}


def dominates(a: Sequence[float], b: Sequence[float]) -> bool:
    """True if `a` is at least as good as `b` everywhere and strictly better somewhere."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    return bool(np.all(a >= b) and np.any(a > b))


def pareto_front(points: Sequence[Sequence[float]]) -> List[int]:
    """
    Indices of the non-dominated points.

    Exact duplicates are reported once, at their first occurrence.
    """
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        return []
    if pts.ndim == 1:
        pts = pts.reshape(-1, 1)

    front = []
    seen = set()
    for i, p in enumerate(pts):
        key = tuple(p)
        if key in seen:
            continue
        if any(dominates(q, p) for j, q in enumerate(pts) if j != i):
            continue
        seen.add(key)
        front.append(i)
    return front


def hypervolume_2d(points: Sequence[Sequence[float]],
                   reference: Tuple[float, float] = REFERENCE_POINT) -> float:
    """
    Area dominated by `points` and bounded below by `reference`.

    Points that do not strictly improve on the reference in both objectives
    add nothing.
    """
    ref_x, ref_y = float(reference[0]), float(reference[1])
    pts = [(float(x), float(y)) for x, y in points if x > ref_x and y > ref_y]
    if not pts:
        return 0.0

    front = [pts[i] for i in pareto_front(pts)]
    # Sweep from the highest x down; y increases along the front
    front.sort(key=lambda p: p[0], reverse=True)

    volume = 0.0
    prev_y = ref_y
    for x, y in front:
        if y > prev_y:
            volume += (x - ref_x) * (y - prev_y)
            prev_y = y
    return volume


def frontier_observations(observations: List[Dict]) -> List[Dict]:
    """
    Pareto-optimal observations, sorted by coherence.

    Failed observations only appear if every observation failed.
    """
    ok = [o for o in observations if not o.get("failed")]
    pool = ok if ok else list(observations)
    if not pool:
        return []
    idx = pareto_front([(o["coherence"], o["accuracy"]) for o in pool])
    return sorted((pool[i] for i in idx), key=lambda o: o["coherence"])
