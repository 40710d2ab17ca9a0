from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple


class GridIndex:
    """
    Uniform spatial hash over node coordinates for nearest-within-epsilon lookups.

    Cell size equals the search radius, so a query only needs the 3x3 block of
    cells around the query point. Inserts are allowed at any time; ties on
    distance go to the earlier insert.
    """

    __slots__ = ("_eps", "_bins", "_order")

    def __init__(self, epsilon: float):
        if not (epsilon > 0):
            raise ValueError(f"epsilon must be > 0 (got {epsilon})")
        self._eps = float(epsilon)
        self._bins: Dict[Tuple[int, int], List[Tuple[int, str, float, float]]] = {}
        self._order = 0

    @property
    def epsilon(self) -> float:
        return self._eps

    def __len__(self) -> int:
        return self._order

    def _cell(self, x: float, y: float) -> Tuple[int, int]:
        return (math.floor(x / self._eps), math.floor(y / self._eps))

    def insert(self, uid: str, x: float, y: float) -> None:
        self._bins.setdefault(self._cell(x, y), []).append((self._order, uid, float(x), float(y)))
        self._order += 1

    def nearest(self, x: float, y: float, radius: Optional[float] = None) -> Optional[str]:
        """uid of the closest indexed point within radius (default epsilon), else None."""
        r = self._eps if radius is None else float(radius)
        if r > self._eps:
            raise ValueError("radius cannot exceed the grid epsilon")
        cx, cy = self._cell(x, y)
        best: Optional[Tuple[float, int, str]] = None
        for ix in (cx - 1, cx, cx + 1):
            for iy in (cy - 1, cy, cy + 1):
                for order, uid, px, py in self._bins.get((ix, iy), ()):
                    d = math.hypot(px - x, py - y)
                    if d > r:
                        continue
                    cand = (d, order, uid)
                    if best is None or cand < best:
                        best = cand
        return best[2] if best is not None else None
