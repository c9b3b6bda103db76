"""
Cubical Filtration Adapter
==========================

Builds a sublevel-set cubical filtration from an intensity grid and returns
its 0-dimensional persistence diagram (connected components).

The persistent homology itself is delegated to a ``HomologyEngine``:

    - GudhiCubicalEngine: gudhi.CubicalComplex (default)
    - UnionFindEngine: elder-rule union-find over pixel adjacency, H0 only

Constructions:
    - "vertices":  pixel values sit on the vertices of the complex, edges
                   take the max of their endpoints (4-connectivity)
    - "top_cells": pixels are the top-dimensional squares, lower cells take
                   the min of their cofaces (8-connectivity)

Intervals with persistence <= cutoff are dropped by the engine. The single
infinite interval (the component born at the global minimum) is always kept.
"""
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import gudhi
import numpy as np

from .config_loader import CONSTRUCTION_NAMES, ENGINE_NAMES
from .errors import DegenerateInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PersistenceDiagram:
    """Read-only (n, 2) array of (birth, death) pairs for dimension 0."""

    intervals: np.ndarray

    def __post_init__(self) -> None:
        intervals = np.array(self.intervals, dtype=np.float64).reshape(-1, 2)
        if np.any(np.isnan(intervals)):
            raise ValueError("Persistence intervals must not contain NaN")
        if np.any(intervals[:, 1] < intervals[:, 0]):
            raise ValueError("Persistence intervals must satisfy birth <= death")
        intervals.setflags(write=False)
        object.__setattr__(self, "intervals", intervals)

    def __len__(self) -> int:
        return self.intervals.shape[0]

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        for birth, death in self.intervals:
            yield float(birth), float(death)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PersistenceDiagram):
            return NotImplemented
        return np.array_equal(self.intervals, other.intervals)

    __hash__ = None

    @property
    def births(self) -> np.ndarray:
        return self.intervals[:, 0]

    @property
    def deaths(self) -> np.ndarray:
        return self.intervals[:, 1]

    @property
    def is_finite(self) -> np.ndarray:
        return np.isfinite(self.deaths)

    def finite(self) -> "PersistenceDiagram":
        return PersistenceDiagram(self.intervals[self.is_finite])

    @property
    def persistences(self) -> np.ndarray:
        """death - birth per interval (inf for infinite intervals)."""
        return self.deaths - self.births

    @property
    def n_total(self) -> int:
        return len(self)

    @property
    def n_finite(self) -> int:
        return int(np.count_nonzero(self.is_finite))

    @property
    def n_infinite(self) -> int:
        return self.n_total - self.n_finite


class HomologyEngine(ABC):
    """Computes the 0-dimensional persistence diagram of a 2-D grid."""

    name = "abstract"

    def __init__(self, construction: str = "vertices"):
        if construction not in CONSTRUCTION_NAMES:
            raise ValueError(
                f"Unknown construction '{construction}'. Supported: {', '.join(CONSTRUCTION_NAMES)}"
            )
        self.construction = construction

    @abstractmethod
    def compute_diagram_0d(self, grid: np.ndarray, cutoff: float = 0.0) -> PersistenceDiagram:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(construction={self.construction!r})"


class GudhiCubicalEngine(HomologyEngine):
    name = "gudhi"

    def compute_diagram_0d(self, grid: np.ndarray, cutoff: float = 0.0) -> PersistenceDiagram:
        if self.construction == "vertices":
            cubical = gudhi.CubicalComplex(vertices=grid)
        else:
            cubical = gudhi.CubicalComplex(top_dimensional_cells=grid)
        cubical.compute_persistence(min_persistence=cutoff)
        intervals = np.asarray(cubical.persistence_intervals_in_dimension(0), dtype=np.float64)
        return PersistenceDiagram(intervals)


def _neighbour_pairs(shape: Tuple[int, int], construction: str) -> Tuple[np.ndarray, np.ndarray]:
    """Flat index pairs of adjacent pixels (4- or 8-neighbourhood)."""
    index = np.arange(shape[0] * shape[1]).reshape(shape)
    pairs = [
        (index[:, :-1], index[:, 1:]),
        (index[:-1, :], index[1:, :]),
    ]
    if construction == "top_cells":
        pairs.append((index[:-1, :-1], index[1:, 1:]))
        pairs.append((index[:-1, 1:], index[1:, :-1]))
    src = np.concatenate([a.ravel() for a, _ in pairs])
    dst = np.concatenate([b.ravel() for _, b in pairs])
    return src, dst


class UnionFindEngine(HomologyEngine):
    """
    Sublevel-set H0 by Kruskal-style union-find.

    Every pixel is born at its own value. Edges between adjacent pixels enter
    at the larger of the two values; when an edge joins two components the
    younger one (later birth, lower pixel index on ties) dies at the edge
    value. The component holding the global minimum never dies.
    """

    name = "union_find"

    def compute_diagram_0d(self, grid: np.ndarray, cutoff: float = 0.0) -> PersistenceDiagram:
        values = grid.ravel()
        src, dst = _neighbour_pairs(grid.shape, self.construction)
        weights = np.maximum(values[src], values[dst])
        order = np.argsort(weights, kind="stable")

        parent = list(range(values.size))
        birth = values.tolist()
        src_list = src[order].tolist()
        dst_list = dst[order].tolist()
        weight_list = weights[order].tolist()

        def find(x: int) -> int:
            while parent[x] != x:
                parent[x] = parent[parent[x]]
                x = parent[x]
            return x

        pairs = []
        for a, b, weight in zip(src_list, dst_list, weight_list):
            root_a, root_b = find(a), find(b)
            if root_a == root_b:
                continue
            if (birth[root_b], root_b) < (birth[root_a], root_a):
                root_a, root_b = root_b, root_a
            parent[root_b] = root_a
            if weight - birth[root_b] > cutoff:
                pairs.append((birth[root_b], weight))

        pairs.append((float(values.min()), math.inf))
        return PersistenceDiagram(np.array(pairs, dtype=np.float64))


_ENGINES = {
    GudhiCubicalEngine.name: GudhiCubicalEngine,
    UnionFindEngine.name: UnionFindEngine,
}


def get_engine(name: str = "gudhi", construction: str = "vertices") -> HomologyEngine:
    try:
        engine_cls = _ENGINES[name]
    except KeyError:
        raise ValueError(f"Unknown homology engine '{name}'. Supported: {', '.join(ENGINE_NAMES)}") from None
    return engine_cls(construction=construction)


def validate_grid(grid: np.ndarray) -> np.ndarray:
    """Return ``grid`` as float64 or raise DegenerateInputError."""
    grid = np.asarray(grid, dtype=np.float64)
    if grid.ndim != 2:
        raise DegenerateInputError(f"Expected a 2-D intensity grid, got shape {grid.shape}")
    if grid.shape[0] == 0 or grid.shape[1] == 0:
        raise DegenerateInputError(f"Intensity grid is empty: shape {grid.shape}")
    if not np.all(np.isfinite(grid)):
        raise DegenerateInputError("Intensity grid contains NaN or infinite values")
    return grid


def diagram_h0(
    grid: np.ndarray,
    cutoff: float = 0.0,
    engine: Optional[HomologyEngine] = None,
) -> PersistenceDiagram:
    """
    Compute the 0-dimensional persistence diagram of a cubical filtration.

    Args:
        grid: 2-D intensity grid; cell filtration value = intensity
        cutoff: Non-negative noise threshold; intervals with persistence
                <= cutoff are discarded
        engine: HomologyEngine to delegate to (default: gudhi, vertices)

    Returns:
        PersistenceDiagram with exactly one infinite interval

    Raises:
        DegenerateInputError: grid is not a non-empty, finite 2-D array
        ValueError: cutoff is negative or not finite
    """
    grid = validate_grid(grid)
    cutoff = float(cutoff)
    if not math.isfinite(cutoff) or cutoff < 0.0:
        raise ValueError(f"cutoff must be a finite non-negative number, got {cutoff!r}")

    if engine is None:
        engine = GudhiCubicalEngine()

    diagram = engine.compute_diagram_0d(grid, cutoff)
    logger.debug(
        "%r: %d intervals (%d finite) on grid %s, cutoff=%g",
        engine,
        diagram.n_total,
        diagram.n_finite,
        grid.shape,
        cutoff,
    )
    return diagram
