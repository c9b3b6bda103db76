"""
Diagram Summarizer
==================

Reduces a 0-dimensional persistence diagram to descriptive statistics.

Statistics are computed over the finite intervals only:
    - persistence (death - birth): median, mean, std, min, q25, q75, max
    - birth and death: median, mean

Conventions:
    - std is the population standard deviation (ddof=0)
    - quantiles use linear interpolation between order statistics
      (numpy ``method="linear"``, Hyndman & Fan type 7)
    - a diagram without finite intervals yields NaN for every statistic
"""
from dataclasses import asdict, dataclass, fields
from typing import Dict

import numpy as np

from .cubical_filtration import PersistenceDiagram

QUANTILE_METHOD = "linear"


@dataclass(frozen=True)
class DiagramSummary:
    n_intervals_total: int
    n_intervals_finite: int
    n_intervals_infinite: int
    median_persistence: float
    mean_persistence: float
    std_persistence: float
    min_persistence: float
    q25_persistence: float
    q75_persistence: float
    max_persistence: float
    median_birth: float
    median_death: float
    mean_birth: float
    mean_death: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


SUMMARY_FIELDS = tuple(f.name for f in fields(DiagramSummary))
STATISTIC_FIELDS = SUMMARY_FIELDS[3:]


def summarize(diagram: PersistenceDiagram) -> DiagramSummary:
    """
    Summarize a persistence diagram.

    Infinite intervals only contribute to the interval counts. When no finite
    interval exists (e.g. a constant image) all statistics are NaN.
    """
    finite = diagram.finite()
    n_total = diagram.n_total
    n_finite = len(finite)
    counts = dict(
        n_intervals_total=n_total,
        n_intervals_finite=n_finite,
        n_intervals_infinite=n_total - n_finite,
    )

    if n_finite == 0:
        return DiagramSummary(**counts, **{name: float("nan") for name in STATISTIC_FIELDS})

    persistences = finite.persistences
    births = finite.births
    deaths = finite.deaths
    q25, q75 = np.quantile(persistences, [0.25, 0.75], method=QUANTILE_METHOD)
    # Mean round-off must not leak into the spread of identical values
    std = 0.0 if np.ptp(persistences) == 0 else float(np.std(persistences, ddof=0))

    return DiagramSummary(
        **counts,
        median_persistence=float(np.median(persistences)),
        mean_persistence=float(np.mean(persistences)),
        std_persistence=std,
        min_persistence=float(np.min(persistences)),
        q25_persistence=float(q25),
        q75_persistence=float(q75),
        max_persistence=float(np.max(persistences)),
        median_birth=float(np.median(births)),
        median_death=float(np.median(deaths)),
        mean_birth=float(np.mean(births)),
        mean_death=float(np.mean(deaths)),
    )
