"""Per-image orchestration: normalize -> H0 diagram -> summary -> result record."""
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from .config_loader import AnalysisConfig
from .cubical_filtration import HomologyEngine, diagram_h0, get_engine
from .diagram_summary import DiagramSummary, summarize
from .image_normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    image_file: str
    image_path: str
    resized_height: int
    resized_width: int
    cutoff: float
    invert: bool
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

    @classmethod
    def from_summary(
        cls,
        path: Union[str, Path],
        resized_shape: Sequence[int],
        cutoff: float,
        invert: bool,
        summary: DiagramSummary,
    ) -> "AnalysisResult":
        path = Path(path)
        return cls(
            image_file=path.name,
            image_path=str(path.resolve()),
            resized_height=int(resized_shape[0]),
            resized_width=int(resized_shape[1]),
            cutoff=float(cutoff),
            invert=bool(invert),
            **summary.as_dict(),
        )

    def as_row(self) -> Dict[str, Any]:
        return asdict(self)


RESULT_COLUMNS = tuple(f.name for f in fields(AnalysisResult))


def analyze(
    path: Union[str, Path],
    target_size: Sequence[int] = (256, 256),
    cutoff: float = 0.0,
    invert: bool = False,
    engine: Optional[HomologyEngine] = None,
) -> AnalysisResult:
    """
    Analyze one image and return its persistence statistics record.

    Either every stage succeeds and a full record is returned, or the
    first failing stage's exception propagates.
    """
    grid = normalize(path, target_size=target_size, invert=invert)
    diagram = diagram_h0(grid, cutoff=cutoff, engine=engine)
    summary = summarize(diagram)
    logger.debug(
        "Analyzed %s: %d intervals, %d finite",
        Path(path).name,
        summary.n_intervals_total,
        summary.n_intervals_finite,
    )
    return AnalysisResult.from_summary(path, grid.shape, cutoff, invert, summary)


def analyze_with_config(path: Union[str, Path], config: AnalysisConfig) -> AnalysisResult:
    engine = get_engine(config.engine, config.construction)
    return analyze(
        path,
        target_size=config.target_size,
        cutoff=config.cutoff,
        invert=config.invert,
        engine=engine,
    )
