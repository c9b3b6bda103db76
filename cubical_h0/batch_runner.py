"""
Batch Runner
============

Lists the images of a directory and analyzes them one result per file.

Execution:
    - workers == 1: sequential, in-process
    - workers > 1 (or None = CPU count): ProcessPoolExecutor, results are
      stored by input index so output order always matches the sorted
      file list

Decode failures follow ``AnalysisConfig.on_decode_error``:
    - "abort" (default): the first DecodeError cancels the batch, no rows
    - "skip": the file is logged, left out, and reported in ``skipped``
Any other error aborts the batch.
"""
import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from tqdm import tqdm

from .config_loader import DEFAULT_IMAGE_EXTENSIONS, AnalysisConfig
from .errors import DecodeError, InputNotFoundError
from .image_analyzer import AnalysisResult, analyze_with_config

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    results: List[AnalysisResult] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)


def list_image_files(
    images_dir: Union[str, Path],
    extensions: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
) -> List[Path]:
    """Return sorted image file paths directly inside ``images_dir`` filtered by extension."""
    folder = Path(images_dir)
    if not folder.is_dir():
        raise InputNotFoundError(f"Image directory not found: {folder}")

    normalized = set()
    for ext in extensions:
        ext = str(ext).lower()
        normalized.add(ext if ext.startswith(".") else f".{ext}")

    files = [p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in normalized]
    return sorted(files)


def _handle_decode_error(error: DecodeError, path: Path, config: AnalysisConfig, batch: BatchResult) -> None:
    if config.on_decode_error != "skip":
        raise error
    logger.warning("Skipping %s: %s", path.name, error)
    batch.skipped.append((str(path), str(error)))


def _run_sequential(files: List[Path], config: AnalysisConfig, progress: bool) -> BatchResult:
    batch = BatchResult()
    for path in tqdm(files, desc="Analyzing images", disable=not progress):
        try:
            batch.results.append(analyze_with_config(path, config))
        except DecodeError as error:
            _handle_decode_error(error, path, config, batch)
    return batch


def _run_parallel(files: List[Path], config: AnalysisConfig, workers: int, progress: bool) -> BatchResult:
    batch = BatchResult()
    slots: List[Optional[AnalysisResult]] = [None] * len(files)
    skipped_idx = []

    with ProcessPoolExecutor(max_workers=workers) as executor:
        future_to_idx = {
            executor.submit(analyze_with_config, path, config): idx
            for idx, path in enumerate(files)
        }
        try:
            with tqdm(total=len(files), desc="Analyzing images", disable=not progress) as bar:
                for future in as_completed(future_to_idx):
                    idx = future_to_idx[future]
                    try:
                        slots[idx] = future.result()
                    except DecodeError as error:
                        if config.on_decode_error != "skip":
                            raise
                        logger.warning("Skipping %s: %s", files[idx].name, error)
                        skipped_idx.append((idx, str(error)))
                    bar.update(1)
        except BaseException:
            for future in future_to_idx:
                future.cancel()
            raise

    batch.results = [result for result in slots if result is not None]
    batch.skipped = [(str(files[idx]), message) for idx, message in sorted(skipped_idx)]
    return batch


def analyze_files(
    files: List[Path],
    config: Optional[AnalysisConfig] = None,
    progress: bool = False,
) -> BatchResult:
    """Analyze ``files`` in the given order, optionally on a process pool."""
    config = config or AnalysisConfig()
    if not files:
        return BatchResult()

    workers = min(config.resolved_workers, len(files))
    logger.info(
        "Analyzing %d images (size=%s, cutoff=%g, invert=%s, engine=%s/%s, workers=%d)",
        len(files),
        config.target_size,
        config.cutoff,
        config.invert,
        config.engine,
        config.construction,
        workers,
    )
    if workers == 1:
        return _run_sequential(files, config, progress)
    return _run_parallel(files, config, workers, progress)


def analyze_directory(
    images_dir: Union[str, Path],
    config: Optional[AnalysisConfig] = None,
    progress: bool = False,
) -> BatchResult:
    """
    Analyze every image in ``images_dir`` in sorted-filename order.

    Raises:
        InputNotFoundError: ``images_dir`` does not exist
        DecodeError: a file cannot be decoded and the policy is "abort"
    """
    config = config or AnalysisConfig()
    files = list_image_files(images_dir, config.extensions)
    if not files:
        logger.warning("No image files found in %s", images_dir)
    batch = analyze_files(files, config, progress=progress)
    if batch.skipped:
        logger.warning("%d of %d images skipped after decode errors", len(batch.skipped), len(files))
    return batch
