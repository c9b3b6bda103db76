"""Entrypoint for computing per-image H0 persistence statistics over an image folder."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .batch_runner import analyze_directory
from .config_loader import (
    CONSTRUCTION_NAMES,
    DECODE_ERROR_POLICIES,
    ENGINE_NAMES,
    AnalysisConfig,
    load_config,
)
from .errors import H0AnalysisError
from .results_output import EXPORT_FORMATS, overall_summary, results_to_dataframe, save_results_dataframe

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Per-image 0D cubical persistence statistics for a folder of images"
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config (default: config/h0_persistence/config.yaml)")
    parser.add_argument("--images-dir", type=Path, default=None, help="Folder containing the images")
    parser.add_argument("--output", type=Path, default=None, help="Output table path")
    parser.add_argument("--size", type=int, nargs=2, metavar=("HEIGHT", "WIDTH"), default=None)
    parser.add_argument("--cutoff", type=float, default=None)
    parser.add_argument("--invert", dest="invert", action="store_true", default=None)
    parser.add_argument("--no-invert", dest="invert", action="store_false", default=None)
    parser.add_argument("--workers", type=int, default=None, help="Process count (1 = sequential)")
    parser.add_argument("--engine", choices=ENGINE_NAMES, default=None)
    parser.add_argument("--construction", choices=CONSTRUCTION_NAMES, default=None)
    parser.add_argument("--on-decode-error", choices=DECODE_ERROR_POLICIES, default=None)
    parser.add_argument("--format", choices=EXPORT_FORMATS, default=None)
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def _build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    image_params: Dict[str, Any] = {}
    processing: Dict[str, Any] = {}
    output_settings: Dict[str, Any] = {}

    if args.images_dir is not None:
        paths["images_dir"] = str(args.images_dir.resolve())
    if args.output is not None:
        paths["output_path"] = str(args.output.resolve())
    if args.size is not None:
        image_params["resize_to"] = list(args.size)
    if args.invert is not None:
        image_params["invert"] = args.invert
    if args.cutoff is not None:
        processing["cutoff"] = args.cutoff
    if args.workers is not None:
        processing["workers"] = args.workers
    if args.engine is not None:
        processing["engine"] = args.engine
    if args.construction is not None:
        processing["construction"] = args.construction
    if args.on_decode_error is not None:
        processing["on_decode_error"] = args.on_decode_error
    if args.format is not None:
        output_settings["export_format"] = args.format

    overrides = {
        "paths": paths,
        "image_params": image_params,
        "processing_thresholds": processing,
        "output_settings": output_settings,
    }
    return {key: value for key, value in overrides.items() if value}


def _log_overall_summary(summary: Dict[str, float]) -> None:
    logger.info("Overall summary across images")
    logger.info("- Images analyzed: %d", summary["n_images"])
    if summary["n_images"] == 0:
        logger.info("- No image files found.")
        return
    logger.info("- Mean finite intervals per image: %.2f", summary["mean_finite_intervals"])
    if "median_of_median_persistence" in summary:
        logger.info("- Median of image median persistences: %.6f", summary["median_of_median_persistence"])
    if "mean_of_mean_persistence" in summary:
        logger.info("- Mean of image mean persistences: %.6f", summary["mean_of_mean_persistence"])
    if "mean_of_std_persistence" in summary:
        logger.info("- Mean of image persistence std: %.6f", summary["mean_of_std_persistence"])


def run(config: Dict[str, Any], progress: bool = True) -> Path:
    """Analyze the configured folder and write the results table; return its path."""
    paths = config.get("paths") or {}
    images_dir = paths.get("images_dir")
    output_path = paths.get("output_path")
    if not images_dir:
        raise H0AnalysisError("Config missing paths.images_dir")
    if not output_path:
        raise H0AnalysisError("Config missing paths.output_path")

    analysis_config = AnalysisConfig.from_mapping(config)
    logger.info("Analyzing images in %s", images_dir)
    batch = analyze_directory(images_dir, analysis_config, progress=progress)

    output_settings = config.get("output_settings") or {}
    metadata = dict(output_settings.get("metadata") or {})
    metadata.setdefault("images_dir", str(images_dir))
    metadata.setdefault("resize_to", list(analysis_config.target_size))
    metadata.setdefault("cutoff", analysis_config.cutoff)
    metadata.setdefault("invert", analysis_config.invert)
    metadata.setdefault("engine", analysis_config.engine)
    metadata.setdefault("construction", analysis_config.construction)
    if batch.skipped:
        metadata.setdefault("skipped_files", [path for path, _ in batch.skipped])

    df = results_to_dataframe(batch.results)
    export_format = str(output_settings.get("export_format") or "csv").lower()
    # Metadata only travels with formats that embed it; CSV stays a single file
    written = save_results_dataframe(
        df,
        output_path,
        format=export_format,
        metadata=None if export_format == "csv" else metadata,
    )
    logger.info("Per-image 0D cubical persistence statistics: %d rows", len(df))
    logger.info("Wrote results to: %s", written)
    _log_overall_summary(overall_summary(df))
    return written


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    logger.info("Starting H0 persistence entrypoint")

    try:
        config = load_config(overrides=_build_overrides(args), config_path=args.config)
        run(config, progress=not args.no_progress)
        logger.info("H0 persistence entrypoint completed")
    except H0AnalysisError:
        logger.exception("H0 persistence entrypoint failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
