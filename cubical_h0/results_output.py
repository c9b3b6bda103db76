"""
Results Output Formatter
========================

Converts per-image AnalysisResult records to a Pandas DataFrame and
exports / reloads it.

Output Format (one row per image, columns in this order):
    - image_file, image_path: file name and resolved absolute path
    - resized_height, resized_width: grid size actually analyzed
    - cutoff, invert: run parameters that change the numbers
    - n_intervals_total / _finite / _infinite: interval counts
    - median/mean/std/min/q25/q75/max_persistence: finite-interval persistence
    - median_birth, median_death, mean_birth, mean_death

Undefined statistics are NaN and are written as the literal ``NaN``.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import numpy as np
import pandas as pd

from .image_analyzer import RESULT_COLUMNS, AnalysisResult

logger = logging.getLogger(__name__)

NA_REP = "NaN"
EXPORT_FORMATS = ("csv", "json", "excel")
_SUFFIX_FORMATS = {
    ".csv": "csv",
    ".json": "json",
    ".xlsx": "excel",
    ".xls": "excel",
}
_NON_NUMERIC_COLUMNS = {"image_file", "image_path", "invert"}


def results_to_dataframe(
    results: Iterable[AnalysisResult],
    metadata: Optional[Dict[str, Any]] = None,
) -> pd.DataFrame:
    """
    Convert analysis records to a DataFrame with a fixed column order.

    Args:
        results: AnalysisResult records, already in output order
        metadata: Optional run metadata stored in ``df.attrs``

    Returns:
        DataFrame with columns ``RESULT_COLUMNS`` (kept even when empty)
    """
    rows = [result.as_row() for result in results]
    df = pd.DataFrame(rows, columns=list(RESULT_COLUMNS))
    if metadata:
        df.attrs.update(metadata)
    return df


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, np.generic):
        return value.item()
    return value


def save_results_dataframe(
    df: pd.DataFrame,
    output_path: Union[str, Path],
    format: str = "csv",
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Save the results table, creating parent directories as needed.

    Supported Formats:
        - csv: one row per image; metadata (if any) in a sibling .json file
        - json: {"metadata": ..., "data": [rows]}
        - excel: "Results" sheet plus a "Metadata" sheet (requires openpyxl)

    Returns:
        The path actually written (suffix added when missing)
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    full_metadata = dict(df.attrs)
    if metadata:
        full_metadata.update(metadata)
    full_metadata = _json_safe(full_metadata)

    if format == "csv":
        if output_path.suffix.lower() != ".csv":
            output_path = output_path.with_suffix(".csv")
        df.to_csv(output_path, index=False, na_rep=NA_REP)
        logger.info("Saved CSV: %s", output_path)

        if full_metadata:
            metadata_path = output_path.with_suffix(".json")
            with metadata_path.open("w", encoding="utf-8") as handle:
                json.dump(full_metadata, handle, indent=2)
            logger.info("Saved metadata: %s", metadata_path)

    elif format == "json":
        if output_path.suffix.lower() != ".json":
            output_path = output_path.with_suffix(".json")
        # NaN has no JSON literal; records carry null instead
        records = df.astype(object).where(df.notna(), None).to_dict(orient="records")
        with output_path.open("w", encoding="utf-8") as handle:
            json.dump({"metadata": full_metadata, "data": _json_safe(records)}, handle, indent=2)
        logger.info("Saved JSON: %s", output_path)

    elif format == "excel":
        if output_path.suffix.lower() not in (".xlsx", ".xls"):
            output_path = output_path.with_suffix(".xlsx")
        try:
            with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
                df.to_excel(writer, sheet_name="Results", index=False, na_rep=NA_REP)
                if full_metadata:
                    metadata_df = pd.DataFrame(
                        {"Value": [json.dumps(v) for v in full_metadata.values()]},
                        index=list(full_metadata.keys()),
                    )
                    metadata_df.to_excel(writer, sheet_name="Metadata")
        except ImportError as exc:
            raise ImportError(
                "Excel format requires 'openpyxl'. Install with: pip install cubical-h0[excel]"
            ) from exc
        logger.info("Saved Excel: %s", output_path)

    else:
        raise ValueError(f"Unknown format '{format}'. Supported: {', '.join(EXPORT_FORMATS)}")

    return output_path


def load_results_dataframe(
    input_path: Union[str, Path],
    format: Optional[str] = None,
) -> pd.DataFrame:
    """Load a results table written by ``save_results_dataframe``."""
    input_path = Path(input_path)

    if format is None:
        format = _SUFFIX_FORMATS.get(input_path.suffix.lower())
        if format is None:
            raise ValueError(f"Cannot auto-detect format from extension '{input_path.suffix}'")

    if format == "csv":
        df = pd.read_csv(input_path)
        metadata_path = input_path.with_suffix(".json")
        if metadata_path.exists():
            with metadata_path.open("r", encoding="utf-8") as handle:
                df.attrs = json.load(handle)

    elif format == "json":
        with input_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        df = pd.DataFrame(payload.get("data", []), columns=list(RESULT_COLUMNS))
        # null statistics come back as NaN
        for column in RESULT_COLUMNS:
            if column not in _NON_NUMERIC_COLUMNS:
                df[column] = pd.to_numeric(df[column])
        df.attrs = payload.get("metadata", {})

    elif format == "excel":
        df = pd.read_excel(input_path, sheet_name="Results")
        try:
            metadata_df = pd.read_excel(input_path, sheet_name="Metadata", index_col=0)
        except ValueError:
            metadata_df = None
        if metadata_df is not None:
            df.attrs = {key: json.loads(value) for key, value in metadata_df["Value"].items()}

    else:
        raise ValueError(f"Unsupported format: {format}")

    return df


def _finite_values(series: pd.Series) -> np.ndarray:
    values = pd.to_numeric(series, errors="coerce").to_numpy(dtype=np.float64)
    return values[np.isfinite(values)]


def overall_summary(df: pd.DataFrame) -> Dict[str, float]:
    """
    Aggregate per-image statistics across the whole run.

    NaN entries (images without finite intervals) are ignored; an aggregate
    with no finite input is left out of the returned dict.
    """
    summary: Dict[str, float] = {"n_images": int(len(df))}
    if len(df) == 0:
        return summary

    summary["mean_finite_intervals"] = float(df["n_intervals_finite"].mean())

    medians = _finite_values(df["median_persistence"])
    means = _finite_values(df["mean_persistence"])
    stdevs = _finite_values(df["std_persistence"])
    if medians.size:
        summary["median_of_median_persistence"] = float(np.median(medians))
    if means.size:
        summary["mean_of_mean_persistence"] = float(np.mean(means))
    if stdevs.size:
        summary["mean_of_std_persistence"] = float(np.mean(stdevs))
    return summary
