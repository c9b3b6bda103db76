import json
import math

import numpy as np
import pandas as pd
import pytest

from cubical_h0.cubical_filtration import PersistenceDiagram
from cubical_h0.diagram_summary import summarize
from cubical_h0.image_analyzer import RESULT_COLUMNS, AnalysisResult
from cubical_h0.results_output import (
    load_results_dataframe,
    overall_summary,
    results_to_dataframe,
    save_results_dataframe,
)


def make_result(name, intervals):
    summary = summarize(PersistenceDiagram(intervals))
    return AnalysisResult.from_summary(f"/data/{name}", (16, 16), 0.0, False, summary)


@pytest.fixture
def results():
    return [
        make_result("a.png", [[0.2, 0.8], [0.1, 0.5], [0.0, math.inf]]),
        make_result("b.png", [[0.4, math.inf]]),
        make_result("c.png", [[0.0, 0.2], [0.0, math.inf]]),
    ]


def test_dataframe_column_order(results):
    df = results_to_dataframe(results)
    assert list(df.columns) == list(RESULT_COLUMNS)
    assert df["image_file"].tolist() == ["a.png", "b.png", "c.png"]


def test_empty_dataframe_keeps_columns():
    df = results_to_dataframe([])
    assert len(df) == 0
    assert list(df.columns) == list(RESULT_COLUMNS)


def test_csv_creates_parent_and_writes_nan(tmp_path, results):
    output = tmp_path / "nested" / "deeper" / "summary.csv"
    written = save_results_dataframe(results_to_dataframe(results), output)

    assert written == output
    assert output.exists()
    assert not output.with_suffix(".json").exists()
    lines = output.read_text().splitlines()
    assert lines[0].split(",") == list(RESULT_COLUMNS)
    assert len(lines) == 4
    assert ",NaN," in lines[2]


def test_csv_round_trip(tmp_path, results):
    df = results_to_dataframe(results)
    written = save_results_dataframe(df, tmp_path / "summary.csv")
    loaded = load_results_dataframe(written)

    assert list(loaded.columns) == list(RESULT_COLUMNS)
    assert loaded["n_intervals_finite"].tolist() == [2, 0, 1]
    assert math.isnan(loaded.loc[1, "median_persistence"])
    np.testing.assert_allclose(loaded["max_persistence"], df["max_persistence"], equal_nan=True)


def test_csv_metadata_goes_to_sibling_json(tmp_path, results):
    written = save_results_dataframe(
        results_to_dataframe(results), tmp_path / "summary.csv", metadata={"cutoff": 0.0}
    )
    sidecar = written.with_suffix(".json")
    assert json.loads(sidecar.read_text()) == {"cutoff": 0.0}
    assert load_results_dataframe(written).attrs == {"cutoff": 0.0}


def test_json_round_trip_with_metadata(tmp_path, results):
    df = results_to_dataframe(results)
    written = save_results_dataframe(
        df, tmp_path / "summary", format="json", metadata={"resize_to": (16, 16)}
    )

    assert written.suffix == ".json"
    payload = json.loads(written.read_text())
    assert payload["metadata"] == {"resize_to": [16, 16]}
    assert payload["data"][1]["median_persistence"] is None

    loaded = load_results_dataframe(written)
    assert loaded.attrs == {"resize_to": [16, 16]}
    assert loaded["image_file"].tolist() == ["a.png", "b.png", "c.png"]
    np.testing.assert_allclose(loaded["mean_persistence"], df["mean_persistence"], equal_nan=True)


def test_unknown_format(tmp_path, results):
    with pytest.raises(ValueError):
        save_results_dataframe(results_to_dataframe(results), tmp_path / "x.parquet", format="parquet")
    with pytest.raises(ValueError):
        load_results_dataframe(tmp_path / "x.parquet")


def test_overall_summary_ignores_nan(results):
    summary = overall_summary(results_to_dataframe(results))

    assert summary["n_images"] == 3
    assert summary["mean_finite_intervals"] == pytest.approx(1.0)
    # Image b has no finite intervals; only a (median 0.5) and c (0.2) count
    assert summary["median_of_median_persistence"] == pytest.approx(0.35)
    assert summary["mean_of_mean_persistence"] == pytest.approx(0.35)
    assert summary["mean_of_std_persistence"] == pytest.approx(0.05)


def test_overall_summary_without_finite_statistics():
    nan_only = [make_result("flat.png", [[0.5, math.inf]])]
    assert overall_summary(results_to_dataframe(nan_only)) == {
        "n_images": 1,
        "mean_finite_intervals": 0.0,
    }
    assert overall_summary(pd.DataFrame(columns=list(RESULT_COLUMNS))) == {"n_images": 0}
