"""
End-to-end tests on synthetic images
====================================

Test Cases:
    1. Solid image - one infinite interval, NaN statistics
    2. Two dark basins - one finite interval of persistence 0.6
    3. Downsampled two-basin image - dominant interval survives resizing
    4. Inversion - the two basins become one background basin
"""
import math
from pathlib import Path

import numpy as np
import pytest

from cubical_h0.config_loader import AnalysisConfig
from cubical_h0.diagram_summary import STATISTIC_FIELDS
from cubical_h0.image_analyzer import RESULT_COLUMNS, analyze, analyze_with_config


def generate_two_basins(size: int = 32) -> np.ndarray:
    """Light background (0.8) with two separated dark squares (0.2)."""
    image = np.full((size, size), 204, dtype=np.uint8)
    quarter = size // 4
    image[quarter // 2:quarter + quarter // 2, quarter // 2:quarter + quarter // 2] = 51
    lo = size - quarter - quarter // 2
    image[lo:lo + quarter, lo:lo + quarter] = 51
    return image


def test_solid_image(make_image):
    path = make_image("solid.png", np.full((40, 50), 90, dtype=np.uint8))
    result = analyze(path, target_size=(20, 20), cutoff=0.0)

    assert result.image_file == "solid.png"
    assert Path(result.image_path).is_absolute()
    assert (result.resized_height, result.resized_width) == (20, 20)
    assert result.cutoff == 0.0
    assert result.invert is False
    assert result.n_intervals_total == 1
    assert result.n_intervals_finite == 0
    assert result.n_intervals_infinite == 1
    for name in STATISTIC_FIELDS:
        assert math.isnan(getattr(result, name)), name


def test_two_basins_same_size(make_image):
    path = make_image("basins.png", generate_two_basins(32))
    result = analyze(path, target_size=(32, 32))

    assert result.n_intervals_total == 2
    assert result.n_intervals_finite == 1
    assert result.n_intervals_infinite == 1
    assert result.max_persistence == pytest.approx(0.6)
    assert result.median_persistence == pytest.approx(0.6)
    assert result.median_birth == pytest.approx(0.2)
    assert result.median_death == pytest.approx(0.8)
    assert result.std_persistence == 0.0


def test_two_basins_downsampled(make_image):
    path = make_image("basins.png", generate_two_basins(64))
    result = analyze(path, target_size=(32, 32))

    assert (result.resized_height, result.resized_width) == (32, 32)
    assert result.n_intervals_infinite == 1
    assert result.n_intervals_finite >= 1
    assert result.max_persistence == pytest.approx(0.6, abs=1e-6)


def test_invert_merges_basins_into_background(make_image):
    path = make_image("basins.png", generate_two_basins(32))
    result = analyze(path, target_size=(32, 32), invert=True)

    assert result.invert is True
    assert result.n_intervals_total == 1
    assert result.n_intervals_finite == 0


def test_cutoff_removes_the_basin_interval(make_image):
    path = make_image("basins.png", generate_two_basins(32))
    result = analyze(path, target_size=(32, 32), cutoff=0.7)

    assert result.cutoff == 0.7
    assert result.n_intervals_finite == 0
    assert result.n_intervals_infinite == 1


def test_analysis_is_idempotent(make_image):
    path = make_image("basins.png", generate_two_basins(48))
    assert analyze(path, target_size=(24, 24)) == analyze(path, target_size=(24, 24))


def test_engines_agree_through_config(make_image):
    path = make_image("basins.png", generate_two_basins(32))
    gudhi_result = analyze_with_config(path, AnalysisConfig(target_size=(32, 32)))
    union_find_result = analyze_with_config(
        path, AnalysisConfig(target_size=(32, 32), engine="union_find")
    )

    expected = gudhi_result.as_row()
    actual = union_find_result.as_row()
    assert actual["image_path"] == expected["image_path"]
    for name in RESULT_COLUMNS[2:]:
        if name == "invert":
            assert actual[name] == expected[name]
        else:
            assert actual[name] == pytest.approx(expected[name], nan_ok=True), name


def test_row_has_all_columns_in_order(make_image):
    path = make_image("basins.png", generate_two_basins(32))
    row = analyze(path, target_size=(32, 32)).as_row()

    assert tuple(row) == RESULT_COLUMNS
    assert RESULT_COLUMNS[:6] == (
        "image_file", "image_path", "resized_height", "resized_width", "cutoff", "invert"
    )
