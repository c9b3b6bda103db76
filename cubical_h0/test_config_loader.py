import json
from pathlib import Path

import pytest
import yaml

from cubical_h0.config_loader import (
    DEFAULT_IMAGE_EXTENSIONS,
    PROJECT_ROOT,
    AnalysisConfig,
    load_config,
)
from cubical_h0.errors import ConfigError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "paths": {"images_dir": str(tmp_path / "imgs")},
                "image_params": {"resize_to": [64, 32], "invert": True},
                "processing_thresholds": {"cutoff": 0.05},
            }
        )
    )
    return path


def test_yaml_merges_over_defaults(config_file, tmp_path):
    config = load_config(config_path=config_file)

    assert config["paths"]["images_dir"] == str(tmp_path / "imgs")
    assert config["image_params"]["resize_to"] == [64, 32]
    assert config["image_params"]["invert"] is True
    assert config["processing_thresholds"]["cutoff"] == 0.05
    # untouched keys keep their defaults
    assert config["processing_thresholds"]["engine"] == "gudhi"
    assert config["output_settings"]["export_format"] == "csv"


def test_env_json_overrides_yaml(config_file, monkeypatch):
    monkeypatch.setenv(
        "H0_PERSISTENCE_CONFIG_JSON",
        json.dumps({"processing_thresholds": {"cutoff": 0.2, "workers": 3}}),
    )
    config = load_config(config_path=config_file)

    assert config["processing_thresholds"]["cutoff"] == 0.2
    assert config["processing_thresholds"]["workers"] == 3
    assert config["image_params"]["resize_to"] == [64, 32]


def test_explicit_overrides_win(config_file, monkeypatch):
    monkeypatch.setenv("H0_PERSISTENCE_CONFIG_JSON", json.dumps({"image_params": {"invert": True}}))
    config = load_config(overrides={"image_params": {"invert": False}}, config_path=config_file)
    assert config["image_params"]["invert"] is False


def test_invalid_env_json(monkeypatch, config_file):
    monkeypatch.setenv("H0_PERSISTENCE_CONFIG_JSON", "{not json")
    with pytest.raises(ConfigError):
        load_config(config_path=config_file)


def test_missing_explicit_config(tmp_path):
    with pytest.raises(ConfigError):
        load_config(config_path=tmp_path / "absent.yaml")


def test_relative_paths_resolve_against_project_root(config_file):
    config = load_config(
        overrides={"paths": {"images_dir": "some/images", "output_path": "out/table.csv"}},
        config_path=config_file,
    )
    assert Path(config["paths"]["images_dir"]) == PROJECT_ROOT / "some" / "images"
    assert Path(config["paths"]["output_path"]) == PROJECT_ROOT / "out" / "table.csv"


def test_from_mapping(config_file):
    analysis = AnalysisConfig.from_mapping(load_config(config_path=config_file))

    assert analysis.target_size == (64, 32)
    assert analysis.invert is True
    assert analysis.cutoff == pytest.approx(0.05)
    assert analysis.engine == "gudhi"
    assert analysis.construction == "vertices"
    assert analysis.workers is None
    assert analysis.on_decode_error == "abort"
    assert analysis.extensions == DEFAULT_IMAGE_EXTENSIONS


def test_defaults():
    config = AnalysisConfig()
    assert config.target_size == (256, 256)
    assert config.cutoff == 0.0
    assert config.invert is False
    assert config.resolved_workers >= 1
    assert AnalysisConfig(workers=1).resolved_workers == 1


def test_extensions_are_normalized():
    config = AnalysisConfig(extensions=["PNG", ".Tif", " jpg "])
    assert config.extensions == frozenset({".png", ".tif", ".jpg"})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"target_size": (0, 10)},
        {"target_size": (10,)},
        {"target_size": "ab"},
        {"cutoff": -0.5},
        {"cutoff": float("nan")},
        {"engine": "ripser"},
        {"construction": "hex"},
        {"on_decode_error": "ignore"},
        {"workers": 0},
        {"extensions": []},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ConfigError):
        AnalysisConfig(**kwargs)
