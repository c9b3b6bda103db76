from pathlib import Path

import numpy as np
import pytest
import tifffile
from PIL import Image


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch):
    monkeypatch.delenv("H0_PERSISTENCE_CONFIG_JSON", raising=False)


@pytest.fixture
def make_image(tmp_path):
    """Write ``array`` as an image file under tmp_path (TIFF via tifffile, rest via Pillow)."""

    def _make(name: str, array: np.ndarray, folder: Path = tmp_path) -> Path:
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        if path.suffix.lower() in (".tif", ".tiff"):
            tifffile.imwrite(path, array)
        else:
            Image.fromarray(array).save(path)
        return path

    return _make


@pytest.fixture
def make_corrupt(tmp_path):
    def _make(name: str = "broken.png", folder: Path = tmp_path) -> Path:
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        path.write_bytes(b"definitely not an image")
        return path

    return _make
