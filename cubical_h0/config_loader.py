import json
import math
import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

import yaml

from .errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
_CONFIG_PATH = PROJECT_ROOT / "config" / "h0_persistence" / "config.yaml"
_ENV_CONFIG_KEY = "H0_PERSISTENCE_CONFIG_JSON"

DEFAULT_IMAGE_EXTENSIONS: FrozenSet[str] = frozenset(
    {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp"}
)
DEFAULT_TARGET_SIZE: Tuple[int, int] = (256, 256)
DEFAULT_CUTOFF = 0.0
ENGINE_NAMES = ("gudhi", "union_find")
CONSTRUCTION_NAMES = ("vertices", "top_cells")
DECODE_ERROR_POLICIES = ("abort", "skip")

DEFAULT_CONFIG: Dict[str, Any] = {
    "paths": {
        "images_dir": "images",
        "output_path": "results/h0_persistence_summary.csv",
    },
    "image_params": {
        "resize_to": list(DEFAULT_TARGET_SIZE),
        "invert": False,
        "extensions": sorted(DEFAULT_IMAGE_EXTENSIONS),
    },
    "processing_thresholds": {
        "cutoff": DEFAULT_CUTOFF,
        "engine": "gudhi",
        "construction": "vertices",
        "workers": None,
        "on_decode_error": "abort",
    },
    "output_settings": {
        "export_format": "csv",
        "metadata": {},
    },
}


def _deep_update(base: Dict[str, Any], updates: Dict[str, Any]) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value


def _resolve_paths(config: Dict[str, Any]) -> None:
    paths = config.setdefault("paths", {})
    for key in ("images_dir", "output_path"):
        value = paths.get(key)
        if not value:
            continue
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        paths[key] = str(path)


def _load_env_overrides() -> Optional[Dict[str, Any]]:
    raw = os.environ.get(_ENV_CONFIG_KEY)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{_ENV_CONFIG_KEY} is not valid JSON: {exc}") from exc


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    with config_path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")
    return loaded


def load_config(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[Union[str, Path]] = None,
) -> Dict[str, Any]:
    """Load the run configuration as a nested dict.

    Precedence, lowest first: built-in defaults, the YAML file (explicit
    ``config_path`` or the project default), the JSON document in
    ``H0_PERSISTENCE_CONFIG_JSON``, then ``overrides``.
    """
    config = deepcopy(DEFAULT_CONFIG)

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        _deep_update(config, _read_yaml(config_path))
    elif _CONFIG_PATH.exists():
        _deep_update(config, _read_yaml(_CONFIG_PATH))

    env_overrides = _load_env_overrides()
    if env_overrides:
        _deep_update(config, deepcopy(env_overrides))

    if overrides:
        _deep_update(config, overrides)

    _resolve_paths(config)
    return config


def _normalize_extensions(extensions: Iterable[str]) -> FrozenSet[str]:
    normalized = set()
    for ext in extensions:
        ext = str(ext).strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(normalized)


@dataclass(frozen=True)
class AnalysisConfig:
    """Run parameters handed explicitly to the analysis orchestrator."""

    target_size: Tuple[int, int] = DEFAULT_TARGET_SIZE
    cutoff: float = DEFAULT_CUTOFF
    invert: bool = False
    engine: str = "gudhi"
    construction: str = "vertices"
    workers: Optional[int] = None
    on_decode_error: str = "abort"
    extensions: FrozenSet[str] = field(default=DEFAULT_IMAGE_EXTENSIONS)

    def __post_init__(self) -> None:
        try:
            size = tuple(int(v) for v in self.target_size)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"target_size must be two integers, got {self.target_size!r}") from exc
        if len(size) != 2 or min(size) <= 0:
            raise ConfigError(f"target_size must be two positive integers, got {self.target_size!r}")
        object.__setattr__(self, "target_size", size)

        cutoff = float(self.cutoff)
        if not math.isfinite(cutoff) or cutoff < 0.0:
            raise ConfigError(f"cutoff must be a finite non-negative number, got {self.cutoff!r}")
        object.__setattr__(self, "cutoff", cutoff)
        object.__setattr__(self, "invert", bool(self.invert))

        if self.engine not in ENGINE_NAMES:
            raise ConfigError(f"Unknown engine '{self.engine}'. Supported: {', '.join(ENGINE_NAMES)}")
        if self.construction not in CONSTRUCTION_NAMES:
            raise ConfigError(
                f"Unknown construction '{self.construction}'. Supported: {', '.join(CONSTRUCTION_NAMES)}"
            )
        if self.on_decode_error not in DECODE_ERROR_POLICIES:
            raise ConfigError(
                f"on_decode_error must be one of {', '.join(DECODE_ERROR_POLICIES)}, "
                f"got '{self.on_decode_error}'"
            )
        if self.workers is not None:
            workers = int(self.workers)
            if workers < 1:
                raise ConfigError(f"workers must be >= 1 or null, got {self.workers!r}")
            object.__setattr__(self, "workers", workers)

        extensions = _normalize_extensions(self.extensions)
        if not extensions:
            raise ConfigError("At least one image extension is required")
        object.__setattr__(self, "extensions", extensions)

    @property
    def resolved_workers(self) -> int:
        return self.workers or os.cpu_count() or 1

    @classmethod
    def from_mapping(cls, config: Dict[str, Any]) -> "AnalysisConfig":
        image_params = config.get("image_params") or {}
        processing = config.get("processing_thresholds") or {}
        kwargs: Dict[str, Any] = {}

        if image_params.get("resize_to") is not None:
            kwargs["target_size"] = tuple(image_params["resize_to"])
        if "invert" in image_params:
            kwargs["invert"] = bool(image_params["invert"])
        if image_params.get("extensions"):
            kwargs["extensions"] = image_params["extensions"]

        if processing.get("cutoff") is not None:
            kwargs["cutoff"] = processing["cutoff"]
        for key in ("engine", "construction", "on_decode_error"):
            if processing.get(key):
                kwargs[key] = str(processing[key])
        if "workers" in processing:
            kwargs["workers"] = processing["workers"]

        return cls(**kwargs)
