"""
Image Normalizer
================

Loads a raster image and turns it into the intensity grid consumed by the
cubical filtration:

    1. Decode (TIFF via tifffile, everything else via Pillow)
    2. Scale to float according to the stored dtype
    3. Collapse colour to a single luminance channel, dropping alpha
    4. Optionally invert intensities (v -> 1 - v)
    5. Bilinear resize to exactly ``target_size`` (Gaussian anti-aliasing
       when downsampling)
    6. Clamp to [0, 1] to absorb interpolation overshoot
"""
import logging
from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np
import tifffile
from PIL import Image, UnidentifiedImageError
from skimage.color import rgb2gray
from skimage.transform import resize

from .errors import DecodeError, InputNotFoundError

logger = logging.getLogger(__name__)

TIFF_SUFFIXES = {".tif", ".tiff"}
_PIL_PASSTHROUGH_MODES = {"L", "RGB", "RGBA", "I;16", "I;16L", "I;16B", "I", "F"}


def _validate_target_size(target_size: Sequence[int]) -> Tuple[int, int]:
    try:
        size = tuple(int(v) for v in target_size)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"target_size must be (height, width), got {target_size!r}") from exc
    if len(size) != 2 or min(size) <= 0:
        raise ValueError(f"target_size must be two positive integers, got {target_size!r}")
    return size


def _read_tiff(path: Path) -> np.ndarray:
    try:
        image = tifffile.imread(path)
    except Exception as exc:
        raise DecodeError(f"Cannot decode TIFF image {path}: {exc}", path) from exc

    image = np.asarray(image)
    # Single-page stacks come back as (1, H, W)
    if image.ndim == 3 and image.shape[0] == 1:
        image = image[0]
    return image


def _read_pil(path: Path) -> np.ndarray:
    try:
        with Image.open(path) as handle:
            handle.load()
            mode = handle.mode
            # Alpha carries no intensity; it is dropped, never composited
            if mode in ("1", "LA"):
                handle = handle.convert("L")
            elif mode not in _PIL_PASSTHROUGH_MODES:
                handle = handle.convert("RGB")
            image = np.array(handle)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(f"Cannot decode image {path}: {exc}", path) from exc

    # Pillow exposes 16-bit greyscale PNGs as 32-bit "I" images
    if mode == "I" and image.size and image.min() >= 0 and image.max() <= np.iinfo(np.uint16).max:
        image = image.astype(np.uint16)
    return image


def load_image(path: Union[str, Path]) -> np.ndarray:
    """Decode ``path`` into a raw numpy array in its stored dtype and layout."""
    path = Path(path)
    if not path.is_file():
        raise InputNotFoundError(f"Image file not found: {path}")

    if path.suffix.lower() in TIFF_SUFFIXES:
        return _read_tiff(path)
    return _read_pil(path)


def to_unit_float(image: np.ndarray, path: Union[str, Path, None] = None) -> np.ndarray:
    """Scale an image array to float64 according to its dtype.

    Integer images land in [0, 1]. Float images are kept as stored; values
    slightly outside [0, 1] are clamped after resizing.
    """
    if image.dtype == bool:
        return image.astype(np.float64)

    if np.issubdtype(image.dtype, np.integer):
        if image.size and image.min() < 0:
            raise DecodeError(f"Negative pixel values in integer image {path}", path)
        return image.astype(np.float64) / float(np.iinfo(image.dtype).max)

    if np.issubdtype(image.dtype, np.floating):
        float_image = image.astype(np.float64)
        if not np.all(np.isfinite(float_image)):
            raise DecodeError(f"Non-finite pixel values in {path}", path)
        return float_image

    raise DecodeError(f"Unsupported image dtype {image.dtype} in {path}", path)


def to_grayscale(image: np.ndarray, path: Union[str, Path, None] = None) -> np.ndarray:
    """Collapse a float image to one luminance channel (Rec. 709 weights, alpha ignored)."""
    if image.ndim == 2:
        return image
    if image.ndim == 3:
        channels = image.shape[-1]
        if channels in (1, 2):
            return image[..., 0]
        if channels in (3, 4):
            return rgb2gray(image[..., :3])
    raise DecodeError(f"Expected a single 2-D image, got array of shape {image.shape} from {path}", path)


def invert_intensity(grid: np.ndarray) -> np.ndarray:
    return 1.0 - grid


def resize_grid(grid: np.ndarray, target_size: Sequence[int]) -> np.ndarray:
    """Bilinear resample to ``target_size`` and clamp to [0, 1]."""
    size = _validate_target_size(target_size)
    if grid.size and grid.min() == grid.max():
        # Interpolation round-off on a flat field would seed spurious minima
        return np.full(size, np.clip(grid.flat[0], 0.0, 1.0), dtype=np.float64)
    if grid.shape == size:
        return np.clip(grid.astype(np.float64), 0.0, 1.0)

    resized = resize(
        grid,
        size,
        order=1,
        mode="reflect",
        anti_aliasing=True,
        preserve_range=True,
    )
    return np.clip(resized.astype(np.float64, copy=False), 0.0, 1.0)


def normalize(
    path: Union[str, Path],
    target_size: Sequence[int] = (256, 256),
    invert: bool = False,
) -> np.ndarray:
    """
    Load an image and return its normalized intensity grid.

    Args:
        path: Image file (png, jpg, jpeg, tif, tiff, bmp, ...)
        target_size: Output (height, width); the source is resampled, never cropped
        invert: If True, map v -> 1 - v before resizing

    Returns:
        float64 array of shape ``target_size`` with values in [0, 1]

    Raises:
        InputNotFoundError: ``path`` does not exist
        DecodeError: ``path`` cannot be decoded as a supported image
        ValueError: ``target_size`` is not two positive integers
    """
    size = _validate_target_size(target_size)
    path = Path(path)

    raw = load_image(path)
    gray = to_grayscale(to_unit_float(raw, path), path)
    if gray.size == 0:
        raise DecodeError(f"Image has no pixels: {path}", path)

    if invert:
        gray = invert_intensity(gray)

    grid = resize_grid(gray, size)
    logger.debug("Normalized %s: %s -> %s (invert=%s)", path.name, raw.shape, grid.shape, invert)
    return grid
