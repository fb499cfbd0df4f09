"""Utility functions for OCR pipeline."""

import io
from pathlib import Path
from typing import List, Union

import numpy as np
from PIL import Image

from .errors import ImageDecodeError
from .postprocess import TextRegion

ImageInput = Union[bytes, bytearray, str, Path, Image.Image, np.ndarray]


def decode_image(source: ImageInput) -> np.ndarray:
    """Decode any supported input into an RGB uint8 array (H, W, 3).

    Accepts encoded bytes, a file path, a PIL image or a numpy array
    (gray, RGB or RGBA). Alpha is dropped. 16-bit samples keep their
    high byte.

    Raises:
        ImageDecodeError: input is not a decodable, non-empty raster image
    """
    if isinstance(source, np.ndarray):
        return _array_to_rgb(source)

    if isinstance(source, Image.Image):
        image = source
    else:
        if isinstance(source, (bytes, bytearray)):
            fp = io.BytesIO(source)
        elif isinstance(source, (str, Path)):
            fp = source
        else:
            raise ImageDecodeError(f"Unsupported image input: {type(source).__name__}")
        try:
            image = Image.open(fp)
            image.load()
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise ImageDecodeError(f"Cannot decode image: {e}") from e

    try:
        # 16-bit gray, opened as "I;16*" or "I" depending on the Pillow version
        if image.mode == "I" or image.mode.startswith("I;16"):
            arr = np.clip(np.array(image).astype(np.int64), 0, 65535)
            rgb = (arr >> 8).astype(np.uint8)
        else:
            rgb = np.array(image.convert("RGB"))
    except (OSError, ValueError, SyntaxError) as e:
        raise ImageDecodeError(f"Cannot convert image to RGB: {e}") from e
    return _array_to_rgb(rgb)


def _array_to_rgb(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        img = np.stack([img] * 3, axis=-1)
    elif img.ndim == 3 and img.shape[2] == 4:
        img = img[:, :, :3]
    elif img.ndim == 3 and img.shape[2] == 1:
        img = np.repeat(img, 3, axis=2)

    if img.ndim != 3 or img.shape[2] != 3:
        raise ImageDecodeError(f"Unsupported image array shape: {img.shape}")
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise ImageDecodeError("Image has no pixels")
    if img.dtype == np.uint16:
        img = (img >> 8).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    return np.ascontiguousarray(img)


def crop_region(img: np.ndarray, region: TextRegion) -> np.ndarray:
    """Crop a text region from an (H, W, C) image."""
    return img[region.top:region.bottom, region.left:region.right].copy()


def sort_reading_order(regions: List[TextRegion], line_tolerance: int = 10) -> List[TextRegion]:
    """Sort regions from top to bottom, left to right.

    Regions whose top edges are within ``line_tolerance`` pixels count as
    the same line and are ordered by their left edge.

    Args:
        regions: Regions in detector order
        line_tolerance: Maximum top-edge distance for one line

    Returns:
        New sorted list
    """
    _regions = sorted(regions, key=lambda r: (r.top, r.left))

    for i in range(len(_regions) - 1):
        for j in range(i, -1, -1):
            if abs(_regions[j + 1].top - _regions[j].top) < line_tolerance and \
               (_regions[j + 1].left < _regions[j].left):
                _regions[j], _regions[j + 1] = _regions[j + 1], _regions[j]
            else:
                break

    return _regions
