"""Preprocessing operations for text detection."""

import numpy as np
from typing import Dict, List, Tuple

from .config import DetectorConfig
from .errors import TensorError


def pad_length(length: int, multiple: int = 32) -> int:
    """Round ``length`` up to the next multiple (no-op on an exact multiple)."""
    remainder = length % multiple
    if remainder == 0:
        return length
    return length + multiple - remainder


class NormalizeImage:
    """Normalize image values per channel."""

    def __init__(self, scale=1. / 255., mean=(0.485, 0.456, 0.406),
                 std=(0.229, 0.224, 0.225), **kwargs):
        self.scale = np.float32(scale)
        self.mean = np.array(mean).reshape((1, 1, 3)).astype('float32')
        self.std = np.array(std).reshape((1, 1, 3)).astype('float32')

    def __call__(self, data: Dict) -> Dict:
        img = data['image'].astype('float32')
        img = img * self.scale
        data['image'] = (img - self.mean) / self.std
        return data


class ToCHWImage:
    """Convert image from HWC to CHW format."""

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        data['image'] = img.transpose((2, 0, 1))
        return data


class PadToMultiple:
    """Place a CHW image top-left in a zero buffer padded to a multiple.

    The padding border keeps the value zero after normalization; the
    detection network was trained against exactly this layout.
    """

    def __init__(self, multiple: int = 32, **kwargs):
        self.multiple = multiple

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        channels, src_h, src_w = img.shape
        pad_h = pad_length(src_h, self.multiple)
        pad_w = pad_length(src_w, self.multiple)

        try:
            padded = np.zeros((1, channels, pad_h, pad_w), dtype=np.float32)
        except MemoryError as e:
            raise TensorError(
                f"Cannot allocate detection buffer of {pad_w}x{pad_h}"
            ) from e
        padded[0, :, :src_h, :src_w] = img

        data['image'] = padded
        data['shape'] = np.array([src_h, src_w, pad_h, pad_w])
        return data


class KeepKeys:
    """Keep only specified keys in data dict."""

    def __init__(self, keep_keys: List[str], **kwargs):
        self.keep_keys = keep_keys

    def __call__(self, data: Dict) -> Tuple:
        return tuple(data[key] for key in self.keep_keys)


def create_operators(op_param_list: List[Dict]):
    """Create preprocessing operators from config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]

    Returns:
        List of operator instances
    """
    ops = []
    for operator in op_param_list:
        assert isinstance(operator, dict) and len(operator) == 1
        op_name = list(operator)[0]
        param = {} if operator[op_name] is None else operator[op_name]
        op = globals()[op_name](**param)
        ops.append(op)
    return ops


def transform(data: Dict, ops: List):
    """Apply preprocessing operators sequentially."""
    for op in ops:
        data = op(data)
    return data


def detection_operators(config: DetectorConfig) -> List:
    """Operator chain turning an RGB image into the detection input."""
    return create_operators([
        {
            "NormalizeImage": {
                "scale": 1. / 255.,
                "mean": config.mean,
                "std": config.std,
            }
        },
        {"ToCHWImage": None},
        {"PadToMultiple": {"multiple": config.pad_multiple}},
        {"KeepKeys": {"keep_keys": ["image", "shape"]}},
    ])


def preprocess(image: np.ndarray, config: DetectorConfig = None, ops: List = None) -> np.ndarray:
    """Build the normalized, zero-padded (1, 3, H', W') detection buffer.

    Args:
        image: RGB image (H, W, 3), uint8
        config: Detector configuration (uses defaults if None)
        ops: Prebuilt operator chain from detection_operators(config)

    Returns:
        float32 array whose spatial size is padded to ``config.pad_multiple``

    Raises:
        TensorError: image is not (H, W, 3) or the buffer cannot be allocated
    """
    if config is None:
        config = DetectorConfig()
    if image.ndim != 3 or image.shape[2] != 3:
        raise TensorError(f"Expected an (H, W, 3) image, got shape {image.shape}")

    if ops is None:
        ops = detection_operators(config)
    buffer, _ = transform({"image": image}, ops)
    return buffer
