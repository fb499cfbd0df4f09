"""
On-device OCR for printed Chinese text, built on ONNX Runtime

Two stages:
- TextDetector: Finds text regions in an image
- TextRecognizer: Converts one cropped region into a string

High-level interface:
- OCRPipeline: detection + recognition, returns one concatenated string
- run_on_bytes / run_on_file / run_on_image: shared-pipeline shortcuts
"""

from .config import DetectorConfig, RecognizerConfig, ModelFiles, DEFAULT_MODEL_FILES
from .errors import OcrError, ImageDecodeError, ModelLoadError, TensorError, InferenceError
from .onnx_base import ModelSession, ONNXInferenceBase, load_onnx_session
from .postprocess import TextRegion
from .preprocess import pad_length, preprocess
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .utils import decode_image, crop_region, sort_reading_order
from .pipeline import (
    OCRPipeline,
    OCRResult,
    RegionText,
    RegionError,
    get_pipeline,
    clear_pipelines,
    models_available,
    run_on_bytes,
    run_on_file,
    run_on_image,
)

__version__ = "0.1.0"
__all__ = [
    "DetectorConfig",
    "RecognizerConfig",
    "ModelFiles",
    "DEFAULT_MODEL_FILES",
    "OcrError",
    "ImageDecodeError",
    "ModelLoadError",
    "TensorError",
    "InferenceError",
    "ModelSession",
    "ONNXInferenceBase",
    "load_onnx_session",
    "TextRegion",
    "pad_length",
    "preprocess",
    "TextDetector",
    "TextRecognizer",
    "decode_image",
    "crop_region",
    "sort_reading_order",
    "OCRPipeline",
    "OCRResult",
    "RegionText",
    "RegionError",
    "get_pipeline",
    "clear_pipelines",
    "models_available",
    "run_on_bytes",
    "run_on_file",
    "run_on_image",
]
