"""
High-level OCR Pipeline
Combines detection and recognition into one call returning a string.

Usage:
    ocr = OCRPipeline("/path/to/models")
    text = ocr.run_file("screenshot.png")

The call blocks for the whole detect/recognize sequence and cannot be
cancelled; run it from a background worker.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .config import DEFAULT_MODEL_FILES, DetectorConfig, ModelFiles, RecognizerConfig
from .errors import ModelLoadError, OcrError
from .onnx_base import SessionLoader, load_onnx_session
from .postprocess import TextRegion
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .utils import ImageInput, crop_region, decode_image

logger = logging.getLogger(__name__)

RegionOrder = Callable[[List[TextRegion]], List[TextRegion]]


@dataclass
class RegionText:
    """Recognized text of one region."""
    region: TextRegion
    text: str


@dataclass
class RegionError:
    """Failure recorded for one region in best-effort mode."""
    index: int
    region: TextRegion
    error: OcrError


@dataclass
class OCRResult:
    """Per-region outcome of one pipeline call."""
    regions: List[RegionText] = field(default_factory=list)
    errors: List[RegionError] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated region texts, in processing order, no separators."""
        return "".join(item.text for item in self.regions)


class OCRPipeline:
    """
    Complete OCR pipeline: decode -> detect -> (crop, recognize)* -> concatenate.

    Both sessions and the dictionary are loaded in the constructor, so a
    missing or corrupt model fails before any image is decoded.
    """

    def __init__(
        self,
        model_dir: Union[str, Path],
        det_config: Optional[DetectorConfig] = None,
        rec_config: Optional[RecognizerConfig] = None,
        model_files: ModelFiles = DEFAULT_MODEL_FILES,
        region_order: Optional[RegionOrder] = None,
        session_loader: SessionLoader = load_onnx_session,
    ):
        """
        Initialize OCR pipeline

        Args:
            model_dir: Directory holding the detection model, recognition
                model and character dictionary
            det_config: Detector configuration (defaults if None)
            rec_config: Recognizer configuration (defaults if None)
            model_files: Artifact names inside ``model_dir``
            region_order: Optional sort applied to detected regions, e.g.
                ``sort_reading_order``; detector order is kept if None
            session_loader: Factory turning a model path into a session

        Raises:
            ModelLoadError: a required file is missing or cannot be loaded
        """
        self.model_dir = Path(model_dir)
        self.region_order = region_order

        missing = model_files.missing(self.model_dir)
        if missing:
            names = ", ".join(path.name for path in missing)
            raise ModelLoadError(f"Missing OCR model files in {self.model_dir}: {names}")

        paths = model_files.paths(self.model_dir)
        logger.info(f"Loading OCR models from {self.model_dir}")

        self.text_detector = TextDetector.from_file(
            paths["detector"],
            det_config,
            session_loader=session_loader,
        )
        self.text_recognizer = TextRecognizer.from_file(
            paths["recognizer"],
            paths["dictionary"],
            rec_config,
            session_loader=session_loader,
        )

    def run_bytes(self, data: bytes) -> str:
        """OCR an encoded image (PNG, JPEG, ...) held in memory."""
        return self.recognize_regions(decode_image(bytes(data))).text

    def run_file(self, path: Union[str, Path]) -> str:
        """OCR an image file."""
        return self.recognize_regions(decode_image(Path(path))).text

    def run_image(self, image: ImageInput) -> str:
        """OCR an already-decoded image (PIL image or numpy array)."""
        return self.recognize_regions(image).text

    def recognize_regions(self, image: ImageInput, best_effort: bool = False) -> OCRResult:
        """
        Detect and recognize every text region of an image

        Args:
            image: Anything ``decode_image`` accepts
            best_effort: Record region-level failures in ``OCRResult.errors``
                and keep going instead of raising. Decoding and detection
                failures always raise.

        Returns:
            OCRResult with one entry per successfully recognized region
        """
        img = decode_image(image)

        regions = self.text_detector.find_regions(img)
        if self.region_order is not None:
            regions = list(self.region_order(regions))

        result = OCRResult()
        for index, region in enumerate(regions):
            img_crop = crop_region(img, region)
            try:
                text = self.text_recognizer.recognize(img_crop)
            except OcrError as e:
                if not best_effort:
                    raise
                logger.debug(f"Region {index} failed: {e}")
                result.errors.append(RegionError(index, region, e))
                continue
            result.regions.append(RegionText(region, text))

        return result

    def __repr__(self):
        return (
            f"OCRPipeline(\n"
            f"  detector={self.text_detector},\n"
            f"  recognizer={self.text_recognizer}\n"
            f")"
        )


# One pipeline per model directory and configuration, reused across calls
_pipeline_lock = threading.Lock()
_pipelines: Dict[tuple, OCRPipeline] = {}


def get_pipeline(
    model_dir: Union[str, Path],
    session_loader: SessionLoader = load_onnx_session,
    det_config: Optional[DetectorConfig] = None,
    rec_config: Optional[RecognizerConfig] = None,
    model_files: ModelFiles = DEFAULT_MODEL_FILES,
) -> OCRPipeline:
    """Return the shared pipeline for ``model_dir``, loading it on first use.

    Pipelines are keyed by the resolved directory, the loader, both configs
    and the artifact names, so differently configured callers never share
    sessions.
    """
    det_config = det_config or DetectorConfig()
    rec_config = rec_config or RecognizerConfig()
    # config dataclasses are mutable, so key on their repr
    key = (
        str(Path(model_dir).resolve()),
        session_loader,
        repr(det_config),
        repr(rec_config),
        model_files,
    )
    with _pipeline_lock:
        if key not in _pipelines:
            _pipelines[key] = OCRPipeline(
                model_dir,
                det_config=det_config,
                rec_config=rec_config,
                model_files=model_files,
                session_loader=session_loader,
            )
        return _pipelines[key]


def clear_pipelines() -> None:
    """Drop every shared pipeline so the next call reloads its models."""
    with _pipeline_lock:
        _pipelines.clear()


def models_available(
    model_dir: Union[str, Path],
    model_files: ModelFiles = DEFAULT_MODEL_FILES,
) -> bool:
    """True when all three model artifacts exist in ``model_dir``."""
    return not model_files.missing(model_dir)


def run_on_bytes(
    model_dir: Union[str, Path],
    data: bytes,
    session_loader: SessionLoader = load_onnx_session,
    det_config: Optional[DetectorConfig] = None,
    rec_config: Optional[RecognizerConfig] = None,
    model_files: ModelFiles = DEFAULT_MODEL_FILES,
) -> str:
    """OCR encoded image bytes with the models in ``model_dir``."""
    pipeline = get_pipeline(model_dir, session_loader, det_config, rec_config, model_files)
    return pipeline.run_bytes(data)


def run_on_file(
    model_dir: Union[str, Path],
    path: Union[str, Path],
    session_loader: SessionLoader = load_onnx_session,
    det_config: Optional[DetectorConfig] = None,
    rec_config: Optional[RecognizerConfig] = None,
    model_files: ModelFiles = DEFAULT_MODEL_FILES,
) -> str:
    """OCR an image file with the models in ``model_dir``."""
    pipeline = get_pipeline(model_dir, session_loader, det_config, rec_config, model_files)
    return pipeline.run_file(path)


def run_on_image(
    model_dir: Union[str, Path],
    image: ImageInput,
    session_loader: SessionLoader = load_onnx_session,
    det_config: Optional[DetectorConfig] = None,
    rec_config: Optional[RecognizerConfig] = None,
    model_files: ModelFiles = DEFAULT_MODEL_FILES,
) -> str:
    """OCR a decoded image with the models in ``model_dir``."""
    pipeline = get_pipeline(model_dir, session_loader, det_config, rec_config, model_files)
    return pipeline.run_image(image)
