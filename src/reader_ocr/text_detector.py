"""
Text Detection Module - Stage 1 of OCR Pipeline

Finds printed text regions in an image with a DB-style probability map.
"""

import logging
from pathlib import Path
from typing import List, Union

import numpy as np

from .config import DetectorConfig
from .onnx_base import ModelSession, SessionLoader, load_onnx_session
from .postprocess import ContourPostProcess, TextRegion
from .preprocess import detection_operators, preprocess as preprocess_image
from .utils import crop_region

logger = logging.getLogger(__name__)


class TextDetector:
    """Text detection module.

    Owns the detection session. Not safe for concurrent use beyond what
    the session lock provides: callers wanting parallel OCR keep one
    detector per worker.
    """

    def __init__(
        self,
        session: ModelSession,
        config: DetectorConfig = None,
    ):
        """Initialize text detector.

        Args:
            session: Loaded detection network
            config: Detector configuration (uses defaults if None)
        """
        if config is None:
            config = DetectorConfig()

        self.config = config
        self.session = session

        self.preprocess_ops = detection_operators(config)
        self.postprocess_op = ContourPostProcess(
            thresh=config.binarize_thresh,
            margin=config.box_margin,
            min_size=config.min_size,
        )

    @classmethod
    def from_file(
        cls,
        model_path: Union[str, Path],
        config: DetectorConfig = None,
        session_loader: SessionLoader = load_onnx_session,
    ) -> "TextDetector":
        """Load the detection model and build a detector."""
        if config is None:
            config = DetectorConfig()
        session = session_loader(
            model_path,
            use_gpu=config.use_gpu,
            use_tensorrt=config.use_tensorrt,
        )
        return cls(session, config)

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """Normalize and zero-pad an RGB image into a (1, 3, H', W') buffer."""
        return preprocess_image(image, self.config, self.preprocess_ops)

    def find_regions(self, image: np.ndarray) -> List[TextRegion]:
        """Detect text in a single image.

        Args:
            image: RGB image (H, W, 3), uint8

        Returns:
            Regions in contour-extraction order, which is not reading order
        """
        src_h, src_w = image.shape[:2]

        buffer = self.preprocess(image)
        pred = self.session.run(buffer)
        regions = self.postprocess_op(pred, src_h, src_w)

        logger.debug(f"Detected {len(regions)} text regions in {src_w}x{src_h} image")
        return regions

    def crop_regions(self, image: np.ndarray) -> List[np.ndarray]:
        """Detect text and return the cropped region images."""
        return [crop_region(image, region) for region in self.find_regions(image)]

    def __repr__(self):
        return f"TextDetector(session={self.session})"
