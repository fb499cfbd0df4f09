"""
Text Recognition Module - Stage 2 of OCR Pipeline

Recognizes the text in one cropped region image at a time.
"""

import logging
import math
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from .config import RecognizerConfig
from .errors import TensorError
from .onnx_base import ModelSession, SessionLoader, load_onnx_session
from .postprocess import CTCLabelDecode

logger = logging.getLogger(__name__)


class TextRecognizer:
    """Text recognition module.

    Pairs the recognition session with its character dictionary and the
    minimum acceptance score. Output is deterministic for a given image,
    model and threshold.
    """

    def __init__(
        self,
        session: ModelSession,
        char_dict_path: Union[str, Path],
        config: RecognizerConfig = None,
    ):
        """Initialize text recognizer.

        Args:
            session: Loaded recognition network
            char_dict_path: Path to character dictionary file
            config: Recognizer configuration (uses defaults if None)
        """
        if config is None:
            config = RecognizerConfig()

        self.config = config
        self.rec_image_shape = config.rec_image_shape
        self.session = session

        # Setup postprocessing (CTC decoder)
        self.postprocess_op = CTCLabelDecode(
            character_dict_path=char_dict_path,
            use_space_char=config.use_space_char,
            min_score=config.min_score,
        )

    @classmethod
    def from_file(
        cls,
        model_path: Union[str, Path],
        char_dict_path: Union[str, Path],
        config: RecognizerConfig = None,
        session_loader: SessionLoader = load_onnx_session,
    ) -> "TextRecognizer":
        """Load the recognition model and dictionary."""
        if config is None:
            config = RecognizerConfig()
        session = session_loader(
            model_path,
            use_gpu=config.use_gpu,
            use_tensorrt=config.use_tensorrt,
        )
        return cls(session, char_dict_path, config)

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize and normalize image for recognition.

        Args:
            img: Input image (H, W, C) in RGB

        Returns:
            Processed image (C, H, W), zero-padded on the right
        """
        imgC, imgH, imgW = self.rec_image_shape
        if img.ndim != 3 or img.shape[2] != imgC or img.shape[0] == 0 or img.shape[1] == 0:
            raise TensorError(f"Cannot recognize image of shape {img.shape}")

        h, w = img.shape[:2]
        ratio = w / float(h)
        max_wh_ratio = max(imgW / imgH, ratio)
        imgW = int(imgH * max_wh_ratio)

        if math.ceil(imgH * ratio) > imgW:
            resized_w = imgW
        else:
            resized_w = int(math.ceil(imgH * ratio))

        resized_image = cv2.resize(img, (resized_w, imgH))
        resized_image = resized_image.astype("float32")
        resized_image = resized_image.transpose((2, 0, 1)) / 255
        resized_image -= 0.5
        resized_image /= 0.5

        # Pad to fixed width
        padding_im = np.zeros((imgC, imgH, imgW), dtype=np.float32)
        padding_im[:, :, 0:resized_w] = resized_image

        return padding_im

    def recognize_with_score(self, img: np.ndarray) -> Tuple[str, float]:
        """Recognize text in a single image.

        Args:
            img: Text image patch (RGB)

        Returns:
            Tuple of (text, mean confidence of the kept characters)
        """
        norm_img = self.resize_norm_img(img)[np.newaxis, :]
        preds = self.session.run(norm_img)
        results = self.postprocess_op(preds)
        if len(results) != 1:
            raise TensorError(f"Expected one decoded sequence, got {len(results)}")
        text, score = results[0]

        logger.debug(f"Recognized {len(text)} characters (score {score:.3f})")
        return text, score

    def recognize(self, img: np.ndarray) -> str:
        """Recognize text in a single image; empty when nothing passes ``min_score``."""
        return self.recognize_with_score(img)[0]

    def __repr__(self):
        return (
            f"TextRecognizer(session={self.session}, "
            f"min_score={self.config.min_score})"
        )
