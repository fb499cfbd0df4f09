"""Postprocessing modules for OCR outputs."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

import cv2
import numpy as np

from .errors import ModelLoadError, TensorError


@dataclass(frozen=True)
class TextRegion:
    """Axis-aligned text location in original image pixels."""
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height


class ContourPostProcess:
    """Post-processing for the detection probability map.

    Converts the map to an 8-bit mask, extracts outer contours and turns
    each into a margin-expanded bounding rectangle.
    """

    def __init__(self, thresh=200, margin=8, min_size=5):
        """Initialize contour post-processor.

        Args:
            thresh: Binarization cutoff on the 0-255 mask (pixel > thresh is text)
            margin: Pixels added on every side of each bounding rectangle
            min_size: Rectangles with width or height <= min_size are dropped
        """
        self.thresh = thresh
        self.margin = margin
        self.min_size = min_size

    def __call__(self, pred: np.ndarray, src_h: int, src_w: int) -> List[TextRegion]:
        """Convert a raw network output to text regions.

        Args:
            pred: Probability map, possibly with leading unit dimensions
            src_h: Original (unpadded) image height
            src_w: Original (unpadded) image width

        Returns:
            Regions in contour-extraction order
        """
        mask = self.probability_to_mask(pred, src_h, src_w)
        return self.boxes_from_bitmap(mask)

    @staticmethod
    def probability_to_mask(pred: np.ndarray, src_h: int, src_w: int) -> np.ndarray:
        """Scale the map to uint8 and read back only the unpadded area."""
        pred = np.asarray(pred, dtype=np.float32)
        while pred.ndim > 2 and pred.shape[0] == 1:
            pred = pred[0]
        if pred.ndim != 2:
            raise TensorError(f"Expected a single-channel map, got shape {pred.shape}")
        if pred.shape[0] < src_h or pred.shape[1] < src_w:
            raise TensorError(
                f"Map of shape {pred.shape} is smaller than image {src_h}x{src_w}"
            )

        scaled = np.clip(pred[:src_h, :src_w] * 255.0, 0, 255)
        return scaled.astype(np.uint8)

    def boxes_from_bitmap(self, mask: np.ndarray) -> List[TextRegion]:
        """Extract margin-expanded rectangles around outer contours."""
        height, width = mask.shape
        _, bitmap = cv2.threshold(mask, self.thresh, 255, cv2.THRESH_BINARY)

        outs = cv2.findContours(bitmap, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)
        if len(outs) == 3:
            contours, hierarchy = outs[1], outs[2]
        else:
            contours, hierarchy = outs
        if hierarchy is None:
            return []

        regions = []
        for contour, (_, _, _, parent) in zip(contours, hierarchy[0]):
            # Holes inside a glyph
            if parent != -1:
                continue

            x, y, w, h = cv2.boundingRect(contour)
            left = max(x - self.margin, 0)
            top = max(y - self.margin, 0)
            right = min(x + w + self.margin, width)
            bottom = min(y + h + self.margin, height)

            if right - left <= self.min_size or bottom - top <= self.min_size:
                continue
            regions.append(TextRegion(left, top, right - left, bottom - top))

        return regions


class CTCLabelDecode:
    """CTC decoding for text recognition with a per-character score floor."""

    def __init__(
        self,
        character_dict_path: Union[str, Path],
        use_space_char: bool = True,
        min_score: float = 0.75,
    ):
        """Initialize CTC decoder.

        Args:
            character_dict_path: Path to character dictionary file
            use_space_char: Include space character in vocabulary
            min_score: Characters decoded with a lower probability are dropped

        Raises:
            ModelLoadError: dictionary missing, unreadable or empty
        """
        self.min_score = min_score
        self.character_str = []

        try:
            with open(character_dict_path, "rb") as fin:
                for line in fin.readlines():
                    line = line.decode("utf-8").strip("\n").strip("\r\n")
                    self.character_str.append(line)
        except (OSError, UnicodeDecodeError) as e:
            raise ModelLoadError(
                f"Could not read character dictionary {character_dict_path}: {e}"
            ) from e
        if not self.character_str:
            raise ModelLoadError(f"Character dictionary is empty: {character_dict_path}")

        if use_space_char:
            self.character_str.append(" ")

        # Add blank token for CTC
        self.character = ["blank"] + self.character_str

    def __call__(self, preds: np.ndarray) -> List[Tuple[str, float]]:
        """Decode CTC predictions to text.

        Args:
            preds: Prediction array [batch, time, num_classes]

        Returns:
            List of (text, confidence) tuples; confidence is the mean
            probability of the kept characters, 0.0 when none are kept
        """
        if isinstance(preds, (tuple, list)):
            preds = preds[-1]
        preds = np.asarray(preds)
        if preds.ndim != 3:
            raise TensorError(f"Expected [batch, time, classes] output, got {preds.shape}")
        if preds.shape[2] > len(self.character):
            raise TensorError(
                f"Model predicts {preds.shape[2]} classes but dictionary "
                f"has {len(self.character)}"
            )

        preds_idx = preds.argmax(axis=2)
        preds_prob = preds.max(axis=2)
        return self.decode(preds_idx, preds_prob)

    def decode(self, text_index, text_prob) -> List[Tuple[str, float]]:
        """Convert text indices to strings, collapsing repeats."""
        result_list = []

        for batch_idx in range(len(text_index)):
            indices = text_index[batch_idx]
            selection = np.ones(len(indices), dtype=bool)
            selection[1:] = indices[1:] != indices[:-1]
            selection &= indices != 0
            selection &= text_prob[batch_idx] >= self.min_score

            char_list = [self.character[text_id] for text_id in indices[selection]]
            conf_list = text_prob[batch_idx][selection]
            score = float(np.mean(conf_list)) if len(conf_list) else 0.0

            result_list.append(("".join(char_list), score))

        return result_list
