"""Configuration classes for OCR modules."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple, Union


@dataclass
class DetectorConfig:
    """Configuration for text detection stage."""
    pad_multiple: int = 32  # Input is zero-padded up to a multiple of this
    mean: Tuple[float, float, float] = (0.485, 0.456, 0.406)  # R, G, B
    std: Tuple[float, float, float] = (0.229, 0.224, 0.225)  # R, G, B
    binarize_thresh: int = 200  # Mask cutoff on a 0-255 scale
    box_margin: int = 8  # Pixels added on every side of a region
    min_size: int = 5  # Regions this narrow or short are dropped
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration


@dataclass
class RecognizerConfig:
    """Configuration for text recognition stage."""
    rec_image_shape: List[int] = None  # [C, H, W] e.g., [3, 48, 320]
    min_score: float = 0.75  # Characters below this confidence are dropped
    use_space_char: bool = True  # Include space character in vocabulary
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration

    def __post_init__(self):
        if self.rec_image_shape is None:
            self.rec_image_shape = [3, 48, 320]


@dataclass(frozen=True)
class ModelFiles:
    """Fixed artifact names expected inside a model directory."""
    detector: str = "PP-OCRv5_server_det_infer.onnx"
    recognizer: str = "model.onnx"
    dictionary: str = "dict.txt"

    def paths(self, model_dir: Union[str, Path]) -> Dict[str, Path]:
        """Return key -> full path for every artifact."""
        model_dir = Path(model_dir)
        return {
            "detector": model_dir / self.detector,
            "recognizer": model_dir / self.recognizer,
            "dictionary": model_dir / self.dictionary,
        }

    def missing(self, model_dir: Union[str, Path]) -> List[Path]:
        """Return the artifacts that are not regular files."""
        return [path for path in self.paths(model_dir).values() if not path.is_file()]


DEFAULT_MODEL_FILES = ModelFiles()
