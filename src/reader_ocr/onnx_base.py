"""Inference sessions: the capability used by the detector and recognizer."""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Union

import numpy as np
import onnxruntime

from .errors import InferenceError, ModelLoadError

logger = logging.getLogger(__name__)


class ModelSession(ABC):
    """A loaded network that maps one input tensor to its first output."""

    @abstractmethod
    def run(self, input_array: np.ndarray) -> np.ndarray:
        """Run a forward pass and return the first output array."""
        ...


class ONNXInferenceBase(ModelSession):
    """ONNX Runtime session with hardware acceleration.

    Calls to ``run`` hold a lock for their whole duration, so one session
    performs at most one inference at a time.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        use_gpu: bool = False,
        use_tensorrt: bool = False,
    ):
        """Initialize ONNX Runtime session.

        Args:
            model_path: Path to ONNX model file
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration (requires TensorRT)

        Raises:
            ModelLoadError: file missing or not a valid ONNX model
        """
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ModelLoadError(f"Model not found: {model_path}")

        # Setup providers (TensorRT > CUDA > CPU)
        providers = self._get_providers(use_gpu, use_tensorrt)

        logger.info(f"Loading ONNX model: {self.model_path}")
        try:
            self.session = onnxruntime.InferenceSession(
                str(self.model_path),
                None,
                providers=providers
            )
        except Exception as e:
            raise ModelLoadError(f"Could not load model {self.model_path}: {e}") from e

        # Cache input/output names
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]
        self._lock = threading.Lock()

    def _get_providers(self, use_gpu: bool, use_tensorrt: bool) -> List:
        """Get execution providers based on hardware availability.

        Priority: TensorRT > CUDA > CPU
        """
        available_providers = onnxruntime.get_available_providers()
        providers = []

        if use_tensorrt and "TensorrtExecutionProvider" in available_providers:
            providers.append(('TensorrtExecutionProvider', {}))

        if use_gpu and "CUDAExecutionProvider" in available_providers:
            providers.append((
                'CUDAExecutionProvider',
                {"cudnn_conv_algo_search": "DEFAULT"}
            ))

        # CPU (always available as fallback)
        providers.append('CPUExecutionProvider')

        return providers

    def run(self, input_array: np.ndarray) -> np.ndarray:
        """Run inference and return the first output.

        Args:
            input_array: Tensor fed to the model's first input

        Returns:
            First output array

        Raises:
            InferenceError: the runtime rejected the input or failed
        """
        input_feed = {self.input_names[0]: input_array}
        with self._lock:
            try:
                outputs = self.session.run(self.output_names, input_feed=input_feed)
            except Exception as e:
                raise InferenceError(f"{self.model_path.name}: {e}") from e
        if not outputs:
            raise InferenceError(f"{self.model_path.name}: model produced no output")
        return outputs[0]

    def __repr__(self):
        return f"ONNXInferenceBase(model={self.model_path.name})"


# Called as loader(model_path, use_gpu=..., use_tensorrt=...)
SessionLoader = Callable[..., ModelSession]


def load_onnx_session(
    model_path: Union[str, Path],
    use_gpu: bool = False,
    use_tensorrt: bool = False,
) -> ModelSession:
    """Default ``SessionLoader`` backed by ONNX Runtime."""
    return ONNXInferenceBase(model_path, use_gpu=use_gpu, use_tensorrt=use_tensorrt)
