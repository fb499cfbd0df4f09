"""Error taxonomy for the OCR pipeline."""


class OcrError(Exception):
    """Base class for every failure raised by the OCR pipeline."""
    pass


class ImageDecodeError(OcrError):
    """Input is not a decodable raster image."""
    pass


class ModelLoadError(OcrError):
    """A model or dictionary file is missing, unreadable or not a valid network."""
    pass


class TensorError(OcrError):
    """Buffer allocation failed or a tensor has an unexpected shape."""
    pass


class InferenceError(OcrError):
    """The inference runtime failed during a forward pass."""
    pass
