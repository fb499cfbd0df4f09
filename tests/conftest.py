"""Pytest fixtures and fake inference sessions for reader_ocr tests."""

import io
import struct
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from reader_ocr import DEFAULT_MODEL_FILES, clear_pipelines
from reader_ocr.onnx_base import ModelSession

# blank, 你, 好, 世, 界, space
DICT_CHARS = ["你", "好", "世", "界"]
NUM_CLASSES = len(DICT_CHARS) + 2


class ThresholdDetSession(ModelSession):
    """Detection fake: pixels whose normalized red value is below -1 are text.

    Black pixels normalize to about -2.1, white to about 2.2 and the zero
    padding stays 0, so only dark source pixels light up the map.
    """

    def __init__(self):
        self.calls = 0

    def run(self, input_array):
        self.calls += 1
        prob = (input_array[0, 0] < -1.0).astype(np.float32)
        return prob[np.newaxis, np.newaxis]


class CannedSession(ModelSession):
    """Returns queued outputs in order; queued exceptions are raised."""

    def __init__(self, outputs, repeat_last=False):
        self.outputs = list(outputs)
        self.repeat_last = repeat_last
        self.inputs = []

    def run(self, input_array):
        self.inputs.append(input_array)
        if self.repeat_last and len(self.outputs) == 1:
            item = self.outputs[0]
        else:
            item = self.outputs.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def ctc_output(indices, prob=0.9, num_classes=NUM_CLASSES):
    """Build a (1, T, C) CTC output peaking at ``indices`` with ``prob``.

    ``prob`` may be a single value or one value per timestep.
    """
    probs = np.broadcast_to(np.asarray(prob, dtype=np.float32), (len(indices),))
    out = np.zeros((1, len(indices), num_classes), dtype=np.float32)
    for t, (idx, p) in enumerate(zip(indices, probs)):
        out[0, t, :] = (1.0 - p) / (num_classes - 1)
        out[0, t, idx] = p
    return out


def make_loader(det_session, rec_session):
    """Session loader returning the fakes by model file name."""
    loaded = []

    def loader(model_path, **kwargs):
        loaded.append(Path(model_path).name)
        if Path(model_path).name == DEFAULT_MODEL_FILES.detector:
            return det_session
        return rec_session

    loader.loaded = loaded
    return loader


def png_bytes(img: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(img).save(buf, format="PNG")
    return buf.getvalue()


def broken_png_bytes(img: np.ndarray) -> bytes:
    """PNG whose first IDAT is cut after the zlib header and followed by a
    chunk with an invalid type.

    Pillow opens it fine and raises SyntaxError("broken PNG file") in load().
    """
    data = png_bytes(img)
    pos = 8
    while True:
        length, cid = struct.unpack(">I4s", data[pos:pos + 8])
        if cid == b"IDAT":
            break
        pos += 12 + length
    idat = data[pos + 8:pos + 8 + length]
    rest = idat[2:]
    return (
        data[:pos]
        + struct.pack(">I", 2) + b"IDAT" + idat[:2] + b"\x00" * 4
        + struct.pack(">I", len(rest)) + b"\x00(o\xfc" + rest + b"\x00" * 4
        + data[pos + 12 + length:]
    )


def gray16_png_bytes(img: np.ndarray) -> bytes:
    """Encode a 2-D uint16 array as a 16-bit grayscale PNG."""
    buf = io.BytesIO()
    Image.fromarray(img.astype(np.uint16)).save(buf, format="PNG")
    return buf.getvalue()


def two_block_image():
    """White 120x64 RGB image with two black blocks."""
    img = np.full((64, 120, 3), 255, dtype=np.uint8)
    img[10:30, 10:40] = 0
    img[30:50, 70:100] = 0
    return img


@pytest.fixture(autouse=True)
def _reset_shared_pipelines():
    clear_pipelines()
    yield
    clear_pipelines()


@pytest.fixture
def dict_path(tmp_path) -> Path:
    path = tmp_path / "keys.txt"
    path.write_text("\n".join(DICT_CHARS) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def model_dir(tmp_path) -> Path:
    """Directory with placeholder model files and a real dictionary."""
    directory = tmp_path / "models"
    directory.mkdir()
    (directory / DEFAULT_MODEL_FILES.detector).write_bytes(b"det")
    (directory / DEFAULT_MODEL_FILES.recognizer).write_bytes(b"rec")
    (directory / DEFAULT_MODEL_FILES.dictionary).write_text(
        "\n".join(DICT_CHARS) + "\n", encoding="utf-8"
    )
    return directory
