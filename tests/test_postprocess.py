"""Unit tests for contour post-processing and CTC decoding."""

import numpy as np
import pytest

from reader_ocr import ModelLoadError, TensorError, TextRegion
from reader_ocr.postprocess import CTCLabelDecode, ContourPostProcess

from conftest import NUM_CLASSES, ctc_output


@pytest.fixture
def post() -> ContourPostProcess:
    return ContourPostProcess()


class TestTextRegion:
    """Tests for TextRegion."""

    def test_right_and_bottom(self):
        region = TextRegion(left=3, top=4, width=10, height=20)
        assert region.right == 13
        assert region.bottom == 24


class TestProbabilityToMask:
    """Tests for map rescaling and cropping."""

    def test_scales_and_clamps(self):
        pred = np.array([[0.0, 0.5, 1.0, 2.0, -1.0]], dtype=np.float32)
        mask = ContourPostProcess.probability_to_mask(pred, 1, 5)

        assert mask.dtype == np.uint8
        assert mask.tolist() == [[0, 127, 255, 255, 0]]

    def test_reads_back_only_unpadded_area(self):
        pred = np.ones((1, 1, 64, 64), dtype=np.float32)
        mask = ContourPostProcess.probability_to_mask(pred, 40, 33)
        assert mask.shape == (40, 33)

    def test_rejects_multi_channel_map(self):
        with pytest.raises(TensorError):
            ContourPostProcess.probability_to_mask(np.zeros((1, 2, 32, 32)), 32, 32)

    def test_rejects_map_smaller_than_image(self):
        with pytest.raises(TensorError):
            ContourPostProcess.probability_to_mask(np.zeros((1, 1, 32, 32)), 40, 32)


class TestBoxesFromBitmap:
    """Tests for region extraction from an 8-bit mask."""

    def test_blank_mask_yields_no_regions(self, post):
        assert post.boxes_from_bitmap(np.zeros((50, 80), dtype=np.uint8)) == []

    def test_margin_expansion(self, post):
        mask = np.zeros((100, 100), dtype=np.uint8)
        mask[20:80, 30:50] = 255

        assert post.boxes_from_bitmap(mask) == [TextRegion(22, 12, 36, 76)]

    def test_clamped_at_image_edges(self, post):
        mask = np.zeros((50, 60), dtype=np.uint8)
        mask[0:10, 0:10] = 255
        mask[40:50, 50:60] = 255
        regions = sorted(post.boxes_from_bitmap(mask), key=lambda r: r.left)

        assert regions == [TextRegion(0, 0, 18, 18), TextRegion(42, 32, 18, 18)]

    def test_hole_does_not_produce_second_region(self, post):
        mask = np.zeros((100, 100), dtype=np.uint8)
        mask[20:80, 20:80] = 255
        mask[40:60, 40:60] = 0

        assert post.boxes_from_bitmap(mask) == [TextRegion(12, 12, 76, 76)]

    def test_island_inside_hole_is_suppressed(self, post):
        mask = np.zeros((100, 100), dtype=np.uint8)
        mask[10:90, 10:90] = 255
        mask[30:70, 30:70] = 0
        mask[45:55, 45:55] = 255

        assert post.boxes_from_bitmap(mask) == [TextRegion(2, 2, 96, 96)]

    def test_binarization_cutoff_is_exclusive(self, post):
        mask = np.zeros((40, 40), dtype=np.uint8)
        mask[10:20, 10:20] = 200
        assert post.boxes_from_bitmap(mask) == []

        mask[10:20, 10:20] = 201
        assert len(post.boxes_from_bitmap(mask)) == 1

    def test_small_regions_are_dropped(self):
        post = ContourPostProcess(margin=0)
        mask = np.zeros((40, 40), dtype=np.uint8)
        mask[5:7, 5:30] = 255    # 2 px high
        mask[20:35, 20:25] = 255  # 5 px wide
        mask[10:17, 32:39] = 255  # 7 x 7, kept

        assert post.boxes_from_bitmap(mask) == [TextRegion(32, 10, 7, 7)]

    def test_tiny_image_drops_clamped_region(self, post):
        mask = np.full((5, 40), 255, dtype=np.uint8)
        assert post.boxes_from_bitmap(mask) == []

    def test_regions_stay_inside_image(self, post):
        rng = np.random.default_rng(7)
        mask = np.where(rng.random((90, 130)) > 0.97, 255, 0).astype(np.uint8)
        regions = post.boxes_from_bitmap(mask)

        assert regions
        for r in regions:
            assert 0 <= r.left and 0 <= r.top
            assert r.right <= 130 and r.bottom <= 90
            assert r.width > 5 and r.height > 5

    def test_full_call_from_probability_map(self, post):
        pred = np.zeros((1, 1, 64, 64), dtype=np.float32)
        pred[0, 0, 10:20, 10:30] = 0.9
        pred[0, 0, 50:60, 40:60] = 0.9  # outside the unpadded 45x45 area

        assert post(pred, 45, 45) == [TextRegion(2, 2, 36, 26)]


class TestCTCLabelDecode:
    """Tests for greedy CTC decoding with the score floor."""

    @pytest.fixture
    def decoder(self, dict_path) -> CTCLabelDecode:
        return CTCLabelDecode(dict_path, use_space_char=True, min_score=0.75)

    def test_dictionary_layout(self, decoder):
        assert decoder.character == ["blank", "你", "好", "世", "界", " "]

    def test_without_space_char(self, dict_path):
        decoder = CTCLabelDecode(dict_path, use_space_char=False)
        assert decoder.character[-1] == "界"

    def test_collapses_repeats_and_blanks(self, decoder):
        [(text, score)] = decoder(ctc_output([1, 1, 0, 2, 2, 5, 3, 0, 4]))
        assert text == "你好 世界"
        assert score == pytest.approx(0.9)

    def test_blank_separates_repeated_characters(self, decoder):
        [(text, _)] = decoder(ctc_output([1, 0, 1]))
        assert text == "你你"

    def test_drops_characters_below_min_score(self, decoder):
        [(text, score)] = decoder(ctc_output([1, 2, 3, 4], prob=[0.9, 0.5, 0.8, 0.74]))
        assert text == "你世"
        assert score == pytest.approx(0.85)

    def test_nothing_confident_is_empty_not_error(self, decoder):
        assert decoder(ctc_output([1, 2, 3], prob=0.4)) == [("", 0.0)]

    def test_all_blank_is_empty(self, decoder):
        assert decoder(ctc_output([0, 0, 0])) == [("", 0.0)]

    def test_rejects_wrong_rank(self, decoder):
        with pytest.raises(TensorError):
            decoder(np.zeros((5, NUM_CLASSES)))

    def test_rejects_more_classes_than_dictionary(self, decoder):
        with pytest.raises(TensorError):
            decoder(ctc_output([1, 2], num_classes=NUM_CLASSES + 3))

    def test_missing_dictionary(self, tmp_path):
        with pytest.raises(ModelLoadError):
            CTCLabelDecode(tmp_path / "nope.txt")

    def test_undecodable_dictionary(self, tmp_path):
        path = tmp_path / "bad.txt"
        path.write_bytes(b"\xff\xfe\xfa\n")
        with pytest.raises(ModelLoadError):
            CTCLabelDecode(path)

    def test_empty_dictionary(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_bytes(b"")
        with pytest.raises(ModelLoadError):
            CTCLabelDecode(path)
