from collections.abc import Sequence

import pytest
from PIL import Image

from mrz_scan.descriptors import get_descriptors
from mrz_scan.models import ModelStoreConfig, TrainingMode, TrainingSample
from mrz_scan.ocr import MrzOcrResult, mrz_ocr
from mrz_scan.ocr.lines import group_rois_per_line
from mrz_scan.ocr.types import OcrOptions, Region, SegmentationResult
from mrz_scan.svm import create_model

GLYPH_WIDTH = 8
GLYPH_HEIGHT = 12

HEADER = "NOISE"
MRZ_LINES = ["P<UTOERIK", "L898902C3", "UTO740812"]
FOOTER = "ABCD"


class _StubSegmenter:
    def __init__(self, result: SegmentationResult) -> None:
        self.result = result
        self.calls: list[Image.Image] = []

    def get_lines(self, image: Image.Image) -> SegmentationResult:
        self.calls.append(image)
        return self.result


class _PixelClassifier:
    """Reads the code point painted into each glyph."""

    def __init__(self) -> None:
        self.calls: list[int] = []

    def __call__(self, images: Sequence[Image.Image]) -> list[int]:
        self.calls.append(len(images))
        return [image.getpixel((1, 1)) for image in images]


def _document(rows: list[str]) -> tuple[Image.Image, list[Region]]:
    image = Image.new("L", (200, 220), 0)
    regions: list[Region] = []
    for row_index, text in enumerate(rows):
        y = 10 + 40 * row_index
        for column, character in enumerate(text):
            region = Region(
                min_x=5 + column * (GLYPH_WIDTH + 2),
                min_y=y,
                width=GLYPH_WIDTH,
                height=GLYPH_HEIGHT,
            )
            image.paste(ord(character), region.box)
            regions.append(region)
    return image, regions


def test_mrz_ocr_reads_bottom_lines_in_one_batch() -> None:
    image, regions = _document(["NOISELINE", *MRZ_LINES, FOOTER])
    segmenter = _StubSegmenter(
        SegmentationResult(
            rois=regions,
            mask="mask",
            painted="painted",
            average_surface=96.0,
        )
    )
    classifier = _PixelClassifier()

    result = mrz_ocr(image, segmenter, classifier=classifier)

    assert isinstance(result, MrzOcrResult)
    assert segmenter.calls == [image]
    assert classifier.calls == [27]
    assert result.ocr_result == MRZ_LINES
    assert result.mask == "mask"
    assert result.painted == "painted"
    assert result.average_surface == 96.0


def test_mrz_ocr_annotates_glyph_positions() -> None:
    image, regions = _document(MRZ_LINES)
    segmenter = _StubSegmenter(SegmentationResult(rois=regions))

    result = mrz_ocr(image, segmenter, classifier=_PixelClassifier())

    assert len(result.rois) == 27
    tenth = result.rois[10]
    assert (tenth.line, tenth.column) == (1, 1)
    assert tenth.predicted == "8"
    assert (tenth.width, tenth.height) == (GLYPH_WIDTH, GLYPH_HEIGHT)
    assert [glyph.predicted for glyph in result.rois[:9]] == list(MRZ_LINES[0])


def test_mrz_ocr_keeps_pre_grouped_line_order() -> None:
    image, regions = _document(MRZ_LINES)
    lines = group_rois_per_line(regions)
    for line in lines:
        line.rois.reverse()
    segmenter = _StubSegmenter(SegmentationResult(lines=lines))

    result = mrz_ocr(image, segmenter, classifier=_PixelClassifier())

    assert result.ocr_result == [text[::-1] for text in MRZ_LINES]


def test_mrz_ocr_respects_options() -> None:
    image, regions = _document(["ABCD", "EFGHI", "JKLMNO"])
    segmenter = _StubSegmenter(SegmentationResult(rois=regions))

    result = mrz_ocr(
        image,
        segmenter,
        options=OcrOptions(min_rois_per_line=3, max_lines=1),
        classifier=_PixelClassifier(),
    )

    assert result.ocr_result == ["JKLMNO"]


def test_mrz_ocr_without_lines_skips_classifier() -> None:
    image, regions = _document(["ABC", FOOTER])
    segmenter = _StubSegmenter(SegmentationResult(rois=regions))
    classifier = _PixelClassifier()

    result = mrz_ocr(image, segmenter, classifier=classifier)

    assert result.ocr_result == []
    assert result.rois == []
    assert classifier.calls == []


def test_mrz_ocr_rejects_prediction_count_mismatch() -> None:
    image, regions = _document(MRZ_LINES)
    segmenter = _StubSegmenter(SegmentationResult(rois=regions))

    def classifier(images: Sequence[Image.Image]) -> list[int]:
        return [ord("A")] * (len(images) - 1)

    with pytest.raises(RuntimeError, match="26 predictions for 27 glyphs"):
        mrz_ocr(image, segmenter, classifier=classifier)


def test_mrz_ocr_defaults_to_persisted_classifier(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    image, regions = _document(MRZ_LINES)
    segmenter = _StubSegmenter(SegmentationResult(rois=regions))
    seen: list[object] = []

    def fake_predict_images(images: Sequence[Image.Image], config: object) -> list[int]:
        seen.append(config)
        return [ord("<")] * len(images)

    monkeypatch.setattr("mrz_scan.svm.predict_images", fake_predict_images)

    result = mrz_ocr(image, segmenter, config="store-config")  # type: ignore[arg-type]

    assert seen == ["store-config"]
    assert result.ocr_result == ["<" * 9] * 3


def test_mrz_ocr_wraps_out_of_range_codes() -> None:
    image, regions = _document(MRZ_LINES)
    segmenter = _StubSegmenter(SegmentationResult(rois=regions))

    def classifier(images: Sequence[Image.Image]) -> list[int]:
        return [-1, 1, ord("A") + 0x10000] + [ord("<")] * (len(images) - 3)

    result = mrz_ocr(image, segmenter, classifier=classifier)

    assert result.ocr_result[0] == "\uffff\x01A" + "<" * 6
    assert result.rois[0].predicted == "\uffff"


def test_mrz_ocr_with_one_class_model(store_config: ModelStoreConfig) -> None:
    blank = Image.new("L", (200, 220), 0)
    _, regions = _document(MRZ_LINES)
    glyphs = [blank.crop(region.box) for region in regions[:9]]
    samples = [
        TrainingSample(descriptor=descriptor, label=ord("<"))
        for descriptor in get_descriptors(glyphs)
    ]
    trained = create_model(samples, config=store_config)
    segmenter = _StubSegmenter(SegmentationResult(rois=regions))

    result = mrz_ocr(blank, segmenter, config=store_config)

    assert trained.training_mode is TrainingMode.ONE_CLASS
    assert [len(text) for text in result.ocr_result] == [9, 9, 9]
    assert set("".join(result.ocr_result)) <= {"\x01", "\uffff"}
