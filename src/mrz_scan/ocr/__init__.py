import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from PIL import Image

from mrz_scan.models import ModelStoreConfig
from mrz_scan.ocr.images import _crop_region
from mrz_scan.ocr.lines import group_rois_per_line
from mrz_scan.ocr.types import (
    DEFAULT_OCR_OPTIONS,
    GlyphRoi,
    OcrOptions,
    Region,
    SegmentationResult,
    TextLine,
)

logger = logging.getLogger(__name__)

GlyphClassifier = Callable[[Sequence[Image.Image]], Sequence[int]]


class Segmenter(Protocol):
    """Finds glyph regions in a normalized MRZ image."""

    def get_lines(self, image: Image.Image) -> SegmentationResult: ...


@dataclass(frozen=True)
class MrzOcrResult:
    """Per-line MRZ text plus the annotated glyphs it was built from."""

    rois: Sequence[GlyphRoi]
    ocr_result: Sequence[str]
    mask: object | None
    painted: object | None
    average_surface: float | None


def _default_classifier(config: ModelStoreConfig | None) -> GlyphClassifier:
    from mrz_scan.svm import predict_images

    def classify(images: Sequence[Image.Image]) -> Sequence[int]:
        return predict_images(images, config)

    return classify


def _segmented_lines(segmentation: SegmentationResult) -> list[TextLine]:
    if segmentation.lines is not None:
        return list(segmentation.lines)
    return group_rois_per_line(segmentation.rois or [])


def _select_mrz_lines(
    lines: Sequence[TextLine],
    options: OcrOptions,
) -> list[TextLine]:
    """Drop short noise lines and keep the bottom-most MRZ block."""
    kept = [line for line in lines if len(line.rois) > options.min_rois_per_line]
    if len(kept) > options.max_lines:
        logger.debug(
            "Discarding %d lines above the MRZ block",
            len(kept) - options.max_lines,
        )
        kept = kept[-options.max_lines :]
    return kept


def _crop_glyphs(image: Image.Image, lines: Sequence[TextLine]) -> list[GlyphRoi]:
    glyphs: list[GlyphRoi] = []
    for line_index, line in enumerate(lines):
        for column, region in enumerate(line.rois):
            glyphs.append(
                GlyphRoi(
                    region=region,
                    image=_crop_region(image, region),
                    line=line_index,
                    column=column,
                )
            )
    return glyphs


def _code_to_char(code: int) -> str:
    # Wraps to one UTF-16 code unit: a one-class outlier flag of -1 reads "\uffff".
    return chr(code % 0x10000)


def _line_texts(lines: Sequence[TextLine], predicted: Sequence[str]) -> list[str]:
    texts: list[str] = []
    offset = 0
    for line in lines:
        texts.append("".join(predicted[offset : offset + len(line.rois)]))
        offset += len(line.rois)
    return texts


def mrz_ocr(
    image: Image.Image,
    segmenter: Segmenter,
    *,
    options: OcrOptions = DEFAULT_OCR_OPTIONS,
    classifier: GlyphClassifier | None = None,
    config: ModelStoreConfig | None = None,
) -> MrzOcrResult:
    """Read the MRZ lines of a normalized document image.

    All glyphs of the kept lines are classified in one batch so the height
    feature is normalized across the whole document. Characters are joined in
    the order segmentation listed them within each line.

    Args:
        image: MRZ image already cropped and deskewed.
        segmenter: Collaborator producing glyph regions for the image.
        options: Line filtering thresholds.
        classifier: Optional glyph classifier for dependency injection; the
            persisted SVM is used when omitted.
        config: Model store configuration for the default classifier.
    Returns:
        Line strings top to bottom, the annotated glyphs and the segmentation
        artifacts.
    """
    segmentation = segmenter.get_lines(image)
    lines = _select_mrz_lines(_segmented_lines(segmentation), options)
    glyphs = _crop_glyphs(image, lines)

    resolved_classifier = classifier or _default_classifier(config)
    codes: list[int] = []
    if glyphs:
        codes = list(resolved_classifier([glyph.image for glyph in glyphs]))
    if len(codes) != len(glyphs):
        raise RuntimeError(
            f"Classifier returned {len(codes)} predictions for {len(glyphs)} glyphs."
        )
    predicted = [_code_to_char(code) for code in codes]
    for glyph, character in zip(glyphs, predicted, strict=True):
        glyph.predicted = character

    return MrzOcrResult(
        rois=glyphs,
        ocr_result=_line_texts(lines, predicted),
        mask=segmentation.mask,
        painted=segmentation.painted,
        average_surface=segmentation.average_surface,
    )


__all__ = [
    "DEFAULT_OCR_OPTIONS",
    "GlyphClassifier",
    "GlyphRoi",
    "MrzOcrResult",
    "OcrOptions",
    "Region",
    "SegmentationResult",
    "Segmenter",
    "TextLine",
    "group_rois_per_line",
    "mrz_ocr",
]
