from collections.abc import Sequence
from dataclasses import dataclass, field

from PIL import Image


@dataclass(frozen=True)
class Region:
    """Axis-aligned glyph box in source-image pixel coordinates."""

    min_x: int
    min_y: int
    width: int
    height: int

    @property
    def max_x(self) -> int:
        return self.min_x + self.width

    @property
    def max_y(self) -> int:
        return self.min_y + self.height

    @property
    def box(self) -> tuple[int, int, int, int]:
        """Box in the `(left, upper, right, lower)` order PIL crops with."""
        return self.min_x, self.min_y, self.max_x, self.max_y


@dataclass
class TextLine:
    """Regions accumulated into one text line.

    `x`/`y` track the most recently assigned region, so the vertical
    membership test follows the line as it drifts.
    """

    rois: list[Region] = field(default_factory=list)
    x: int = 0
    y: int = 0

    def add(self, roi: Region) -> None:
        self.rois.append(roi)
        self.x = roi.min_x
        self.y = roi.min_y


@dataclass
class GlyphRoi:
    """Cropped glyph with its position in the MRZ block and its prediction."""

    region: Region
    image: Image.Image
    line: int
    column: int
    predicted: str | None = None

    @property
    def width(self) -> int:
        return self.region.width

    @property
    def height(self) -> int:
        return self.region.height


@dataclass(frozen=True)
class SegmentationResult:
    """Output of the segmentation collaborator.

    Either `lines` (already grouped) or bare `rois` must be provided. The mask,
    painted preview and average surface are passed through untouched.
    """

    lines: Sequence[TextLine] | None = None
    rois: Sequence[Region] | None = None
    mask: object | None = None
    painted: object | None = None
    average_surface: float | None = None


@dataclass(frozen=True)
class OcrOptions:
    """Line filtering applied before classification."""

    min_rois_per_line: int
    max_lines: int


DEFAULT_OCR_OPTIONS = OcrOptions(
    min_rois_per_line=5,
    max_lines=3,
)
