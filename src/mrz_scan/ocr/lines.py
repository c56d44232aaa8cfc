import math
from collections.abc import Sequence

from mrz_scan.ocr.types import Region, TextLine


def _allowed_shift(rois: Sequence[Region]) -> int:
    mean_height = sum(roi.height for roi in rois) / len(rois)
    # Half-up rounding, so a mean height of 21 gives 11 rather than 10.
    return math.floor(mean_height / 2 + 0.5)


def group_rois_per_line(rois: Sequence[Region]) -> list[TextLine]:
    """Cluster glyph regions into text lines ordered top to bottom.

    The vertical tolerance is half the mean glyph height, computed once for the
    whole set. Each region joins the first line, in creation order, whose
    anchor is within tolerance; the anchor then moves to that region, which
    lets a slightly skewed line keep collecting its glyphs. Regions keep their
    input order inside a line.

    Args:
        rois: Unordered glyph regions from segmentation.
    Returns:
        Lines sorted by the vertical position of their last member.
    """
    if not rois:
        return []
    allowed_shift = _allowed_shift(rois)
    lines: list[TextLine] = []
    for roi in rois:
        current: TextLine | None = None
        for line in lines:
            if abs(line.y - roi.min_y) <= allowed_shift:
                current = line
                break
        if current is None:
            current = TextLine()
            lines.append(current)
        current.add(roi)
    lines.sort(key=lambda line: line.y)
    return lines
