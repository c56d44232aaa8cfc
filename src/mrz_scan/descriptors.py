from collections import defaultdict
from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from typing import Literal

import numpy as np
from PIL import Image
from skimage.feature import hog

from mrz_scan.ocr.images import _canonical_glyph

GLYPH_SIZE = 20
GLYPH_PADDING = 2


@dataclass(frozen=True)
class HogOptions:
    """HOG parameters shared by training and inference.

    Sizes are in cells except `cell_size`, which is in pixels.
    """

    cell_size: int
    block_size: int
    block_stride: int
    bins: int
    norm: Literal["L1", "L1-sqrt", "L2", "L2-Hys"]


DEFAULT_HOG_OPTIONS = HogOptions(
    cell_size=5,
    block_size=2,
    block_stride=1,
    bins=4,
    norm="L2",
)


def _hog_length(options: HogOptions) -> int:
    cells = (GLYPH_SIZE + 2 * GLYPH_PADDING) // options.cell_size
    blocks = cells - options.block_size + 1
    return blocks * blocks * options.block_size * options.block_size * options.bins


# HOG values plus the trailing height feature.
DESCRIPTOR_LENGTH = _hog_length(DEFAULT_HOG_OPTIONS) + 1


def extract_hog(
    image: Image.Image,
    options: HogOptions = DEFAULT_HOG_OPTIONS,
) -> np.ndarray:
    """Compute the HOG vector of a single glyph image.

    The glyph is scaled to a 20x20 cell and padded by 2 pixels on every side
    before the histogram is taken, so glyphs of any capture size produce a
    vector of the same length.
    """
    if options.block_stride != 1:
        raise ValueError("Only a block stride of one cell is supported.")
    cell = _canonical_glyph(image, size=GLYPH_SIZE, padding=GLYPH_PADDING)
    return hog(
        cell,
        orientations=options.bins,
        pixels_per_cell=(options.cell_size, options.cell_size),
        cells_per_block=(options.block_size, options.block_size),
        block_norm=options.norm,
        feature_vector=True,
    )


def height_bonus(heights: Sequence[float]) -> list[float]:
    """Position of each height between the smallest and largest of the group.

    With the OCR-B typeface digits render slightly shorter than letters, so
    this value separates look-alike pairs such as 0/O and 1/I. A group of
    identical heights carries no signal and gets 1.0 everywhere.
    """
    if not heights:
        return []
    min_height = min(heights)
    max_height = max(heights)
    if min_height == max_height:
        return [1.0] * len(heights)
    span = max_height - min_height
    return [(height - min_height) / span for height in heights]


def _with_bonus(hogs: Sequence[np.ndarray], bonuses: Sequence[float]) -> np.ndarray:
    if not hogs:
        return np.empty((0, DESCRIPTOR_LENGTH), dtype=np.float64)
    rows = [
        np.append(values, bonus)
        for values, bonus in zip(hogs, bonuses, strict=True)
    ]
    return np.vstack(rows)


def get_descriptors(images: Sequence[Image.Image]) -> np.ndarray:
    """Descriptors for the glyphs of one document.

    The height feature is normalized over the whole batch, so every glyph of
    the document has to be passed in a single call. One glyph at a time always
    yields a bonus of 1.0.

    Returns:
        Array of shape `(len(images), DESCRIPTOR_LENGTH)`.
    """
    hogs = [extract_hog(image) for image in images]
    bonuses = height_bonus([image.height for image in images])
    return _with_bonus(hogs, bonuses)


def descriptors_by_card(
    images: Sequence[Image.Image],
    cards: Sequence[Hashable],
) -> np.ndarray:
    """Descriptors for glyphs from several documents, normalized per card.

    Rows are returned in input order.
    """
    if len(images) != len(cards):
        raise ValueError("Each image needs exactly one card key.")
    hogs = [extract_hog(image) for image in images]
    groups: dict[Hashable, list[int]] = defaultdict(list)
    for index, card in enumerate(cards):
        groups[card].append(index)
    bonuses = [1.0] * len(images)
    for indices in groups.values():
        group_bonus = height_bonus([images[index].height for index in indices])
        for index, bonus in zip(indices, group_bonus, strict=True):
            bonuses[index] = bonus
    return _with_bonus(hogs, bonuses)
