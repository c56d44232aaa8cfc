import json
import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

from mrz_scan.ocr.types import Region

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpeg", ".jpg")


@dataclass(frozen=True)
class LabelledImage:
    """Glyph image read from disk with its JSON sidecar metadata."""

    image: Image.Image
    file_path: Path
    metadata: dict[str, object]


def _crop_region(image: Image.Image, region: Region) -> Image.Image:
    return image.crop(region.box)


def _canonical_glyph(
    image: Image.Image,
    *,
    size: int,
    padding: int,
) -> np.ndarray:
    """Greyscale glyph resized to `size`x`size` with edge-replicated padding."""
    if image.mode != "L":
        image = image.convert("L")
    resized = image.resize((size, size), resample=Image.Resampling.BILINEAR)
    array = np.asarray(resized, dtype=np.float64)
    return np.pad(array, padding, mode="edge")


def _read_metadata(image_path: Path) -> dict[str, object]:
    metadata_path = image_path.with_suffix(".json")
    if not metadata_path.exists():
        logger.warning("No metadata associated to %s found", image_path)
        return {}
    payload = json.loads(metadata_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Metadata in {metadata_path} must be a JSON object.")
    return payload


def read_images(directory: Path | str) -> list[LabelledImage]:
    """Recursively read glyph images and their `.json` sidecars.

    Used by `load_training_samples` to collect labelled glyphs. Files are
    visited in sorted order so repeated runs produce the same training matrix.
    """
    directory = Path(directory)
    images: list[LabelledImage] = []
    for path in sorted(directory.iterdir()):
        if path.is_dir():
            images.extend(read_images(path))
            continue
        if path.suffix.lower() not in IMAGE_EXTENSIONS:
            continue
        image = Image.open(path)
        image.load()
        images.append(
            LabelledImage(
                image=image,
                file_path=path,
                metadata=_read_metadata(path),
            )
        )
    return images
