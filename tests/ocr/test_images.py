import json
from pathlib import Path

import numpy as np
from PIL import Image

from mrz_scan.ocr.images import _canonical_glyph, _crop_region, read_images
from mrz_scan.ocr.types import Region


def _write_glyph(path: Path, metadata: dict[str, object] | None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("L", (6, 9), 128).save(path)
    if metadata is not None:
        path.with_suffix(".json").write_text(json.dumps(metadata), encoding="utf-8")


def test_crop_region_uses_region_box() -> None:
    image = Image.new("L", (40, 30), 0)
    image.paste(200, (5, 6, 15, 26))

    crop = _crop_region(image, Region(min_x=5, min_y=6, width=10, height=20))

    assert crop.size == (10, 20)
    assert crop.getcolors() == [(200, 200)]


def test_region_box_and_extents() -> None:
    region = Region(min_x=3, min_y=4, width=10, height=20)

    assert region.max_x == 13
    assert region.max_y == 24
    assert region.box == (3, 4, 13, 24)


def test_canonical_glyph_resizes_and_replicates_edges() -> None:
    image = Image.new("RGB", (7, 13), (90, 90, 90))
    image.paste((10, 10, 10), (0, 0, 7, 1))

    cell = _canonical_glyph(image, size=20, padding=2)

    assert cell.shape == (24, 24)
    assert cell.dtype == np.float64
    np.testing.assert_array_equal(cell[0], cell[2])
    np.testing.assert_array_equal(cell[:, 0], cell[:, 2])


def test_read_images_walks_directories_and_reads_sidecars(tmp_path: Path) -> None:
    _write_glyph(tmp_path / "card-1" / "a.png", {"label": "A", "card": "card-1"})
    _write_glyph(tmp_path / "card-2" / "b.jpg", {"label": 66, "card": "card-2"})
    _write_glyph(tmp_path / "c.png", None)
    (tmp_path / "notes.txt").write_text("not an image", encoding="utf-8")

    entries = read_images(tmp_path)

    names = [entry.file_path.name for entry in entries]
    assert names == ["c.png", "a.png", "b.jpg"]
    by_name = {entry.file_path.name: entry for entry in entries}
    assert by_name["a.png"].metadata == {"label": "A", "card": "card-1"}
    assert by_name["b.jpg"].metadata == {"label": 66, "card": "card-2"}
    assert by_name["c.png"].metadata == {}
    assert by_name["a.png"].image.size == (6, 9)
