from __future__ import annotations

import unittest

import numpy as np
import torch

from tessel_core.theme.atlas import (
    SOLID_REGION,
    SOLID_SOURCE,
    coerce_rgba,
    collect_regions,
    pack_regions,
    pack_theme,
    plan_shelves,
)
from tessel_core.theme.definitions import PixelRect, Rect
from tessel_core.theme.errors import MissingSource, PackError, RegionOutOfBounds, RegionTooLarge, ThemeInvariantError
from tessel_core.theme.geometry import draw_image
from tessel_core.theme.loader import load_theme
from tessel_core.theme.sources import InMemorySourceProvider


def _gradient(height: int, width: int) -> torch.Tensor:
    """Texture whose red/green channels encode each pixel's x/y."""
    ys = torch.arange(height, dtype=torch.uint8).view(height, 1).expand(height, width)
    xs = torch.arange(width, dtype=torch.uint8).view(1, width).expand(height, width)
    alpha = torch.full((height, width), 255, dtype=torch.uint8)
    return torch.stack([xs, ys, torch.zeros_like(xs), alpha], dim=2).contiguous()


def _regions() -> list[tuple[str, PixelRect]]:
    return [
        ("gui", PixelRect(0, 0, 30, 20)),
        ("gui", PixelRect(30, 0, 10, 40)),
        ("gui", PixelRect(0, 40, 25, 25)),
        ("icons", PixelRect(0, 0, 16, 16)),
        ("icons", PixelRect(16, 0, 16, 8)),
    ]


class ShelfPlanningTests(unittest.TestCase):
    def test_is_deterministic_regardless_of_input_order(self) -> None:
        regions = _regions()
        first = plan_shelves(regions, page_size=64, padding=1)
        second = plan_shelves(list(reversed(regions)), page_size=64, padding=1)
        self.assertEqual(first, second)

    def test_tallest_region_goes_first(self) -> None:
        layout = plan_shelves(_regions(), page_size=64)
        self.assertEqual(layout[("gui", PixelRect(30, 0, 10, 40))], (0, 0, 0))
        self.assertEqual(layout[("gui", PixelRect(0, 40, 25, 25))], (0, 10, 0))

    def test_placements_never_overlap_and_stay_on_page(self) -> None:
        layout = plan_shelves(_regions(), page_size=48, padding=2)
        boxes = [(page, Rect(float(x), float(y), float(key[1].width), float(key[1].height))) for key, (page, x, y) in layout.items()]
        for page, box in boxes:
            self.assertLessEqual(box.right, 48)
            self.assertLessEqual(box.bottom, 48)
        for i, (page_a, a) in enumerate(boxes):
            for page_b, b in boxes[i + 1 :]:
                if page_a != page_b:
                    continue
                overlap = a.x < b.right and b.x < a.right and a.y < b.bottom and b.y < a.bottom
                self.assertFalse(overlap, f"{a} overlaps {b}")

    def test_region_that_does_not_fit_starts_new_page(self) -> None:
        layout = plan_shelves(
            [("gui", PixelRect(0, 0, 32, 32)), ("gui", PixelRect(32, 0, 32, 32)), ("gui", PixelRect(0, 32, 32, 30))],
            page_size=40,
        )
        pages = sorted(page for page, _, _ in layout.values())
        self.assertEqual(pages, [0, 1, 2])

    def test_region_larger_than_page_is_rejected(self) -> None:
        with self.assertRaises(RegionTooLarge) as ctx:
            plan_shelves([("gui", PixelRect(0, 0, 65, 10))], page_size=64)
        self.assertEqual(ctx.exception.source_id, "gui")
        self.assertIsInstance(ctx.exception, PackError)


class PackRegionsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sources = {"gui": _gradient(80, 48), "icons": _gradient(16, 32)}

    def test_area_is_conserved(self) -> None:
        atlas = pack_regions(self.sources, _regions(), page_size=64)
        self.assertEqual(atlas.packed_area, sum(rect.area for _, rect in _regions()))
        self.assertLessEqual(atlas.packed_area, atlas.total_area)
        self.assertEqual(len(atlas.pages), 1)

    def test_pixels_are_copied_and_uv_normalized(self) -> None:
        atlas = pack_regions(self.sources, _regions(), page_size=64)
        key = ("gui", PixelRect(0, 40, 25, 25))
        placement = atlas.placements[key]
        page = atlas.pages[placement.page].pixels
        copied = page[placement.y : placement.y + 25, placement.x : placement.x + 25]
        self.assertTrue(torch.equal(copied, self.sources["gui"][40:65, 0:25]))
        self.assertEqual(
            placement.uv,
            (placement.x / 64, placement.y / 64, (placement.x + 25) / 64, (placement.y + 25) / 64),
        )

    def test_identical_inputs_give_identical_fingerprints(self) -> None:
        a = pack_regions(self.sources, _regions(), page_size=64)
        b = pack_regions(self.sources, list(reversed(_regions())), page_size=64)
        c = pack_regions(self.sources, _regions(), page_size=64, padding=1)
        self.assertEqual(a.placements, b.placements)
        self.assertEqual(a.fingerprint, b.fingerprint)
        self.assertNotEqual(a.fingerprint, c.fingerprint)

    def test_missing_and_out_of_bounds_sources(self) -> None:
        with self.assertRaises(MissingSource):
            pack_regions({"gui": self.sources["gui"]}, _regions(), page_size=64)
        with self.assertRaises(RegionOutOfBounds):
            pack_regions(self.sources, [("icons", PixelRect(20, 0, 16, 16))], page_size=64)

    def test_empty_region_set_packs_no_pages(self) -> None:
        atlas = pack_regions({}, [], page_size=64)
        self.assertEqual(atlas.pages, ())
        self.assertEqual(atlas.total_area, 0)


class PackThemeTests(unittest.TestCase):
    def test_collects_regions_and_resolves_uvs(self) -> None:
        theme = load_theme(
            {
                "image_sets": {
                    "gui": {
                        "source": "gui",
                        "images": {
                            "panel": {"position": [0, 0], "grid_size": [4, 4]},
                            "icon": {"position": [12, 0], "size": [8, 8]},
                            "icon_alias": {"from": "icon"},
                            "backdrop": {"solid": True, "color": "#102030"},
                        },
                    }
                }
            }
        )
        regions = collect_regions(theme)
        self.assertEqual(
            regions,
            {("gui", PixelRect(0, 0, 12, 12)), ("gui", PixelRect(12, 0, 8, 8)), (SOLID_SOURCE, SOLID_REGION)},
        )
        atlas = pack_theme(theme, InMemorySourceProvider({"gui": _gradient(16, 32)}), page_size=32)
        image_set = theme.image_sets["gui"]

        center = draw_image(image_set, "panel", Rect(0.0, 0.0, 20.0, 20.0))[4]
        page, (u0, v0, u1, v1) = atlas.uv_rect(center)
        placement = atlas.placement("gui", PixelRect(0, 0, 12, 12))
        self.assertEqual(page, placement.page)
        self.assertAlmostEqual(u0 * 32, placement.x + 4)
        self.assertAlmostEqual(v0 * 32, placement.y + 4)
        self.assertAlmostEqual((u1 - u0) * 32, 4)

        (solid,) = draw_image(image_set, "backdrop", Rect(0.0, 0.0, 5.0, 5.0))
        page, (u0, v0, u1, v1) = atlas.uv_rect(solid)
        texel = atlas.placement(SOLID_SOURCE, SOLID_REGION)
        self.assertEqual((u0, v0), (u1, v1))
        self.assertTrue(torch.equal(atlas.pages[page].pixels[texel.y, texel.x], torch.full((4,), 255, dtype=torch.uint8)))

        with self.assertRaises(ThemeInvariantError):
            atlas.placement("gui", PixelRect(1, 1, 1, 1))


class CoerceRGBATests(unittest.TestCase):
    def test_accepts_numpy_rgb_and_float(self) -> None:
        rgb = np.zeros((2, 3, 3), dtype=np.uint8)
        out = coerce_rgba(rgb, "rgb")
        self.assertEqual(tuple(out.shape), (2, 3, 4))
        self.assertTrue(bool((out[:, :, 3] == 255).all()))

        floats = torch.tensor([[[300.0, -4.0, 12.4, 255.0]]])
        self.assertEqual(coerce_rgba(floats, "f").tolist(), [[[255, 0, 12, 255]]])

    def test_rejects_bad_shapes_and_nan(self) -> None:
        with self.assertRaisesRegex(PackError, "invalid shape"):
            coerce_rgba(torch.zeros((4, 4), dtype=torch.uint8), "flat")
        with self.assertRaisesRegex(PackError, "non-finite"):
            coerce_rgba(torch.tensor([[[float("nan"), 0.0, 0.0, 0.0]]]), "nan")


if __name__ == "__main__":
    unittest.main()
