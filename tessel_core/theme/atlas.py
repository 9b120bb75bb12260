from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
import logging
from typing import TYPE_CHECKING, Iterable, Mapping, TypeAlias

import numpy as np
import torch

from .definitions import PixelRect, SimpleImage, ThemeDefinition
from .errors import MissingSource, PackError, RegionOutOfBounds, RegionTooLarge, ThemeInvariantError

if TYPE_CHECKING:
    from .geometry import DrawPrimitive
    from .sources import SourceImageProvider


LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1024
# Solid fills sample a single white texel that every atlas carries when needed.
SOLID_SOURCE = "__solid__"
SOLID_REGION = PixelRect(0, 0, 1, 1)

RegionKey: TypeAlias = tuple[str, PixelRect]
UVRect: TypeAlias = tuple[float, float, float, float]


@dataclass(frozen=True)
class AtlasPlacement:
    page: int
    x: int
    y: int
    width: int
    height: int
    uv: UVRect


@dataclass(frozen=True)
class AtlasPage:
    index: int
    size: int
    pixels: torch.Tensor


@dataclass(frozen=True)
class Atlas:
    """Packed output textures plus the placement of every referenced region."""

    page_size: int
    padding: int
    pages: tuple[AtlasPage, ...]
    placements: Mapping[RegionKey, AtlasPlacement]

    def placement(self, source_id: str, region: PixelRect) -> AtlasPlacement:
        try:
            return self.placements[(source_id, region)]
        except KeyError:
            raise ThemeInvariantError(f"region {region} of `{source_id}` was never packed") from None

    def uv_rect(self, primitive: DrawPrimitive) -> tuple[int, UVRect]:
        """Page index and normalized (u0, v0, u1, v1) for one draw primitive."""

        if primitive.source_rect is None or primitive.region is None or primitive.source_id is None:
            texel = self.placement(SOLID_SOURCE, SOLID_REGION)
            u = (texel.x + 0.5) / self.page_size
            v = (texel.y + 0.5) / self.page_size
            return texel.page, (u, v, u, v)
        placement = self.placement(primitive.source_id, primitive.region)
        src = primitive.source_rect
        x0 = placement.x + (src.x - primitive.region.x)
        y0 = placement.y + (src.y - primitive.region.y)
        size = float(self.page_size)
        return placement.page, (x0 / size, y0 / size, (x0 + src.width) / size, (y0 + src.height) / size)

    @property
    def packed_area(self) -> int:
        return sum(p.width * p.height for p in self.placements.values())

    @property
    def total_area(self) -> int:
        return len(self.pages) * self.page_size * self.page_size

    @property
    def fingerprint(self) -> str:
        """Stable digest of the packing layout, usable as a cache key."""
        rows = [
            [key[0], key[1].x, key[1].y, key[1].width, key[1].height, p.page, p.x, p.y]
            for key, p in sorted(self.placements.items(), key=lambda item: (item[0][0], item[0][1]))
        ]
        payload = json.dumps(
            {"page_size": self.page_size, "padding": self.padding, "placements": rows},
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def collect_regions(theme: ThemeDefinition) -> set[RegionKey]:
    """Every source region a leaf definition of the theme can draw from."""

    regions: set[RegionKey] = set()
    for image_set in theme.image_sets.values():
        for leaf in image_set.leaves():
            if isinstance(leaf, SimpleImage) and (leaf.solid or leaf.region is None):
                regions.add((SOLID_SOURCE, SOLID_REGION))
            else:
                regions.add((image_set.source, leaf.region))  # type: ignore[arg-type]
    return regions


def plan_shelves(
    regions: Iterable[RegionKey],
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    padding: int = 0,
) -> dict[RegionKey, tuple[int, int, int]]:
    """Assign (page, x, y) to each region with row-based shelf packing.

    Regions are placed tallest first; a region that does not fit the current
    page starts a new one. The order is total, so equal inputs pack equally.
    """

    if page_size <= 0:
        raise ValueError("page_size must be > 0")
    if padding < 0:
        raise ValueError("padding must be >= 0")
    ordered = sorted(set(regions), key=lambda key: (-key[1].height, -key[1].width, key[0], key[1]))
    out: dict[RegionKey, tuple[int, int, int]] = {}
    page = 0
    cursor_x = 0
    shelf_y = 0
    shelf_h = 0
    for key in ordered:
        source_id, rect = key
        if rect.width > page_size or rect.height > page_size:
            raise RegionTooLarge(source_id, rect.width, rect.height, page_size)
        if cursor_x + rect.width > page_size:
            shelf_y += shelf_h + padding
            cursor_x = 0
            shelf_h = 0
        if shelf_y + rect.height > page_size:
            page += 1
            cursor_x = 0
            shelf_y = 0
            shelf_h = 0
        out[key] = (page, cursor_x, shelf_y)
        cursor_x += rect.width + padding
        shelf_h = max(shelf_h, rect.height)
    return out


def pack_regions(
    source_images: Mapping[str, torch.Tensor | np.ndarray],
    referenced_regions: Iterable[RegionKey],
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    padding: int = 0,
) -> Atlas:
    regions = set(referenced_regions)
    sources: dict[str, torch.Tensor] = {}
    for source_id in sorted({key[0] for key in regions if key[0] != SOLID_SOURCE}):
        if source_id not in source_images:
            raise MissingSource(source_id)
        sources[source_id] = coerce_rgba(source_images[source_id], source_id)
    for source_id, rect in regions:
        if source_id == SOLID_SOURCE:
            continue
        height, width = sources[source_id].shape[:2]
        if rect.x < 0 or rect.y < 0 or rect.right > width or rect.bottom > height:
            raise RegionOutOfBounds(source_id, rect, width, height)

    layout = plan_shelves(regions, page_size=page_size, padding=padding)
    page_count = (max(page for page, _, _ in layout.values()) + 1) if layout else 0
    pages = [torch.zeros((page_size, page_size, 4), dtype=torch.uint8) for _ in range(page_count)]
    placements: dict[RegionKey, AtlasPlacement] = {}
    size = float(page_size)
    for key, (page, x, y) in layout.items():
        source_id, rect = key
        if source_id == SOLID_SOURCE:
            pages[page][y : y + rect.height, x : x + rect.width, :] = 255
        else:
            pages[page][y : y + rect.height, x : x + rect.width, :] = sources[source_id][
                rect.y : rect.bottom, rect.x : rect.right, :
            ]
        placements[key] = AtlasPlacement(
            page=page,
            x=x,
            y=y,
            width=rect.width,
            height=rect.height,
            uv=(x / size, y / size, (x + rect.width) / size, (y + rect.height) / size),
        )

    atlas = Atlas(
        page_size=page_size,
        padding=padding,
        pages=tuple(AtlasPage(index=i, size=page_size, pixels=pixels) for i, pixels in enumerate(pages)),
        placements=placements,
    )
    LOGGER.info(
        "atlas packed: regions=%d pages=%d page_size=%d fill=%.3f",
        len(placements),
        len(pages),
        page_size,
        (atlas.packed_area / atlas.total_area) if atlas.total_area else 0.0,
    )
    return atlas


def pack_theme(
    theme: ThemeDefinition,
    provider: SourceImageProvider,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    padding: int = 0,
) -> Atlas:
    regions = collect_regions(theme)
    source_ids = sorted({key[0] for key in regions if key[0] != SOLID_SOURCE})
    source_images = {source_id: provider.source_image(source_id) for source_id in source_ids}
    return pack_regions(source_images, regions, page_size=page_size, padding=padding)


def coerce_rgba(value: torch.Tensor | np.ndarray, source_id: str) -> torch.Tensor:
    """Normalize a decoded image to an `H x W x 4` uint8 tensor."""

    if isinstance(value, np.ndarray):
        value = torch.from_numpy(np.ascontiguousarray(value))
    if not torch.is_tensor(value):
        raise PackError(f"source `{source_id}` must be a torch.Tensor or numpy array")
    if value.dim() != 3 or value.shape[2] not in (3, 4):
        raise PackError(f"source `{source_id}` has invalid shape {tuple(value.shape)}; expected HxWx4 or HxWx3")
    if value.dtype != torch.uint8:
        if value.is_floating_point() and not bool(torch.isfinite(value).all()):
            raise PackError(f"source `{source_id}` contains non-finite values")
        value = torch.clamp(value, 0, 255).to(torch.uint8)
    if value.shape[2] == 3:
        alpha = torch.full((value.shape[0], value.shape[1], 1), 255, dtype=torch.uint8)
        value = torch.cat([value, alpha], dim=2)
    return value
