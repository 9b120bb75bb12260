from __future__ import annotations

from dataclasses import dataclass
import math

from .definitions import (
    EMPTY,
    WHITE,
    AliasImage,
    AnimatedImage,
    Color,
    GridHorizontalImage,
    GridImage,
    GridVerticalImage,
    ImageDefinition,
    ImageSet,
    LeafImage,
    PixelRect,
    Rect,
    SimpleImage,
    StateMapImage,
)
from .errors import ThemeInvariantError
from .states import AnimFlag, resolve_state


_MIN_TILE = 1e-9


@dataclass(frozen=True)
class DrawPrimitive:
    """One source-to-destination mapping.

    `source_rect` is in source-texture pixels and always lies inside `region`,
    the packed region it is cut from. Solid fills carry no source at all.
    """

    source_id: str | None
    region: PixelRect | None
    source_rect: Rect | None
    destination_rect: Rect
    color: Color = WHITE

    @property
    def is_solid(self) -> bool:
        return self.source_rect is None


def instantiate(
    image_set: ImageSet,
    definition: ImageDefinition,
    destination: Rect,
    elapsed_millis: float = 0.0,
) -> tuple[DrawPrimitive, ...]:
    """Compute draw primitives for a definition filling `destination`.

    State maps must be resolved first (see `draw_image`).
    """

    if isinstance(definition, StateMapImage):
        raise ThemeInvariantError(
            f"state map `{definition.name}` must be resolved with interaction flags before instantiation"
        )
    leaf = _resolve_leaf(image_set, definition, None, elapsed_millis)
    if leaf is None:
        return ()
    return _leaf_primitives(image_set.source, leaf, destination)


def draw_image(
    image_set: ImageSet,
    name: str,
    destination: Rect,
    flags: AnimFlag = AnimFlag.NORMAL,
    elapsed_millis: float = 0.0,
) -> tuple[DrawPrimitive, ...]:
    """Follow aliases, state maps and animations from `name`, then instantiate the leaf."""

    if name == EMPTY:
        return ()
    leaf = _resolve_leaf(image_set, image_set.definition(name), flags, elapsed_millis)
    if leaf is None:
        return ()
    return _leaf_primitives(image_set.source, leaf, destination)


def resolve_leaf(
    image_set: ImageSet,
    name: str,
    flags: AnimFlag = AnimFlag.NORMAL,
    elapsed_millis: float = 0.0,
) -> LeafImage | None:
    """The leaf `name` currently shows, or None when it resolves to `empty`."""

    if name == EMPTY:
        return None
    return _resolve_leaf(image_set, image_set.definition(name), flags, elapsed_millis)


def _resolve_leaf(
    image_set: ImageSet,
    definition: ImageDefinition,
    flags: AnimFlag | None,
    elapsed_millis: float,
) -> LeafImage | None:
    # Every step consumes a distinct definition on an acyclic model.
    for _ in range(len(image_set) + 1):
        if isinstance(definition, AliasImage):
            target = definition.target
        elif isinstance(definition, AnimatedImage):
            target = definition.frames[definition.frame_index(elapsed_millis)]
        elif isinstance(definition, StateMapImage):
            if flags is None:
                raise ThemeInvariantError(f"state map `{definition.name}` reached without interaction flags")
            target = resolve_state(definition, flags)
        else:
            return definition
        if target == EMPTY:
            return None
        definition = image_set.definition(target)
    raise ThemeInvariantError(f"reference chain in image set `{image_set.name}` does not terminate")


def _leaf_primitives(source_id: str, leaf: LeafImage, destination: Rect) -> tuple[DrawPrimitive, ...]:
    if isinstance(leaf, SimpleImage):
        return _simple(source_id, leaf, destination)
    if isinstance(leaf, GridImage):
        return _patches(
            source_id,
            leaf.region,
            leaf.color,
            columns=zip(leaf.source_columns(), split_axis(destination.x, destination.width, leaf.display_cell[0])),
            rows=zip(leaf.source_rows(), split_axis(destination.y, destination.height, leaf.display_cell[1])),
        )
    if isinstance(leaf, GridHorizontalImage):
        return _patches(
            source_id,
            leaf.region,
            leaf.color,
            columns=zip(leaf.source_columns(), split_axis(destination.x, destination.width, leaf.display_cell[0])),
            rows=[((leaf.region.y, leaf.region.height), (destination.y, destination.height))],
        )
    if isinstance(leaf, GridVerticalImage):
        return _patches(
            source_id,
            leaf.region,
            leaf.color,
            columns=[((leaf.region.x, leaf.region.width), (destination.x, destination.width))],
            rows=zip(leaf.source_rows(), split_axis(destination.y, destination.height, leaf.display_cell[1])),
        )
    raise TypeError(f"Unsupported image definition: {type(leaf)!r}")


def split_axis(start: float, length: float, cell: float) -> tuple[tuple[float, float], ...]:
    """Partition one destination axis into (offset, size) for corner, middle, corner.

    Corners keep `cell` when there is room, otherwise both shrink to half of
    `length` so they meet in the middle with a zero-size strip between them.
    """

    length = max(0.0, float(length))
    corner = float(cell) if 2.0 * cell <= length else length / 2.0
    middle = length - 2.0 * corner
    return (
        (start, corner),
        (start + corner, middle),
        (start + length - corner, corner),
    )


def _patches(source_id: str, region: PixelRect, color: Color, *, columns, rows) -> tuple[DrawPrimitive, ...]:
    columns = list(columns)
    out: list[DrawPrimitive] = []
    for (src_y, src_h), (dst_y, dst_h) in rows:
        for (src_x, src_w), (dst_x, dst_w) in columns:
            out.append(
                DrawPrimitive(
                    source_id=source_id,
                    region=region,
                    source_rect=Rect(float(src_x), float(src_y), float(src_w), float(src_h)),
                    destination_rect=Rect(dst_x, dst_y, dst_w, dst_h),
                    color=color,
                )
            )
    return tuple(out)


def _simple(source_id: str, image: SimpleImage, destination: Rect) -> tuple[DrawPrimitive, ...]:
    if image.solid or image.region is None:
        return (DrawPrimitive(None, None, None, destination, image.color),)
    region = image.region
    width, height = image.display_size
    full = Rect.from_pixels(region)

    if image.fill == "Stretch":
        return (DrawPrimitive(source_id, region, full, destination, image.color),)
    if image.fill == "Center":
        dest = Rect(
            destination.x + (destination.width - width) / 2.0,
            destination.y + (destination.height - height) / 2.0,
            width,
            height,
        )
        return (DrawPrimitive(source_id, region, full, dest, image.color),)
    if image.fill == "Repeat":
        return _tiles(source_id, image, destination)
    dest = Rect(destination.x, destination.y, width, height)
    return (DrawPrimitive(source_id, region, full, dest, image.color),)


def _tiles(source_id: str, image: SimpleImage, destination: Rect) -> tuple[DrawPrimitive, ...]:
    region = image.region
    if region is None:
        return ()
    tile_w, tile_h = image.display_size
    cols = math.ceil(destination.width / tile_w) if destination.width > 0 else 0
    rows = math.ceil(destination.height / tile_h) if destination.height > 0 else 0
    out: list[DrawPrimitive] = []
    for j in range(rows):
        y = destination.y + j * tile_h
        h = min(tile_h, destination.bottom - y)
        if h <= _MIN_TILE:
            continue
        for i in range(cols):
            x = destination.x + i * tile_w
            w = min(tile_w, destination.right - x)
            if w <= _MIN_TILE:
                continue
            source = Rect(
                float(region.x),
                float(region.y),
                region.width * (w / tile_w),
                region.height * (h / tile_h),
            )
            out.append(DrawPrimitive(source_id, region, source, Rect(x, y, w, h), image.color))
    return tuple(out)
