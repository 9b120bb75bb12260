from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping, TypeAlias

from .errors import ThemeInvariantError
from .states import AnimFlag


Color = tuple[int, int, int, int]
WHITE: Color = (255, 255, 255, 255)

FillMode = Literal["None", "Stretch", "Repeat", "Center"]
FILL_MODES: tuple[FillMode, ...] = ("None", "Stretch", "Repeat", "Center")

EMPTY = "empty"


@dataclass(frozen=True, order=True)
class PixelRect:
    """Integer region of a source texture, in texture pixels."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def contains(self, other: Rect) -> bool:
        return (
            self.x <= other.x
            and self.y <= other.y
            and other.x + other.width <= self.right
            and other.y + other.height <= self.bottom
        )


@dataclass(frozen=True)
class Rect:
    """Float rectangle used for destination layout and sub-texel source cuts."""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError("Rect width/height must be >= 0")

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains_point(self, x: float, y: float) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    @classmethod
    def from_pixels(cls, rect: PixelRect) -> Rect:
        return cls(float(rect.x), float(rect.y), float(rect.width), float(rect.height))


@dataclass(frozen=True)
class SimpleImage:
    name: str
    region: PixelRect | None
    scale: float = 1.0
    fill: FillMode = "None"
    color: Color = WHITE
    solid: bool = False

    @property
    def display_size(self) -> tuple[float, float]:
        if self.region is None:
            return (0.0, 0.0)
        return (self.region.width * self.scale, self.region.height * self.scale)


@dataclass(frozen=True)
class _GridBase:
    name: str
    region: PixelRect
    cell: tuple[int, int]
    scale: float = 1.0
    color: Color = WHITE

    @property
    def display_cell(self) -> tuple[float, float]:
        return (self.cell[0] * self.scale, self.cell[1] * self.scale)

    def source_columns(self) -> tuple[tuple[int, int], ...]:
        """(offset, size) of the left, middle and right source columns."""
        return _three_way(self.region.x, self.region.width, self.cell[0])

    def source_rows(self) -> tuple[tuple[int, int], ...]:
        """(offset, size) of the top, middle and bottom source rows."""
        return _three_way(self.region.y, self.region.height, self.cell[1])


@dataclass(frozen=True)
class GridImage(_GridBase):
    """3x3 nine-patch: fixed corners, edges stretch along one axis, center on both."""


@dataclass(frozen=True)
class GridHorizontalImage(_GridBase):
    """3x1 patch (left, middle, right) that stretches horizontally."""


@dataclass(frozen=True)
class GridVerticalImage(_GridBase):
    """1x3 patch (top, middle, bottom) that stretches vertically."""


@dataclass(frozen=True)
class AnimatedImage:
    name: str
    frame_time_millis: int
    frames: tuple[str, ...]
    once: bool = False

    def frame_index(self, elapsed_millis: float) -> int:
        step = int(max(0.0, float(elapsed_millis)) // self.frame_time_millis)
        if self.once:
            return min(step, len(self.frames) - 1)
        return step % len(self.frames)


@dataclass(frozen=True)
class StateMapImage:
    name: str
    states: Mapping[AnimFlag, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", MappingProxyType(dict(self.states)))


@dataclass(frozen=True)
class AliasImage:
    name: str
    target: str

    @property
    def is_empty(self) -> bool:
        return self.target == EMPTY


LeafImage: TypeAlias = SimpleImage | GridImage | GridHorizontalImage | GridVerticalImage
ImageDefinition: TypeAlias = LeafImage | AnimatedImage | StateMapImage | AliasImage
LEAF_TYPES = (SimpleImage, GridImage, GridHorizontalImage, GridVerticalImage)


def references_of(definition: ImageDefinition) -> tuple[str, ...]:
    """Names a definition points at, in document order."""
    if isinstance(definition, AliasImage):
        return (definition.target,)
    if isinstance(definition, AnimatedImage):
        return definition.frames
    if isinstance(definition, StateMapImage):
        return tuple(definition.states.values())
    return ()


@dataclass(frozen=True)
class ImageSet:
    name: str
    source: str
    scale: float
    images: Mapping[str, ImageDefinition]

    def __post_init__(self) -> None:
        object.__setattr__(self, "images", MappingProxyType(dict(self.images)))

    def __contains__(self, name: object) -> bool:
        return name in self.images

    def __len__(self) -> int:
        return len(self.images)

    def definition(self, name: str) -> ImageDefinition:
        try:
            return self.images[name]
        except KeyError:
            raise ThemeInvariantError(f"image set `{self.name}` has no image `{name}`") from None

    def leaves(self) -> tuple[LeafImage, ...]:
        return tuple(d for d in self.images.values() if isinstance(d, LEAF_TYPES))


@dataclass(frozen=True)
class ThemeDefinition:
    image_sets: Mapping[str, ImageSet]

    def __post_init__(self) -> None:
        object.__setattr__(self, "image_sets", MappingProxyType(dict(self.image_sets)))

    def find(self, image_id: str) -> tuple[ImageSet, ImageDefinition] | None:
        """Look up `<set>/<image>`; returns None when either part is unknown."""
        set_name, sep, image_name = image_id.partition("/")
        if not sep:
            return None
        image_set = self.image_sets.get(set_name)
        if image_set is None:
            return None
        definition = image_set.images.get(image_name)
        if definition is None:
            return None
        return image_set, definition

    def image_ids(self) -> tuple[str, ...]:
        return tuple(
            f"{set_name}/{image_name}"
            for set_name in sorted(self.image_sets)
            for image_name in sorted(self.image_sets[set_name].images)
        )

    @property
    def image_count(self) -> int:
        return sum(len(image_set) for image_set in self.image_sets.values())


def _three_way(offset: int, total: int, cell: int) -> tuple[tuple[int, int], ...]:
    return (
        (offset, cell),
        (offset + cell, total - 2 * cell),
        (offset + total - cell, cell),
    )
