from .atlas import (
    DEFAULT_PAGE_SIZE,
    SOLID_REGION,
    SOLID_SOURCE,
    Atlas,
    AtlasPage,
    AtlasPlacement,
    collect_regions,
    pack_regions,
    pack_theme,
    plan_shelves,
)
from .definitions import (
    EMPTY,
    WHITE,
    AliasImage,
    AnimatedImage,
    GridHorizontalImage,
    GridImage,
    GridVerticalImage,
    ImageSet,
    PixelRect,
    Rect,
    SimpleImage,
    StateMapImage,
    ThemeDefinition,
)
from .errors import (
    CyclicReference,
    DuplicateName,
    InvalidGrid,
    MalformedDocument,
    MissingSource,
    PackError,
    RegionOutOfBounds,
    RegionTooLarge,
    ThemeInvariantError,
    ThemeLoadError,
    UnknownReference,
)
from .geometry import DrawPrimitive, draw_image, instantiate, resolve_leaf, split_axis
from .loader import load_image_set, load_theme, load_theme_file, parse_color
from .sources import DirectorySourceProvider, InMemorySourceProvider, SourceImageProvider
from .states import AnimFlag, flags_from_names, format_state_key, parse_state_key, resolve_state

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "EMPTY",
    "SOLID_REGION",
    "SOLID_SOURCE",
    "WHITE",
    "AliasImage",
    "AnimFlag",
    "AnimatedImage",
    "Atlas",
    "AtlasPage",
    "AtlasPlacement",
    "CyclicReference",
    "DirectorySourceProvider",
    "DrawPrimitive",
    "DuplicateName",
    "GridHorizontalImage",
    "GridImage",
    "GridVerticalImage",
    "ImageSet",
    "InMemorySourceProvider",
    "InvalidGrid",
    "MalformedDocument",
    "MissingSource",
    "PackError",
    "PixelRect",
    "Rect",
    "RegionOutOfBounds",
    "RegionTooLarge",
    "SimpleImage",
    "SourceImageProvider",
    "StateMapImage",
    "ThemeDefinition",
    "ThemeInvariantError",
    "ThemeLoadError",
    "UnknownReference",
    "collect_regions",
    "draw_image",
    "flags_from_names",
    "format_state_key",
    "instantiate",
    "load_image_set",
    "load_theme",
    "load_theme_file",
    "pack_regions",
    "pack_theme",
    "parse_color",
    "parse_state_key",
    "plan_shelves",
    "resolve_leaf",
    "resolve_state",
    "split_axis",
]
