"""Image-set document parsing and validation.

Loading runs in four passes: parse every entry into its raw variant without
touching references, keep aliases as target names, validate references and
cycles, then apply the set's scale. The loader never reads files itself;
`load_theme_file` is a thin front-end that decodes TOML, JSON or YAML first.
"""

from __future__ import annotations

from dataclasses import replace
import json
import logging
import math
from pathlib import Path
import re
import tomllib
from typing import Any, Hashable, Iterator, Mapping

import yaml

from .definitions import (
    EMPTY,
    FILL_MODES,
    LEAF_TYPES,
    WHITE,
    AliasImage,
    AnimatedImage,
    Color,
    GridHorizontalImage,
    GridImage,
    GridVerticalImage,
    ImageDefinition,
    ImageSet,
    PixelRect,
    SimpleImage,
    StateMapImage,
    ThemeDefinition,
    references_of,
)
from .errors import (
    CyclicReference,
    DuplicateName,
    InvalidGrid,
    MalformedDocument,
    UnknownReference,
)
from .states import SELECTABLE_KEYS, AnimFlag, format_state_key, parse_state_key


LOGGER = logging.getLogger(__name__)

_SELECTORS = ("grid_size", "grid_size_horiz", "grid_size_vert", "frames", "states", "from")
_ALLOWED_KEYS: dict[str, frozenset[str]] = {
    "simple": frozenset({"position", "size", "fill", "color", "solid"}),
    "grid_size": frozenset({"position", "size", "grid_size", "color"}),
    "grid_size_horiz": frozenset({"position", "size", "grid_size_horiz", "color"}),
    "grid_size_vert": frozenset({"position", "size", "grid_size_vert", "color"}),
    "frames": frozenset({"frames", "frame_time_millis", "once"}),
    "states": frozenset({"states"}),
    "from": frozenset({"from"}),
}
_SET_KEYS = frozenset({"source", "scale", "images"})
_NAME_RE = re.compile(r"^[^/\s]+$")
_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_NAMED_COLORS: dict[str, Color] = {
    "white": (255, 255, 255, 255),
    "black": (0, 0, 0, 255),
    "red": (255, 0, 0, 255),
    "green": (0, 255, 0, 255),
    "blue": (0, 0, 255, 255),
    "cyan": (0, 255, 255, 255),
    "yellow": (255, 255, 0, 255),
    "magenta": (255, 0, 255, 255),
}


def load_theme(document: Mapping[str, Any]) -> ThemeDefinition:
    """Build a ThemeDefinition from a decoded `image_sets.<set>` document."""

    if not isinstance(document, Mapping):
        raise MalformedDocument("theme document must be a mapping")
    unknown = sorted(str(key) for key in document.keys() if key != "image_sets")
    if unknown:
        raise MalformedDocument(f"theme document has unsupported keys: {', '.join(unknown)}")
    raw_sets = document.get("image_sets")
    if not isinstance(raw_sets, Mapping) or not raw_sets:
        raise MalformedDocument("theme document requires a non-empty `image_sets` mapping")

    image_sets: dict[str, ImageSet] = {}
    for set_name, raw_set in raw_sets.items():
        image_sets[str(set_name)] = load_image_set(str(set_name), raw_set)
    theme = ThemeDefinition(image_sets=image_sets)
    LOGGER.info(
        "theme loaded: image_sets=%d images=%d",
        len(theme.image_sets),
        theme.image_count,
    )
    return theme


def load_image_set(name: str, document: Mapping[str, Any]) -> ImageSet:
    _require_name(name, "image set")
    if not isinstance(document, Mapping):
        raise MalformedDocument(f"image set `{name}` must be a mapping")
    unknown = sorted(str(key) for key in document.keys() if key not in _SET_KEYS)
    if unknown:
        raise MalformedDocument(f"image set `{name}` has unsupported keys: {', '.join(unknown)}")

    source = document.get("source")
    if not isinstance(source, str) or not source.strip():
        raise MalformedDocument(f"image set `{name}` requires a non-empty `source` string")
    scale = _parse_scale(document.get("scale", 1.0), name)
    raw_images = document.get("images")
    if not isinstance(raw_images, Mapping) and not isinstance(raw_images, (list, tuple)):
        raise MalformedDocument(f"image set `{name}` requires an `images` mapping")

    images: dict[str, ImageDefinition] = {}
    for image_name, raw in _iter_entries(raw_images, name):
        _require_name(image_name, f"image in set `{name}`")
        if image_name == EMPTY or image_name in images:
            raise DuplicateName(f"{name}/{image_name}")
        images[image_name] = _parse_definition(image_name, raw, context=f"{name}/{image_name}")

    _validate_references(name, images)
    scaled = {image_name: _apply_scale(definition, scale) for image_name, definition in images.items()}
    return ImageSet(name=name, source=source.strip(), scale=scale, images=scaled)


def load_theme_file(path: str | Path) -> ThemeDefinition:
    """Decode a `.toml`, `.json` or `.yml`/`.yaml` theme file and load it."""

    theme_path = Path(path)
    if not theme_path.exists():
        raise FileNotFoundError(f"theme file not found: {theme_path}")
    suffix = theme_path.suffix.lower()
    if suffix == ".toml":
        try:
            with theme_path.open("rb") as f:
                document = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise MalformedDocument(f"invalid TOML in {theme_path}: {exc}") from exc
    elif suffix == ".json":
        try:
            document = json.loads(
                theme_path.read_text(encoding="utf-8"),
                object_pairs_hook=_reject_duplicate_keys,
            )
        except json.JSONDecodeError as exc:
            raise MalformedDocument(f"invalid JSON in {theme_path}: {exc}") from exc
    elif suffix in (".yml", ".yaml"):
        try:
            document = yaml.load(theme_path.read_text(encoding="utf-8"), Loader=_UniqueKeyLoader)
        except yaml.YAMLError as exc:
            raise MalformedDocument(f"invalid YAML in {theme_path}: {exc}") from exc
    else:
        raise MalformedDocument(f"unsupported theme file type `{suffix}`; expected .toml, .json, .yml or .yaml")
    return load_theme(document)


def parse_color(value: object, context: str) -> Color:
    if not isinstance(value, str) or not value.strip():
        raise MalformedDocument(f"{context}: color must be a non-empty string")
    raw = value.strip()
    named = _NAMED_COLORS.get(raw.lower())
    if named is not None:
        return named
    if not _HEX_COLOR.match(raw):
        raise MalformedDocument(
            f"{context}: color must be a color name or #RGB, #RRGGBB, #RRGGBBAA, got `{value}`"
        )
    digits = raw[1:]
    if len(digits) == 3:
        r, g, b = (int(ch * 2, 16) for ch in digits)
        return (r, g, b, 255)
    r = int(digits[0:2], 16)
    g = int(digits[2:4], 16)
    b = int(digits[4:6], 16)
    a = int(digits[6:8], 16) if len(digits) == 8 else 255
    return (r, g, b, a)


def _iter_entries(raw_images: object, set_name: str) -> list[tuple[str, Any]]:
    if isinstance(raw_images, Mapping):
        return [(str(key), value) for key, value in raw_images.items()]
    # Ordered (name, definition) pairs, as produced by duplicate-preserving decoders.
    entries: list[tuple[str, Any]] = []
    for i, pair in enumerate(raw_images):  # type: ignore[union-attr]
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise MalformedDocument(f"image set `{set_name}` images[{i}] must be a (name, definition) pair")
        entries.append((str(pair[0]), pair[1]))
    return entries


def _parse_definition(name: str, raw: object, *, context: str) -> ImageDefinition:
    if not isinstance(raw, Mapping):
        raise MalformedDocument(f"{context}: image definition must be a mapping")
    selectors = [key for key in _SELECTORS if key in raw]
    if "frame_time_millis" in raw and "frames" not in selectors:
        selectors.append("frames")
    if len(selectors) > 1:
        raise MalformedDocument(f"{context}: conflicting image kinds: {', '.join(selectors)}")
    kind = selectors[0] if selectors else "simple"
    unknown = sorted(str(key) for key in raw.keys() if key not in _ALLOWED_KEYS[kind])
    if unknown:
        raise MalformedDocument(f"{context}: unsupported keys for this image kind: {', '.join(unknown)}")

    if kind == "from":
        return AliasImage(name=name, target=_require_reference(raw.get("from"), f"{context}.from"))
    if kind == "states":
        return _parse_state_map(name, raw.get("states"), context)
    if kind == "frames":
        return _parse_animation(name, raw, context)
    if kind == "simple":
        return _parse_simple(name, raw, context)
    return _parse_grid(name, kind, raw, context)


def _parse_simple(name: str, raw: Mapping[str, Any], context: str) -> SimpleImage:
    color = parse_color(raw["color"], f"{context}.color") if "color" in raw else WHITE
    solid = raw.get("solid", False)
    if not isinstance(solid, bool):
        raise MalformedDocument(f"{context}.solid must be a boolean")
    if solid:
        extra = sorted(key for key in ("position", "size", "fill") if key in raw)
        if extra:
            raise MalformedDocument(f"{context}: solid images take only `color`, got {', '.join(extra)}")
        return SimpleImage(name=name, region=None, fill="Stretch", color=color, solid=True)

    if "position" not in raw or "size" not in raw:
        raise MalformedDocument(f"{context}: simple images require `position` and `size`")
    x, y = _int_pair(raw["position"], f"{context}.position")
    width, height = _int_pair(raw["size"], f"{context}.size", positive=True)
    fill = raw.get("fill", "None")
    if fill not in FILL_MODES:
        raise MalformedDocument(f"{context}.fill must be one of {', '.join(FILL_MODES)}, got `{fill}`")
    return SimpleImage(name=name, region=PixelRect(x, y, width, height), fill=fill, color=color)


def _parse_grid(name: str, kind: str, raw: Mapping[str, Any], context: str) -> ImageDefinition:
    if "position" not in raw:
        raise MalformedDocument(f"{context}: grid images require `position`")
    x, y = _int_pair(raw["position"], f"{context}.position")
    cell_w, cell_h = _int_pair(raw[kind], f"{context}.{kind}")
    if cell_w <= 0 or cell_h <= 0:
        raise InvalidGrid(context, f"cell size must be > 0, got [{cell_w}, {cell_h}]")
    color = parse_color(raw["color"], f"{context}.color") if "color" in raw else WHITE

    if kind == "grid_size":
        cls, default_size = GridImage, (3 * cell_w, 3 * cell_h)
    elif kind == "grid_size_horiz":
        cls, default_size = GridHorizontalImage, (3 * cell_w, cell_h)
    else:
        cls, default_size = GridVerticalImage, (cell_w, 3 * cell_h)
    if "size" in raw:
        width, height = _int_pair(raw["size"], f"{context}.size", positive=True)
    else:
        width, height = default_size

    stretch_x = cls is not GridVerticalImage
    stretch_y = cls is not GridHorizontalImage
    if stretch_x and cell_w * 2 > width:
        raise InvalidGrid(context, f"cell width {cell_w} exceeds half of region width {width}")
    if stretch_y and cell_h * 2 > height:
        raise InvalidGrid(context, f"cell height {cell_h} exceeds half of region height {height}")
    if not stretch_x and cell_w != width:
        raise InvalidGrid(context, f"vertical strip width {width} must equal cell width {cell_w}")
    if not stretch_y and cell_h != height:
        raise InvalidGrid(context, f"horizontal strip height {height} must equal cell height {cell_h}")
    return cls(name=name, region=PixelRect(x, y, width, height), cell=(cell_w, cell_h), color=color)


def _parse_animation(name: str, raw: Mapping[str, Any], context: str) -> AnimatedImage:
    frame_time = raw.get("frame_time_millis")
    if isinstance(frame_time, bool) or not isinstance(frame_time, int) or frame_time <= 0:
        raise MalformedDocument(f"{context}.frame_time_millis must be a positive integer")
    frames = raw.get("frames")
    if not isinstance(frames, (list, tuple)) or not frames:
        raise MalformedDocument(f"{context}.frames must be a non-empty list")
    once = raw.get("once", False)
    if not isinstance(once, bool):
        raise MalformedDocument(f"{context}.once must be a boolean")
    return AnimatedImage(
        name=name,
        frame_time_millis=frame_time,
        frames=tuple(_require_reference(frame, f"{context}.frames[{i}]") for i, frame in enumerate(frames)),
        once=once,
    )


def _parse_state_map(name: str, raw_states: object, context: str) -> StateMapImage:
    if not isinstance(raw_states, Mapping) or not raw_states:
        raise MalformedDocument(f"{context}.states must be a non-empty mapping")
    states: dict[AnimFlag, str] = {}
    for raw_key, target in raw_states.items():
        try:
            key = parse_state_key(raw_key)
        except MalformedDocument as exc:
            raise MalformedDocument(f"{context}: {exc}") from exc
        if key in states:
            raise MalformedDocument(f"{context}: state `{raw_key}` is defined more than once")
        if key not in SELECTABLE_KEYS:
            LOGGER.warning(
                "%s: state `%s` is never selected by the resolver; it is kept but unreachable",
                context,
                format_state_key(key),
            )
        states[key] = _require_reference(target, f"{context}.states.{raw_key}")
    if AnimFlag.NORMAL not in states:
        raise MalformedDocument(f"{context}: state maps require a `Normal` entry")
    return StateMapImage(name=name, states=states)


def _validate_references(set_name: str, images: Mapping[str, ImageDefinition]) -> None:
    for image_name in sorted(images):
        for ref in references_of(images[image_name]):
            if ref != EMPTY and ref not in images:
                raise UnknownReference(f"{set_name}/{ref}", referenced_by=f"{set_name}/{image_name}")

    cycle = _detect_cycle(images)
    if cycle:
        raise CyclicReference(tuple(f"{set_name}/{name}" for name in cycle))

    for image_name in sorted(images):
        definition = images[image_name]
        if not isinstance(definition, AnimatedImage):
            continue
        for frame in definition.frames:
            terminal = _follow_aliases(images, frame)
            if terminal != EMPTY and not isinstance(images[terminal], LEAF_TYPES):
                raise MalformedDocument(
                    f"{set_name}/{image_name}: animation frame `{frame}` must resolve to a simple "
                    f"or grid image, not `{terminal}`"
                )


def _follow_aliases(images: Mapping[str, ImageDefinition], name: str) -> str:
    # Terminates: cycles were rejected before this runs.
    while name != EMPTY:
        definition = images[name]
        if not isinstance(definition, AliasImage):
            break
        name = definition.target
    return name


def _detect_cycle(images: Mapping[str, ImageDefinition]) -> tuple[str, ...] | None:
    # Iterative DFS; reference chains can be longer than the interpreter's recursion limit.
    visited: set[str] = set()
    active: set[str] = set()
    trail: list[str] = []

    for root in sorted(images):
        if root in visited:
            continue
        visited.add(root)
        active.add(root)
        trail.append(root)
        stack: list[tuple[str, Iterator[str]]] = [(root, iter(references_of(images[root])))]
        while stack:
            node, refs = stack[-1]
            ref = next(refs, None)
            if ref is None:
                stack.pop()
                active.remove(node)
                trail.pop()
                continue
            if ref == EMPTY:
                continue
            if ref in active:
                idx = trail.index(ref)
                return tuple(trail[idx:] + [ref])
            if ref not in visited:
                visited.add(ref)
                active.add(ref)
                trail.append(ref)
                stack.append((ref, iter(references_of(images[ref]))))
    return None


def _apply_scale(definition: ImageDefinition, scale: float) -> ImageDefinition:
    """Stamp the set scale on leaves: display sizes scale, source regions stay in texture pixels."""
    if isinstance(definition, LEAF_TYPES):
        return replace(definition, scale=scale)
    return definition


def _parse_scale(value: object, set_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedDocument(f"image set `{set_name}`.scale must be a number")
    scale = float(value)
    if not math.isfinite(scale) or scale <= 0:
        raise MalformedDocument(f"image set `{set_name}`.scale must be a finite number > 0")
    return scale


def _int_pair(value: object, context: str, *, positive: bool = False) -> tuple[int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise MalformedDocument(f"{context} must be a [x, y] pair")
    out: list[int] = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int):
            raise MalformedDocument(f"{context} must contain integers")
        if positive and item <= 0:
            raise MalformedDocument(f"{context} values must be > 0")
        out.append(item)
    return (out[0], out[1])


def _require_reference(value: object, context: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MalformedDocument(f"{context} must be a non-empty image name")
    return value.strip()


def _require_name(name: str, label: str) -> None:
    if not _NAME_RE.match(name):
        raise MalformedDocument(f"{label} name `{name}` is invalid; names may not be empty or contain `/`")


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in pairs:
        if key in out:
            raise DuplicateName(key)
        out[key] = value
    return out


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that raises DuplicateName instead of keeping the last duplicate key."""


def _construct_unique_mapping(loader: _UniqueKeyLoader, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
    loader.flatten_mapping(node)
    out: dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if not isinstance(key, Hashable):
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping", node.start_mark, "found unhashable key", key_node.start_mark
            )
        if key in out:
            raise DuplicateName(str(key))
        out[key] = loader.construct_object(value_node, deep=deep)
    return out


_UniqueKeyLoader.add_constructor(_UniqueKeyLoader.DEFAULT_MAPPING_TAG, _construct_unique_mapping)
