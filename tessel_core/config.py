from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
import tomllib
from typing import Any, Mapping

from .theme.atlas import DEFAULT_PAGE_SIZE
from .theme.sources import DEFAULT_IMAGE_EXTENSIONS


ENV_PAGE_SIZE = "TESSEL_ATLAS_PAGE_SIZE"
ENV_PADDING = "TESSEL_ATLAS_PADDING"


@dataclass(frozen=True)
class EngineConfig:
    atlas_page_size: int = DEFAULT_PAGE_SIZE
    atlas_padding: int = 0
    image_extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS

    def __post_init__(self) -> None:
        if self.atlas_page_size <= 0:
            raise ValueError("atlas_page_size must be > 0")
        if self.atlas_padding < 0:
            raise ValueError("atlas_padding must be >= 0")
        if not self.image_extensions:
            raise ValueError("image_extensions must be non-empty")


def load_engine_config(path: str | Path | None = None, *, env: Mapping[str, str] | None = None) -> EngineConfig:
    """Read the `[tessel]` table of a TOML file, then apply environment overrides."""

    config = EngineConfig()
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"engine config not found: {config_path}")
        with config_path.open("rb") as f:
            raw = tomllib.load(f)
        config = _from_table(raw.get("tessel", {}))
    return apply_env_overrides(config, os.environ if env is None else env)


def apply_env_overrides(config: EngineConfig, env: Mapping[str, str]) -> EngineConfig:
    if ENV_PAGE_SIZE in env:
        config = replace(config, atlas_page_size=_parse_int(env[ENV_PAGE_SIZE], ENV_PAGE_SIZE))
    if ENV_PADDING in env:
        config = replace(config, atlas_padding=_parse_int(env[ENV_PADDING], ENV_PADDING))
    return config


def _from_table(table: Any) -> EngineConfig:
    if not isinstance(table, dict):
        raise ValueError("[tessel] must be a table")
    unknown = sorted(key for key in table if key not in {"atlas_page_size", "atlas_padding", "image_extensions"})
    if unknown:
        raise ValueError(f"unsupported [tessel] keys: {', '.join(unknown)}")
    defaults = EngineConfig()
    page_size = table.get("atlas_page_size", defaults.atlas_page_size)
    padding = table.get("atlas_padding", defaults.atlas_padding)
    for key, value in (("atlas_page_size", page_size), ("atlas_padding", padding)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"`{key}` must be an integer")
    extensions = table.get("image_extensions", list(defaults.image_extensions))
    if not isinstance(extensions, list) or not all(isinstance(ext, str) and ext.startswith(".") for ext in extensions):
        raise ValueError("`image_extensions` must be a list of strings like `.png`")
    return EngineConfig(
        atlas_page_size=page_size,
        atlas_padding=padding,
        image_extensions=tuple(ext.lower() for ext in extensions),
    )


def _parse_int(raw: str, label: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{label} must be an integer, got `{raw}`") from exc
