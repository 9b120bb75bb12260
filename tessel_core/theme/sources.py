from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Protocol

import numpy as np
import torch
from PIL import Image

from .atlas import coerce_rgba
from .errors import MissingSource


DEFAULT_IMAGE_EXTENSIONS: tuple[str, ...] = (".png", ".jpg", ".jpeg")


class SourceImageProvider(Protocol):
    """Supplies decoded `H x W x 4` uint8 pixel buffers keyed by source id."""

    def source_image(self, source_id: str) -> torch.Tensor:
        ...


@dataclass
class InMemorySourceProvider:
    images: Mapping[str, torch.Tensor | np.ndarray]

    def source_image(self, source_id: str) -> torch.Tensor:
        if source_id not in self.images:
            raise MissingSource(source_id)
        return coerce_rgba(self.images[source_id], source_id)


@dataclass
class DirectorySourceProvider:
    """Decodes `<root>/<source_id><ext>` with Pillow, caching each texture once."""

    root: Path
    extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS
    _cache: dict[str, torch.Tensor] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        if not self.extensions:
            raise ValueError("extensions must be non-empty")

    def source_image(self, source_id: str) -> torch.Tensor:
        cached = self._cache.get(source_id)
        if cached is not None:
            return cached
        path = self._find(source_id)
        if path is None:
            raise MissingSource(source_id)
        with Image.open(path) as image:
            rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8).copy()
        tensor = torch.from_numpy(rgba)
        self._cache[source_id] = tensor
        return tensor

    def _find(self, source_id: str) -> Path | None:
        if "/" in source_id or "\\" in source_id or source_id.startswith("."):
            return None
        for ext in self.extensions:
            candidate = self.root / f"{source_id}{ext}"
            if candidate.is_file():
                return candidate
        return None
