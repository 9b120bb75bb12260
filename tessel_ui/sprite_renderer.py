from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from tessel_core.theme.atlas import Atlas, UVRect
from tessel_core.theme.geometry import DrawPrimitive


@dataclass(frozen=True)
class SpriteDrawCommand:
    """Backend-agnostic sprite instruction: a primitive plus where it lives in the atlas."""

    primitive: DrawPrimitive
    page: int
    uv: UVRect


@dataclass(frozen=True)
class SpriteRenderBatch:
    commands: tuple[SpriteDrawCommand, ...]

    def __len__(self) -> int:
        return len(self.commands)


class SpriteRenderer(Protocol):
    """Backend-agnostic consumer of sprite batches."""

    def draw_sprite_batch(self, batch: SpriteRenderBatch, atlas: Atlas) -> None:
        ...
