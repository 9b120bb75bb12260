from __future__ import annotations

from dataclasses import dataclass
import math

import torch

from tessel_ui.sprite_renderer import SpriteDrawCommand, SpriteRenderBatch

from ..theme.atlas import Atlas


@dataclass
class MatrixSpriteRenderer:
    """Torch-first reference renderer: samples atlas pages into an RGBA frame.

    Sampling is nearest-neighbour at pixel centers; sprites are tinted by their
    color and alpha-blended over the frame.
    """

    _frame: torch.Tensor | None = None

    def begin_frame(self, width: int, height: int, clear_color: tuple[int, int, int, int] = (0, 0, 0, 0)) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("frame dimensions must be > 0")
        self._frame = torch.zeros((height, width, 4), dtype=torch.uint8)
        self._frame[:, :] = torch.tensor(clear_color, dtype=torch.uint8)

    def draw_sprite_batch(self, batch: SpriteRenderBatch, atlas: Atlas) -> None:
        if self._frame is None:
            raise RuntimeError("begin_frame must be called before draw_sprite_batch")
        for command in batch.commands:
            self._draw_command(command, atlas)

    def end_frame(self) -> torch.Tensor:
        if self._frame is None:
            raise RuntimeError("begin_frame must be called before end_frame")
        out = self._frame.clone()
        self._frame = None
        return out

    def _draw_command(self, command: SpriteDrawCommand, atlas: Atlas) -> None:
        if self._frame is None:
            return
        dest = command.primitive.destination_rect
        x0 = max(0, int(round(dest.x)))
        y0 = max(0, int(round(dest.y)))
        x1 = min(self._frame.shape[1], int(round(dest.right)))
        y1 = min(self._frame.shape[0], int(round(dest.bottom)))
        if x1 <= x0 or y1 <= y0:
            return

        page = atlas.pages[command.page].pixels
        size = float(atlas.page_size)
        u0, v0, u1, v1 = command.uv
        tex_x = _sample_axis(x0, x1, dest.x, dest.width, u0 * size, u1 * size)
        tex_y = _sample_axis(y0, y1, dest.y, dest.height, v0 * size, v1 * size)
        src = page[tex_y.unsqueeze(1), tex_x.unsqueeze(0)].to(torch.float32)

        tint = torch.tensor(command.primitive.color, dtype=torch.float32).view(1, 1, 4) / 255.0
        src = src * tint
        alpha = (src[:, :, 3:4] / 255.0).clamp(0.0, 1.0)
        dst = self._frame[y0:y1, x0:x1, :3].to(torch.float32)
        out = torch.clamp(torch.round(src[:, :, :3] * alpha + dst * (1.0 - alpha)), 0, 255).to(torch.uint8)
        dst_alpha = self._frame[y0:y1, x0:x1, 3:4].to(torch.float32) / 255.0
        out_alpha = torch.clamp(torch.round((alpha + dst_alpha * (1.0 - alpha)) * 255.0), 0, 255).to(torch.uint8)
        self._frame[y0:y1, x0:x1, :3] = out
        self._frame[y0:y1, x0:x1, 3:4] = out_alpha


def _sample_axis(
    start: int,
    stop: int,
    dest_origin: float,
    dest_length: float,
    tex_lo: float,
    tex_hi: float,
) -> torch.Tensor:
    centers = torch.arange(start, stop, dtype=torch.float64) + 0.5
    span = tex_hi - tex_lo
    if dest_length <= 0 or span <= 0:
        # Degenerate spans (solid texel) sample a single texel.
        return torch.full((stop - start,), int(math.floor(tex_lo)), dtype=torch.long)
    coords = tex_lo + (centers - dest_origin) / dest_length * span
    lo = int(math.floor(tex_lo))
    hi = max(lo, int(math.ceil(tex_hi)) - 1)
    return torch.floor(coords).to(torch.long).clamp(lo, hi)
