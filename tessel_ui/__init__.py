"""Widget-facing contracts for Tessel themes."""

from .controls.button import ButtonModel
from .controls.interaction import PressEvent, PressPhase, parse_press_event
from .image_component import ThemedImageComponent
from .sprite_renderer import SpriteDrawCommand, SpriteRenderBatch, SpriteRenderer

__all__ = [
    "ButtonModel",
    "PressEvent",
    "PressPhase",
    "SpriteDrawCommand",
    "SpriteRenderBatch",
    "SpriteRenderer",
    "ThemedImageComponent",
    "parse_press_event",
]
