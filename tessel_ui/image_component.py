from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tessel_core.theme.definitions import Rect

from .controls.button import ButtonModel
from .controls.interaction import PressEvent
from .sprite_renderer import SpriteRenderBatch

if TYPE_CHECKING:
    from tessel_core.core.theme_handle import ThemeGeneration


@dataclass
class ThemedImageComponent:
    """A widget surface drawn from a theme image and driven by a button model.

    The component owns no layout; `bounds` is whatever the caller laid out.
    """

    component_id: str
    image_id: str
    bounds: Rect
    button: ButtonModel = field(default_factory=ButtonModel)

    def on_pointer_move(self, x: float, y: float) -> None:
        self.button.set_hovered(self.bounds.contains_point(x, y))

    def on_press(self, press: PressEvent) -> None:
        self.button.on_press(press)

    def render(self, generation: ThemeGeneration, elapsed_millis: float = 0.0) -> SpriteRenderBatch:
        return generation.draw(self.image_id, self.bounds, self.button.flags, elapsed_millis)
