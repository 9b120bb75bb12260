from __future__ import annotations

from dataclasses import dataclass

from tessel_core.theme.states import AnimFlag

from .interaction import PressEvent


@dataclass
class ButtonModel:
    """Interaction model that turns hover/press/toggle input into theme flags."""

    disabled: bool = False
    hovered: bool = False
    pressed: bool = False
    held: bool = False
    active: bool = False
    toggles: bool = False

    @property
    def flags(self) -> AnimFlag:
        flags = AnimFlag.ACTIVE if self.active else AnimFlag.NORMAL
        if self.disabled:
            # Input is gated off while disabled.
            return flags | AnimFlag.DISABLED
        if self.hovered:
            flags |= AnimFlag.HOVER
        if self.pressed:
            flags |= AnimFlag.PRESSED
        return flags

    def set_disabled(self, disabled: bool) -> AnimFlag:
        self.disabled = disabled
        if disabled:
            self.pressed = False
            self.held = False
        return self.flags

    def set_hovered(self, hovered: bool) -> AnimFlag:
        self.hovered = hovered
        if not hovered:
            self.pressed = False
            self.held = False
        return self.flags

    def set_active(self, active: bool) -> AnimFlag:
        self.active = active
        return self.flags

    def on_press(self, press: PressEvent) -> AnimFlag:
        if self.disabled:
            return self.flags
        if press.phase == "down":
            self.pressed = self.hovered
        elif press.phase in ("hold_start", "hold_tick"):
            # A hold only counts once the press armed on this control.
            self.held = self.pressed
        elif press.phase == "up":
            if self.pressed and self.hovered and self.toggles:
                self.active = not self.active
            self.pressed = False
            self.held = False
        elif press.phase == "cancel":
            self.pressed = False
            self.held = False
        return self.flags
