"""Themed control interaction models."""

from .button import ButtonModel
from .interaction import PressEvent, PressPhase, parse_press_event

__all__ = [
    "ButtonModel",
    "PressEvent",
    "PressPhase",
    "parse_press_event",
]
