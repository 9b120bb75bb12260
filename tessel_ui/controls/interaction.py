from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping


PressPhase = Literal["down", "hold_start", "hold_tick", "up", "cancel"]
_PHASES = frozenset({"down", "hold_start", "hold_tick", "up", "cancel"})


@dataclass(frozen=True)
class PressEvent:
    """Normalized pointer/key press consumed by themed controls."""

    phase: PressPhase
    key: str = "primary"


def parse_press_event(event_type: str, payload: object) -> PressEvent | None:
    """Parse a normalized `press` event; anything else is ignored."""

    if event_type != "press" or not isinstance(payload, Mapping):
        return None
    phase = payload.get("phase")
    if phase not in _PHASES:
        return None
    return PressEvent(phase=phase, key=str(payload.get("key", "primary")))
