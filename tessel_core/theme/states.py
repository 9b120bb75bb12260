from __future__ import annotations

from enum import IntFlag
from typing import TYPE_CHECKING, Iterable

from .errors import MalformedDocument, ThemeInvariantError

if TYPE_CHECKING:
    from .definitions import StateMapImage


class AnimFlag(IntFlag):
    """Widget interaction flags; the empty set is the `Normal` state."""

    NORMAL = 0
    HOVER = 1
    PRESSED = 2
    DISABLED = 4
    ACTIVE = 8


_FLAG_NAMES: dict[str, AnimFlag] = {
    "Hover": AnimFlag.HOVER,
    "Pressed": AnimFlag.PRESSED,
    "Disabled": AnimFlag.DISABLED,
    "Active": AnimFlag.ACTIVE,
}

# Highest priority first; each candidate applies only when all of its flags are active.
STATE_PRECEDENCE: tuple[AnimFlag, ...] = (
    AnimFlag.DISABLED,
    AnimFlag.ACTIVE | AnimFlag.PRESSED,
    AnimFlag.ACTIVE | AnimFlag.HOVER,
    AnimFlag.ACTIVE,
    AnimFlag.PRESSED,
    AnimFlag.HOVER,
)

SELECTABLE_KEYS: frozenset[AnimFlag] = frozenset(STATE_PRECEDENCE) | {AnimFlag.NORMAL}


def parse_state_key(raw: str) -> AnimFlag:
    """Parse `Flag( + Flag)*` into a flag set. Whitespace is ignored."""

    if not isinstance(raw, str) or not raw.strip():
        raise MalformedDocument("state key must be a non-empty string")
    parts = [part.strip() for part in raw.split("+")]
    if parts == ["Normal"]:
        return AnimFlag.NORMAL
    key = AnimFlag.NORMAL
    for part in parts:
        if part == "Normal":
            raise MalformedDocument(f"state key `{raw}`: Normal may only be specified alone")
        flag = _FLAG_NAMES.get(part)
        if flag is None:
            raise MalformedDocument(f"state key `{raw}`: unknown flag `{part}`")
        if key & flag:
            raise MalformedDocument(f"state key `{raw}`: duplicate flag `{part}`")
        key |= flag
    return key


def format_state_key(key: AnimFlag) -> str:
    if key == AnimFlag.NORMAL:
        return "Normal"
    names = [name for name, flag in _FLAG_NAMES.items() if key & flag]
    # Active reads first in compound keys, e.g. `Active + Hover`.
    names.sort(key=lambda name: name != "Active")
    return " + ".join(names)


def flags_from_names(names: Iterable[str]) -> AnimFlag:
    flags = AnimFlag.NORMAL
    for name in names:
        cleaned = name.strip()
        if not cleaned or cleaned == "Normal":
            continue
        flag = _FLAG_NAMES.get(cleaned.capitalize())
        if flag is None:
            raise ValueError(f"unknown interaction flag: {name}")
        flags |= flag
    return flags


def resolve_state(state_map: StateMapImage, flags: AnimFlag) -> str:
    """Select the image name a state map shows for the active flags.

    Disabled wins outright when present; otherwise the most specific Active
    compound, then Active, Pressed and Hover are tried, falling back to Normal.
    """

    states = state_map.states
    for candidate in STATE_PRECEDENCE:
        if (flags & candidate) == candidate and candidate in states:
            return states[candidate]
    try:
        return states[AnimFlag.NORMAL]
    except KeyError:
        raise ThemeInvariantError("state map without a Normal entry passed validation") from None
