from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import threading
from typing import Any, Mapping

from tessel_ui.sprite_renderer import SpriteDrawCommand, SpriteRenderBatch

from ..config import EngineConfig
from ..theme.atlas import Atlas, pack_theme
from ..theme.definitions import Rect, ThemeDefinition
from ..theme.errors import PackError, ThemeLoadError
from ..theme.geometry import draw_image
from ..theme.loader import load_theme, load_theme_file
from ..theme.sources import SourceImageProvider
from ..theme.states import AnimFlag


LOGGER = logging.getLogger(__name__)

ThemeSource = Mapping[str, Any] | str | Path | ThemeDefinition


@dataclass(frozen=True)
class ThemeGeneration:
    """One immutable (definition model, atlas) pair produced by a load + pack cycle."""

    revision: int
    theme: ThemeDefinition
    atlas: Atlas
    _warned_ids: set[str] = field(default_factory=set, init=False, compare=False, repr=False)
    _warn_lock: threading.Lock = field(default_factory=threading.Lock, init=False, compare=False, repr=False)

    def draw(
        self,
        image_id: str,
        destination: Rect,
        flags: AnimFlag = AnimFlag.NORMAL,
        elapsed_millis: float = 0.0,
    ) -> SpriteRenderBatch:
        """Resolve `<set>/<image>` into atlas-addressed draw commands.

        Unknown ids draw nothing and are reported once per generation.
        """

        found = self.theme.find(image_id)
        if found is None:
            with self._warn_lock:
                first = image_id not in self._warned_ids
                self._warned_ids.add(image_id)
            if first:
                LOGGER.warning("unknown image when drawing: %r (revision=%d)", image_id, self.revision)
            return SpriteRenderBatch(commands=())
        image_set, _ = found
        primitives = draw_image(image_set, image_id.partition("/")[2], destination, flags, elapsed_millis)
        commands: list[SpriteDrawCommand] = []
        for primitive in primitives:
            if primitive.destination_rect.is_empty:
                continue
            page, uv = self.atlas.uv_rect(primitive)
            commands.append(SpriteDrawCommand(primitive=primitive, page=page, uv=uv))
        return SpriteRenderBatch(commands=tuple(commands))


def build_generation(
    source: ThemeSource,
    provider: SourceImageProvider,
    *,
    config: EngineConfig | None = None,
    revision: int = 0,
) -> ThemeGeneration:
    cfg = config or EngineConfig()
    if isinstance(source, ThemeDefinition):
        theme = source
    elif isinstance(source, (str, Path)):
        theme = load_theme_file(source)
    else:
        theme = load_theme(source)
    atlas = pack_theme(theme, provider, page_size=cfg.atlas_page_size, padding=cfg.atlas_padding)
    return ThemeGeneration(revision=revision, theme=theme, atlas=atlas)


class ThemeHandle:
    """Swappable holder of the current theme generation.

    Readers take `snapshot()` once per frame. Reloads build the next generation
    outside the lock and publish it with a single swap, so readers see either
    the old or the new generation in full.
    """

    def __init__(self, provider: SourceImageProvider, config: EngineConfig | None = None) -> None:
        self.provider = provider
        self.config = config or EngineConfig()
        self._lock = threading.Lock()
        self._current: ThemeGeneration | None = None
        self._revision = 0
        self._latest_ticket = 0

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def loaded(self) -> bool:
        return self._current is not None

    def snapshot(self) -> ThemeGeneration:
        current = self._current
        if current is None:
            raise RuntimeError("no theme generation has been committed")
        return current

    def begin_reload(self) -> int:
        """Issue a ticket; only the most recently issued ticket may commit."""
        with self._lock:
            self._latest_ticket += 1
            return self._latest_ticket

    def commit(self, ticket: int, generation: ThemeGeneration) -> ThemeGeneration | None:
        with self._lock:
            if ticket != self._latest_ticket:
                LOGGER.info(
                    "discarding superseded theme reload; ticket=%d latest=%d",
                    ticket,
                    self._latest_ticket,
                )
                return None
            # Invalidate the ticket so it cannot commit twice.
            self._latest_ticket += 1
            self._revision += 1
            published = ThemeGeneration(
                revision=self._revision,
                theme=generation.theme,
                atlas=generation.atlas,
            )
            self._current = published
        LOGGER.info(
            "theme generation committed; revision=%d images=%d atlas_pages=%d",
            published.revision,
            published.theme.image_count,
            len(published.atlas.pages),
        )
        return published

    def reload(self, source: ThemeSource) -> ThemeGeneration | None:
        """Load + pack `source` and swap it in; a failure keeps the previous generation."""

        ticket = self.begin_reload()
        try:
            generation = build_generation(source, self.provider, config=self.config)
        except (ThemeLoadError, PackError) as exc:
            LOGGER.warning("theme reload rejected; keeping revision=%d: %s", self._revision, exc)
            raise
        return self.commit(ticket, generation)
