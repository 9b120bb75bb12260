from __future__ import annotations

import threading
import unittest

import torch

from tessel_core.config import EngineConfig
from tessel_core.core.theme_handle import ThemeHandle, build_generation
from tessel_core.theme.definitions import Rect
from tessel_core.theme.errors import MissingSource, UnknownReference
from tessel_core.theme.sources import InMemorySourceProvider
from tessel_core.theme.states import AnimFlag


def _document(icon_x: int = 0) -> dict:
    return {
        "image_sets": {
            "gui": {
                "source": "gui",
                "images": {
                    "icon": {"position": [icon_x, 0], "size": [8, 8]},
                    "icon_hover": {"position": [8, 0], "size": [8, 8]},
                    "button": {"states": {"Normal": "icon", "Hover": "icon_hover"}},
                    "panel": {"position": [0, 8], "grid_size": [4, 4]},
                },
            }
        }
    }


def _provider() -> InMemorySourceProvider:
    return InMemorySourceProvider({"gui": torch.full((32, 32, 4), 200, dtype=torch.uint8)})


class ThemeHandleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.handle = ThemeHandle(_provider(), EngineConfig(atlas_page_size=64))

    def test_snapshot_requires_a_committed_generation(self) -> None:
        self.assertFalse(self.handle.loaded)
        with self.assertRaisesRegex(RuntimeError, "no theme generation"):
            self.handle.snapshot()

    def test_reload_swaps_generations_and_bumps_revision(self) -> None:
        first = self.handle.reload(_document())
        self.assertIsNotNone(first)
        self.assertEqual(self.handle.revision, 1)
        self.assertIs(self.handle.snapshot(), first)

        second = self.handle.reload(_document(icon_x=16))
        self.assertEqual(second.revision, 2)
        self.assertIs(self.handle.snapshot(), second)
        # A snapshot taken earlier keeps drawing from its own generation.
        self.assertEqual(first.theme.image_sets["gui"].images["icon"].region.x, 0)

    def test_failed_reload_keeps_previous_generation(self) -> None:
        good = self.handle.reload(_document())
        bad = _document()
        bad["image_sets"]["gui"]["images"]["frame"] = {"from": "missing"}
        with self.assertLogs("tessel_core.core.theme_handle", level="WARNING"):
            with self.assertRaises(UnknownReference):
                self.handle.reload(bad)
        self.assertIs(self.handle.snapshot(), good)
        self.assertEqual(self.handle.revision, 1)

        missing = ThemeHandle(InMemorySourceProvider({}), EngineConfig(atlas_page_size=64))
        with self.assertLogs("tessel_core.core.theme_handle", level="WARNING"):
            with self.assertRaises(MissingSource):
                missing.reload(_document())
        self.assertFalse(missing.loaded)

    def test_superseded_ticket_is_discarded(self) -> None:
        stale_ticket = self.handle.begin_reload()
        fresh_ticket = self.handle.begin_reload()
        stale = build_generation(_document(), _provider(), config=self.handle.config)
        fresh = build_generation(_document(icon_x=16), _provider(), config=self.handle.config)

        self.assertIsNone(self.handle.commit(stale_ticket, stale))
        self.assertFalse(self.handle.loaded)
        published = self.handle.commit(fresh_ticket, fresh)
        self.assertIsNotNone(published)
        self.assertEqual(published.revision, 1)
        self.assertIs(published.theme, fresh.theme)
        # A ticket commits at most once.
        self.assertIsNone(self.handle.commit(fresh_ticket, stale))
        self.assertIs(self.handle.snapshot(), published)

    def test_concurrent_readers_always_see_a_whole_generation(self) -> None:
        self.handle.reload(_document())
        seen: list[tuple[int, int]] = []
        errors: list[Exception] = []

        def reader() -> None:
            try:
                for _ in range(50):
                    generation = self.handle.snapshot()
                    icon = generation.theme.image_sets["gui"].images["icon"]
                    seen.append((generation.revision, icon.region.x))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for i in range(5):
            self.handle.reload(_document(icon_x=16 if i % 2 == 0 else 0))
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        for revision, icon_x in seen:
            # Odd revisions were built with icon_x=0, even ones with icon_x=16.
            self.assertEqual(icon_x, 0 if revision % 2 == 1 else 16)


class ThemeGenerationDrawTests(unittest.TestCase):
    def setUp(self) -> None:
        self.generation = build_generation(_document(), _provider(), config=EngineConfig(atlas_page_size=64))

    def test_draw_resolves_state_and_addresses_atlas(self) -> None:
        normal = self.generation.draw("gui/button", Rect(0.0, 0.0, 8.0, 8.0))
        hover = self.generation.draw("gui/button", Rect(0.0, 0.0, 8.0, 8.0), AnimFlag.HOVER)
        self.assertEqual(len(normal), 1)
        self.assertEqual(normal.commands[0].primitive.region.x, 0)
        self.assertEqual(hover.commands[0].primitive.region.x, 8)
        placement = self.generation.atlas.placement("gui", hover.commands[0].primitive.region)
        self.assertEqual(hover.commands[0].uv, placement.uv)

    def test_zero_size_patches_are_skipped(self) -> None:
        batch = self.generation.draw("gui/panel", Rect(0.0, 0.0, 8.0, 8.0))
        self.assertEqual(len(batch), 4)

    def test_unknown_ids_draw_nothing_and_warn_once(self) -> None:
        with self.assertLogs("tessel_core.core.theme_handle", level="WARNING") as logs:
            self.assertEqual(len(self.generation.draw("gui/missing", Rect(0.0, 0.0, 4.0, 4.0))), 0)
            self.assertEqual(len(self.generation.draw("gui/missing", Rect(0.0, 0.0, 4.0, 4.0))), 0)
            self.assertEqual(len(self.generation.draw("nowhere", Rect(0.0, 0.0, 4.0, 4.0))), 0)
        self.assertEqual(len(logs.records), 2)
        self.assertIn("gui/missing", logs.output[0])

    def test_unknown_id_warns_once_across_threads(self) -> None:
        barrier = threading.Barrier(8)

        def draw_missing() -> None:
            barrier.wait()
            for _ in range(50):
                self.generation.draw("gui/ghost", Rect(0.0, 0.0, 4.0, 4.0))

        with self.assertLogs("tessel_core.core.theme_handle", level="WARNING") as logs:
            threads = [threading.Thread(target=draw_missing) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
        self.assertEqual(len(logs.records), 1)
        self.assertIn("gui/ghost", logs.output[0])


if __name__ == "__main__":
    unittest.main()
