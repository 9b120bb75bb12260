from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

import numpy as np
from PIL import Image
import torch

from tessel_core.theme.errors import MissingSource
from tessel_core.theme.sources import DirectorySourceProvider, InMemorySourceProvider


class SourceProviderTests(unittest.TestCase):
    def test_directory_provider_decodes_rgba_and_caches(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            rgb = np.zeros((3, 5, 3), dtype=np.uint8)
            rgb[1, 2] = (10, 20, 30)
            Image.fromarray(rgb).save(root / "skin.png")

            provider = DirectorySourceProvider(root)
            image = provider.source_image("skin")
            self.assertEqual(tuple(image.shape), (3, 5, 4))
            self.assertEqual(image.dtype, torch.uint8)
            self.assertEqual(image[1, 2].tolist(), [10, 20, 30, 255])
            self.assertIs(provider.source_image("skin"), image)

    def test_directory_provider_rejects_missing_and_escaping_ids(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            provider = DirectorySourceProvider(Path(tmp), extensions=(".png",))
            for source_id in ("missing", "../skin", ".hidden"):
                with self.assertRaises(MissingSource):
                    provider.source_image(source_id)
            with self.assertRaisesRegex(ValueError, "extensions must be non-empty"):
                DirectorySourceProvider(Path(tmp), extensions=())

    def test_in_memory_provider(self) -> None:
        provider = InMemorySourceProvider({"skin": np.zeros((2, 2, 4), dtype=np.uint8)})
        self.assertEqual(tuple(provider.source_image("skin").shape), (2, 2, 4))
        with self.assertRaises(MissingSource):
            provider.source_image("other")


if __name__ == "__main__":
    unittest.main()
