from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import numpy as np
from PIL import Image

from tessel_core.config import EngineConfig, load_engine_config
from tessel_core.core import MatrixSpriteRenderer, build_generation
from tessel_core.theme import DirectorySourceProvider, Rect, flags_from_names, load_theme_file


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="tessel")
    parser.add_argument("--config", type=Path, default=None, help="TOML file with a [tessel] table.")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Load a theme document and report what it defines.")
    validate.add_argument("theme", type=Path)

    pack = sub.add_parser("pack", help="Pack a theme's referenced regions into atlas pages.")
    pack.add_argument("theme", type=Path)
    pack.add_argument("--images", type=Path, required=True, help="Directory holding source textures.")
    pack.add_argument("--out", type=Path, required=True)

    draw = sub.add_parser("draw", help="Render one themed image into a PNG.")
    draw.add_argument("theme", type=Path)
    draw.add_argument("image_id", help="`<set>/<image>`")
    draw.add_argument("--images", type=Path, required=True)
    draw.add_argument("--size", default="128x64", help="Destination size as WxH.")
    draw.add_argument(
        "--flags",
        nargs="*",
        default=[],
        help="Interaction flags: Hover Pressed Disabled Active.",
    )
    draw.add_argument("--time-ms", type=float, default=0.0)
    draw.add_argument("--out", type=Path, required=True)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    config = load_engine_config(args.config)

    if args.command == "validate":
        theme = load_theme_file(args.theme)
        for set_name in sorted(theme.image_sets):
            image_set = theme.image_sets[set_name]
            print(f"{set_name}: source={image_set.source} scale={image_set.scale:g} images={len(image_set)}")
        print(f"theme ok: image_sets={len(theme.image_sets)} images={theme.image_count}")
        return

    if args.command == "pack":
        generation = build_generation(args.theme, _provider(args.images, config), config=config)
        atlas = generation.atlas
        args.out.mkdir(parents=True, exist_ok=True)
        for page in atlas.pages:
            Image.fromarray(page.pixels.numpy()).save(args.out / f"atlas_{page.index}.png")
        placements = [
            {
                "source": source_id,
                "region": [rect.x, rect.y, rect.width, rect.height],
                "page": p.page,
                "position": [p.x, p.y],
                "uv": list(p.uv),
            }
            for (source_id, rect), p in sorted(atlas.placements.items())
        ]
        manifest = {
            "page_size": atlas.page_size,
            "padding": atlas.padding,
            "pages": len(atlas.pages),
            "fingerprint": atlas.fingerprint,
            "placements": placements,
        }
        (args.out / "atlas.json").write_text(json.dumps(manifest, indent=2, sort_keys=True), encoding="utf-8")
        print(f"packed regions={len(placements)} pages={len(atlas.pages)} fingerprint={atlas.fingerprint[:12]}")
        return

    if args.command == "draw":
        width, height = _parse_size(args.size)
        generation = build_generation(args.theme, _provider(args.images, config), config=config)
        batch = generation.draw(
            args.image_id,
            Rect(0.0, 0.0, float(width), float(height)),
            flags_from_names(args.flags),
            args.time_ms,
        )
        renderer = MatrixSpriteRenderer()
        renderer.begin_frame(width, height)
        renderer.draw_sprite_batch(batch, generation.atlas)
        frame = renderer.end_frame()
        args.out.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(np.ascontiguousarray(frame.numpy())).save(args.out)
        print(f"drew {args.image_id}: sprites={len(batch)} size={width}x{height} -> {args.out}")
        return

    raise RuntimeError(f"unsupported command: {args.command}")


def _provider(images: Path, config: EngineConfig) -> DirectorySourceProvider:
    if not images.is_dir():
        raise FileNotFoundError(f"image directory not found: {images}")
    return DirectorySourceProvider(images, extensions=config.image_extensions)


def _parse_size(raw: str) -> tuple[int, int]:
    width, sep, height = raw.lower().partition("x")
    if not sep:
        raise ValueError(f"size must look like WxH, got `{raw}`")
    out = (int(width), int(height))
    if out[0] <= 0 or out[1] <= 0:
        raise ValueError(f"size must be positive, got `{raw}`")
    return out


if __name__ == "__main__":
    main()
