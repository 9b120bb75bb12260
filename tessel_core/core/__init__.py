from .sprite_renderer import MatrixSpriteRenderer
from .theme_handle import ThemeGeneration, ThemeHandle, ThemeSource, build_generation

__all__ = [
    "MatrixSpriteRenderer",
    "ThemeGeneration",
    "ThemeHandle",
    "ThemeSource",
    "build_generation",
]
