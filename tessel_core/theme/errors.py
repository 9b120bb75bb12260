from __future__ import annotations


class ThemeLoadError(ValueError):
    """Raised when a theme document fails to load; the load attempt is discarded."""


class MalformedDocument(ThemeLoadError):
    pass


class UnknownReference(ThemeLoadError):
    def __init__(self, name: str, *, referenced_by: str | None = None) -> None:
        self.name = name
        self.referenced_by = referenced_by
        if referenced_by:
            super().__init__(f"image `{referenced_by}` references unknown image `{name}`")
        else:
            super().__init__(f"unknown image reference `{name}`")


class DuplicateName(ThemeLoadError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"duplicate name `{name}`")


class CyclicReference(ThemeLoadError):
    def __init__(self, path: tuple[str, ...]) -> None:
        self.path = path
        super().__init__(f"cyclic image reference: {' -> '.join(path)}")


class InvalidGrid(ThemeLoadError):
    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(f"invalid grid image `{name}`: {reason}")


class PackError(ValueError):
    """Raised when atlas packing fails; the reload attempt is discarded."""


class RegionTooLarge(PackError):
    def __init__(self, source_id: str, width: int, height: int, page_size: int) -> None:
        self.source_id = source_id
        self.width = width
        self.height = height
        self.page_size = page_size
        super().__init__(
            f"region {width}x{height} from `{source_id}` exceeds atlas page size {page_size}"
        )


class MissingSource(PackError):
    def __init__(self, source_id: str) -> None:
        self.source_id = source_id
        super().__init__(f"source image `{source_id}` was not supplied")


class RegionOutOfBounds(PackError):
    def __init__(self, source_id: str, region: object, width: int, height: int) -> None:
        self.source_id = source_id
        self.region = region
        super().__init__(f"region {region} lies outside source `{source_id}` ({width}x{height})")


class ThemeInvariantError(RuntimeError):
    """A validated model was observed in a state the loader should have rejected."""
