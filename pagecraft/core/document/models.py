"""
Immutable document and page descriptors produced by the loader.
"""
import hashlib
from dataclasses import dataclass, field, replace
from typing import Tuple

from pagecraft.core.geometry import fit_scale


@dataclass(frozen=True)
class Page:
    """Descriptor for a single page of a loaded PDF."""

    index: int  # 0-based, stable within a Document
    width: float  # points, source PDF space
    height: float  # points, source PDF space
    display_scale: float = 1.0

    @property
    def display_width(self) -> float:
        """Width of the page when fitted into the viewport."""
        return self.width * self.display_scale

    @property
    def display_height(self) -> float:
        """Height of the page when fitted into the viewport."""
        return self.height * self.display_scale

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    def fitted(self, max_width: float, max_height: float) -> "Page":
        """Get a copy of this page with its display scale fitted to a viewport."""
        return replace(
            self,
            display_scale=fit_scale(self.width, self.height, max_width, max_height),
        )


@dataclass(frozen=True)
class Document:
    """
    Source of truth for a loaded PDF.

    The raw bytes are never mutated; a new upload replaces the Document
    wholesale.
    """

    data: bytes = field(repr=False)
    pages: Tuple[Page, ...] = ()

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def fingerprint(self) -> str:
        """SHA-256 of the raw bytes, used to key side files."""
        return hashlib.sha256(self.data).hexdigest()

    def get_page(self, index: int) -> Page:
        """
        Get a page descriptor.

        Args:
            index: 0-based page index

        Returns:
            The page descriptor

        Raises:
            IndexError: If the index is outside ``[0, page_count)``
        """
        if not 0 <= index < self.page_count:
            raise IndexError(f"Page index {index} out of range 0..{self.page_count - 1}")
        return self.pages[index]

    def has_page(self, index: int) -> bool:
        return 0 <= index < self.page_count

    def with_viewport(self, max_width: float, max_height: float) -> "Document":
        """Get a copy of the document with every page refitted to a viewport."""
        return replace(
            self, pages=tuple(p.fitted(max_width, max_height) for p in self.pages)
        )
