"""
Annotation element types layered over a page.

Elements are immutable; edits produce a new element through
``with_changes``. Positions are in overlay (page) space: points, origin
at the top-left corner of the page.
"""
import base64
import binascii
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Tuple, Type, Union

import fitz  # PyMuPDF

from pagecraft.core.config import Config
from pagecraft.utils.colors import hex_to_rgb255


class AnnotationType(Enum):
    TEXT = "text"
    IMAGE = "image"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    LINE = "line"


class ToolMode(Enum):
    """Current editor tool. Every tool but SELECT adds one element per use."""

    SELECT = "select"
    ADD_TEXT = "text"
    ADD_IMAGE = "image"
    ADD_RECTANGLE = "rectangle"
    ADD_CIRCLE = "circle"
    ADD_LINE = "line"

    @property
    def annotation_type(self):
        """The element type this tool creates, or None for SELECT."""
        if self is ToolMode.SELECT:
            return None
        return AnnotationType(self.value)


# Fields that identify an element and may never change through an update
IDENTITY_FIELDS = frozenset({"id", "page_index"})


@dataclass(frozen=True)
class AnnotationElement:
    """Common attributes of every overlay element."""

    id: str
    page_index: int  # 0-based owning page
    x: float
    y: float

    annotation_type: ClassVar[AnnotationType]

    def __post_init__(self):
        if self.page_index < 0:
            raise ValueError("page_index must be non-negative")

    @property
    def element_height(self) -> float:
        """Height used when flipping the element into PDF space."""
        return 0.0

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Bounding box (x0, y0, x1, y1) in overlay space."""
        return self.x, self.y, self.x, self.y

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        """Check if an overlay point falls inside the element's bounds."""
        x0, y0, x1, y1 = self.bounds
        return (x0 - tolerance <= x <= x1 + tolerance
                and y0 - tolerance <= y <= y1 + tolerance)

    def with_changes(self, **changes: Any) -> "AnnotationElement":
        """
        Get a copy of this element with some attributes changed.

        Raises:
            ValueError: If the changes touch ``id`` or ``page_index`` (moving
                an element to another page is a delete plus an insert)
            TypeError: If a change names an unknown attribute
        """
        forbidden = IDENTITY_FIELDS.intersection(changes)
        if forbidden:
            raise ValueError(f"Cannot change {', '.join(sorted(forbidden))} of an element")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert element to dictionary for JSON serialization."""
        data = {'type': self.annotation_type.value}
        for f in fields(self):
            data[f.name] = getattr(self, f.name)
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AnnotationElement":
        """Create an element from a dictionary produced by ``to_dict``."""
        payload = dict(data)
        element_cls = ELEMENT_TYPES[AnnotationType(payload.pop('type'))]
        return element_cls._from_payload(payload)

    @classmethod
    def _from_payload(cls, payload: Dict[str, Any]) -> "AnnotationElement":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in payload.items() if k in known})


def _check_style(fill_color, stroke_color, stroke_width, opacity):
    for color in (fill_color, stroke_color):
        if color is not None:
            hex_to_rgb255(color)
    if stroke_width < 0:
        raise ValueError("stroke_width must be non-negative")
    if not 0.0 <= opacity <= 1.0:
        raise ValueError("opacity must be between 0 and 1")


@dataclass(frozen=True)
class TextElement(AnnotationElement):
    content: str = Config.DEFAULT_TEXT
    font_size: float = Config.DEFAULT_FONT_SIZE
    font_family: str = Config.DEFAULT_FONT_FAMILY
    color: str = Config.DEFAULT_TEXT_COLOR

    annotation_type: ClassVar[AnnotationType] = AnnotationType.TEXT

    def __post_init__(self):
        super().__post_init__()
        if self.font_size <= 0:
            raise ValueError("font_size must be positive")
        hex_to_rgb255(self.color)

    @property
    def element_height(self) -> float:
        return self.font_size

    @property
    def text_width(self) -> float:
        return fitz.get_text_length(
            self.content, fontname=Config.get_pdf_font(self.font_family),
            fontsize=self.font_size,
        )

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.text_width, self.y + self.font_size


@dataclass(frozen=True)
class ImageElement(AnnotationElement):
    data: bytes = field(default=b"", repr=False)  # encoded PNG/JPEG bytes
    width: float = Config.DEFAULT_IMAGE_SIZE[0]
    height: float = Config.DEFAULT_IMAGE_SIZE[1]
    mime_type: str = "image/png"

    annotation_type: ClassVar[AnnotationType] = AnnotationType.IMAGE

    def __post_init__(self):
        super().__post_init__()
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Image width and height must be positive")

    @property
    def element_height(self) -> float:
        return self.height

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    @property
    def data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @staticmethod
    def decode_data_uri(uri: str) -> Tuple[bytes, str]:
        """
        Split a ``data:<mime>;base64,<payload>`` URI.

        Returns:
            Tuple of (decoded bytes, mime type)
        """
        header, sep, payload = uri.partition(",")
        if not sep or not header.startswith("data:") or not header.endswith(";base64"):
            raise ValueError("Expected a base64 data URI")
        mime_type = header[len("data:"):-len(";base64")] or "application/octet-stream"
        try:
            return base64.b64decode(payload, validate=True), mime_type
        except binascii.Error as e:
            raise ValueError("Invalid base64 payload in data URI") from e

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['data'] = base64.b64encode(self.data).decode("ascii")
        return data

    @classmethod
    def _from_payload(cls, payload: Dict[str, Any]) -> "ImageElement":
        payload = dict(payload)
        payload['data'] = base64.b64decode(payload.get('data', ""))
        return super()._from_payload(payload)


@dataclass(frozen=True)
class RectangleElement(AnnotationElement):
    width: float = Config.DEFAULT_RECT_SIZE[0]
    height: float = Config.DEFAULT_RECT_SIZE[1]
    fill_color: str = Config.DEFAULT_FILL_COLOR
    stroke_color: str = Config.DEFAULT_STROKE_COLOR
    stroke_width: float = Config.DEFAULT_STROKE_WIDTH
    opacity: float = Config.DEFAULT_OPACITY

    annotation_type: ClassVar[AnnotationType] = AnnotationType.RECTANGLE

    def __post_init__(self):
        super().__post_init__()
        if self.width < 0 or self.height < 0:
            raise ValueError("Rectangle width and height must be non-negative")
        _check_style(self.fill_color, self.stroke_color, self.stroke_width, self.opacity)

    @property
    def element_height(self) -> float:
        return self.height

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass(frozen=True)
class CircleElement(AnnotationElement):
    """Circle positioned by the top-left corner of its bounding box."""

    radius: float = Config.DEFAULT_CIRCLE_RADIUS
    fill_color: str = Config.DEFAULT_FILL_COLOR
    stroke_color: str = Config.DEFAULT_STROKE_COLOR
    stroke_width: float = Config.DEFAULT_STROKE_WIDTH
    opacity: float = Config.DEFAULT_OPACITY

    annotation_type: ClassVar[AnnotationType] = AnnotationType.CIRCLE

    def __post_init__(self):
        super().__post_init__()
        if self.radius <= 0:
            raise ValueError("radius must be positive")
        _check_style(self.fill_color, self.stroke_color, self.stroke_width, self.opacity)

    @property
    def element_height(self) -> float:
        return 2 * self.radius

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.radius, self.y + self.radius

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + 2 * self.radius, self.y + 2 * self.radius

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        cx, cy = self.center
        return (x - cx) ** 2 + (y - cy) ** 2 <= (self.radius + tolerance) ** 2


@dataclass(frozen=True)
class LineElement(AnnotationElement):
    """Straight line from (x, y) to (x + dx, y + dy)."""

    dx: float = Config.DEFAULT_LINE_DELTA[0]
    dy: float = Config.DEFAULT_LINE_DELTA[1]
    stroke_color: str = Config.DEFAULT_STROKE_COLOR
    stroke_width: float = Config.DEFAULT_STROKE_WIDTH
    opacity: float = Config.DEFAULT_OPACITY

    annotation_type: ClassVar[AnnotationType] = AnnotationType.LINE

    def __post_init__(self):
        super().__post_init__()
        _check_style(None, self.stroke_color, self.stroke_width, self.opacity)

    @property
    def start(self) -> Tuple[float, float]:
        return self.x, self.y

    @property
    def end(self) -> Tuple[float, float]:
        return self.x + self.dx, self.y + self.dy

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        (x0, y0), (x1, y1) = self.start, self.end
        return min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1)

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        tolerance = max(tolerance, self.stroke_width / 2 + 2.0)
        (x1, y1), (x2, y2) = self.start, self.end
        length_sq = (x2 - x1) ** 2 + (y2 - y1) ** 2
        if length_sq == 0:
            return ((x - x1) ** 2 + (y - y1) ** 2) ** 0.5 <= tolerance
        t = max(0, min(1, ((x - x1) * (x2 - x1) + (y - y1) * (y2 - y1)) / length_sq))
        nearest_x = x1 + t * (x2 - x1)
        nearest_y = y1 + t * (y2 - y1)
        return ((x - nearest_x) ** 2 + (y - nearest_y) ** 2) ** 0.5 <= tolerance


Element = Union[TextElement, ImageElement, RectangleElement, CircleElement, LineElement]

ELEMENT_TYPES: Dict[AnnotationType, Type[AnnotationElement]] = {
    AnnotationType.TEXT: TextElement,
    AnnotationType.IMAGE: ImageElement,
    AnnotationType.RECTANGLE: RectangleElement,
    AnnotationType.CIRCLE: CircleElement,
    AnnotationType.LINE: LineElement,
}
