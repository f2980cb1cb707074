"""
Flattening of overlay elements onto a rendered page image.
"""
import io
from typing import Iterable

from PIL import Image, ImageDraw, ImageFont

from pagecraft.core.annotations.models import AnnotationElement, AnnotationType
from pagecraft.utils.colors import hex_to_rgb255, with_alpha


# Font family -> TrueType file Pillow may find on the system
TRUETYPE_FILES = {
    "arial": "arial.ttf",
    "helvetica": "arial.ttf",
    "times new roman": "times.ttf",
    "times": "times.ttf",
    "courier new": "cour.ttf",
    "courier": "cour.ttf",
}


def load_font(font_family: str, size: float) -> ImageFont.ImageFont:
    """Load a TrueType font for a UI family, falling back to Pillow's default font."""
    size = max(1, int(round(size)))
    file_name = TRUETYPE_FILES.get((font_family or "").strip().lower(), "DejaVuSans.ttf")
    for candidate in (file_name, "DejaVuSans.ttf"):
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _scaled(values, scale):
    return [v * scale for v in values]


def draw_element(base: Image.Image, element: AnnotationElement, scale: float) -> Image.Image:
    """
    Composite one element onto an RGBA page image.

    Each element gets its own layer so translucent elements blend with
    everything painted before them.

    Args:
        base: RGBA page image
        element: Element in overlay space
        scale: Pixels per point of ``base``

    Returns:
        The composited image
    """
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    kind = element.annotation_type

    if kind is AnnotationType.TEXT:
        font = load_font(element.font_family, element.font_size * scale)
        draw.text((element.x * scale, element.y * scale), element.content,
                  font=font, fill=hex_to_rgb255(element.color) + (255,))

    elif kind is AnnotationType.IMAGE:
        picture = Image.open(io.BytesIO(element.data)).convert("RGBA")
        size = (max(1, int(round(element.width * scale))),
                max(1, int(round(element.height * scale))))
        picture = picture.resize(size)
        layer.paste(picture, (int(round(element.x * scale)), int(round(element.y * scale))), picture)

    elif kind is AnnotationType.RECTANGLE:
        draw.rectangle(
            _scaled(element.bounds, scale),
            fill=with_alpha(element.fill_color, element.opacity),
            outline=with_alpha(element.stroke_color, element.opacity) if element.stroke_width else None,
            width=max(0, int(round(element.stroke_width * scale))),
        )

    elif kind is AnnotationType.CIRCLE:
        draw.ellipse(
            _scaled(element.bounds, scale),
            fill=with_alpha(element.fill_color, element.opacity),
            outline=with_alpha(element.stroke_color, element.opacity) if element.stroke_width else None,
            width=max(0, int(round(element.stroke_width * scale))),
        )

    elif kind is AnnotationType.LINE:
        draw.line(
            _scaled(element.start + element.end, scale),
            fill=with_alpha(element.stroke_color, element.opacity),
            width=max(1, int(round(element.stroke_width * scale))),
        )

    else:
        raise TypeError(f"Unsupported element type: {kind}")

    return Image.alpha_composite(base, layer)


def flatten_overlay(page_image: Image.Image, elements: Iterable[AnnotationElement],
                    scale: float) -> Image.Image:
    """
    Paint elements, in order, over a rendered page.

    Raises:
        OSError: If an embedded image cannot be decoded
    """
    image = page_image.convert("RGBA")
    for element in elements:
        image = draw_element(image, element, scale)
    return image.convert("RGB")


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
