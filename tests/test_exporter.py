import io
import logging
import re
from datetime import datetime, timezone

import fitz
import pytest
from PIL import Image, ImageChops

from pagecraft.core.annotations import (
    CircleElement,
    ImageElement,
    LineElement,
    RectangleElement,
    TextElement,
)
from pagecraft.core.config import EXPORT_STRATEGIES, _env_choice
from pagecraft.core.document import DocumentLoader, rotate_pdf
from pagecraft.core.errors import (
    ExportCancelledError,
    NoDocumentError,
    RasterFailureError,
    RenderError,
    SerializeFailureError,
)
from pagecraft.core.export import ExportStrategy, PDFExporter, export_filename
from pagecraft.core.render import PageRenderer

from conftest import make_pdf

TM_RE = re.compile(rb"(-?[\d.]+) (-?[\d.]+) Tm")


def _open(data):
    return fitz.open(stream=data, filetype="pdf")


def _text_positions(page):
    return [(float(x), float(y)) for x, y in TM_RE.findall(page.read_contents())]


@pytest.fixture
def document(loader, three_page_pdf):
    return loader.load(three_page_pdf)


def test_strategy_coercion():
    assert ExportStrategy.coerce(None) is ExportStrategy.SELECTIVE_REBUILD
    assert ExportStrategy.coerce("FULL_PAGE_RASTERIZE") is ExportStrategy.FULL_PAGE_RASTERIZE
    with pytest.raises(ValueError):
        ExportStrategy.coerce("bogus")


def test_export_filename():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert export_filename(now) == "edited-document-1704067200000.pdf"
    assert re.fullmatch(r"edited-document-\d+\.pdf", export_filename())


def test_no_document(qapp):
    with pytest.raises(NoDocumentError) as info:
        PDFExporter().export(None, {})
    assert info.value.kind == "no_document"


def test_text_scenario_selective_rebuild(qapp, document, three_page_pdf):
    text = TextElement(id="element_1", page_index=0, x=100, y=100, content="X", font_size=16)

    out = _open(PDFExporter().export(document, {0: [text]}, strategy="selective_rebuild"))
    src = _open(three_page_pdf)
    try:
        assert out.page_count == 3
        positions = _text_positions(out.load_page(0))
        assert any(x == pytest.approx(100) and y == pytest.approx(676) for x, y in positions)

        for index in (1, 2):
            assert out.load_page(index).read_contents() == src.load_page(index).read_contents()
    finally:
        out.close()
        src.close()


def test_text_lands_at_overlay_position(qapp, document):
    text = TextElement(id="t", page_index=0, x=300, y=400, content="Marker", font_size=20)

    out = _open(PDFExporter().export(document, {0: [text]}))
    try:
        hits = out.load_page(0).search_for("Marker")
        assert len(hits) == 1
        assert hits[0].x0 == pytest.approx(300, abs=1)
        # Baseline sits font_size below y, measured from the top of the page
        assert 375 <= hits[0].y0 <= 410
        assert 412 <= hits[0].y1 <= 432
    finally:
        out.close()


def test_rectangle_flipped_into_pdf_space(qapp, document):
    rect = RectangleElement(id="r", page_index=1, x=100, y=100, width=100, height=60)

    out = _open(PDFExporter().export(document, {1: [rect]}))
    try:
        page = out.load_page(1)
        assert b"100 632 100 60 re" in page.read_contents()
        drawing = page.get_drawings()[0]
        assert tuple(drawing['rect']) == pytest.approx((100, 100, 200, 160), abs=1.5)
        assert drawing['fill'] == pytest.approx((1.0, 0.0, 0.0))
        assert drawing['fill_opacity'] == pytest.approx(0.7, abs=0.01)
    finally:
        out.close()


def test_circle_and_line_positions(qapp, document):
    circle = CircleElement(id="c", page_index=0, x=10, y=20, radius=30, stroke_width=0)
    line = LineElement(id="l", page_index=0, x=50, y=300, dx=150, dy=0, stroke_width=1)

    out = _open(PDFExporter().export(document, {0: [circle, line]}))
    try:
        drawings = out.load_page(0).get_drawings()
        assert len(drawings) == 2
        assert tuple(drawings[0]['rect']) == pytest.approx((10, 20, 70, 80), abs=1)
        x0, y0, x1, y1 = drawings[1]['rect']
        assert (x0, x1) == pytest.approx((50, 200), abs=1)
        assert y0 == pytest.approx(300, abs=1) and y1 == pytest.approx(300, abs=1)
    finally:
        out.close()


def test_image_embedded(qapp, document, png_bytes):
    image = ImageElement(id="i", page_index=2, x=50, y=50, data=png_bytes, width=40, height=20)

    out = _open(PDFExporter().export(document, {2: [image]}))
    try:
        page = out.load_page(2)
        assert len(page.get_images()) == 1
        bbox = page.get_image_rects(page.get_images()[0][0])[0]
        assert tuple(bbox) == pytest.approx((50, 50, 90, 70), abs=1)
    finally:
        out.close()


def test_bad_image_data_is_serialize_failure(qapp, document):
    image = ImageElement(id="i", page_index=0, x=0, y=0, data=b"not an image")
    with pytest.raises(SerializeFailureError):
        PDFExporter().export(document, {0: [image]})


def test_zero_annotation_round_trip(qapp, loader, document):
    exported = PDFExporter().export(document, {})
    reloaded = loader.load(exported)

    assert reloaded.page_count == document.page_count
    for original, copy in zip(document.pages, reloaded.pages):
        assert (copy.width, copy.height) == pytest.approx((original.width, original.height))


def test_full_page_rasterize(qapp, document):
    rect = RectangleElement(id="r", page_index=0, x=100, y=100, width=100, height=60,
                            opacity=1.0, stroke_width=0)
    exporter = PDFExporter(strategy=ExportStrategy.FULL_PAGE_RASTERIZE, raster_scale=1.0)

    out = _open(exporter.export(document, {0: [rect]}))
    try:
        assert out.page_count == 3
        for page in out:
            assert page.rect.width == pytest.approx(612)
            assert len(page.get_images()) == 1
            assert page.get_text().strip() == ""
        pix = out.load_page(0).get_pixmap()
        assert pix.pixel(150, 130) == pytest.approx((255, 0, 0), abs=2)
        assert pix.pixel(400, 500) == pytest.approx((255, 255, 255), abs=2)
    finally:
        out.close()


def test_rasterize_selected_pages(qapp, document):
    exporter = PDFExporter(raster_scale=0.5)
    out = _open(exporter.export(document, {}, strategy="full_page_rasterize", pages=[1]))
    try:
        assert out.page_count == 1
    finally:
        out.close()

    with pytest.raises(RasterFailureError):
        exporter.export(document, {}, strategy="full_page_rasterize", pages=[7])


def test_rasterize_render_failure(qapp, document):
    class BrokenRenderer(PageRenderer):
        def render(self, document, page_index, scale):
            raise RenderError("no engine")

    with pytest.raises(RasterFailureError):
        PDFExporter().export(document, {}, strategy="full_page_rasterize",
                             renderer=BrokenRenderer())


def test_rasterize_bad_image_is_raster_failure(qapp, document):
    image = ImageElement(id="i", page_index=0, x=0, y=0, data=b"junk")
    with pytest.raises(RasterFailureError):
        PDFExporter(raster_scale=0.5).export(document, {0: [image]},
                                             strategy="full_page_rasterize")


def test_progress_and_cancel(qapp, document):
    exporter = PDFExporter()
    progress = []
    exporter.progress_signal.connect(lambda current, total: progress.append((current, total)))
    exporter.export(document, {})
    assert progress == [(1, 3), (2, 3), (3, 3)]

    exporter.progress_signal.connect(lambda current, total: exporter.cancel())
    with pytest.raises(ExportCancelledError):
        exporter.export(document, {})


def test_export_does_not_touch_overlay(qapp, document):
    text = TextElement(id="t", page_index=0, x=1, y=1)
    overlay = {0: (text,)}
    PDFExporter().export(document, overlay)
    assert overlay == {0: (text,)}


def test_cancel_before_export_is_honoured(qapp, document):
    exporter = PDFExporter()
    progress = []
    exporter.progress_signal.connect(lambda current, total: progress.append((current, total)))

    exporter.cancel()
    with pytest.raises(ExportCancelledError):
        exporter.export(document, {})
    assert progress == []

    # The request is used up by the export it stopped
    exporter.export(document, {})
    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_selective_rebuild_rejects_page_selection(qapp, document):
    with pytest.raises(ValueError):
        PDFExporter().export(document, {}, strategy="selective_rebuild", pages=[0])


def test_invalid_strategy_setting_falls_back(monkeypatch, caplog):
    monkeypatch.setenv("PAGECRAFT_EXPORT_STRATEGY", "sideways")
    with caplog.at_level(logging.WARNING, logger="pagecraft.core.config"):
        value = _env_choice("PAGECRAFT_EXPORT_STRATEGY", "selective_rebuild", EXPORT_STRATEGIES)
    assert value == "selective_rebuild"
    assert "sideways" in caplog.text

    monkeypatch.setenv("PAGECRAFT_EXPORT_STRATEGY", " Full_Page_Rasterize ")
    value = _env_choice("PAGECRAFT_EXPORT_STRATEGY", "selective_rebuild", EXPORT_STRATEGIES)
    assert ExportStrategy.coerce(value) is ExportStrategy.FULL_PAGE_RASTERIZE
    assert set(EXPORT_STRATEGIES) == {strategy.value for strategy in ExportStrategy}


# Rotated and cropped pages: the overlay lives on the visible page

def _rotated_page_pdf():
    return rotate_pdf(make_pdf(1, label=False), 90)


def _cropped_page_pdf():
    doc = fitz.open()
    page = doc.new_page(width=612, height=792)
    page.set_cropbox(fitz.Rect(50, 200, 612, 700))
    data = doc.tobytes()
    doc.close()
    return data


def _color_bbox(page, color, tolerance=60):
    """Bounding box of the rendered pixels close to ``color``."""
    pix = page.get_pixmap(alpha=False)
    image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
    mask = None
    for band, target in zip(image.split(), color):
        band_mask = band.point(lambda v, t=target: 255 if abs(v - t) <= tolerance else 0)
        mask = band_mask if mask is None else ImageChops.multiply(mask, band_mask)
    return mask.getbbox()


@pytest.mark.parametrize("strategy", ["selective_rebuild", "full_page_rasterize"])
@pytest.mark.parametrize("make_source", [_rotated_page_pdf, _cropped_page_pdf],
                         ids=["rotated", "cropped"])
def test_rectangle_lands_on_visible_page(qapp, make_source, strategy):
    document = DocumentLoader().load(make_source())
    rect = RectangleElement(id="r", page_index=0, x=100, y=100, width=100, height=60,
                            opacity=1.0, stroke_width=0)

    out = _open(PDFExporter(raster_scale=1.0).export(document, {0: [rect]}, strategy=strategy))
    try:
        page = out.load_page(0)
        source = document.get_page(0)
        assert (page.rect.width, page.rect.height) == pytest.approx((source.width, source.height))
        assert _color_bbox(page, (255, 0, 0)) == pytest.approx((100, 100, 200, 160), abs=2)
    finally:
        out.close()


def test_image_and_circle_upright_on_rotated_page(qapp):
    document = DocumentLoader().load(_rotated_page_pdf())
    picture = Image.new("RGB", (40, 20), (255, 0, 0))
    picture.paste((0, 0, 255), (20, 0, 40, 20))
    buffer = io.BytesIO()
    picture.save(buffer, format="PNG")
    image = ImageElement(id="i", page_index=0, x=100, y=100, data=buffer.getvalue(),
                         width=100, height=60)
    circle = CircleElement(id="c", page_index=0, x=400, y=300, radius=40,
                           fill_color="#00ff00", opacity=1.0, stroke_width=0)

    out = _open(PDFExporter().export(document, {0: [image, circle]}))
    try:
        page = out.load_page(0)
        # Red half on the left, blue half on the right, as placed
        assert _color_bbox(page, (255, 0, 0)) == pytest.approx((100, 100, 150, 160), abs=3)
        assert _color_bbox(page, (0, 0, 255)) == pytest.approx((150, 100, 200, 160), abs=3)
        assert _color_bbox(page, (0, 255, 0)) == pytest.approx((400, 300, 480, 380), abs=2)
    finally:
        out.close()


def test_text_reads_horizontally_on_rotated_page(qapp):
    document = DocumentLoader().load(_rotated_page_pdf())
    text = TextElement(id="t", page_index=0, x=100, y=100, content="MMMM", font_size=40)

    out = _open(PDFExporter().export(document, {0: [text]}))
    try:
        x0, y0, x1, y1 = _color_bbox(out.load_page(0), (0, 0, 0), tolerance=100)
        assert 100 <= x0 <= 108
        assert 100 <= y0 and y1 <= 142
        assert x1 - x0 > 2 * (y1 - y0)
    finally:
        out.close()
