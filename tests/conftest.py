import io
import os

# Qt must not try to reach a display while tests run
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import fitz
import pytest
from PIL import Image

from pagecraft.controllers import EditSessionController
from pagecraft.core.document import DocumentLoader


def make_pdf(page_count=3, width=612, height=792, label=True):
    """Build a PDF in memory with a line of text on every page."""
    doc = fitz.open()
    for index in range(page_count):
        page = doc.new_page(width=width, height=height)
        if label:
            page.insert_text((72, 72), f"Page {index + 1}", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(width=20, height=10, color=(0, 128, 255)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Keep overlay files written by tests inside a temporary directory."""
    path = tmp_path / "appdata"
    monkeypatch.setenv("PAGECRAFT_DATA_DIR", str(path))
    return path


@pytest.fixture
def three_page_pdf():
    return make_pdf(3)


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def loader():
    return DocumentLoader(max_width=800, max_height=600)


@pytest.fixture
def controller(qapp, three_page_pdf):
    ctrl = EditSessionController(loader=DocumentLoader(max_width=800, max_height=600))
    ctrl.load_document(three_page_pdf)
    yield ctrl
    ctrl.close()
