import logging

import pytest

from pagecraft.core.annotations import TextElement
from pagecraft.core.export import ExportWorker
from pagecraft.utils import configure_logging


@pytest.fixture
def document(loader, three_page_pdf):
    return loader.load(three_page_pdf)


def test_worker_exports_and_reports_progress(qtbot, document):
    overlay = {0: (TextElement(id="t", page_index=0, x=10, y=10),)}
    worker = ExportWorker(document, overlay)
    pages = []
    worker.page_progress.connect(lambda current, total: pages.append((current, total)))

    with qtbot.waitSignal(worker.finished, timeout=10000) as blocker:
        worker.start()
    worker.wait()

    success, message = blocker.args
    assert success, message
    assert worker.result.startswith(b"%PDF")
    qtbot.waitUntil(lambda: len(pages) == 3)


def test_worker_writes_output_file(qtbot, document, tmp_path):
    target = tmp_path / "exported.pdf"
    worker = ExportWorker(document, {}, output_path=str(target))

    with qtbot.waitSignal(worker.finished, timeout=10000) as blocker:
        worker.start()
    worker.wait()

    assert blocker.args[0] is True
    assert target.read_bytes() == worker.result
    assert [p.name for p in tmp_path.iterdir()] == ["exported.pdf"]


def test_worker_reports_failure(qtbot):
    worker = ExportWorker(None, {})

    with qtbot.waitSignal(worker.finished, timeout=10000) as blocker:
        worker.start()
    worker.wait()

    success, message = blocker.args
    assert success is False
    assert "No PDF document loaded" in message
    assert worker.result is None
    assert worker.error.kind == "no_document"


def test_configure_logging_quiets_third_party():
    configure_logging("debug")
    assert logging.getLogger("fitz").level == logging.WARNING
    assert logging.getLogger("PIL").level == logging.WARNING


def test_worker_cancelled_before_start(qtbot, document):
    worker = ExportWorker(document, {})
    worker.cancel()

    with qtbot.waitSignal(worker.finished, timeout=10000) as blocker:
        worker.start()
    worker.wait()

    success, message = blocker.args
    assert success is False
    assert "cancelled" in message
    assert worker.error.kind == "export_cancelled"
    assert worker.result is None


def test_worker_reports_rejected_arguments(qtbot, document):
    worker = ExportWorker(document, {}, strategy="selective_rebuild", pages=[0])

    with qtbot.waitSignal(worker.finished, timeout=10000) as blocker:
        worker.start()
    worker.wait()

    assert blocker.args[0] is False
    assert isinstance(worker.error, ValueError)
