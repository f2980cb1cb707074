# pagecraft/core/export/export_worker.py

import logging
import os
import shutil
import tempfile

from PyQt5.QtCore import QThread, pyqtSignal

from pagecraft.core.errors import PagecraftError

from .pdf_exporter import PDFExporter

logger = logging.getLogger(__name__)


class ExportWorker(QThread):
    """Worker thread for exporting a document without freezing the UI."""

    # Signals
    finished = pyqtSignal(bool, str)  # success, message
    progress = pyqtSignal(str)  # status message
    page_progress = pyqtSignal(int, int)  # current, total pages

    def __init__(self, document, overlay, strategy=None, pages=None,
                 output_path=None, exporter=None):
        super().__init__()
        self.document = document
        self.overlay = overlay
        self.strategy = strategy
        self.pages = pages
        self.output_path = output_path
        self.temp_path = None
        self.result = None
        self.error = None
        self.exporter = exporter or PDFExporter()

    def cancel(self):
        self.exporter.cancel()

    def run(self):
        """Execute the export in a background thread."""
        self.exporter.progress_signal.connect(self._on_page_progress)
        try:
            self.progress.emit("Exporting document...")
            self.result = self.exporter.export(
                self.document, self.overlay, strategy=self.strategy, pages=self.pages)

            if self.output_path:
                self.progress.emit("Finalizing...")
                self._write_output(self.result)
            self.finished.emit(True, "Document exported successfully")

        except (PagecraftError, OSError, ValueError) as e:
            self.error = e
            logger.error("Export failed: %s", e)
            self._cleanup_temp()
            self.finished.emit(False, f"Error during export: {e}")
        finally:
            self.exporter.progress_signal.disconnect(self._on_page_progress)

    def _write_output(self, data):
        # Write beside the target then move, so a failed write never truncates it
        output_dir = os.path.dirname(os.path.abspath(self.output_path))
        temp_fd, self.temp_path = tempfile.mkstemp(suffix='.pdf', dir=output_dir)
        with os.fdopen(temp_fd, 'wb') as f:
            f.write(data)
        shutil.move(self.temp_path, self.output_path)
        self.temp_path = None

    def _cleanup_temp(self):
        if self.temp_path and os.path.exists(self.temp_path):
            os.remove(self.temp_path)
        self.temp_path = None

    def _on_page_progress(self, current, total):
        """Handle page-level progress updates."""
        self.page_progress.emit(current, total)
