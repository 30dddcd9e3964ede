from __future__ import annotations
import functools
import logging
from typing import TYPE_CHECKING, List, Optional

from PyQt6.QtWidgets import QMessageBox

from models.annotation_models import PageRender
from models.document_models import DocumentFile
from services.page_rasterizer import PageRasterizer, RenderSession, RenderToken
from utils.pdf_workers import FileListThread, RenderThread

if TYPE_CHECKING:
    from ..main_window import EditorWindow

logger = logging.getLogger(__name__)


class PDFHandler:
    """
    編集対象ファイルの一覧取得、選択されたPDFのラスタライズ、ページ移動など、
    PDFの表示に関する処理を担うハンドラクラス。

    ラスタライズは RenderThread で行い、ファイルが切り替わるたびに RenderSession が
    古いレンダリングを取り消します。古いレンダリングから届いたページは表示しません。
    """
    def __init__(self, main_window: EditorWindow, rasterizer: PageRasterizer,
                 initial_file_id: Optional[str] = None) -> None:
        """
        PDFHandlerのコンストラクタ。

        Args:
            main_window (EditorWindow): 親となるメインウィンドウインスタンス。
            rasterizer (PageRasterizer): ページ画像を作成するラスタライザ。
            initial_file_id (Optional[str]): 起動時に選択するファイルのID。
        """
        self.main: EditorWindow = main_window
        self.rasterizer: PageRasterizer = rasterizer
        self.render_session: RenderSession = RenderSession()
        self.files: List[DocumentFile] = []
        self.current_file: Optional[DocumentFile] = None
        self._preferred_file_id: Optional[str] = initial_file_id
        self._threads: List = []

    # --- ファイル一覧 ---
    def load_file_list(self, select_id: Optional[str] = None) -> None:
        """ファイル一覧をバックグラウンドで取得する。取得後、select_id のファイルを選択する。"""
        if select_id:
            self._preferred_file_id = select_id
        self.main.statusBar().showMessage("ファイル一覧を取得しています…")
        thread = FileListThread(self.main.file_service, self.main)
        thread.result_ready.connect(self.on_file_list_ready)
        thread.error_occurred.connect(self.on_file_list_error)
        self._start_thread(thread)

    def on_file_list_ready(self, files: List[DocumentFile]) -> None:
        """PDFとみなせるファイルだけをコンボボックスに並べ、選択すべきファイルを開く。"""
        pdf_files = [f for f in files if f.is_pdf_like()]
        self.files = pdf_files
        combo = self.main.file_combo
        combo.blockSignals(True)
        try:
            combo.clear()
            for f in pdf_files:
                label = f.name if not f.version else f"{f.name}（v{f.version}）"
                combo.addItem(label, f.id)
        finally:
            combo.blockSignals(False)

        if not pdf_files:
            self.main.statusBar().showMessage("編集できるPDFファイルがありません")
            self.current_file = None
            self.render_session.cancel()
            self.main.session.switch_file()
            self.main.session.rendering_finished([])
            self.main.annotation_handler.refresh()
            return

        target = self._choose_file(pdf_files)
        self._preferred_file_id = None
        combo.blockSignals(True)
        combo.setCurrentIndex(pdf_files.index(target))
        combo.blockSignals(False)
        self.main.statusBar().showMessage(f"{len(pdf_files)}件のPDFファイル", 3000)
        if self.current_file is None or self.current_file.id != target.id or not self.main.session.pages:
            self.select_file(target)
        else:
            self.current_file = target

    def on_file_list_error(self, message: str) -> None:
        logger.error("File list failed: %s", message)
        self.main.statusBar().showMessage("ファイル一覧の取得に失敗しました")
        QMessageBox.warning(self.main, "ファイル一覧エラー", message)

    def _choose_file(self, files: List[DocumentFile]) -> DocumentFile:
        """優先ID → 現在のファイル → 一覧の先頭の順で選ぶ。"""
        for wanted in (self._preferred_file_id, self.current_file.id if self.current_file else None):
            if wanted:
                for f in files:
                    if f.id == wanted:
                        return f
        return files[0]

    def on_file_combo_changed(self, index: int) -> None:
        if 0 <= index < len(self.files):
            self.select_file(self.files[index])

    # --- レンダリング ---
    def select_file(self, file: DocumentFile) -> None:
        """
        ファイルを切り替える。

        進行中のレンダリングを取り消し、注釈・選択状態・ページをすべて破棄してから、
        新しいファイルのラスタライズを開始します。
        """
        logger.info("Switching to file %s (%s)", file.id, file.name)
        self.current_file = file
        self.main.session.switch_file()
        self.main.canvas.clear_annotations()
        token = self.render_session.begin(file.id)
        source = functools.partial(self.main.file_service.load_data, file.id)
        thread = RenderThread(self.rasterizer, source, token, self.main)
        thread.page_ready.connect(self.on_page_ready)
        thread.render_failed.connect(self.on_render_failed)
        thread.render_finished.connect(self.on_render_finished)
        self.main.statusBar().showMessage(f"{file.name} を読み込んでいます…")
        self.main.annotation_handler.refresh()
        self._start_thread(thread)

    def on_page_ready(self, token: RenderToken, page: PageRender) -> None:
        """レンダリング済みのページを受け取る。古いトークンのページは捨てる。"""
        if not self.render_session.append(token, page):
            return
        self.main.session.set_pages(self.render_session.pages)
        if page.page_number == 1:
            self.main.annotation_handler.refresh()
        else:
            self.update_page_controls()

    def on_render_finished(self, token: RenderToken) -> None:
        if not self.render_session.finish(token):
            return
        pages = self.render_session.pages
        self.main.session.rendering_finished(pages)
        self.main.statusBar().showMessage(f"{len(pages)}ページを読み込みました", 3000)
        self.main.annotation_handler.refresh()

    def on_render_failed(self, token: RenderToken, message: str) -> None:
        """レンダリングの失敗を表示し、ページ数0の状態にする。"""
        if not self.render_session.fail(token, message):
            return
        self.main.session.rendering_finished([])
        self.main.annotation_handler.refresh()
        self.main.statusBar().showMessage("PDFを表示できませんでした")
        QMessageBox.critical(self.main, "読み込みエラー", f"PDFを表示できませんでした。\n{message}")

    # --- ページ移動 ---
    def go_to_page(self, page_number: int) -> None:
        if self.main.session.go_to_page(page_number):
            self.main.annotation_handler.refresh()
            self.main.scroll_area.verticalScrollBar().setValue(0)

    def prev_page(self) -> None:
        self.go_to_page(self.main.session.active_page - 1)

    def next_page(self) -> None:
        self.go_to_page(self.main.session.active_page + 1)

    def update_page_controls(self) -> None:
        session = self.main.session
        total = session.page_count
        current = session.active_page if total else 0
        suffix = "（読み込み中）" if session.is_rendering else ""
        self.main.page_label.setText(f"{current} / {total}{suffix}")
        self.main.prev_button.setEnabled(total > 0 and current > 1)
        self.main.next_button.setEnabled(total > 0 and current < total)

    # --- スレッド管理 ---
    def _start_thread(self, thread) -> None:
        self._threads = [t for t in self._threads if t.isRunning()]
        self._threads.append(thread)
        thread.start()

    def shutdown(self, timeout_ms: int = 3000) -> None:
        """終了時に進行中のレンダリングを取り消し、スレッドの終了を待つ。"""
        self.render_session.cancel()
        for thread in self._threads:
            if thread.isRunning() and not thread.wait(timeout_ms):
                logger.warning("Worker thread %r did not stop in time", thread)
        self._threads = []
