# utils/pdf_workers.py
"""PDFのラスタライズ、ファイル一覧の取得、保存をバックグラウンドで実行するためのスレッド機能を提供します。"""
import logging
from typing import List, Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from models.annotation_models import Annotation, PageRender
from models.document_models import DocumentFile
from models.errors import CancelledRender, CompositionFailure, EditorError, RenderFailure, UploadFailure
from services.base_service import BaseService
from services.page_rasterizer import ByteSource, PageRasterizer, RenderToken
from services.version_save_service import VersionSaveService

logger = logging.getLogger(__name__)


class RenderThread(QThread):
    """PDFの全ページを順にラスタライズするワーカースレッド。

    Signals:
        page_ready (pyqtSignal): (RenderToken, PageRender) ページ番号の昇順に1ページずつ送信します。
        render_failed (pyqtSignal): (RenderToken, str) 取得・解析・レンダリングに失敗した際に送信します。
        render_finished (pyqtSignal): (RenderToken) 全ページのレンダリングが完了した際に送信します。

    取り消されたレンダリングはどのシグナルも送信せずに終了します。
    """
    page_ready = pyqtSignal(object, object)
    render_failed = pyqtSignal(object, str)
    render_finished = pyqtSignal(object)

    def __init__(self, rasterizer: PageRasterizer, source: ByteSource, token: RenderToken,
                 parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.rasterizer = rasterizer
        self.source = source
        self.token = token

    def run(self) -> None:
        """スレッドのメイン処理。"""
        try:
            for page in self.rasterizer.iter_pages(self.source, self.token):
                self.page_ready.emit(self.token, page)
        except CancelledRender as e:
            logger.debug("Render cancelled: %s", e)
            return
        except RenderFailure as e:
            logger.warning("Render failed for %r: %s", self.token, e)
            self.render_failed.emit(self.token, str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error while rendering %r", self.token)
            self.render_failed.emit(self.token, f"予期せぬエラーが発生しました: {e}")
            return
        if not self.token.cancelled:
            self.render_finished.emit(self.token)


class FileListThread(QThread):
    """編集対象にできるファイルの一覧を取得するワーカースレッド。

    Signals:
        result_ready (pyqtSignal): ファイル一覧（List[DocumentFile]）を送信します。
        error_occurred (pyqtSignal): エラーメッセージ（str）を送信します。
    """
    result_ready = pyqtSignal(list)
    error_occurred = pyqtSignal(str)

    def __init__(self, file_service: BaseService, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.file_service = file_service

    def run(self) -> None:
        try:
            files: List[DocumentFile] = self.file_service.list_files()
            self.result_ready.emit(files)
        except EditorError as e:
            self.error_occurred.emit(f"エラー：ファイル一覧を取得できませんでした。\n{e}")
        except Exception as e:
            logger.exception("Unexpected error while listing files")
            self.error_occurred.emit(f"予期せぬエラーが発生しました: {e}")


class SaveThread(QThread):
    """注釈を焼き込んだPDFを作成し、新しいバージョンとして登録するワーカースレッド。

    Signals:
        saved (pyqtSignal): 新しいファイルのID（Optional[str]）を送信します。
        save_failed (pyqtSignal): エラーメッセージ（str）を送信します。
    """
    saved = pyqtSignal(object)
    save_failed = pyqtSignal(str)

    def __init__(self, save_service: VersionSaveService, source_file: DocumentFile,
                 annotations: List[Annotation], page_renders: List[PageRender],
                 parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.save_service = save_service
        self.source_file = source_file
        self.annotations = annotations
        self.page_renders = page_renders

    def run(self) -> None:
        try:
            new_file_id = self.save_service.save(self.source_file, self.annotations, self.page_renders)
        except CompositionFailure as e:
            logger.warning("Composition failed: %s", e)
            self.save_failed.emit(f"PDFを作成できませんでした。\n{e}")
            return
        except UploadFailure as e:
            logger.warning("Upload failed: %s", e)
            self.save_failed.emit(f"新しいバージョンを保存できませんでした。\n{e}")
            return
        except Exception as e:
            logger.exception("Unexpected error while saving")
            self.save_failed.emit(f"予期せぬエラーが発生しました: {e}")
            return
        self.saved.emit(new_file_id)
