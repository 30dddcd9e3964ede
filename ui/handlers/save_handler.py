from __future__ import annotations
import logging
from typing import TYPE_CHECKING, List, Optional

from PyQt6.QtWidgets import QMessageBox

from models.errors import NothingToSave, SaveInProgress
from utils.pdf_workers import SaveThread

if TYPE_CHECKING:
    from ..main_window import EditorWindow

logger = logging.getLogger(__name__)


class SaveHandler:
    """
    注釈を焼き込んだPDFを新しいバージョンとして保存する処理を担うハンドラクラス。

    保存中は保存ボタンを無効にし、二重に保存が始まらないようにします。
    成功時は注釈を破棄してファイル一覧を取得し直し、新しいファイルを選択します。
    失敗時は注釈を残したままエラーを表示し、再試行できるようにします。
    """
    def __init__(self, main_window: EditorWindow) -> None:
        """
        SaveHandlerのコンストラクタ。

        Args:
            main_window (EditorWindow): 親となるメインウィンドウインスタンス。
        """
        self.main: EditorWindow = main_window
        self.save_thread: Optional[SaveThread] = None
        self._finished_threads: List[SaveThread] = []

    def save_as_new_version(self) -> None:
        """現在の注釈を元のPDFに合成し、新しいバージョンとして保存する。"""
        session = self.main.session
        source_file = self.main.pdf_handler.current_file
        if source_file is None:
            QMessageBox.information(self.main, "保存", "保存するPDFが選択されていません。")
            return
        try:
            snapshot = session.begin_save()
        except SaveInProgress:
            logger.debug("Save requested while another save is running")
            return
        except NothingToSave as e:
            QMessageBox.information(self.main, "保存", str(e))
            return

        self.main.update_actions()
        self.main.statusBar().showMessage("保存しています…")
        logger.info("Saving %d annotation(s) onto %s", len(snapshot), source_file.name)
        thread = SaveThread(self.main.save_service, source_file, snapshot, list(session.pages), self.main)
        thread.saved.connect(self.on_saved)
        thread.save_failed.connect(self.on_save_failed)
        self.save_thread = thread
        thread.start()

    def on_saved(self, new_file_id: Optional[str]) -> None:
        self._release_thread()
        self.main.session.finish_save(True)
        self.main.annotation_handler.refresh()
        self.main.statusBar().showMessage("新しいバージョンとして保存しました", 5000)
        self.main.pdf_handler.load_file_list(select_id=new_file_id)

    def on_save_failed(self, message: str) -> None:
        self._release_thread()
        self.main.session.finish_save(False)
        self.main.annotation_handler.refresh()
        self.main.statusBar().showMessage("保存に失敗しました")
        QMessageBox.critical(self.main, "保存エラー", message)

    def _release_thread(self) -> None:
        # シグナル送信直後はスレッドがまだ終了していないことがあるので、参照を残しておく
        if self.save_thread is not None:
            self._finished_threads = [t for t in self._finished_threads if t.isRunning()]
            self._finished_threads.append(self.save_thread)
        self.save_thread = None

    def shutdown(self, timeout_ms: int = 10000) -> None:
        """終了時に保存中のスレッドがあれば完了を待つ。"""
        for thread in [self.save_thread, *self._finished_threads]:
            if thread is not None and thread.isRunning() and not thread.wait(timeout_ms):
                logger.warning("Save thread did not finish in time")
