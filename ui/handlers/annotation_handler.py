from __future__ import annotations
import logging
import os
from typing import TYPE_CHECKING, Optional, Tuple

from PyQt6.QtCore import QBuffer, QByteArray, QIODevice
from PyQt6.QtGui import QImage
from PyQt6.QtWidgets import QFileDialog, QMessageBox

from models.annotation_models import AnnotationType
from utils.pdf_utils import PDFUtils

if TYPE_CHECKING:
    from ..main_window import EditorWindow

logger = logging.getLogger(__name__)

IMAGE_FILE_FILTER = "画像ファイル (*.png *.jpg *.jpeg *.bmp *.gif *.webp)"


class AnnotationHandler:
    """
    ページ上の注釈（テキスト、画像、署名）の操作を EditorSession に伝え、
    その結果をキャンバスとプロパティパネルに反映するハンドラクラス。

    注釈の状態はすべて EditorSession が保持し、このクラスは操作のたびに
    refresh() で表示を作り直すだけです。
    """
    def __init__(self, main_window: EditorWindow) -> None:
        """
        AnnotationHandlerのコンストラクタ。

        Args:
            main_window (EditorWindow): 親となるメインウィンドウインスタンス。
        """
        self.main: EditorWindow = main_window

    def connect_signals(self) -> None:
        """キャンバスとプロパティパネルのシグナルを接続する。"""
        canvas = self.main.canvas
        canvas.background_clicked.connect(self.on_background_clicked)
        canvas.annotation_selected.connect(self.on_annotation_selected)
        canvas.annotation_edit_requested.connect(self.on_edit_requested)
        canvas.annotation_moved.connect(self.on_annotation_moved)
        canvas.annotation_resized.connect(self.on_annotation_resized)
        canvas.annotation_text_changed.connect(self.on_text_changed)
        canvas.annotation_delete_requested.connect(self.remove_annotation)

        panel = self.main.panel
        panel.text_edited.connect(self.on_text_changed)
        panel.font_changed.connect(self.on_font_changed)
        panel.font_size_changed.connect(self.on_font_size_changed)
        panel.text_color_changed.connect(lambda aid, color: self._apply(self.main.session.change_colors(aid, text_color=color)))
        panel.background_color_changed.connect(
            lambda aid, color: self._apply(self.main.session.change_colors(aid, background_color=color))
        )
        panel.remove_requested.connect(self.remove_annotation)

    # --- 表示の更新 ---
    def refresh(self) -> None:
        """表示中のページ、注釈ウィジェット、パネル、ツールバーを現在の状態に合わせる。"""
        session = self.main.session
        page = session.current_page()
        self.main.canvas.show_page(page)
        if page is None:
            self.main.canvas.clear_annotations()
        else:
            self.main.canvas.sync_annotations(session.store.for_page(page.page_number), session.store.selection)
        self.main.panel.set_annotation(session.selected)
        self.main.update_actions()

    def _apply(self, result) -> None:
        if result is not None:
            self.refresh()

    # --- 追加 ---
    def add_text_annotation(self) -> None:
        """表示中のページにテキスト注釈を追加し、そのまま編集モードにする。"""
        if self.main.session.add_text() is None:
            return
        self.refresh()

    def add_image_annotation(self, kind: AnnotationType = AnnotationType.IMAGE) -> None:
        """画像ファイルを選択させ、画像（または署名）注釈として追加する。"""
        if not self.main.session.tools_enabled:
            return
        title = "署名画像を選択" if kind == AnnotationType.SIGNATURE else "画像を選択"
        file_path, _ = QFileDialog.getOpenFileName(self.main, title, "", IMAGE_FILE_FILTER)
        if not file_path:
            return
        try:
            data, mime_type = load_image_file(file_path)
        except (OSError, ValueError) as e:
            logger.warning("Could not load image %s: %s", file_path, e)
            QMessageBox.warning(self.main, "画像エラー", f"画像を読み込めませんでした。\n{e}")
            return
        self.main.session.add_image(PDFUtils.encode_data_url(data, mime_type), mime_type, kind)
        self.refresh()

    def add_signature_annotation(self) -> None:
        self.add_image_annotation(AnnotationType.SIGNATURE)

    # --- 選択・編集 ---
    def on_background_clicked(self) -> None:
        self.main.session.click_background()
        self.refresh()

    def on_annotation_selected(self, annotation_id: str) -> None:
        if self.main.session.select(annotation_id):
            self.refresh()

    def on_edit_requested(self, annotation_id: str) -> None:
        if self.main.session.begin_text_edit(annotation_id):
            self.refresh()

    def on_text_changed(self, annotation_id: str, text: str) -> None:
        self._apply(self.main.session.change_text(annotation_id, text))

    def on_font_changed(self, annotation_id: str, font_name: str) -> None:
        self._apply(self.main.session.change_font(annotation_id, font_name))

    def on_font_size_changed(self, annotation_id: str, font_size: float) -> None:
        self._apply(self.main.session.change_font_size(annotation_id, font_size))

    def on_annotation_moved(self, annotation_id: str, x: float, y: float) -> None:
        self._apply(self.main.session.drop(annotation_id, x, y))

    def on_annotation_resized(self, annotation_id: str, width: float, height: float, x: float, y: float) -> None:
        self._apply(self.main.session.finish_resize(annotation_id, width, height, x, y))

    # --- 削除 ---
    def remove_annotation(self, annotation_id: str) -> None:
        if self.main.session.remove(annotation_id):
            self.refresh()

    def remove_selected_annotation(self) -> None:
        """選択中の注釈を削除する。テキストの編集中は何もしない。"""
        if self.main.session.editing_id is not None:
            return
        if self.main.session.remove_selected():
            self.refresh()

    def clear_all_annotations(self) -> None:
        """確認の上、すべてのページの注釈を破棄する。"""
        if len(self.main.session.store) == 0:
            return
        reply = QMessageBox.question(
            self.main, "注釈のクリア", "すべての注釈を削除しますか？",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if reply == QMessageBox.StandardButton.Yes:
            self.main.session.clear_annotations()
            self.refresh()


def load_image_file(file_path: str) -> Tuple[bytes, str]:
    """
    画像ファイルを読み込み、(バイト列, MIMEタイプ) を返す。

    PNG/JPEG以外の形式はQImageでPNGに変換します。

    Raises:
        OSError: ファイルを読み込めない場合。
        ValueError: 画像として解釈できない場合。
    """
    with open(file_path, "rb") as f:
        data = f.read()
    mime_type: Optional[str] = PDFUtils.sniff_image_mime(data)
    if mime_type is not None:
        return data, mime_type

    image = QImage.fromData(data)
    if image.isNull():
        raise ValueError(f"対応していない画像形式です: {os.path.basename(file_path)}")
    buffer_data = QByteArray()
    buffer = QBuffer(buffer_data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "PNG")
    buffer.close()
    return bytes(buffer_data), "image/png"
