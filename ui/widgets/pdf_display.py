from __future__ import annotations
from typing import Dict, Iterable, Optional

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QImage, QMouseEvent, QPixmap
from PyQt6.QtWidgets import QLabel, QWidget

from models.annotation_models import Annotation, PageRender, SelectionState
from .annotation_box import AnnotationBoxWidget


def pixmap_from_render(page: PageRender) -> QPixmap:
    """ラスタライズ済みのPNGからQPixmapを作成する。"""
    image = QImage.fromData(page.image_bytes, "PNG")
    return QPixmap.fromImage(image)


class PageCanvas(QLabel):
    """
    ラスタライズされた1ページを表示し、その上に注釈ウィジェットを重ねるラベル。

    注釈データそのものは保持せず、show_page / sync_annotations で渡された内容を
    子ウィジェットに反映するだけです。ユーザー操作はすべてシグナルで通知します。
    """
    background_clicked = pyqtSignal()
    annotation_selected = pyqtSignal(str)
    annotation_edit_requested = pyqtSignal(str)
    annotation_moved = pyqtSignal(str, float, float)
    annotation_resized = pyqtSignal(str, float, float, float, float)
    annotation_text_changed = pyqtSignal(str, str)
    annotation_delete_requested = pyqtSignal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        self.setStyleSheet("background-color: white;")

        # --- 状態変数の型定義 ---
        self.page: Optional[PageRender] = None
        self.annotation_widgets: Dict[str, AnnotationBoxWidget] = {}

    def show_page(self, page: Optional[PageRender]) -> None:
        """表示するページ画像を差し替える。Noneの場合は空の表示にする。"""
        if page is self.page:
            return
        self.page = page
        if page is None:
            self.clear()
            self.setText("ページがありません")
            self.setAlignment(Qt.AlignmentFlag.AlignCenter)
            return
        self.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        pixmap = pixmap_from_render(page)
        self.setPixmap(pixmap)
        self.setFixedSize(pixmap.size())

    def sync_annotations(self, annotations: Iterable[Annotation], selection: SelectionState) -> None:
        """
        表示中のページの注釈ウィジェットを、渡された注釈の一覧と一致させる。

        既存のウィジェットは再利用し（編集中のカーソル位置を保つため）、
        一覧から消えたものは破棄し、新しいものは作成します。
        """
        seen = set()
        for annotation in annotations:
            seen.add(annotation.id)
            widget = self.annotation_widgets.get(annotation.id)
            if widget is None:
                widget = self._create_widget(annotation)
            widget.sync(annotation,
                        selected=selection.selected_id == annotation.id,
                        editing=selection.editing_id == annotation.id)
            widget.show()
            widget.raise_()

        for annotation_id in list(self.annotation_widgets):
            if annotation_id not in seen:
                self.annotation_widgets.pop(annotation_id).deleteLater()

        selected = self.annotation_widgets.get(selection.selected_id or "")
        if selected is not None:
            selected.raise_()
            selected.delete_button.raise_()

    def clear_annotations(self) -> None:
        for widget in self.annotation_widgets.values():
            widget.deleteLater()
        self.annotation_widgets.clear()

    def _create_widget(self, annotation: Annotation) -> AnnotationBoxWidget:
        widget = AnnotationBoxWidget(annotation, self)
        widget.selected.connect(self.annotation_selected)
        widget.edit_requested.connect(self.annotation_edit_requested)
        widget.moved.connect(self.annotation_moved)
        widget.resized.connect(self.annotation_resized)
        widget.text_changed.connect(self.annotation_text_changed)
        widget.delete_requested.connect(self.annotation_delete_requested)
        self.annotation_widgets[annotation.id] = widget
        return widget

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """注釈以外の場所がクリックされた場合は選択を解除する。"""
        if event.button() == Qt.MouseButton.LeftButton and self.page is not None:
            self.background_clicked.emit()
            event.accept()
            return
        super().mousePressEvent(event)
