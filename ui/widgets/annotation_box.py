from __future__ import annotations
from typing import Optional

from PyQt6.QtCore import QEvent, QObject, QPoint, QRect, QSize, Qt, pyqtSignal
from PyQt6.QtGui import QColor, QFont, QMouseEvent, QPainter, QPaintEvent, QPen, QPixmap, QResizeEvent
from PyQt6.QtWidgets import QPlainTextEdit, QToolButton, QWidget

from models.annotation_models import Annotation, AnnotationType, TextAnnotation, get_font_option
from utils.pdf_utils import PDFUtils

# PDF標準フォントに対応する画面表示用のフォント
_QT_FONT_FAMILIES = {
    "helv": ("Helvetica", "Arial"), "hebo": ("Helvetica", "Arial"), "heit": ("Helvetica", "Arial"),
    "tiro": ("Times New Roman", "Times"), "tibo": ("Times New Roman", "Times"), "tiit": ("Times New Roman", "Times"),
    "cour": ("Courier New", "Courier"),
}


def qfont_for(font_name: str, pixel_size: float) -> QFont:
    """PDF標準フォント名とピクセルサイズから、画面表示用のQFontを作る。"""
    option = get_font_option(font_name)
    family, fallback = _QT_FONT_FAMILIES.get(option.code, ("Helvetica", "Arial"))
    font = QFont(family)
    font.setFamilies([family, fallback])
    font.setPixelSize(max(1, round(pixel_size)))
    font.setBold(option.code in ("hebo", "tibo"))
    font.setItalic(option.code in ("heit", "tiit"))
    return font


class AnnotationBoxWidget(QWidget):
    """
    ページ画像上に配置される、移動・リサイズ可能な注釈ウィジェット。

    ドラッグ中・リサイズ中は見た目だけを更新し、マウスを離したときに一度だけ
    moved / resized シグナルで最終的な位置とサイズを通知します。
    テキスト注釈は編集モードの間だけ内部のQPlainTextEditを表示します。
    """
    selected = pyqtSignal(str)
    edit_requested = pyqtSignal(str)
    moved = pyqtSignal(str, float, float)
    resized = pyqtSignal(str, float, float, float, float)
    text_changed = pyqtSignal(str, str)
    delete_requested = pyqtSignal(str)

    HANDLE_SIZE = 12
    DRAG_THRESHOLD = 4

    def __init__(self, annotation: Annotation, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setFocusPolicy(Qt.FocusPolicy.ClickFocus)
        self.setMouseTracking(True)

        # --- 状態変数の型定義 ---
        self.annotation: Annotation = annotation
        self._selected: bool = False
        self._editing: bool = False
        self._pixmap: Optional[QPixmap] = None
        self._pixmap_source: Optional[str] = None
        self._press_pos: Optional[QPoint] = None
        self._widget_start: Optional[QPoint] = None
        self._size_start: Optional[QSize] = None
        self._interaction_mode: Optional[str] = None  # 'drag' or 'resize'
        self._dragging: bool = False
        self._syncing_text: bool = False
        self._click_edits_text: bool = False

        self.text_edit = QPlainTextEdit(self)
        self.text_edit.setFrameStyle(0)
        self.text_edit.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.text_edit.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.text_edit.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.text_edit.document().setDocumentMargin(0)
        self.text_edit.hide()
        self.text_edit.textChanged.connect(self._emit_text_changed)
        self.text_edit.installEventFilter(self)

        self.delete_button = QToolButton(self.parentWidget() or self)
        self.delete_button.setText("削除")
        self.delete_button.setCursor(Qt.CursorShape.PointingHandCursor)
        self.delete_button.setStyleSheet(
            "QToolButton { background-color: rgba(0, 0, 0, 0.55); color: white; padding: 2px 8px; border-radius: 4px; }"
        )
        self.delete_button.setAutoRaise(True)
        self.delete_button.hide()
        self.delete_button.clicked.connect(lambda: self.delete_requested.emit(self.annotation.id))

        self.sync(annotation, False, False)

    @property
    def annotation_id(self) -> str:
        return self.annotation.id

    def minimum_box_size(self) -> QSize:
        """操作で縮められる最小サイズ。"""
        if isinstance(self.annotation, TextAnnotation):
            return QSize(24, max(18, round(self.annotation.font_size) + 4))
        return QSize(40, 40)

    def sync(self, annotation: Annotation, selected: bool, editing: bool) -> None:
        """注釈データと選択状態をウィジェットの表示に反映する。"""
        self.annotation = annotation
        self._selected = selected
        self._editing = editing and isinstance(annotation, TextAnnotation)
        if self._interaction_mode is None:
            self.setGeometry(QRect(round(annotation.x), round(annotation.y),
                                   max(1, round(annotation.width)), max(1, round(annotation.height))))

        if isinstance(annotation, TextAnnotation):
            self._sync_text_editor(annotation)
        else:
            self._load_pixmap(annotation.data_url)

        self.delete_button.setVisible(selected)
        self._ensure_button_position()
        self.update()

    def _sync_text_editor(self, annotation: TextAnnotation) -> None:
        self.text_edit.setFont(qfont_for(annotation.font_name, annotation.font_size))
        color = annotation.text_color or "#000000"
        self.text_edit.setStyleSheet(f"QPlainTextEdit {{ background-color: transparent; color: {color}; }}")
        if self.text_edit.toPlainText() != annotation.text:
            self._syncing_text = True
            try:
                self.text_edit.setPlainText(annotation.text)
            finally:
                self._syncing_text = False
        self.text_edit.setGeometry(self.rect())
        if self._editing and not self.text_edit.isVisible():
            self.text_edit.show()
            self.text_edit.setFocus()
        elif not self._editing and self.text_edit.isVisible():
            self.text_edit.hide()

    def _load_pixmap(self, data_url: str) -> None:
        if data_url == self._pixmap_source:
            return
        self._pixmap_source = data_url
        pixmap = QPixmap()
        try:
            pixmap.loadFromData(PDFUtils.decode_data_url(data_url))
        except ValueError:
            pixmap = QPixmap()
        self._pixmap = pixmap if not pixmap.isNull() else None

    # --- 描画 ---
    def paintEvent(self, event: QPaintEvent) -> None:
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        rect = self.rect()

        annotation = self.annotation
        if isinstance(annotation, TextAnnotation):
            if annotation.background_color:
                painter.fillRect(rect, QColor(annotation.background_color))
            if not self._editing:
                painter.setFont(qfont_for(annotation.font_name, annotation.font_size))
                painter.setPen(QColor(annotation.text_color or "#000000"))
                painter.drawText(rect.adjusted(0, 0, 0, 0),
                                 Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop, annotation.text)
        elif self._pixmap is not None:
            painter.drawPixmap(rect, self._pixmap)
        else:
            painter.fillRect(rect, QColor(0, 0, 0, 30))

        if self._selected:
            accent = QColor("#2563eb")
            painter.setPen(QPen(accent, 2))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(rect.adjusted(1, 1, -1, -1))
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(accent)
            painter.drawRect(self._resize_handle_rect())
        elif annotation.type != AnnotationType.TEXT or not self._editing:
            painter.setPen(QPen(QColor(0, 0, 0, 60), 1, Qt.PenStyle.DashLine))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(rect.adjusted(0, 0, -1, -1))

    # --- マウス操作 ---
    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            was_selected = self._selected
            self.selected.emit(self.annotation.id)
            mode = "resize" if self._resize_handle_rect().contains(event.pos()) else "drag"
            self._start_interaction(event.globalPosition().toPoint(), mode)
            self._click_edits_text = was_selected and mode == "drag"
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        if event.buttons() & Qt.MouseButton.LeftButton:
            if self._update_interaction(event.globalPosition().toPoint()):
                event.accept()
                return
        else:
            self._update_hover_cursor(event.pos())
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            mode = self._interaction_mode
            if self._end_interaction():
                event.accept()
                return
            if mode == "drag" and self._click_edits_text and isinstance(self.annotation, TextAnnotation):
                self.edit_requested.emit(self.annotation.id)
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        if isinstance(self.annotation, TextAnnotation):
            self.edit_requested.emit(self.annotation.id)
            event.accept()
            return
        super().mouseDoubleClickEvent(event)

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:
        """編集中のテキストでEscキーが押されたら背景クリックと同様に編集を終える。"""
        if obj is self.text_edit and event.type() == QEvent.Type.KeyPress:
            if event.key() == Qt.Key.Key_Escape:
                self.text_edit.clearFocus()
                self.selected.emit(self.annotation.id)
                return True
        return super().eventFilter(obj, event)

    def resizeEvent(self, event: QResizeEvent) -> None:
        super().resizeEvent(event)
        self.text_edit.setGeometry(self.rect())
        self._ensure_button_position()

    def moveEvent(self, event) -> None:
        super().moveEvent(event)
        self._ensure_button_position()

    def hideEvent(self, event) -> None:
        self.delete_button.hide()
        super().hideEvent(event)

    def deleteLater(self) -> None:
        if self.delete_button.parent() is not self:
            self.delete_button.deleteLater()
        super().deleteLater()

    # --- ドラッグ・リサイズの内部処理 ---
    def _start_interaction(self, global_pos: QPoint, mode: str) -> None:
        self._interaction_mode = mode
        self._press_pos = global_pos
        self._widget_start = self.pos()
        self._size_start = self.size()
        self._dragging = False
        self.setCursor(Qt.CursorShape.ClosedHandCursor if mode == "drag" else Qt.CursorShape.SizeFDiagCursor)

    def _update_interaction(self, global_pos: QPoint) -> bool:
        if self._interaction_mode is None or self._press_pos is None:
            return False
        delta = global_pos - self._press_pos
        if not self._dragging and delta.manhattanLength() > self.DRAG_THRESHOLD:
            self._dragging = True
        if not self._dragging:
            return False

        parent_rect = self.parentWidget().rect() if self.parentWidget() else None
        if self._interaction_mode == "drag":
            new_pos = self._widget_start + delta
            if parent_rect is not None:
                max_x = max(0, parent_rect.width() - self.width())
                max_y = max(0, parent_rect.height() - self.height())
                new_pos.setX(max(0, min(new_pos.x(), max_x)))
                new_pos.setY(max(0, min(new_pos.y(), max_y)))
            self.move(new_pos)
        else:
            minimum = self.minimum_box_size()
            new_width = max(minimum.width(), self._size_start.width() + delta.x())
            new_height = max(minimum.height(), self._size_start.height() + delta.y())
            if parent_rect is not None:
                new_width = min(new_width, max(minimum.width(), parent_rect.width() - self._widget_start.x()))
                new_height = min(new_height, max(minimum.height(), parent_rect.height() - self._widget_start.y()))
            self.resize(new_width, new_height)
        self.update()
        return True

    def _end_interaction(self) -> bool:
        """操作を終了し、ドラッグ・リサイズが発生していれば最終結果を一度だけ通知する。"""
        if self._interaction_mode is None:
            return False
        mode, was_dragging = self._interaction_mode, self._dragging
        self._interaction_mode = None
        self._press_pos = None
        self._widget_start = None
        self._size_start = None
        self._dragging = False
        self.setCursor(Qt.CursorShape.OpenHandCursor if self.underMouse() else Qt.CursorShape.ArrowCursor)
        if not was_dragging:
            return False
        if mode == "drag":
            self.moved.emit(self.annotation.id, float(self.x()), float(self.y()))
        else:
            self.resized.emit(self.annotation.id, float(self.width()), float(self.height()),
                              float(self.x()), float(self.y()))
        return True

    def _update_hover_cursor(self, pos: QPoint) -> None:
        if self._interaction_mode is not None:
            return
        if self._selected and self._resize_handle_rect().contains(pos):
            self.setCursor(Qt.CursorShape.SizeFDiagCursor)
        else:
            self.setCursor(Qt.CursorShape.OpenHandCursor)

    def _resize_handle_rect(self) -> QRect:
        return QRect(self.width() - self.HANDLE_SIZE, self.height() - self.HANDLE_SIZE,
                     self.HANDLE_SIZE, self.HANDLE_SIZE)

    def _ensure_button_position(self) -> None:
        """削除ボタンを注釈の右上の外側に配置する。"""
        size = self.delete_button.sizeHint()
        self.delete_button.resize(size)
        if self.delete_button.parent() is self:
            self.delete_button.move(max(0, self.width() - size.width()), 0)
        else:
            self.delete_button.move(self.x() + self.width() - size.width(), max(0, self.y() - size.height() - 2))
        self.delete_button.raise_()

    def _emit_text_changed(self) -> None:
        if self._syncing_text:
            return
        self.text_changed.emit(self.annotation.id, self.text_edit.toPlainText())
