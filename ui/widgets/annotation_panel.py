from __future__ import annotations
from typing import List, Optional, Tuple

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QColor, QIcon, QPixmap
from PyQt6.QtWidgets import (QComboBox, QDoubleSpinBox, QFormLayout, QGroupBox, QLabel,
                             QPlainTextEdit, QPushButton, QVBoxLayout, QWidget)

from models.annotation_models import (
    BACKGROUND_COLOR_PRESETS, FONT_OPTIONS, MAX_FONT_SIZE, MIN_FONT_SIZE, TEXT_COLOR_PRESETS,
    Annotation, AnnotationType, TextAnnotation,
)

_TYPE_LABELS = {
    AnnotationType.TEXT: "テキスト",
    AnnotationType.IMAGE: "画像",
    AnnotationType.SIGNATURE: "署名",
}


def _color_icon(hex_color: str) -> QIcon:
    pixmap = QPixmap(14, 14)
    pixmap.fill(QColor(hex_color))
    return QIcon(pixmap)


class AnnotationPanel(QWidget):
    """
    選択中の注釈のプロパティ（本文、フォント、サイズ、色）を編集するサイドパネル。

    値の変更はシグナルで通知し、注釈データの更新はハンドラ側で行います。
    set_annotation でパネルに値を反映する間はシグナルを止めます。
    """
    text_edited = pyqtSignal(str, str)
    font_changed = pyqtSignal(str, str)
    font_size_changed = pyqtSignal(str, float)
    text_color_changed = pyqtSignal(str, str)
    background_color_changed = pyqtSignal(str, str)
    remove_requested = pyqtSignal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setMinimumWidth(240)
        self._annotation_id: Optional[str] = None

        layout = QVBoxLayout(self)
        self.title_label = QLabel("注釈が選択されていません")
        self.title_label.setStyleSheet("font-weight: bold;")
        layout.addWidget(self.title_label)

        self.text_group = QGroupBox("テキスト")
        form = QFormLayout(self.text_group)
        self.text_input = QPlainTextEdit()
        self.text_input.setFixedHeight(90)
        self.text_input.textChanged.connect(self._on_text_changed)
        form.addRow("本文", self.text_input)

        self.font_combo = QComboBox()
        for option in FONT_OPTIONS:
            self.font_combo.addItem(option.label, option.name)
        self.font_combo.currentIndexChanged.connect(self._on_font_changed)
        form.addRow("フォント", self.font_combo)

        self.size_spin = QDoubleSpinBox()
        self.size_spin.setRange(MIN_FONT_SIZE, MAX_FONT_SIZE)
        self.size_spin.setDecimals(0)
        self.size_spin.setSuffix(" pt")
        self.size_spin.valueChanged.connect(self._on_size_changed)
        form.addRow("サイズ", self.size_spin)

        self.text_color_combo = self._build_color_combo(TEXT_COLOR_PRESETS)
        self.text_color_combo.currentIndexChanged.connect(self._on_text_color_changed)
        form.addRow("文字色", self.text_color_combo)

        self.background_combo = self._build_color_combo(BACKGROUND_COLOR_PRESETS)
        self.background_combo.currentIndexChanged.connect(self._on_background_changed)
        form.addRow("背景色", self.background_combo)
        layout.addWidget(self.text_group)

        self.geometry_label = QLabel("")
        self.geometry_label.setStyleSheet("color: #555;")
        layout.addWidget(self.geometry_label)

        self.remove_button = QPushButton("この注釈を削除")
        self.remove_button.clicked.connect(self._on_remove_clicked)
        layout.addWidget(self.remove_button)
        layout.addStretch()

        self.set_annotation(None)

    @staticmethod
    def _build_color_combo(presets: List[Tuple[str, str]]) -> QComboBox:
        combo = QComboBox()
        for label, value in presets:
            combo.addItem(_color_icon(value), label, value)
        return combo

    def set_annotation(self, annotation: Optional[Annotation]) -> None:
        """パネルの表示を注釈の値に合わせる。Noneの場合は無効化する。"""
        self._annotation_id = annotation.id if annotation else None
        widgets = (self.text_input, self.font_combo, self.size_spin, self.text_color_combo, self.background_combo)
        for widget in widgets:
            widget.blockSignals(True)
        try:
            if annotation is None:
                self.title_label.setText("注釈が選択されていません")
                self.geometry_label.setText("")
                self.text_group.setVisible(False)
                self.remove_button.setEnabled(False)
                return

            self.title_label.setText(f"{_TYPE_LABELS.get(annotation.type, '注釈')}（{annotation.page_number}ページ）")
            self.geometry_label.setText(
                f"位置: {annotation.x:.0f}, {annotation.y:.0f}  サイズ: {annotation.width:.0f} × {annotation.height:.0f}"
            )
            self.remove_button.setEnabled(True)
            is_text = isinstance(annotation, TextAnnotation)
            self.text_group.setVisible(is_text)
            if is_text:
                if self.text_input.toPlainText() != annotation.text:
                    self.text_input.setPlainText(annotation.text)
                self._select_data(self.font_combo, annotation.font_name)
                self.size_spin.setValue(annotation.font_size)
                self._select_data(self.text_color_combo, annotation.text_color)
                self._select_data(self.background_combo, annotation.background_color)
        finally:
            for widget in widgets:
                widget.blockSignals(False)

    @staticmethod
    def _select_data(combo: QComboBox, value: Optional[str]) -> None:
        index = combo.findData(value, flags=Qt.MatchFlag.MatchFixedString)
        combo.setCurrentIndex(index if index >= 0 else 0)

    # --- シグナルの中継 ---
    def _on_text_changed(self) -> None:
        if self._annotation_id:
            self.text_edited.emit(self._annotation_id, self.text_input.toPlainText())

    def _on_font_changed(self, index: int) -> None:
        if self._annotation_id and index >= 0:
            self.font_changed.emit(self._annotation_id, self.font_combo.itemData(index))

    def _on_size_changed(self, value: float) -> None:
        if self._annotation_id:
            self.font_size_changed.emit(self._annotation_id, value)

    def _on_text_color_changed(self, index: int) -> None:
        if self._annotation_id and index >= 0:
            self.text_color_changed.emit(self._annotation_id, self.text_color_combo.itemData(index))

    def _on_background_changed(self, index: int) -> None:
        if self._annotation_id and index >= 0:
            self.background_color_changed.emit(self._annotation_id, self.background_combo.itemData(index))

    def _on_remove_clicked(self) -> None:
        if self._annotation_id:
            self.remove_requested.emit(self._annotation_id)
