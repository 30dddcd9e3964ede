# ui/main_window.py
import logging
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QCloseEvent, QKeySequence, QShortcut
from PyQt6.QtWidgets import (
    QComboBox, QHBoxLayout, QLabel, QMainWindow, QPushButton, QScrollArea,
    QSizePolicy, QSplitter, QToolBar, QWidget,
)

from services.base_service import BaseService
from services.editor_session import EditorSession
from services.page_rasterizer import PageRasterizer
from services.version_save_service import VersionSaveService
from ui.handlers.annotation_handler import AnnotationHandler
from ui.handlers.pdf_handler import PDFHandler
from ui.handlers.save_handler import SaveHandler
from ui.widgets import AnnotationPanel, PageCanvas
from utils.config import EditorConfig

logger = logging.getLogger(__name__)


class EditorWindow(QMainWindow):
    """
    PDF注釈エディタのメインウィンドウ。

    ツールバー（ファイル選択、ページ移動、注釈の追加、クリア、保存）、
    ページ画像を表示するスクロール領域、選択中の注釈のプロパティパネルで構成されます。
    処理の中身は PDFHandler / AnnotationHandler / SaveHandler に委譲します。
    """
    def __init__(self, config: EditorConfig, file_service: BaseService,
                 initial_file_id: Optional[str] = None, title: str = "PDFエディタ") -> None:
        super().__init__()
        self.setWindowTitle(title)
        self.setGeometry(80, 60, 1400, 950)

        self.config: EditorConfig = config
        self.file_service: BaseService = file_service
        self.save_service: VersionSaveService = VersionSaveService(file_service)
        self.session: EditorSession = EditorSession()

        self.pdf_handler = PDFHandler(self, PageRasterizer(config.render_scale), initial_file_id)
        self.annotation_handler = AnnotationHandler(self)
        self.save_handler = SaveHandler(self)

        self.setup_toolbar()
        self.setup_central_area()
        self.connect_signals()
        self.setup_shortcuts()
        self.annotation_handler.refresh()

    def setup_toolbar(self) -> None:
        toolbar = QToolBar("メインツールバー")
        toolbar.setMovable(False)
        self.addToolBar(Qt.ToolBarArea.TopToolBarArea, toolbar)
        toolbar.setStyleSheet("""
            QToolBar { spacing: 4px; }
            QPushButton, QToolButton {
                background-color: #f0f0f0;
                border: 1px solid #c0c0c0;
                padding: 5px 10px;
                border-radius: 4px;
            }
            QPushButton:disabled { color: #999; }
            QPushButton#SaveButton {
                background-color: #007bff;
                color: white;
                font-weight: bold;
            }
            QPushButton#SaveButton:disabled { background-color: #9cc3f5; }
        """)

        toolbar.addWidget(QLabel("ファイル："))
        self.file_combo = QComboBox()
        self.file_combo.setMinimumWidth(260)
        self.file_combo.setSizeAdjustPolicy(QComboBox.SizeAdjustPolicy.AdjustToContents)
        toolbar.addWidget(self.file_combo)
        self.reload_button = QPushButton("再読込")
        toolbar.addWidget(self.reload_button)
        toolbar.addSeparator()

        self.prev_button = QPushButton("◀ 前")
        self.page_label = QLabel("0 / 0")
        self.page_label.setMinimumWidth(120)
        self.page_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.next_button = QPushButton("次 ▶")
        toolbar.addWidget(self.prev_button)
        toolbar.addWidget(self.page_label)
        toolbar.addWidget(self.next_button)
        toolbar.addSeparator()

        self.add_text_button = QPushButton("テキスト追加")
        self.add_image_button = QPushButton("画像追加")
        self.add_signature_button = QPushButton("署名追加")
        toolbar.addWidget(self.add_text_button)
        toolbar.addWidget(self.add_image_button)
        toolbar.addWidget(self.add_signature_button)
        toolbar.addSeparator()

        self.clear_button = QPushButton("クリア")
        toolbar.addWidget(self.clear_button)

        spacer = QWidget()
        spacer.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Preferred)
        toolbar.addWidget(spacer)

        self.save_button = QPushButton("新しいバージョンとして保存")
        self.save_button.setObjectName("SaveButton")
        toolbar.addWidget(self.save_button)

    def setup_central_area(self) -> None:
        self.canvas = PageCanvas()
        self.scroll_area = QScrollArea()
        self.scroll_area.setAlignment(Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop)
        self.scroll_area.setStyleSheet("QScrollArea { background-color: #e5e7eb; }")
        self.scroll_area.setWidget(self.canvas)
        self.scroll_area.setWidgetResizable(False)

        self.panel = AnnotationPanel()

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self.scroll_area)
        splitter.addWidget(self.panel)
        splitter.setStretchFactor(0, 4)
        splitter.setStretchFactor(1, 1)
        splitter.setChildrenCollapsible(False)

        container = QWidget()
        layout = QHBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(splitter)
        self.setCentralWidget(container)

    def connect_signals(self) -> None:
        self.file_combo.currentIndexChanged.connect(self.pdf_handler.on_file_combo_changed)
        self.reload_button.clicked.connect(lambda: self.pdf_handler.load_file_list())
        self.prev_button.clicked.connect(self.pdf_handler.prev_page)
        self.next_button.clicked.connect(self.pdf_handler.next_page)
        self.add_text_button.clicked.connect(self.annotation_handler.add_text_annotation)
        self.add_image_button.clicked.connect(lambda: self.annotation_handler.add_image_annotation())
        self.add_signature_button.clicked.connect(self.annotation_handler.add_signature_annotation)
        self.clear_button.clicked.connect(self.annotation_handler.clear_all_annotations)
        self.save_button.clicked.connect(self.save_handler.save_as_new_version)
        self.annotation_handler.connect_signals()

    def setup_shortcuts(self) -> None:
        self.delete_shortcut = QShortcut(QKeySequence(Qt.Key.Key_Delete), self)
        self.delete_shortcut.activated.connect(self.annotation_handler.remove_selected_annotation)
        self.save_shortcut = QShortcut(QKeySequence.StandardKey.Save, self)
        self.save_shortcut.activated.connect(self.save_handler.save_as_new_version)
        self.prev_page_shortcut = QShortcut(QKeySequence(Qt.Key.Key_PageUp), self)
        self.prev_page_shortcut.activated.connect(self.pdf_handler.prev_page)
        self.next_page_shortcut = QShortcut(QKeySequence(Qt.Key.Key_PageDown), self)
        self.next_page_shortcut.activated.connect(self.pdf_handler.next_page)

    def update_actions(self) -> None:
        """セッションの状態に合わせて、ツールバーの有効・無効を切り替える。"""
        session = self.session
        tools_enabled = session.tools_enabled and not session.is_saving
        self.add_text_button.setEnabled(tools_enabled)
        self.add_image_button.setEnabled(tools_enabled)
        self.add_signature_button.setEnabled(tools_enabled)
        self.clear_button.setEnabled(len(session.store) > 0 and not session.is_saving)
        self.save_button.setEnabled(session.can_save and self.pdf_handler.current_file is not None)
        self.save_button.setText("保存中…" if session.is_saving else "新しいバージョンとして保存")
        self.file_combo.setEnabled(not session.is_saving)
        self.pdf_handler.update_page_controls()

    def start(self) -> None:
        """ファイル一覧の取得を開始する。ウィンドウの表示後に呼ぶ。"""
        self.pdf_handler.load_file_list()

    def closeEvent(self, event: QCloseEvent) -> None:
        self.pdf_handler.shutdown()
        self.save_handler.shutdown()
        super().closeEvent(event)
