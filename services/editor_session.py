# services/editor_session.py
"""1つのPDFファイルを編集するセッションの状態機械。

UIから届く個々の操作（追加、選択、ドロップ、リサイズ確定、削除、保存など）を
AnnotationStore の変更と選択・編集状態の遷移に変換します。Qtには依存せず、
ウィジェットはこのクラスのメソッドを呼ぶだけです。
"""
import logging
from dataclasses import replace
from enum import Enum
from typing import Iterable, List, Optional

from models.annotation_models import (
    DEFAULT_FONT, Annotation, AnnotationType, ImageAnnotation, PageRender, TextAnnotation,
)
from models.errors import NothingToSave, SaveInProgress
from .annotation_store import AnnotationStore, fit_text_box

logger = logging.getLogger(__name__)

DEFAULT_TEXT: str = "Enter text"
DEFAULT_TEXT_FONT_SIZE: float = 14
DEFAULT_TEXT_POSITION = (40, 40)
DEFAULT_IMAGE_POSITION = (48, 48)
DEFAULT_IMAGE_SIZE = (200, 90)


class EditorState(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    EDITING = "editing"


class EditorSession:
    """
    注釈ストア、選択・編集状態、表示中のページ、保存中フラグを束ねる編集セッション。

    同時に選択・編集できる注釈は1つだけです。別の注釈を選択すると前の注釈は
    暗黙的に選択解除されますが、位置とサイズはドロップ・リサイズ確定のたびに
    ストアへ反映済みのため、失われるデータはありません。
    """

    def __init__(self, pages: Iterable[PageRender] = ()) -> None:
        self.store: AnnotationStore = AnnotationStore()
        self.pages: List[PageRender] = []
        self.active_page: int = 1
        self.is_rendering: bool = False
        self.is_saving: bool = False
        self.set_pages(pages)

    # --- 状態 ---
    @property
    def state(self) -> EditorState:
        selection = self.store.selection
        if selection.editing_id is not None:
            return EditorState.EDITING
        if selection.selected_id is not None:
            return EditorState.SELECTED
        return EditorState.IDLE

    @property
    def selected(self) -> Optional[Annotation]:
        return self.store.get(self.store.selection.selected_id)

    @property
    def editing_id(self) -> Optional[str]:
        return self.store.selection.editing_id

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def tools_enabled(self) -> bool:
        """注釈ツールが使えるか。ページがない間やレンダリング中は使えない。"""
        return bool(self.pages) and not self.is_rendering

    @property
    def can_save(self) -> bool:
        return len(self.store) > 0 and not self.is_saving

    def current_page(self) -> Optional[PageRender]:
        for page in self.pages:
            if page.page_number == self.active_page:
                return page
        return None

    # --- ページ ---
    def set_pages(self, pages: Iterable[PageRender]) -> None:
        """ページ列を差し替える。表示ページが範囲外になった場合は1ページ目に戻す。"""
        self.pages = list(pages)
        self.store.set_pages(self.pages)
        if not self.pages or not (1 <= self.active_page <= len(self.pages)):
            self.active_page = 1

    def go_to_page(self, page_number: int) -> bool:
        """表示ページを切り替える。範囲外の場合は何もしない。"""
        if not (1 <= page_number <= len(self.pages)):
            return False
        if page_number != self.active_page:
            self.active_page = page_number
            self.store.selection.editing_id = None
        return True

    def switch_file(self) -> None:
        """ファイルの切り替え。注釈・選択状態・ページをすべて破棄してIdleに戻る。"""
        self.store.clear()
        self.set_pages([])
        self.is_rendering = True

    def rendering_finished(self, pages: Iterable[PageRender]) -> None:
        self.is_rendering = False
        self.set_pages(pages)

    # --- 追加 ---
    def add_text(self, text: str = DEFAULT_TEXT, font_size: float = DEFAULT_TEXT_FONT_SIZE,
                 font_name: str = DEFAULT_FONT.name) -> Optional[TextAnnotation]:
        """表示中のページにテキスト注釈を追加する（Idle → Editing）。"""
        if not self.tools_enabled:
            return None
        width, height = fit_text_box(text, font_size, font_name)
        x, y = DEFAULT_TEXT_POSITION
        annotation = TextAnnotation(
            id="", page_number=self.active_page, x=x, y=y, width=width, height=height,
            text=text, font_size=font_size, font_name=font_name,
        )
        return self.store.add(annotation)

    def add_image(self, data_url: str, mime_type: str = "image/png",
                  kind: AnnotationType = AnnotationType.IMAGE) -> Optional[ImageAnnotation]:
        """表示中のページに画像（または署名）注釈を追加する（Idle → Selected）。"""
        if not self.tools_enabled:
            return None
        x, y = DEFAULT_IMAGE_POSITION
        width, height = DEFAULT_IMAGE_SIZE
        annotation = ImageAnnotation(
            id="", page_number=self.active_page, x=x, y=y, width=width, height=height,
            data_url=data_url, mime_type=mime_type or "image/png", type=kind,
        )
        return self.store.add(annotation)

    def add_signature(self, data_url: str, mime_type: str = "image/png") -> Optional[ImageAnnotation]:
        return self.add_image(data_url, mime_type, AnnotationType.SIGNATURE)

    # --- 選択・編集 ---
    def click_background(self) -> None:
        """ページの背景をクリック（Selected/Editing → Idle）。"""
        self.store.selection.clear()

    def select(self, annotation_id: str) -> bool:
        """注釈をクリックして選択する。前の選択は暗黙的に解除される。"""
        if self.store.get(annotation_id) is None:
            return False
        selection = self.store.selection
        if selection.editing_id != annotation_id:
            selection.editing_id = None
        selection.selected_id = annotation_id
        return True

    def begin_text_edit(self, annotation_id: str) -> bool:
        """テキスト注釈の本文領域をクリックして編集モードに入る。"""
        annotation = self.store.get(annotation_id)
        if not isinstance(annotation, TextAnnotation):
            return False
        self.store.selection.selected_id = annotation_id
        self.store.selection.editing_id = annotation_id
        return True

    def end_text_edit(self) -> None:
        """編集モードを抜ける。選択は維持する。"""
        self.store.selection.editing_id = None

    def change_text(self, annotation_id: str, text: str) -> Optional[TextAnnotation]:
        """本文を変更し、ボックスを描画サイズに合わせる。"""
        return self.store.refit_text(annotation_id, text=text)

    def change_font(self, annotation_id: str, font_name: str) -> Optional[TextAnnotation]:
        return self.store.refit_text(annotation_id, font_name=font_name)

    def change_font_size(self, annotation_id: str, font_size: float) -> Optional[TextAnnotation]:
        return self.store.refit_text(annotation_id, font_size=font_size)

    def change_colors(self, annotation_id: str, text_color: Optional[str] = None,
                      background_color: Optional[str] = None) -> Optional[Annotation]:
        changes = {}
        if text_color is not None:
            changes["text_color"] = text_color
        if background_color is not None:
            changes["background_color"] = background_color
        if not changes or not isinstance(self.store.get(annotation_id), TextAnnotation):
            return None
        return self.store.update(annotation_id, **changes)

    # --- ドラッグ・リサイズ ---
    def drop(self, annotation_id: str, x: float, y: float) -> Optional[Annotation]:
        """ドラッグの終了時に一度だけ呼ばれ、最終位置へ移動する。"""
        annotation = self.store.move(annotation_id, x, y)
        if annotation is not None:
            self.select(annotation_id)
        return annotation

    def finish_resize(self, annotation_id: str, width: float, height: float,
                      x: float, y: float) -> Optional[Annotation]:
        """リサイズハンドルを離したときに一度だけ呼ばれる。"""
        annotation = self.store.resize(annotation_id, width, height, x, y)
        if annotation is not None:
            self.select(annotation_id)
        return annotation

    # --- 削除 ---
    def remove(self, annotation_id: str) -> bool:
        return self.store.remove(annotation_id)

    def remove_selected(self) -> bool:
        selected_id = self.store.selection.selected_id
        return self.remove(selected_id) if selected_id else False

    def clear_annotations(self) -> None:
        self.store.clear()

    # --- 保存 ---
    def begin_save(self) -> List[Annotation]:
        """
        保存を開始し、合成に使う注釈のスナップショットを返す。

        Raises:
            SaveInProgress: 既に保存中の場合。
            NothingToSave: 注釈が1件もない場合。
        """
        if self.is_saving:
            raise SaveInProgress("保存処理が実行中です")
        if len(self.store) == 0:
            raise NothingToSave("保存する前にテキスト・画像・署名のいずれかを追加してください")
        self.is_saving = True
        return [replace(annotation) for annotation in self.store.annotations]

    def finish_save(self, success: bool) -> None:
        """保存の終了。成功時のみ注釈を破棄してIdleに戻る。失敗時は再試行できるよう残す。"""
        self.is_saving = False
        if success:
            self.store.clear()
        else:
            logger.info("Save failed; keeping %d annotation(s) for retry", len(self.store))
