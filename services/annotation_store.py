# services/annotation_store.py
"""注釈の順序付きコレクションと、その選択・編集状態を管理する。

注釈の座標・サイズはすべてラスタ空間（ページ画像のピクセル）で保持し、
位置やサイズを変更するたびにページの範囲内へクランプします。
範囲外の操作は拒否せず、常に有効な位置へ補正します。
"""
import logging
import math
import uuid
from dataclasses import fields, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models.annotation_models import (
    FALLBACK_FONT_SIZE, MAX_FONT_SIZE, MIN_FONT_SIZE,
    Annotation, AnnotationType, PageRender, SelectionState, TextAnnotation,
)
from utils.pdf_utils import PDFUtils

logger = logging.getLogger(__name__)

TEXT_BOX_PADDING: float = 8
TEXT_LINE_GAP: float = 2

_GEOMETRY_FIELDS = ("x", "y", "width", "height")


def new_annotation_id() -> str:
    return uuid.uuid4().hex


def safe_font_size(value: Optional[float]) -> float:
    """未設定・NaNのフォントサイズを既定値に置き換える。"""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return FALLBACK_FONT_SIZE
    return float(value)


def clamp_font_size(value: Optional[float]) -> float:
    """フォントサイズを[6, 150]にクランプする。NaNは最小値として扱う。"""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return MIN_FONT_SIZE
    return max(MIN_FONT_SIZE, min(float(value), MAX_FONT_SIZE))


def fit_text_box(text: str, font_size: Optional[float], font_name: Optional[str]) -> Tuple[float, float]:
    """テキストを囲む最小のボックスサイズを計算する。

    幅は最も長い行の描画幅に余白を加えた値、高さは行数 ×（フォントサイズ + 行間）。

    Args:
        text (str): 改行を含みうるテキスト。
        font_size (Optional[float]): フォントサイズ。
        font_name (Optional[str]): PDF標準フォント名。

    Returns:
        Tuple[float, float]: (幅, 高さ)。
    """
    size = safe_font_size(font_size)
    lines = text.split("\n")
    widest = max(PDFUtils.measure_text_width(line, font_name, size) for line in lines)
    return widest + TEXT_BOX_PADDING, len(lines) * (size + TEXT_LINE_GAP)


class AnnotationStore:
    """
    1つの編集セッションが排他的に所有する注釈のリスト。

    リストの順序は描画順（後の注釈が前面）を表します。選択・編集状態は
    `selection` に別管理し、注釈データと一緒に保存されることはありません。
    """

    def __init__(self, pages: Iterable[PageRender] = ()) -> None:
        self._annotations: List[Annotation] = []
        self._pages: Dict[int, PageRender] = {}
        self.selection: SelectionState = SelectionState()
        self.set_pages(pages)

    # --- 参照 ---
    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self):
        return iter(list(self._annotations))

    @property
    def annotations(self) -> List[Annotation]:
        """注釈のリスト（コピー）を描画順で返す。"""
        return list(self._annotations)

    def get(self, annotation_id: Optional[str]) -> Optional[Annotation]:
        if annotation_id is None:
            return None
        for annotation in self._annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    def for_page(self, page_number: int) -> List[Annotation]:
        return [a for a in self._annotations if a.page_number == page_number]

    def set_pages(self, pages: Iterable[PageRender]) -> None:
        """クランプに使うページ寸法を設定する。"""
        self._pages = {page.page_number: page for page in pages}

    def page_for(self, annotation: Annotation) -> Optional[PageRender]:
        return self._pages.get(annotation.page_number)

    # --- 変更操作 ---
    def add(self, annotation: Annotation) -> Annotation:
        """
        新しいIDを割り当てて注釈を末尾に追加し、選択状態にする。
        テキスト注釈の場合はそのまま編集モードに入る。

        Raises:
            ValueError: 注釈のページが存在しない場合。
        """
        if annotation.page_number not in self._pages:
            raise ValueError(f"ページ{annotation.page_number}は存在しません")
        annotation.id = new_annotation_id()
        if isinstance(annotation, TextAnnotation):
            annotation.font_size = clamp_font_size(annotation.font_size)
        self._clamp_size(annotation)
        self._clamp_position(annotation, annotation.x, annotation.y)
        self._annotations.append(annotation)

        self.selection.selected_id = annotation.id
        self.selection.editing_id = annotation.id if annotation.type == AnnotationType.TEXT else None
        logger.debug("Added %s annotation %s on page %d", annotation.type.value, annotation.id, annotation.page_number)
        return annotation

    def update(self, annotation_id: str, **changes: Any) -> Optional[Annotation]:
        """指定した注釈にフィールドをマージする。IDが存在しない場合は何もしない。

        位置・サイズを含む変更はクランプされ、フォントサイズは[6, 150]に補正されます。
        id・type・page_number は変更できません。
        """
        annotation = self.get(annotation_id)
        if annotation is None:
            return None
        allowed = {f.name for f in fields(annotation)} - {"id", "type", "page_number"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"{annotation.type.value}注釈に存在しないフィールドです: {sorted(unknown)}")
        if "font_size" in changes:
            changes["font_size"] = clamp_font_size(changes["font_size"])

        updated = replace(annotation, **changes)
        if any(name in changes for name in _GEOMETRY_FIELDS):
            self._clamp_size(updated)
            self._clamp_position(updated, updated.x, updated.y)
        self._replace(updated)
        return updated

    def move(self, annotation_id: str, new_x: float, new_y: float) -> Optional[Annotation]:
        """注釈を移動する。位置は注釈自身のサイズとページのサイズでクランプする。"""
        annotation = self.get(annotation_id)
        if annotation is None:
            return None
        self._clamp_position(annotation, new_x, new_y)
        return annotation

    def resize(self, annotation_id: str, new_width: float, new_height: float,
               new_x: float, new_y: float) -> Optional[Annotation]:
        """注釈のサイズを変更し、その後で位置をクランプする。

        ページからはみ出す場合はサイズを保ったままページ端に寄せます。
        サイズ自体がページより大きい場合のみ、ページの寸法に切り詰めます。
        """
        annotation = self.get(annotation_id)
        if annotation is None:
            return None
        annotation.width = new_width
        annotation.height = new_height
        self._clamp_size(annotation)
        self._clamp_position(annotation, new_x, new_y)
        return annotation

    def refit_text(self, annotation_id: str, **changes: Any) -> Optional[TextAnnotation]:
        """テキスト・フォント・フォントサイズの変更を適用し、ボックスを描画サイズに合わせる。"""
        annotation = self.get(annotation_id)
        if not isinstance(annotation, TextAnnotation):
            return None
        if "font_size" in changes:
            changes["font_size"] = clamp_font_size(changes["font_size"])
        text = changes.get("text", annotation.text)
        font_size = changes.get("font_size", annotation.font_size)
        font_name = changes.get("font_name", annotation.font_name)
        width, height = fit_text_box(text, font_size, font_name)
        return self.update(annotation_id, width=width, height=height, **changes)

    def remove(self, annotation_id: str) -> bool:
        """注釈を削除する。選択中・編集中だった場合はその状態も解除する。"""
        annotation = self.get(annotation_id)
        if annotation is None:
            return False
        self._annotations.remove(annotation)
        if self.selection.selected_id == annotation_id:
            self.selection.selected_id = None
        if self.selection.editing_id == annotation_id:
            self.selection.editing_id = None
        return True

    def clear(self) -> None:
        """すべての注釈と選択・編集状態を破棄する。"""
        self._annotations.clear()
        self.selection.clear()

    # --- 内部処理 ---
    def _replace(self, updated: Annotation) -> None:
        for index, annotation in enumerate(self._annotations):
            if annotation.id == updated.id:
                self._annotations[index] = updated
                return

    def _clamp_size(self, annotation: Annotation) -> None:
        page = self.page_for(annotation)
        annotation.width = max(0.0, float(annotation.width))
        annotation.height = max(0.0, float(annotation.height))
        if page is None:
            return
        annotation.width = min(annotation.width, float(page.width))
        annotation.height = min(annotation.height, float(page.height))

    def _clamp_position(self, annotation: Annotation, x: float, y: float) -> None:
        page = self.page_for(annotation)
        if page is None:
            annotation.x, annotation.y = x, y
            return
        max_x = max(0.0, page.width - annotation.width)
        max_y = max(0.0, page.height - annotation.height)
        annotation.x = min(max(0.0, float(x)), max_x)
        annotation.y = min(max(0.0, float(y)), max_y)
