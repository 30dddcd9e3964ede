# models/annotation_models.py
"""PDF編集セッションで扱う注釈・ページのデータモデル。"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


class AnnotationType(str, Enum):
    """注釈の種類。"""
    TEXT = "text"
    IMAGE = "image"
    SIGNATURE = "signature"


@dataclass(frozen=True)
class FontOption:
    """テキスト注釈で選択できるフォント。

    Attributes:
        name (str): PDF標準14フォントの名称（例: "Helvetica-Bold"）。
        label (str): UIに表示するラベル。
        code (str): PyMuPDFの組み込みフォントコード（例: "hebo"）。
    """
    name: str
    label: str
    code: str


FONT_OPTIONS: List[FontOption] = [
    FontOption("Helvetica", "Helvetica", "helv"),
    FontOption("Helvetica-Bold", "Helvetica Bold", "hebo"),
    FontOption("Helvetica-Oblique", "Helvetica Italic", "heit"),
    FontOption("Times-Roman", "Times", "tiro"),
    FontOption("Times-Bold", "Times Bold", "tibo"),
    FontOption("Times-Italic", "Times Italic", "tiit"),
    FontOption("Courier", "Courier", "cour"),
]
DEFAULT_FONT: FontOption = FONT_OPTIONS[0]
_FONTS_BY_NAME: Dict[str, FontOption] = {font.name: font for font in FONT_OPTIONS}


def get_font_option(font_name: Optional[str]) -> FontOption:
    """フォント名に対応するFontOptionを返す。未知の名前はHelveticaにフォールバックする。"""
    if not font_name:
        return DEFAULT_FONT
    return _FONTS_BY_NAME.get(font_name, DEFAULT_FONT)


MIN_FONT_SIZE: float = 6
MAX_FONT_SIZE: float = 150
# 未設定・NaNのサイズの代わりに使う値。新規テキストの既定サイズとは別
FALLBACK_FONT_SIZE: float = 12

TEXT_COLOR_PRESETS: List[tuple] = [
    ("黒", "#000000"), ("ダークグレー", "#1f2937"), ("スレート", "#374151"),
    ("ネイビー", "#0f172a"), ("赤", "#dc2626"), ("緑", "#16a34a"), ("青", "#2563eb"),
]
BACKGROUND_COLOR_PRESETS: List[tuple] = [
    ("白", "#ffffff"), ("ライトグレー", "#f1f5f9"), ("ライトブルー", "#e3f2fd"),
    ("ライトイエロー", "#fff3cd"), ("ライトレッド", "#f8d7da"),
]


@dataclass
class PageRender:
    """ラスタライズ済みの1ページを表現するデータモデル。

    Attributes:
        page_number (int): 1始まりのページ番号。
        image_bytes (bytes): 固定倍率でレンダリングしたページのPNG画像。
        width (int): ラスタ画像の幅（ピクセル、拡大後）。
        height (int): ラスタ画像の高さ（ピクセル、拡大後）。
        pdf_width (float): レンダリング時点のPDFページ幅（ポイント、拡大前）。
        pdf_height (float): レンダリング時点のPDFページ高さ（ポイント、拡大前）。
    """
    page_number: int
    image_bytes: bytes = field(repr=False)
    width: int
    height: int
    pdf_width: float
    pdf_height: float


@dataclass
class TextAnnotation:
    """テキスト注釈。座標とサイズはラスタ空間（ピクセル）で保持する。

    Attributes:
        id (str): 注釈の一意なID。
        page_number (int): 注釈が配置されたページ番号。
        x (float): 左上のX座標。
        y (float): 左上のY座標。
        width (float): 幅。
        height (float): 高さ。
        text (str): 本文。改行を含んでもよい。
        font_size (float): フォントサイズ（6〜150にクランプされる）。
        font_name (str): PDF標準フォント名。
        background_color (Optional[str]): 下地を隠す塗りつぶし色（16進表記）。
        text_color (Optional[str]): 文字色（16進表記）。
    """
    id: str
    page_number: int
    x: float
    y: float
    width: float
    height: float
    text: str = ""
    font_size: float = 14
    font_name: str = DEFAULT_FONT.name
    background_color: Optional[str] = "#ffffff"
    text_color: Optional[str] = "#000000"
    type: AnnotationType = field(default=AnnotationType.TEXT, init=False)


@dataclass
class ImageAnnotation:
    """画像または署名の注釈。

    Attributes:
        id (str): 注釈の一意なID。
        page_number (int): 注釈が配置されたページ番号。
        x (float): 左上のX座標。
        y (float): 左上のY座標。
        width (float): 幅。
        height (float): 高さ。
        data_url (str): base64エンコードされた画像のdata URL。
        mime_type (str): 'image/png' または 'image/jpeg'。
        type (AnnotationType): IMAGE または SIGNATURE。
    """
    id: str
    page_number: int
    x: float
    y: float
    width: float
    height: float
    data_url: str = field(default="", repr=False)
    mime_type: str = "image/png"
    type: AnnotationType = AnnotationType.IMAGE

    def __post_init__(self) -> None:
        if self.type not in (AnnotationType.IMAGE, AnnotationType.SIGNATURE):
            raise ValueError(f"ImageAnnotationに指定できない種類です: {self.type}")


Annotation = Union[TextAnnotation, ImageAnnotation]


@dataclass
class SelectionState:
    """選択・編集状態（保存対象外の一時的なUI状態）。

    Attributes:
        selected_id (Optional[str]): 選択中の注釈ID。
        editing_id (Optional[str]): テキスト編集中の注釈ID（テキスト注釈のみ）。
    """
    selected_id: Optional[str] = None
    editing_id: Optional[str] = None

    def clear(self) -> None:
        self.selected_id = None
        self.editing_id = None
