# utils/pdf_utils.py
"""PDFのレンダリング、文字幅の計測、画像データの変換など、PDF操作に関連するユーティリティ機能を提供します。"""

import base64
import binascii
from typing import Optional, Tuple

import fitz  # PyMuPDF

from models.annotation_models import get_font_option

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"


class PDFUtils:
    """PDF処理に関する共通機能を提供するユーティリティクラス。"""

    @staticmethod
    def open_document(data: bytes) -> fitz.Document:
        """メモリ上のバイト列からPDF文書を開く。

        Args:
            data (bytes): PDFファイルのバイト列。

        Returns:
            fitz.Document: 開いたPyMuPDF文書。

        Raises:
            ValueError: バイト列が空、またはPDFとして解釈できない場合。
        """
        if not data:
            raise ValueError("PDFデータが空です")
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ValueError(f"PDFを開けませんでした: {exc}") from exc
        if not doc.is_pdf or doc.page_count == 0:
            doc.close()
            raise ValueError("PDFとして有効なページがありません")
        return doc

    @staticmethod
    def render_page_png(page: fitz.Page, scale: float) -> Tuple[bytes, int, int]:
        """PDFの指定されたページをPNG画像にレンダリングする。

        Args:
            page (fitz.Page): レンダリング対象のPyMuPDFページオブジェクト。
            scale (float): レンダリング時の拡大率。

        Returns:
            Tuple[bytes, int, int]: PNGのバイト列、画像の幅、画像の高さ。
        """
        matrix = fitz.Matrix(scale, scale)
        pix = page.get_pixmap(matrix=matrix, alpha=False)
        return pix.tobytes("png"), pix.width, pix.height

    @staticmethod
    def measure_text_width(text: str, font_name: Optional[str], font_size: float) -> float:
        """標準14フォントのメトリクスで1行分のテキスト幅を計測する。"""
        font = get_font_option(font_name)
        return fitz.get_text_length(text, fontname=font.code, fontsize=font_size)

    @staticmethod
    def decode_data_url(data_url: str) -> bytes:
        """data URL（またはbase64文字列）をバイト列にデコードする。

        Raises:
            ValueError: base64としてデコードできない場合。
        """
        payload = data_url.split(",", 1)[1] if "," in data_url else data_url
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"画像データをデコードできません: {exc}") from exc

    @staticmethod
    def encode_data_url(data: bytes, mime_type: str) -> str:
        """バイト列をdata URLに変換する。"""
        return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

    @staticmethod
    def sniff_image_mime(data: bytes) -> Optional[str]:
        """先頭のシグネチャから画像のMIMEタイプを判定する。PNG/JPEG以外はNone。"""
        if data.startswith(PNG_SIGNATURE):
            return "image/png"
        if data.startswith(JPEG_SIGNATURE):
            return "image/jpeg"
        return None

    @staticmethod
    def hex_to_rgb(value: Optional[str]) -> Optional[Tuple[float, float, float]]:
        """'#rrggbb'または'#rgb'形式の色を0〜1のRGBタプルに変換する。解釈できない場合はNone。"""
        if not value or value == "transparent":
            return None
        normalized = value.lstrip("#")
        if len(normalized) == 3:
            normalized = "".join(c * 2 for c in normalized)
        if len(normalized) != 6:
            return None
        try:
            num = int(normalized, 16)
        except ValueError:
            return None
        return ((num >> 16) & 255) / 255, ((num >> 8) & 255) / 255, (num & 255) / 255
