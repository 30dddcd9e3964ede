# services/compositor.py
"""保存時に、元のPDFへ注釈を焼き込んで新しいPDFのバイト列を作る。"""
import logging
from typing import Dict, Iterable, List, Tuple

import fitz  # PyMuPDF

from models.annotation_models import (
    Annotation, FontOption, ImageAnnotation, PageRender, TextAnnotation, get_font_option,
)
from models.errors import CompositionFailure
from utils.coordinate_mapper import PdfPlacement, scale_factors, to_pdf_space
from utils.pdf_utils import PDFUtils
from .annotation_store import safe_font_size

logger = logging.getLogger(__name__)

ERASE_COLOR: Tuple[float, float, float] = (1.0, 1.0, 1.0)
DEFAULT_TEXT_COLOR: Tuple[float, float, float] = (0.0, 0.0, 0.0)
LINE_HEIGHT_EXTRA: float = 1

# 同じ入力からは常に同じバイト列が得られるよう、保存オプションを固定する
SAVE_OPTIONS = {"garbage": 3, "deflate": True, "no_new_id": True}


class FontCache:
    """1回の合成処理の間だけ有効なフォントのキャッシュ。計測と描画の両方に使う。"""

    def __init__(self) -> None:
        self._fonts: Dict[str, fitz.Font] = {}

    def get(self, option: FontOption) -> fitz.Font:
        font = self._fonts.get(option.code)
        if font is None:
            font = fitz.Font(option.code)
            self._fonts[option.code] = font
        return font

    def __len__(self) -> int:
        return len(self._fonts)


class Compositor:
    """注釈をPDFページに描画するクラス。"""

    def compose(self, original_bytes: bytes, annotations: Iterable[Annotation],
                page_renders: Iterable[PageRender]) -> bytes:
        """
        元のPDFを開き直し、注釈を順番に描画して新しいPDFのバイト列を返す。

        注釈はストアの順序で描画され、同じページでは後の注釈が前面になります。
        対応するページ画像が存在しない注釈（古いページの注釈）は読み飛ばします。

        Args:
            original_bytes (bytes): 元のPDFのバイト列。
            annotations (Iterable[Annotation]): 描画する注釈（描画順）。
            page_renders (Iterable[PageRender]): 編集時のページ画像（ラスタ寸法の参照に使う）。

        Returns:
            bytes: 注釈を焼き込んだPDFのバイト列。

        Raises:
            CompositionFailure: 元のPDFを開けない、画像データをデコードできない、
                またはフォントで表現できない文字がテキストにある場合。
        """
        try:
            doc = PDFUtils.open_document(original_bytes)
        except ValueError as exc:
            raise CompositionFailure(f"元のPDFを開けませんでした: {exc}") from exc

        renders = {page.page_number: page for page in page_renders}
        fonts = FontCache()
        try:
            for annotation in annotations:
                page_render = renders.get(annotation.page_number)
                if page_render is None or not (1 <= annotation.page_number <= doc.page_count):
                    logger.warning("Skipping annotation %s on missing page %d", annotation.id, annotation.page_number)
                    continue
                page = doc.load_page(annotation.page_number - 1)
                placement = to_pdf_space(annotation, page_render, page.rect)
                if isinstance(annotation, TextAnnotation):
                    self._draw_text(page, annotation, page_render, placement, fonts)
                else:
                    self._draw_image(page, annotation, placement)
            return doc.tobytes(**SAVE_OPTIONS)
        finally:
            doc.close()

    def _draw_text(self, page: fitz.Page, annotation: TextAnnotation, page_render: PageRender,
                   placement: PdfPlacement, fonts: FontCache) -> None:
        """
        テキスト注釈を描画する。

        下地の内容を隠すため、保存されたボックスと実際のテキストの大きさのうち
        大きい方を覆う矩形を塗りつぶしてから、最終行のベースラインを y_bottom に
        合わせて各行を描画します。描画には FontCache のフォントをそのまま使います。

        Raises:
            CompositionFailure: フォントに含まれない文字がテキストにある場合。
        """
        option = get_font_option(annotation.font_name)
        font = fonts.get(option)
        lines = (annotation.text or "").split("\n")
        missing = unsupported_characters(font, lines)
        if missing:
            raise CompositionFailure(
                f"注釈{annotation.id}のテキストに、フォント{option.label}で表現できない文字が"
                f"含まれています: {''.join(missing)}"
            )

        _, scale_y = scale_factors(page_render, page.rect)
        font_size = safe_font_size(annotation.font_size) * scale_y
        line_height = font_size + LINE_HEIGHT_EXTRA

        measured_width, measured_height = measure_text_block(font, lines, font_size, line_height)
        descent = -font.descender * font_size
        patch_bottom = placement.y_bottom - descent
        patch = PdfPlacement(
            x=placement.x,
            y_top=patch_bottom + max(placement.height + descent, measured_height),
            y_bottom=patch_bottom,
            width=max(placement.width, measured_width),
            height=max(placement.height + descent, measured_height),
        )
        fill = PDFUtils.hex_to_rgb(annotation.background_color) or ERASE_COLOR
        page.draw_rect(patch.to_fitz_rect(page.rect.height), color=None, fill=fill, width=0, overlay=True)

        color = PDFUtils.hex_to_rgb(annotation.text_color) or DEFAULT_TEXT_COLOR
        pdf_height = page.rect.height
        last = len(lines) - 1
        writer = fitz.TextWriter(page.rect)
        for index, line in enumerate(lines):
            if not line:
                continue
            baseline_pdf = placement.y_bottom + (last - index) * line_height
            writer.append(fitz.Point(placement.x, pdf_height - baseline_pdf), line,
                          font=font, fontsize=font_size)
        if any(lines):
            writer.write_text(page, color=color, overlay=True)

    def _draw_image(self, page: fitz.Page, annotation: ImageAnnotation, placement: PdfPlacement) -> None:
        """画像・署名注釈を、PDF空間に写像したボックスいっぱいに描画する。"""
        try:
            data = PDFUtils.decode_data_url(annotation.data_url)
        except ValueError as exc:
            raise CompositionFailure(str(exc)) from exc

        declared = "image/png" if "png" in (annotation.mime_type or "").lower() else "image/jpeg"
        detected = PDFUtils.sniff_image_mime(data)
        if detected != declared:
            raise CompositionFailure(
                f"注釈{annotation.id}の画像データが{declared}として解釈できません"
            )
        if placement.width <= 0 or placement.height <= 0:
            logger.warning("Skipping empty image box for annotation %s", annotation.id)
            return
        try:
            page.insert_image(
                placement.to_fitz_rect(page.rect.height),
                stream=data,
                keep_proportion=False,
                overlay=True,
            )
        except Exception as exc:
            raise CompositionFailure(f"注釈{annotation.id}の画像を埋め込めませんでした: {exc}") from exc


def unsupported_characters(font: fitz.Font, lines: List[str]) -> List[str]:
    """フォントにグリフがない文字を、出現順に重複なく返す。空白は対象外。"""
    missing: List[str] = []
    for line in lines:
        for char in line:
            if char.isspace() or char in missing:
                continue
            if not font.has_glyph(ord(char)):
                missing.append(char)
    return missing


def measure_text_block(font: fitz.Font, lines: List[str], font_size: float,
                       line_height: float) -> Tuple[float, float]:
    """複数行テキストの描画幅と、ディセンダを含む高さを返す。"""
    width = max((font.text_length(line, fontsize=font_size) for line in lines), default=0.0)
    glyph_height = (font.ascender - font.descender) * font_size
    return width, (len(lines) - 1) * line_height + glyph_height
