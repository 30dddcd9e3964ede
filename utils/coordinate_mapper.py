# utils/coordinate_mapper.py
"""ラスタ空間（左上原点・下向きY）とPDFユーザー空間（左下原点・上向きY）の座標変換。

ラスタ空間は固定倍率でレンダリングしたページ画像のピクセル座標で、
画面上の注釈ボックスの座標と一致する。保存時には、保存時点で開き直した
PDFページの実寸を基準に変換するため、レンダリング倍率が変わっても正しく写像される。
"""
from dataclasses import dataclass
from typing import Tuple, Union

import fitz  # PyMuPDF

from models.annotation_models import Annotation, PageRender

PageSize = Union[Tuple[float, float], fitz.Rect]


@dataclass(frozen=True)
class RasterBox:
    """ラスタ空間上の矩形（左上基準）。"""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PdfPlacement:
    """PDFユーザー空間上の配置。

    Attributes:
        x (float): 左端のX座標。
        y_top (float): 上端のY座標。
        y_bottom (float): 下端のY座標。テキストのベースラインと画像の左下の基準。
        width (float): 幅。
        height (float): 高さ。
    """
    x: float
    y_top: float
    y_bottom: float
    width: float
    height: float

    def to_fitz_rect(self, pdf_height: float) -> fitz.Rect:
        """PyMuPDFのページ座標系（左上原点・下向きY）の矩形に変換する。"""
        return fitz.Rect(self.x, pdf_height - self.y_top, self.x + self.width, pdf_height - self.y_bottom)


def _page_dimensions(pdf_page_size: PageSize) -> Tuple[float, float]:
    if isinstance(pdf_page_size, fitz.Rect):
        return pdf_page_size.width, pdf_page_size.height
    width, height = pdf_page_size
    return float(width), float(height)


def to_pdf_space(box: Union[Annotation, RasterBox], page_render: PageRender, pdf_page_size: PageSize) -> PdfPlacement:
    """ラスタ空間の注釈ボックスをPDFユーザー空間に写像する。

    Args:
        box (Union[Annotation, RasterBox]): x, y, width, heightを持つラスタ空間の矩形。
        page_render (PageRender): ラスタ画像の寸法を持つページ。
        pdf_page_size (PageSize): 開き直したPDFページの実寸（幅, 高さ）またはfitz.Rect。

    Returns:
        PdfPlacement: PDFユーザー空間での配置。

    Raises:
        ValueError: ラスタ画像の寸法が0以下の場合。
    """
    if page_render.width <= 0 or page_render.height <= 0:
        raise ValueError(f"ページ{page_render.page_number}のラスタ寸法が不正です")
    pdf_width, pdf_height = _page_dimensions(pdf_page_size)

    x_pdf = (box.x / page_render.width) * pdf_width
    render_width = (box.width / page_render.width) * pdf_width
    render_height = (box.height / page_render.height) * pdf_height
    y_top = pdf_height - (box.y / page_render.height) * pdf_height
    y_bottom = y_top - render_height
    return PdfPlacement(x=x_pdf, y_top=y_top, y_bottom=y_bottom, width=render_width, height=render_height)


def to_raster_space(placement: PdfPlacement, page_render: PageRender, pdf_page_size: PageSize) -> RasterBox:
    """to_pdf_spaceの逆変換。PDFユーザー空間の配置をラスタ空間の矩形に戻す。"""
    pdf_width, pdf_height = _page_dimensions(pdf_page_size)
    if pdf_width <= 0 or pdf_height <= 0:
        raise ValueError("PDFページの寸法が不正です")
    return RasterBox(
        x=(placement.x / pdf_width) * page_render.width,
        y=((pdf_height - placement.y_top) / pdf_height) * page_render.height,
        width=(placement.width / pdf_width) * page_render.width,
        height=(placement.height / pdf_height) * page_render.height,
    )


def scale_factors(page_render: PageRender, pdf_page_size: PageSize) -> Tuple[float, float]:
    """ラスタ1ピクセルあたりのPDFポイント数（X方向, Y方向）を返す。"""
    pdf_width, pdf_height = _page_dimensions(pdf_page_size)
    return pdf_width / page_render.width, pdf_height / page_render.height
