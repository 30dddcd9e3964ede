from typing import Iterable, Tuple

import fitz
import pytest

from models.annotation_models import PageRender

A4 = (595, 842)


def make_pdf(page_sizes: Iterable[Tuple[float, float]] = (A4,), text: str = "Original") -> bytes:
    """指定したサイズのページを持つPDFを作成する。各ページに文字列を書き込む。"""
    doc = fitz.open()
    for index, (width, height) in enumerate(page_sizes, start=1):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"{text} {index}", fontsize=12, fontname="helv")
    data = doc.tobytes()
    doc.close()
    return data


def make_image(kind: str = "png", width: int = 8, height: int = 4) -> bytes:
    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, width, height), False)
    pix.clear_with(200)
    return pix.tobytes(kind)


def make_page(page_number: int = 1, width: int = 842, height: int = 1191,
              pdf_width: float = 595, pdf_height: float = 842) -> PageRender:
    return PageRender(page_number=page_number, image_bytes=b"", width=width, height=height,
                      pdf_width=pdf_width, pdf_height=pdf_height)


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf([A4, A4])


@pytest.fixture
def pages():
    return [make_page(1), make_page(2)]
