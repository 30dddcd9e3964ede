import fitz
import pytest

from conftest import make_image, make_page, make_pdf
from models.annotation_models import AnnotationType, ImageAnnotation, TextAnnotation, get_font_option
from models.errors import CompositionFailure
from services.compositor import Compositor, FontCache, measure_text_block, unsupported_characters
from utils.coordinate_mapper import to_pdf_space
from utils.pdf_utils import PDFUtils

RENDER = make_page(width=833, height=1179, pdf_width=595, pdf_height=842)


def text_annotation(text="Hello", x=40, y=40, width=60, height=16, **kwargs):
    return TextAnnotation(id="t1", page_number=1, x=x, y=y, width=width, height=height, text=text, **kwargs)


def image_annotation(data: bytes, mime="image/png", kind=AnnotationType.IMAGE, page_number=1):
    return ImageAnnotation(id="i1", page_number=page_number, x=100, y=200, width=200, height=90,
                           data_url=PDFUtils.encode_data_url(data, mime), mime_type=mime, type=kind)


def open_result(data: bytes) -> fitz.Document:
    return fitz.open(stream=data, filetype="pdf")


def test_text_is_drawn_with_baseline_at_box_bottom():
    annotation = text_annotation()
    result = Compositor().compose(make_pdf(), [annotation], [RENDER])

    doc = open_result(result)
    page = doc[0]
    assert "Hello" in page.get_text()

    placement = to_pdf_space(annotation, RENDER, page.rect)
    spans = [
        span
        for block in page.get_text("dict")["blocks"] if block.get("type") == 0
        for line in block["lines"]
        for span in line["spans"] if span["text"] == "Hello"
    ]
    assert spans
    assert spans[0]["origin"][0] == pytest.approx(placement.x, abs=0.5)
    assert spans[0]["origin"][1] == pytest.approx(842 - placement.y_bottom, abs=0.5)
    doc.close()


def test_occlusion_patch_covers_measured_text_width():
    # 保存されたボックスより実際のテキストの方が広い場合
    annotation = text_annotation(text="A considerably longer sentence", background_color="#fff3cd")
    result = Compositor().compose(make_pdf(), [annotation], [RENDER])

    doc = open_result(result)
    page = doc[0]
    scale_y = 842 / 1179
    measured = fitz.get_text_length(annotation.text, fontname="helv", fontsize=14 * scale_y)
    fills = [d for d in page.get_drawings() if d.get("fill") is not None]
    assert fills
    patch = fills[0]
    assert patch["rect"].width >= measured - 0.01
    assert patch["fill"] == pytest.approx((1.0, 0xF3 / 255, 0xCD / 255), abs=0.01)
    doc.close()


def test_multiline_text_keeps_all_lines():
    annotation = text_annotation(text="first\nsecond", height=32)
    doc = open_result(Compositor().compose(make_pdf(), [annotation], [RENDER]))
    text = doc[0].get_text()
    assert "first" in text and "second" in text
    assert text.index("first") < text.index("second")
    doc.close()


@pytest.mark.parametrize("kind", ["png", "jpeg"])
def test_image_is_embedded(kind):
    annotation = image_annotation(make_image(kind), mime=f"image/{kind}")
    doc = open_result(Compositor().compose(make_pdf(), [annotation], [RENDER]))
    images = doc[0].get_images(full=True)
    assert len(images) == 1

    placement = to_pdf_space(annotation, RENDER, doc[0].rect)
    bbox = doc[0].get_image_bbox(images[0])
    assert bbox.x0 == pytest.approx(placement.x, abs=0.5)
    assert bbox.y1 == pytest.approx(842 - placement.y_bottom, abs=0.5)
    doc.close()


def test_signature_is_embedded_like_an_image():
    annotation = image_annotation(make_image("png"), kind=AnnotationType.SIGNATURE)
    doc = open_result(Compositor().compose(make_pdf(), [annotation], [RENDER]))
    assert len(doc[0].get_images()) == 1
    doc.close()


def test_mismatched_image_payload_fails():
    annotation = image_annotation(make_image("jpeg"), mime="image/png")
    with pytest.raises(CompositionFailure):
        Compositor().compose(make_pdf(), [annotation], [RENDER])


def test_undecodable_image_fails():
    annotation = image_annotation(b"")
    annotation.data_url = "data:image/png;base64,@@not-base64@@"
    with pytest.raises(CompositionFailure):
        Compositor().compose(make_pdf(), [annotation], [RENDER])


def test_unreadable_original_fails():
    with pytest.raises(CompositionFailure):
        Compositor().compose(b"not a pdf", [text_annotation()], [RENDER])


def test_annotation_without_page_render_is_skipped():
    stale = image_annotation(make_image("png"), page_number=3)
    doc = open_result(Compositor().compose(make_pdf(), [stale, text_annotation()], [RENDER]))
    assert doc.page_count == 1
    assert doc[0].get_images() == []
    assert "Hello" in doc[0].get_text()
    doc.close()


def test_output_is_deterministic():
    original = make_pdf()
    annotations = [text_annotation(), image_annotation(make_image("png"))]
    first = Compositor().compose(original, annotations, [RENDER])
    second = Compositor().compose(original, annotations, [RENDER])
    assert first == second


def test_font_cache_reuses_fonts():
    cache = FontCache()
    helv = get_font_option("Helvetica")
    assert cache.get(helv) is cache.get(helv)
    cache.get(get_font_option("Courier"))
    assert len(cache) == 2


def test_measure_text_block_height_includes_line_gaps():
    font = fitz.Font("helv")
    width, height = measure_text_block(font, ["a", "b", "c"], 10, 11)
    assert width > 0
    assert height == pytest.approx(2 * 11 + (font.ascender - font.descender) * 10)


def test_text_outside_font_coverage_fails():
    annotation = text_annotation(text="承認済み")
    with pytest.raises(CompositionFailure, match="t1"):
        Compositor().compose(make_pdf(), [annotation], [RENDER])


def test_latin1_text_is_kept_verbatim():
    annotation = text_annotation(text="Café déjà vu")
    doc = open_result(Compositor().compose(make_pdf(), [annotation], [RENDER]))
    assert "Café déjà vu" in doc[0].get_text()
    doc.close()


def test_unsupported_characters_lists_each_character_once():
    font = fitz.Font("helv")
    assert unsupported_characters(font, ["OK 承認", "承認 済"]) == ["承", "認", "済"]
    assert unsupported_characters(font, ["plain text", ""]) == []


def test_text_is_drawn_with_cached_fonts(monkeypatch):
    cached = []
    original_get = FontCache.get
    drawn = []
    original_append = fitz.TextWriter.append

    def recording_get(self, option):
        font = original_get(self, option)
        cached.append(font)
        return font

    def recording_append(self, pos, text, *args, **kwargs):
        drawn.append(kwargs.get("font"))
        return original_append(self, pos, text, *args, **kwargs)

    monkeypatch.setattr(FontCache, "get", recording_get)
    monkeypatch.setattr(fitz.TextWriter, "append", recording_append)

    annotations = [
        text_annotation(text="Mono", font_name="Courier"),
        text_annotation(text="Sans", y=120),
    ]
    doc = open_result(Compositor().compose(make_pdf(), annotations, [RENDER]))
    text = doc[0].get_text()
    assert "Mono" in text and "Sans" in text
    doc.close()

    assert len(drawn) == 2
    assert all(any(font is c for c in cached) for font in drawn)


def test_empty_text_still_covers_its_box():
    annotation = text_annotation(text="")
    doc = open_result(Compositor().compose(make_pdf(), [annotation], [RENDER]))
    assert [d for d in doc[0].get_drawings() if d.get("fill") is not None]
    assert doc[0].get_text().strip() == "Original 1"
    doc.close()
