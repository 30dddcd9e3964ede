import fitz
import pytest

from conftest import make_page
from utils.coordinate_mapper import PdfPlacement, RasterBox, scale_factors, to_pdf_space, to_raster_space


def test_top_left_box_maps_near_top_of_pdf_page():
    page = make_page()
    placement = to_pdf_space(RasterBox(40, 40, 100, 20), page, (595, 842))

    assert placement.x == pytest.approx(40 / 842 * 595)
    assert placement.y_top == pytest.approx(842 - 40 / 1191 * 842)
    assert placement.y_top == pytest.approx(813.72, abs=0.01)
    assert placement.width == pytest.approx(100 / 842 * 595)
    assert placement.height == pytest.approx(20 / 1191 * 842)
    assert placement.y_bottom == pytest.approx(placement.y_top - placement.height)


def test_box_at_raster_bottom_edge_reaches_pdf_origin():
    page = make_page()
    placement = to_pdf_space(RasterBox(0, 1191 - 50, 842, 50), page, (595, 842))

    assert placement.x == pytest.approx(0)
    assert placement.y_bottom == pytest.approx(0, abs=1e-9)
    assert placement.width == pytest.approx(595)


def test_accepts_fitz_rect_as_page_size():
    page = make_page()
    from_tuple = to_pdf_space(RasterBox(10, 20, 30, 40), page, (595, 842))
    from_rect = to_pdf_space(RasterBox(10, 20, 30, 40), page, fitz.Rect(0, 0, 595, 842))
    assert from_tuple == from_rect


def test_uses_page_size_at_save_time_not_render_time():
    # ページ画像はA4で作られたが、保存時のページはLetterサイズ
    page = make_page()
    placement = to_pdf_space(RasterBox(421, 0, 421, 1191), page, (612, 792))
    assert placement.x == pytest.approx(306)
    assert placement.width == pytest.approx(306)
    assert placement.y_top == pytest.approx(792)
    assert placement.y_bottom == pytest.approx(0, abs=1e-9)


def test_inverse_mapping_returns_original_box():
    page = make_page()
    box = RasterBox(123.5, 456.25, 200, 90)
    restored = to_raster_space(to_pdf_space(box, page, (595, 842)), page, (595, 842))

    assert restored.x == pytest.approx(box.x)
    assert restored.y == pytest.approx(box.y)
    assert restored.width == pytest.approx(box.width)
    assert restored.height == pytest.approx(box.height)


def test_fitz_rect_is_top_down():
    placement = PdfPlacement(x=10, y_top=800, y_bottom=780, width=50, height=20)
    assert placement.to_fitz_rect(842) == fitz.Rect(10, 42, 60, 62)


def test_zero_raster_dimensions_are_rejected():
    with pytest.raises(ValueError):
        to_pdf_space(RasterBox(0, 0, 10, 10), make_page(width=0), (595, 842))


def test_scale_factors():
    sx, sy = scale_factors(make_page(), (595, 842))
    assert sx == pytest.approx(595 / 842)
    assert sy == pytest.approx(842 / 1191)
