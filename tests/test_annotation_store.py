import math

import fitz
import pytest

from conftest import make_page
from models.annotation_models import FALLBACK_FONT_SIZE, AnnotationType, ImageAnnotation, TextAnnotation
from services.annotation_store import AnnotationStore, clamp_font_size, fit_text_box, safe_font_size


def text_at(x, y, width=100, height=20, page_number=1, **kwargs):
    return TextAnnotation(id="", page_number=page_number, x=x, y=y, width=width, height=height, **kwargs)


def image_at(x, y, width=200, height=90, page_number=1):
    return ImageAnnotation(id="", page_number=page_number, x=x, y=y, width=width, height=height,
                           data_url="data:image/png;base64,AAAA")


@pytest.fixture
def store(pages):
    return AnnotationStore(pages)


def test_add_assigns_id_and_enters_edit_mode_for_text(store):
    annotation = store.add(text_at(40, 40, text="hello"))
    assert annotation.id
    assert store.selection.selected_id == annotation.id
    assert store.selection.editing_id == annotation.id


def test_add_image_selects_without_editing(store):
    annotation = store.add(image_at(48, 48))
    assert store.selection.selected_id == annotation.id
    assert store.selection.editing_id is None
    assert annotation.type == AnnotationType.IMAGE


def test_ids_are_unique(store):
    ids = {store.add(text_at(0, 0)).id for _ in range(20)}
    assert len(ids) == 20


def test_add_on_missing_page_is_rejected(store):
    with pytest.raises(ValueError):
        store.add(text_at(0, 0, page_number=9))


def test_add_clamps_negative_position(store):
    annotation = store.add(text_at(-50, -10))
    assert (annotation.x, annotation.y) == (0, 0)


def test_move_clamps_to_page_bounds(store):
    annotation = store.add(image_at(48, 48))
    store.move(annotation.id, 5000, 5000)
    assert annotation.x == 842 - 200
    assert annotation.y == 1191 - 90

    store.move(annotation.id, -5, 300)
    assert (annotation.x, annotation.y) == (0, 300)


def test_resize_then_clamps_position(store):
    annotation = store.add(image_at(48, 48))
    store.resize(annotation.id, 300, 100, 800, 1150)
    assert (annotation.width, annotation.height) == (300, 100)
    assert annotation.x == 842 - 300
    assert annotation.y == 1191 - 100


def test_resize_larger_than_page_is_capped(store):
    annotation = store.add(image_at(48, 48))
    store.resize(annotation.id, 2000, 3000, 10, 10)
    assert (annotation.width, annotation.height) == (842, 1191)
    assert (annotation.x, annotation.y) == (0, 0)


def test_every_annotation_stays_inside_its_page(store):
    store.add(text_at(900, 1300))
    store.add(image_at(-100, 5000))
    for annotation in store:
        page = store.page_for(annotation)
        assert 0 <= annotation.x <= page.width - annotation.width
        assert 0 <= annotation.y <= page.height - annotation.height


def test_update_merges_and_clamps_font_size(store):
    annotation = store.add(text_at(0, 0))
    updated = store.update(annotation.id, font_size=500, text_color="#dc2626")
    assert updated.font_size == 150
    assert updated.text_color == "#dc2626"
    assert store.get(annotation.id) is updated


def test_update_unknown_id_is_noop(store):
    store.add(text_at(0, 0))
    assert store.update("missing", text="x") is None
    assert len(store) == 1


def test_update_rejects_identity_fields(store):
    annotation = store.add(text_at(0, 0))
    with pytest.raises(ValueError):
        store.update(annotation.id, page_number=2)


def test_remove_clears_selection_and_editing(store):
    annotation = store.add(text_at(0, 0))
    assert store.remove(annotation.id)
    assert store.selection.selected_id is None
    assert store.selection.editing_id is None
    assert not store.remove(annotation.id)


def test_for_page_keeps_insertion_order(store):
    first = store.add(text_at(0, 0))
    store.add(text_at(0, 0, page_number=2))
    third = store.add(image_at(0, 0))
    assert [a.id for a in store.for_page(1)] == [first.id, third.id]


def test_clear_drops_everything(store):
    store.add(text_at(0, 0))
    store.add(image_at(0, 0))
    store.clear()
    assert len(store) == 0
    assert store.selection.selected_id is None


def test_fit_text_box_matches_font_metrics():
    width, height = fit_text_box("Enter text", 14, "Helvetica")
    assert width == pytest.approx(fitz.get_text_length("Enter text", fontname="helv", fontsize=14) + 8)
    assert height == 16


def test_fit_text_box_uses_widest_line():
    width, height = fit_text_box("a\nwide line", 10, "Courier")
    assert width == pytest.approx(fitz.get_text_length("wide line", fontname="cour", fontsize=10) + 8)
    assert height == 2 * 12


def test_refit_text_is_idempotent(store):
    annotation = store.add(text_at(40, 40, text="Enter text"))
    first = store.refit_text(annotation.id, text="Hello world")
    size = (first.width, first.height)
    second = store.refit_text(annotation.id, text="Hello world")
    assert (second.width, second.height) == size


def test_refit_text_ignores_images(store):
    annotation = store.add(image_at(0, 0))
    assert store.refit_text(annotation.id, text="x") is None


def test_font_size_helpers():
    assert safe_font_size(None) == FALLBACK_FONT_SIZE == 12
    assert safe_font_size(float("nan")) == FALLBACK_FONT_SIZE
    assert safe_font_size(20) == 20.0
    assert clamp_font_size(float("nan")) == 6
    assert clamp_font_size(2) == 6
    assert clamp_font_size(151) == 150
    assert not math.isnan(clamp_font_size(None))
