import pytest

from models.annotation_models import AnnotationType, TextAnnotation
from models.errors import NothingToSave, SaveInProgress
from services.editor_session import EditorSession, EditorState

PNG_URL = "data:image/png;base64,AAAA"


@pytest.fixture
def session(pages):
    return EditorSession(pages)


def test_new_session_is_idle_on_first_page(session):
    assert session.state == EditorState.IDLE
    assert session.active_page == 1
    assert session.page_count == 2
    assert session.tools_enabled


def test_add_text_uses_defaults_and_enters_editing(session):
    annotation = session.add_text()
    assert isinstance(annotation, TextAnnotation)
    assert annotation.text == "Enter text"
    assert annotation.font_size == 14
    assert annotation.font_name == "Helvetica"
    assert (annotation.x, annotation.y) == (40, 40)
    assert annotation.background_color == "#ffffff"
    assert annotation.text_color == "#000000"
    assert session.state == EditorState.EDITING


def test_add_image_and_signature_are_selected(session):
    image = session.add_image(PNG_URL)
    assert (image.x, image.y, image.width, image.height) == (48, 48, 200, 90)
    assert session.state == EditorState.SELECTED

    signature = session.add_signature(PNG_URL)
    assert signature.type == AnnotationType.SIGNATURE
    assert session.selected is signature


def test_tools_are_disabled_without_pages_or_while_rendering(session):
    session.switch_file()
    assert session.is_rendering
    assert not session.tools_enabled
    assert session.add_text() is None
    assert session.add_image(PNG_URL) is None


def test_annotations_go_to_active_page(session):
    session.go_to_page(2)
    annotation = session.add_text()
    assert annotation.page_number == 2


def test_go_to_page_out_of_range_is_ignored(session):
    assert not session.go_to_page(3)
    assert not session.go_to_page(0)
    assert session.active_page == 1


def test_go_to_page_ends_editing_but_keeps_selection(session):
    annotation = session.add_text()
    session.go_to_page(2)
    assert session.editing_id is None
    assert session.selected is annotation


def test_background_click_returns_to_idle(session):
    session.add_text()
    session.click_background()
    assert session.state == EditorState.IDLE


def test_selecting_another_annotation_ends_editing(session):
    text = session.add_text()
    image = session.add_image(PNG_URL)
    session.begin_text_edit(text.id)
    assert session.state == EditorState.EDITING

    session.select(image.id)
    assert session.state == EditorState.SELECTED
    assert session.selected is image


def test_begin_text_edit_rejects_images(session):
    image = session.add_image(PNG_URL)
    assert not session.begin_text_edit(image.id)


def test_change_text_refits_box(session):
    annotation = session.add_text()
    before = annotation.width
    updated = session.change_text(annotation.id, "Enter text\nwith a much longer second line")
    assert updated.width > before
    assert updated.height == 2 * (14 + 2)


def test_change_font_size_is_clamped_and_refits(session):
    annotation = session.add_text()
    updated = session.change_font_size(annotation.id, 1000)
    assert updated.font_size == 150
    assert updated.height == 152


def test_change_colors_only_for_text(session):
    text = session.add_text()
    image = session.add_image(PNG_URL)
    assert session.change_colors(text.id, text_color="#2563eb").text_color == "#2563eb"
    assert session.change_colors(image.id, text_color="#2563eb") is None


def test_drop_moves_once_and_selects(session):
    annotation = session.add_image(PNG_URL)
    session.click_background()
    session.drop(annotation.id, 10000, 10)
    assert annotation.x == 842 - 200
    assert session.selected is annotation


def test_finish_resize_commits_geometry(session):
    annotation = session.add_image(PNG_URL)
    session.finish_resize(annotation.id, 120, 60, 30, 30)
    assert (annotation.x, annotation.y, annotation.width, annotation.height) == (30, 30, 120, 60)


def test_remove_selected(session):
    session.add_image(PNG_URL)
    assert session.remove_selected()
    assert len(session.store) == 0
    assert not session.remove_selected()


def test_switch_file_discards_everything(session):
    session.add_text()
    session.go_to_page(2)
    session.switch_file()
    assert len(session.store) == 0
    assert session.state == EditorState.IDLE
    assert session.page_count == 0
    assert session.active_page == 1


def test_save_requires_annotations(session):
    assert not session.can_save
    with pytest.raises(NothingToSave):
        session.begin_save()


def test_second_save_is_rejected_while_saving(session):
    session.add_text()
    snapshot = session.begin_save()
    assert len(snapshot) == 1
    assert not session.can_save
    with pytest.raises(SaveInProgress):
        session.begin_save()


def test_save_snapshot_is_not_affected_by_later_edits(session):
    annotation = session.add_image(PNG_URL)
    before = (annotation.x, annotation.y, annotation.width, annotation.height)
    snapshot = session.begin_save()

    session.drop(annotation.id, 300, 400)
    session.finish_resize(annotation.id, 50, 40, 310, 410)

    assert snapshot[0] is not annotation
    assert snapshot[0].id == annotation.id
    assert (snapshot[0].x, snapshot[0].y, snapshot[0].width, snapshot[0].height) == before
    assert (annotation.x, annotation.y) == (310, 410)


def test_failed_save_keeps_annotations(session):
    session.add_text()
    session.begin_save()
    session.finish_save(False)
    assert len(session.store) == 1
    assert session.can_save


def test_successful_save_clears_annotations(session):
    session.add_text()
    session.begin_save()
    session.finish_save(True)
    assert len(session.store) == 0
    assert session.state == EditorState.IDLE
