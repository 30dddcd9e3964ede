import pytest

from conftest import make_pdf
from models.errors import CancelledRender, FetchFailure, RenderFailure
from services.page_rasterizer import PageRasterizer, RenderSession, RenderToken

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def test_renders_every_page_in_order():
    rasterizer = PageRasterizer(scale=1.4)
    pages = rasterizer.render_all(make_pdf([(595, 842), (612, 792), (300, 300)]), RenderToken())

    assert [p.page_number for p in pages] == [1, 2, 3]
    first = pages[0]
    assert first.image_bytes.startswith(PNG_SIGNATURE)
    assert first.width == pytest.approx(595 * 1.4, abs=1)
    assert first.height == pytest.approx(842 * 1.4, abs=1)
    assert (first.pdf_width, first.pdf_height) == (595, 842)
    assert (pages[1].pdf_width, pages[1].pdf_height) == (612, 792)


def test_accepts_callable_source():
    data = make_pdf()
    pages = PageRasterizer().render_all(lambda: data, RenderToken())
    assert len(pages) == 1


def test_garbage_bytes_raise_render_failure():
    with pytest.raises(RenderFailure):
        PageRasterizer().render_all(b"this is not a pdf", RenderToken())


def test_empty_bytes_raise_render_failure():
    with pytest.raises(RenderFailure):
        PageRasterizer().render_all(b"", RenderToken())


def test_fetch_failure_becomes_render_failure():
    def broken():
        raise FetchFailure("404")

    with pytest.raises(RenderFailure):
        PageRasterizer().render_all(broken, RenderToken())


def test_cancelled_token_stops_iteration():
    token = RenderToken("a")
    pages = PageRasterizer().iter_pages(make_pdf([(200, 200)] * 3), token)
    next(pages)
    token.cancel()
    with pytest.raises(CancelledRender):
        next(pages)


def test_invalid_scale_is_rejected():
    with pytest.raises(ValueError):
        PageRasterizer(scale=0)


def test_session_discards_pages_from_superseded_render():
    rasterizer = PageRasterizer()
    session = RenderSession()
    token_a = session.begin("a")
    pages_a = rasterizer.render_all(make_pdf([(200, 200)] * 2), token_a)

    token_b = session.begin("b")
    assert token_a.cancelled
    assert not session.append(token_a, pages_a[0])
    assert not session.finish(token_a)
    assert session.pages == []

    pages_b = rasterizer.render_all(make_pdf([(300, 300)] * 3), token_b)
    for page in pages_b:
        assert session.append(token_b, page)
    assert session.finish(token_b)
    assert [p.pdf_width for p in session.pages] == [300, 300, 300]
    assert not session.is_rendering


def test_session_rejects_out_of_order_pages():
    session = RenderSession()
    token = session.begin()
    pages = PageRasterizer().render_all(make_pdf([(200, 200)] * 2), token)
    assert not session.append(token, pages[1])
    assert session.append(token, pages[0])


def test_failure_leaves_zero_pages():
    session = RenderSession()
    with pytest.raises(RenderFailure):
        session.run(PageRasterizer(), b"%PDF-1.4 broken")
    assert session.pages == []
    assert session.error
    assert not session.is_rendering


def test_stale_failure_is_ignored():
    session = RenderSession()
    old = session.begin("old")
    session.begin("new")
    assert not session.fail(old, "boom")
    assert session.error is None
    assert session.is_rendering


def test_run_returns_pages():
    session = RenderSession()
    pages = session.run(PageRasterizer(scale=1.0), make_pdf([(100, 150)]))
    assert len(pages) == 1
    assert (pages[0].width, pages[0].height) == (100, 150)
