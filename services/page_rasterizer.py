# services/page_rasterizer.py
"""PDFをページ画像の列にラスタライズする処理と、その取り消し制御。

1回のレンダリングは RenderToken を1つ所有します。ファイルが切り替わると
RenderSession が古いトークンを取り消し、古いレンダリングから届いたページは
すべて破棄されます。
"""
import logging
import threading
from typing import Callable, Iterator, List, Optional, Union

import fitz  # PyMuPDF

from models.annotation_models import PageRender
from models.errors import CancelledRender, FetchFailure, RenderFailure
from utils.pdf_utils import PDFUtils

logger = logging.getLogger(__name__)

ByteSource = Union[bytes, Callable[[], bytes]]

DEFAULT_RENDER_SCALE: float = 1.4


class RenderToken:
    """1回のレンダリングに対応する取り消しトークン。"""

    _counter = 0
    _counter_lock = threading.Lock()

    def __init__(self, label: str = "") -> None:
        with RenderToken._counter_lock:
            RenderToken._counter += 1
            self.serial: int = RenderToken._counter
        self.label: str = label
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise CancelledRender(f"render #{self.serial} ({self.label}) was superseded")

    def __repr__(self) -> str:
        return f"RenderToken(serial={self.serial}, label={self.label!r}, cancelled={self.cancelled})"


class PageRasterizer:
    """PDFのバイト列を固定倍率のページ画像に変換するクラス。

    Attributes:
        scale (float): レンダリング倍率。ラスタ寸法 = PDF寸法 × scale。
    """

    def __init__(self, scale: float = DEFAULT_RENDER_SCALE) -> None:
        if scale <= 0:
            raise ValueError("scale must be positive")
        self.scale: float = scale

    def iter_pages(self, source: ByteSource, token: RenderToken) -> Iterator[PageRender]:
        """ページを1ページ目から順にラスタライズして返すジェネレータ。

        Args:
            source (ByteSource): PDFのバイト列、またはバイト列を返す呼び出し可能オブジェクト。
            token (RenderToken): このレンダリングの取り消しトークン。

        Yields:
            PageRender: ページ番号の昇順に並んだページ画像。

        Raises:
            CancelledRender: トークンが取り消された場合。
            RenderFailure: 取得・解析・ラスタライズに失敗した場合。
        """
        token.raise_if_cancelled()
        data = self._resolve_source(source)
        token.raise_if_cancelled()

        try:
            doc = PDFUtils.open_document(data)
        except ValueError as exc:
            raise RenderFailure(str(exc)) from exc

        try:
            logger.debug("Rasterizing %d page(s) at scale %.2f for %r", doc.page_count, self.scale, token)
            for index in range(doc.page_count):
                token.raise_if_cancelled()
                page_render = self._render_page(doc, index)
                token.raise_if_cancelled()
                yield page_render
        finally:
            doc.close()

    def render_all(self, source: ByteSource, token: RenderToken) -> List[PageRender]:
        """全ページをまとめてラスタライズする。"""
        return list(self.iter_pages(source, token))

    def _resolve_source(self, source: ByteSource) -> bytes:
        if not callable(source):
            return source
        try:
            return source()
        except FetchFailure as exc:
            raise RenderFailure(str(exc)) from exc

    def _render_page(self, doc: fitz.Document, index: int) -> PageRender:
        try:
            page = doc.load_page(index)
            image_bytes, width, height = PDFUtils.render_page_png(page, self.scale)
            rect = page.rect
        except Exception as exc:
            raise RenderFailure(f"{index + 1}ページ目をレンダリングできませんでした: {exc}") from exc
        return PageRender(
            page_number=index + 1,
            image_bytes=image_bytes,
            width=width,
            height=height,
            pdf_width=rect.width,
            pdf_height=rect.height,
        )


class RenderSession:
    """現在有効なレンダリングと、確定したページ列を管理する。

    begin() を呼ぶたびに前回のトークンは取り消され、古いトークンで届いた
    ページや失敗通知は無視されます。ページ列はUIスレッドからのみ更新します。
    """

    def __init__(self) -> None:
        self._token: Optional[RenderToken] = None
        self.pages: List[PageRender] = []
        self.error: Optional[str] = None

    @property
    def is_rendering(self) -> bool:
        return self._token is not None and not self._token.cancelled

    def is_current(self, token: RenderToken) -> bool:
        return token is self._token and not token.cancelled

    def begin(self, label: str = "") -> RenderToken:
        """新しいレンダリングを開始する。進行中のレンダリングは取り消す。"""
        self.cancel()
        self._token = RenderToken(label)
        self.pages = []
        self.error = None
        return self._token

    def append(self, token: RenderToken, page: PageRender) -> bool:
        """ページを1枚追加する。古いトークン、または順序が飛んだページは破棄してFalseを返す。"""
        if not self.is_current(token):
            logger.debug("Discarding page %d from stale %r", page.page_number, token)
            return False
        expected = len(self.pages) + 1
        if page.page_number != expected:
            logger.warning("Out-of-order page %d (expected %d) discarded", page.page_number, expected)
            return False
        self.pages.append(page)
        return True

    def finish(self, token: RenderToken) -> bool:
        """レンダリングの完了を記録する。"""
        if not self.is_current(token):
            return False
        self._token = None
        return True

    def fail(self, token: RenderToken, message: str) -> bool:
        """レンダリングの失敗を記録し、途中までのページも破棄する。"""
        if not self.is_current(token):
            return False
        self.pages = []
        self.error = message
        self._token = None
        return True

    def cancel(self) -> None:
        """進行中のレンダリングを取り消す（ファイル切り替え・終了時）。"""
        if self._token is not None:
            self._token.cancel()
            self._token = None

    def run(self, rasterizer: PageRasterizer, source: ByteSource, label: str = "") -> List[PageRender]:
        """同期的に1回分のレンダリングを実行する。

        Raises:
            RenderFailure: レンダリングに失敗した場合（ページ列は空になる）。
            CancelledRender: 実行中に別のレンダリングが開始された場合。
        """
        token = self.begin(label)
        try:
            for page in rasterizer.iter_pages(source, token):
                self.append(token, page)
        except RenderFailure as exc:
            self.fail(token, str(exc))
            raise
        self.finish(token)
        return list(self.pages)
