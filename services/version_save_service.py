# services/version_save_service.py
import logging
import os
import re
import time
from typing import Callable, Iterable, Optional

from models.annotation_models import Annotation, PageRender
from models.document_models import DocumentFile
from models.errors import CompositionFailure, FetchFailure
from .base_service import BaseService
from .compositor import Compositor

logger = logging.getLogger(__name__)


def edited_file_name(original_name: Optional[str], now_ms: Optional[int] = None) -> str:
    """編集済みファイルの名前（<元の名前>-edited-<エポックミリ秒>.pdf）を作る。"""
    stem = re.sub(r"\.pdf$", "", (original_name or "document"), flags=re.IGNORECASE).strip() or "document"
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{stem}-edited-{stamp}.pdf"


class VersionSaveService:
    """
    注釈を焼き込んだPDFを作成し、文書の新しいバージョンとして登録するサービス。

    元のPDFは保存のたびに取得し直し、合成に失敗した場合やアップロードに失敗した場合は
    例外をそのまま呼び出し元に伝えます（注釈は呼び出し元で保持されたまま）。
    """

    def __init__(self, file_service: BaseService[bytes], compositor: Optional[Compositor] = None,
                 clock: Callable[[], float] = time.time) -> None:
        self.file_service = file_service
        self.compositor = compositor or Compositor()
        self._clock = clock

    def save(self, source_file: DocumentFile, annotations: Iterable[Annotation],
             page_renders: Iterable[PageRender]) -> Optional[str]:
        """
        合成とアップロードを行い、新しいファイルのIDを返す。

        Raises:
            UploadFailure: アップロードに失敗した場合。
            CompositionFailure: 元のPDFの再取得、または合成に失敗した場合。
        """
        try:
            original = self.file_service.load_data(source_file.id)
        except FetchFailure as exc:
            raise CompositionFailure(f"元のPDFを取得できませんでした: {exc}") from exc

        composed = self.compositor.compose(original, list(annotations), list(page_renders))
        name = edited_file_name(os.path.basename(source_file.name), int(self._clock() * 1000))
        logger.info("Uploading %s (%d bytes) as a new version of %s", name, len(composed), source_file.id)
        return self.file_service.save_data(composed, name)
