# services/document_file_service.py
import logging
import os
from typing import List, Optional

from models.document_models import DocumentFile
from models.errors import FetchFailure, UploadFailure
from .api_service import APIService
from .base_service import BaseService

logger = logging.getLogger(__name__)


class RemoteFileService(BaseService[bytes]):
    """DMS上の1文書に添付されたPDFファイルを読み書きするサービス。

    Attributes:
        api_service (APIService): DMSのファイルAPIクライアント。
        document_id (str): 対象の文書ID。
    """

    def __init__(self, api_service: APIService, document_id: str) -> None:
        self.api_service = api_service
        self.document_id = document_id

    def list_files(self) -> List[DocumentFile]:
        return self.api_service.list_files(self.document_id)

    def load_data(self, identifier: str) -> bytes:
        return self.api_service.fetch_file_bytes(self.document_id, identifier)

    def save_data(self, data: bytes, name: str) -> Optional[str]:
        return self.api_service.upload_new_version(self.document_id, name, data)


class LocalFileService(BaseService[bytes]):
    """ローカルのPDFファイルを編集対象とするサービス。

    保存時は元ファイルを上書きせず、同じディレクトリに新しいファイルとして書き出します。
    ファイルの識別子には絶対パスを使います。
    """

    def __init__(self, pdf_path: str) -> None:
        """LocalFileServiceのコンストラクタ。

        Args:
            pdf_path (str): 最初に開くPDFファイルのパス。
        """
        self.pdf_path = os.path.abspath(pdf_path)
        self.base_path = os.path.dirname(self.pdf_path)
        self._created: List[str] = []

    def list_files(self) -> List[DocumentFile]:
        paths = [self.pdf_path] + self._created
        files = []
        for version, path in enumerate(paths, start=1):
            files.append(DocumentFile(
                id=path,
                name=os.path.basename(path),
                size=os.path.getsize(path) if os.path.exists(path) else 0,
                type="application/pdf",
                version=str(version),
                is_primary=(path == self.pdf_path),
            ))
        return files

    def load_data(self, identifier: str) -> bytes:
        try:
            with open(identifier, "rb") as f:
                return f.read()
        except OSError as exc:
            raise FetchFailure(f"ファイルを読み込めませんでした: {identifier}, {exc}") from exc

    def save_data(self, data: bytes, name: str) -> Optional[str]:
        file_path = os.path.join(self.base_path, name)
        try:
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise UploadFailure(f"ファイルを保存できませんでした: {file_path}, {exc}") from exc
        logger.info("Saved edited PDF to %s", file_path)
        self._created.append(file_path)
        return file_path
