# services/api_service.py
import logging
from typing import List, Optional

import requests

from models.document_models import DocumentFile
from models.errors import FetchFailure, UploadFailure
from utils.api_utils import APIUtils
from utils.config import EditorConfig

logger = logging.getLogger(__name__)


class APIService:
    """文書管理システム（DMS）のファイルAPIとの連携を管理するサービスクラス。

    編集コアが外部と接する窓口は「ファイルのバイト列取得」と「新バージョンのアップロード」の
    2つだけで、ファイル一覧の取得は保存後の再読み込みに使います。
    """

    def __init__(self, config: EditorConfig, session: Optional[requests.Session] = None) -> None:
        """APIServiceのコンストラクタ。

        Args:
            config (EditorConfig): 接続先URL・トークン・タイムアウトを含む設定。
            session (Optional[requests.Session]): 使用するセッション。省略時は設定から生成する。
        """
        self.base_url: str = config.api_base_url.rstrip("/")
        self.timeout: float = config.request_timeout
        self.session: requests.Session = session or APIUtils.build_session(config.api_token)

    def is_available(self) -> bool:
        """接続先URLが設定されているかどうか。"""
        return bool(self.base_url)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def list_files(self, document_id: str) -> List[DocumentFile]:
        """文書に添付されたファイルの一覧を取得する。

        Raises:
            FetchFailure: 通信エラー、HTTPエラー、または不正なレスポンスの場合。
        """
        url = self._url(f"/api/documents/{document_id}/files")
        try:
            response = APIUtils.make_api_request(self.session, "GET", url, timeout=self.timeout)
            data = APIUtils.handle_api_response(response.json())
        except (requests.RequestException, ValueError) as exc:
            raise FetchFailure(f"ファイル一覧を取得できませんでした: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("files", [])
        return [DocumentFile.from_api(item) for item in (data or [])]

    def fetch_file_bytes(self, document_id: str, file_id: str) -> bytes:
        """ファイルの生バイト列を取得する。

        Raises:
            FetchFailure: 通信エラーまたはHTTPエラーの場合。
        """
        url = self._url(f"/api/documents/{document_id}/files/{file_id}/stream")
        try:
            response = APIUtils.make_api_request(
                self.session, "GET", url, timeout=self.timeout, params={"download": 1}
            )
        except requests.RequestException as exc:
            raise FetchFailure(f"PDFをダウンロードできませんでした: {exc}") from exc
        logger.debug("Fetched %d bytes for document=%s file=%s", len(response.content), document_id, file_id)
        return response.content

    def upload_new_version(self, document_id: str, filename: str, data: bytes) -> Optional[str]:
        """編集済みのPDFを文書の新しいバージョンとしてアップロードする。

        Args:
            document_id (str): 文書ID。
            filename (str): アップロードするファイル名。
            data (bytes): PDFのバイト列。

        Returns:
            Optional[str]: 新しく作成されたファイルのID。レスポンスに含まれない場合はNone。

        Raises:
            UploadFailure: 通信エラー、HTTPエラー、または success が false の場合。
        """
        url = self._url(f"/api/documents/{document_id}/files")
        files = {"files": (filename, data, "application/pdf")}
        try:
            response = self.session.request("POST", url, files=files, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UploadFailure(f"アップロードに失敗しました: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {"success": response.ok}

        if not response.ok or payload.get("success") is False:
            error = payload.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise UploadFailure(message or f"アップロードに失敗しました (HTTP {response.status_code})")

        created = payload.get("data")
        if isinstance(created, list) and created and isinstance(created[0], dict):
            new_id = created[0].get("id")
            return str(new_id) if new_id is not None else None
        return None
