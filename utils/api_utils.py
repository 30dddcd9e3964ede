# utils/api_utils.py
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class APIUtils:
    """API連携に関する共通処理を提供するユーティリティクラス。"""

    @staticmethod
    def build_session(api_token: Optional[str] = None) -> requests.Session:
        """認証ヘッダーを設定したrequests.Sessionを生成する。"""
        session = requests.Session()
        session.headers.update({"Accept": "application/json"})
        if api_token:
            session.headers["Authorization"] = f"Bearer {api_token}"
        return session

    @staticmethod
    def make_api_request(
        session: requests.Session,
        method: str,
        url: str,
        timeout: float = 15,
        **kwargs: Any
    ) -> requests.Response:
        """指定されたURLにリクエストを送信し、成功したレスポンスを返す。

        Args:
            session (requests.Session): 使用するセッション。
            method (str): HTTPメソッド（例: "GET", "POST"）。
            url (str): リクエストを送信するエンドポイントのURL。
            timeout (float): タイムアウト（秒）。
            **kwargs: requestsにそのまま渡す追加引数（params, files など）。

        Returns:
            requests.Response: 2xxのレスポンス。

        Raises:
            requests.exceptions.RequestException: ネットワークエラーやHTTPエラーステータスの場合。
        """
        try:
            response = session.request(method, url, timeout=timeout, **kwargs)
            response.raise_for_status()  # 2xx以外のステータスコードで例外を発生させる
            return response
        except requests.exceptions.RequestException as e:
            logger.warning("API request %s %s failed: %s", method, url, e)
            raise

    @staticmethod
    def handle_api_response(response_json: Dict[str, Any]) -> Any:
        """APIレスポンスのJSON（{success, data, error}形式）からdataを取り出す。

        Raises:
            ValueError: success が false の場合。error.message があればそれを含める。
        """
        if response_json.get("success") is False:
            error = response_json.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            raise ValueError(f"API Error: {message or 'unknown error'}")
        return response_json.get("data")
