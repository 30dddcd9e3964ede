# utils/config.py
from typing import Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EditorConfig(BaseSettings):
    """
    PDF編集アプリケーションの設定。環境変数（DMS_*）から読み込まれる。

    Attributes:
        api_base_url (str): 文書管理APIのベースURL（例: "https://dms.example.com"）。
        api_token (Optional[str]): Bearer認証トークン。
        request_timeout (float): HTTPリクエストのタイムアウト（秒）。
        render_scale (float): ページをラスタライズする固定倍率。
        debug (bool): コンソールへのデバッグログ出力を有効にするか。
        log_dir (Optional[str]): ログファイルの出力先ディレクトリ。
    """

    model_config = SettingsConfigDict(
        populate_by_name=True,
        env_ignore_empty=True,
        extra="ignore",
    )

    api_base_url: str = Field(default="", alias="DMS_API_BASE_URL")
    api_token: Optional[str] = Field(default=None, alias="DMS_API_TOKEN")
    request_timeout: float = Field(default=30.0, alias="DMS_REQUEST_TIMEOUT")
    render_scale: float = Field(default=1.4, alias="DMS_RENDER_SCALE")
    debug: bool = Field(default=False, alias="DMS_EDITOR_DEBUG")
    log_dir: Optional[str] = Field(default=None, alias="DMS_EDITOR_LOG_DIR")

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("request_timeout", "render_scale", mode="before")
    @classmethod
    def positive_or_default(cls, value, info: ValidationInfo):
        """数値として読めない値や0以下の値は既定値に置き換える。"""
        default = cls.model_fields[info.field_name].default
        try:
            number = float(value)
        except (TypeError, ValueError):
            return default
        return number if number > 0 else default
