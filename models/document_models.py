# models/document_models.py
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class DocumentFile:
    """文書に添付されたファイル（バージョン）のメタデータ。

    Attributes:
        id (str): ファイルの一意なID。
        name (str): ファイル名。
        size (int): バイトサイズ。
        type (str): MIMEタイプ。
        version (Optional[str]): バージョン番号（例: "2"）。
        is_primary (bool): 文書の主ファイルかどうか。
        upload_date (Optional[str]): アップロード日時（ISO 8601形式）。
    """
    id: str
    name: str
    size: int = 0
    type: str = ""
    version: Optional[str] = None
    is_primary: bool = False
    upload_date: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DocumentFile":
        """APIレスポンスの1要素からDocumentFileを生成する。"""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            size=int(data.get("size") or 0),
            type=data.get("type") or "",
            version=data.get("version"),
            is_primary=bool(data.get("isPrimary", False)),
            upload_date=data.get("uploadDate"),
        )

    def is_pdf_like(self) -> bool:
        """MIMEタイプまたは拡張子からPDFファイルとみなせるかを判定する。"""
        if "pdf" in (self.type or "").lower():
            return True
        return (self.name or "").lower().endswith(".pdf")
