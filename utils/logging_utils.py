# utils/logging_utils.py
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


def _resolve_log_dir(log_dir: Optional[str]) -> Path:
    """ログ出力先ディレクトリを決定する。カレントに書けない場合はユーザー領域を使う。"""
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    cwd_logs = Path.cwd() / "logs"
    try:
        cwd_logs.mkdir(parents=True, exist_ok=True)
        return cwd_logs
    except OSError:
        appdata = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        fallback = (Path(appdata) / "PdfVersionEditor" / "logs") if appdata else Path.home() / ".pdf_version_editor" / "logs"
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def configure_logging(*, debug: bool = False, log_dir: Optional[str] = None, log_path: Optional[str] = None) -> None:
    """アプリケーション全体のロギングを設定する。

    - 常に ./logs 以下のローテーションファイルに出力する
    - debugが有効な場合はコンソールにも出力する
    - 複数回呼ばれてもハンドラを重複登録しない
    """
    level = logging.DEBUG if debug else logging.INFO

    if log_path is None:
        log_path = str(_resolve_log_dir(log_dir) / "pdf_editor.log")

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_pdf_editor_configured", False):
        return

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if debug:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(fmt)
        root.addHandler(console)

    setattr(root, "_pdf_editor_configured", True)
