# models/errors.py
"""PDF編集コアが送出する例外の定義。"""


class EditorError(Exception):
    """編集コアの例外の基底クラス。"""


class RenderFailure(EditorError):
    """PDFが解析できない、またはページをラスタライズできなかった。"""


class CancelledRender(EditorError):
    """新しいレンダリングに置き換えられたため中断された。ユーザーには通知しない。"""


class CompositionFailure(EditorError):
    """保存時に元PDFを開けない、または画像データをデコードできなかった。"""


class FetchFailure(EditorError):
    """ファイルのバイト列を取得できなかった。"""


class UploadFailure(EditorError):
    """新バージョンのアップロードに失敗した。"""


class SaveInProgress(EditorError):
    """保存処理が既に実行中である。"""


class NothingToSave(EditorError):
    """保存する注釈が1件もない。"""
