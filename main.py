"""
アプリケーションのエントリーポイント。

コマンドライン引数と環境変数（DMS_*）から設定を読み込み、ロギングを構成したうえで
PyQt6アプリケーションを初期化し、編集ウィンドウを表示してイベントループを開始します。

使い方:
    python main.py --document-id <文書ID> [--file-id <ファイルID>]   DMS上の文書を編集する
    python main.py --pdf <パス>                                      ローカルのPDFを編集する
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from PyQt6.QtWidgets import QApplication, QFileDialog, QMessageBox

# このファイル(main.py)があるディレクトリをモジュールの検索パスに追加します
current_dir: str = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.append(current_dir)

from services.api_service import APIService
from services.base_service import BaseService
from services.document_file_service import LocalFileService, RemoteFileService
from ui.main_window import EditorWindow
from utils.config import EditorConfig
from utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PDFにテキスト・画像・署名を書き込み、新しいバージョンとして保存します。")
    parser.add_argument("--document-id", help="編集する文書のID（DMS_API_BASE_URLが必要）")
    parser.add_argument("--file-id", help="最初に開くファイルのID（省略時は主ファイル）")
    parser.add_argument("--pdf", help="ローカルのPDFファイルを編集する")
    parser.add_argument("--debug", action="store_true", help="コンソールにデバッグログを出力する")
    return parser


def create_file_service(args: argparse.Namespace, config: EditorConfig) -> Optional[BaseService]:
    """引数に応じて、DMSまたはローカルファイルを対象とするサービスを作る。"""
    if args.pdf:
        return LocalFileService(args.pdf)
    if args.document_id:
        api_service = APIService(config)
        if not api_service.is_available():
            raise ValueError("DMS_API_BASE_URL が設定されていません")
        return RemoteFileService(api_service, args.document_id)
    return None


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = EditorConfig()
    if args.debug:
        config.debug = True
    configure_logging(debug=config.debug, log_dir=config.log_dir)

    # 1. PyQtアプリケーションインスタンスを作成します。
    app: QApplication = QApplication(sys.argv[:1])

    # 2. 編集対象のファイルサービスを決定します。指定がなければPDFを選択させます。
    try:
        file_service = create_file_service(args, config)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        QMessageBox.critical(None, "設定エラー", str(e))
        return 2
    if file_service is None:
        file_path, _ = QFileDialog.getOpenFileName(None, "PDFファイルを開く", "", "PDF Files (*.pdf)")
        if not file_path:
            return 0
        file_service = LocalFileService(file_path)

    # 3. ウィンドウを表示し、ファイル一覧の取得を開始します。
    title = f"PDFエディタ - {args.document_id}" if args.document_id else "PDFエディタ"
    window: EditorWindow = EditorWindow(config, file_service, initial_file_id=args.file_id, title=title)
    window.show()
    window.start()
    logger.info("Editor started (render scale %.2f)", config.render_scale)

    # 4. アプリケーションのイベントループを開始します。
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
