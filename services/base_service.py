# services/base_service.py
from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, TypeVar

from models.document_models import DocumentFile

# データモデルを表すジェネリック型を定義
T = TypeVar('T')


class BaseService(Generic[T], ABC):
    """
    ファイルの入出力を担うサービスクラスの基底となる抽象クラス（ABC）。

    編集コアは「指定したファイルの内容を読む」「完成したデータを新しいファイルとして書く」
    という2つの操作だけを必要とします。具象クラスは、DMSのAPIやローカルファイルなど
    実際の保存先に応じてこれらを実装します。
    """

    @abstractmethod
    def list_files(self) -> List[DocumentFile]:
        """
        編集対象として選択できるファイルの一覧を返す抽象メソッド。

        Returns:
            List[DocumentFile]: ファイルのメタデータのリスト。
        """

    @abstractmethod
    def load_data(self, identifier: Any) -> T:
        """
        指定された識別子を使用してデータを読み込むための抽象メソッド。

        Args:
            identifier (Any): データを一意に識別するためのキー（例: ファイルID、ファイルパス）。

        Returns:
            T: 読み込まれたデータ。
        """

    @abstractmethod
    def save_data(self, data: T, name: str) -> Optional[str]:
        """
        データを新しいファイルとして永続化するための抽象メソッド。

        Args:
            data (T): 保存するデータ。
            name (str): 保存するファイル名。

        Returns:
            Optional[str]: 作成されたファイルの識別子。分からない場合はNone。
        """
