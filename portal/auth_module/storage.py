"""Durable per-browser key/value storage backing the session."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from sqlalchemy.orm import Session

from .models import ClientStorageItem


TOKEN_KEY = "token"
USER_KEY = "user"
USER_TYPE_KEY = "userType"
SESSION_KEYS = (TOKEN_KEY, USER_KEY, USER_TYPE_KEY)


class SessionStorage(ABC):
    @abstractmethod
    def get_item(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set_items(self, items: Mapping[str, str]) -> None:
        """Write all items in one step."""

    @abstractmethod
    def remove_items(self, keys: Iterable[str]) -> None:
        ...

    def set_item(self, key: str, value: str) -> None:
        self.set_items({key: value})

    def remove_item(self, key: str) -> None:
        self.remove_items([key])


class MemoryStorage(SessionStorage):
    def __init__(self, initial: Mapping[str, str] | None = None):
        self.items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_items(self, items: Mapping[str, str]) -> None:
        self.items.update(items)

    def remove_items(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.items.pop(key, None)


class DatabaseStorage(SessionStorage):
    """Rows of ``portal_client_storage`` owned by one browser."""

    def __init__(self, db: Session, client_id: str):
        self.db = db
        self.client_id = client_id

    def _row(self, key: str) -> ClientStorageItem | None:
        return (
            self.db.query(ClientStorageItem)
            .filter(ClientStorageItem.client_id == self.client_id, ClientStorageItem.key == key)
            .first()
        )

    def get_item(self, key: str) -> str | None:
        row = self._row(key)
        return row.value if row else None

    def set_items(self, items: Mapping[str, str]) -> None:
        try:
            for key, value in items.items():
                row = self._row(key)
                if row:
                    row.value = value
                else:
                    self.db.add(ClientStorageItem(client_id=self.client_id, key=key, value=value))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def remove_items(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        try:
            (
                self.db.query(ClientStorageItem)
                .filter(ClientStorageItem.client_id == self.client_id, ClientStorageItem.key.in_(keys))
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
