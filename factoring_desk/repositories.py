"""
Repository Module

Typed get/list/update/append access to one storage table. Engine services
depend on repositories, never on a concrete backend, so the in-memory store
can be swapped for a persistent one without touching business logic.
"""

from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .storage import StorageInterface

T = TypeVar('T')


class Repository(Generic[T]):
    """
    Repository over a single table.

    Args:
        storage: Backend holding the table
        table: Table name
        to_dict: Serializer for records
        from_dict: Deserializer for records
    """

    def __init__(
        self,
        storage: StorageInterface,
        table: str,
        to_dict: Callable[[T], Dict[str, Any]],
        from_dict: Callable[[Dict[str, Any]], T]
    ):
        self.storage = storage
        self.table = table
        self._to_dict = to_dict
        self._from_dict = from_dict

    def get(self, record_id: str) -> Optional[T]:
        data = self.storage.load(self.table, record_id)
        if data is None:
            return None
        return self._from_dict(data)

    def list(self) -> List[T]:
        return [self._from_dict(data) for data in self.storage.load_all(self.table)]

    def find(self, **filters: Any) -> List[T]:
        """Find records whose stored fields equal the given values"""
        return [self._from_dict(data) for data in self.storage.find(self.table, filters)]

    def append(self, record: T) -> T:
        """Insert a new record; fails if the id is already taken"""
        record_id = getattr(record, 'id')
        if self.storage.exists(self.table, record_id):
            raise ValueError(f"Record {record_id} already exists in {self.table}")
        self.storage.save(self.table, record_id, self._to_dict(record))
        return record

    def update(self, record: T) -> T:
        """Replace an existing record"""
        record_id = getattr(record, 'id')
        if not self.storage.exists(self.table, record_id):
            raise ValueError(f"Record {record_id} not found in {self.table}")
        self.storage.save(self.table, record_id, self._to_dict(record))
        return record

    def delete(self, record_id: str) -> bool:
        return self.storage.delete(self.table, record_id)

    def count(self) -> int:
        return self.storage.count(self.table)
