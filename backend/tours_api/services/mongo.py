import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from ..aggregation import to_mongo_pipeline
from ..errors import DuplicateTourError
from ..query.casting import FieldTypes, cast_predicate
from ..query.plan import Predicate, ProjectionSpec, SortSpec

logger = logging.getLogger(__name__)


class ClientManager:
    """
    Holds the process-wide MongoClient, created on first use.
    """

    def __init__(self, uri: str, server_selection_timeout_ms: int = 5000) -> None:
        self._uri = uri
        self._timeout_ms = server_selection_timeout_ms
        self._lock = threading.Lock()
        self._client: Optional[MongoClient] = None

    def get(self) -> MongoClient:
        with self._lock:
            if self._client is None:
                self._client = MongoClient(self._uri, serverSelectionTimeoutMS=self._timeout_ms)
            return self._client

    def ping(self) -> None:
        self.get().admin.command("ping")

    def close(self) -> bool:
        with self._lock:
            client, self._client = self._client, None
        if client:
            client.close()
            return True
        return False


@dataclass(frozen=True)
class MongoQueryable:
    """Deferred find over a pymongo collection; every chain call returns a new handle."""

    collection: Collection
    field_types: Optional[FieldTypes] = None
    filter: Dict[str, Any] = field(default_factory=dict)
    sort_spec: Optional[List[Tuple[str, int]]] = None
    projection: Optional[Dict[str, int]] = None
    skip_n: int = 0
    limit_n: int = 0

    def find(self, predicate: Predicate) -> "MongoQueryable":
        return replace(self, filter=cast_predicate(predicate, self.field_types).to_mongo())

    def sort(self, spec: SortSpec) -> "MongoQueryable":
        return replace(self, sort_spec=spec.to_mongo())

    def select(self, spec: ProjectionSpec) -> "MongoQueryable":
        return replace(self, projection=spec.to_mongo())

    def skip(self, n: int) -> "MongoQueryable":
        return replace(self, skip_n=max(0, n))

    def limit(self, n: int) -> "MongoQueryable":
        return replace(self, limit_n=max(0, n))

    def _cursor(self):
        cursor = self.collection.find(self.filter, self.projection)
        if self.sort_spec:
            cursor = cursor.sort(self.sort_spec)
        return cursor.skip(self.skip_n).limit(self.limit_n)

    def execute(self) -> List[Dict[str, Any]]:
        return list(self._cursor())

    def execute_one(self) -> Optional[Dict[str, Any]]:
        return self.collection.find_one(self.filter, self.projection, sort=self.sort_spec, skip=self.skip_n)

    def aggregate(self, stages: Sequence[Any]) -> List[Dict[str, Any]]:
        return list(self.collection.aggregate(to_mongo_pipeline(stages)))


class MongoTourStore:
    def __init__(self, clients: ClientManager, db: str, collection: str, field_types: Optional[FieldTypes] = None):
        self.clients = clients
        self.db_name = db
        self.collection_name = collection
        self.field_types = field_types

    @property
    def collection(self) -> Collection:
        return self.clients.get()[self.db_name][self.collection_name]

    def startup(self) -> None:
        self.clients.ping()
        self.collection.create_index("name", unique=True)
        logger.info("DB connection successful! (%s.%s)", self.db_name, self.collection_name)

    def shutdown(self) -> None:
        self.clients.close()

    def query(self) -> MongoQueryable:
        return MongoQueryable(self.collection, self.field_types)

    def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        try:
            res = self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateTourError(f"Duplicate tour name: {doc.get('name')!r}") from e
        doc["_id"] = res.inserted_id
        return doc

    def update(self, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return self.collection.find_one_and_update(
                {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise DuplicateTourError(f"Duplicate tour name: {changes.get('name')!r}") from e

    def delete(self, oid: ObjectId) -> bool:
        return self.collection.delete_one({"_id": oid}).deleted_count > 0
