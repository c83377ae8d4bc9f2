import copy
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from bson import ObjectId

from ..aggregation import run_pipeline
from ..errors import DuplicateTourError
from ..query.casting import FieldTypes, cast_predicate
from ..query.evaluate import matches, project, sort_records
from ..query.plan import Predicate, ProjectionSpec, SortSpec


@dataclass(frozen=True)
class MemoryQueryable:
    """Deferred find over a snapshot source of dict records."""

    source: Callable[[], List[Dict[str, Any]]]
    field_types: Optional[FieldTypes] = None
    predicate: Predicate = Predicate()
    sort_spec: Optional[SortSpec] = None
    projection: Optional[ProjectionSpec] = None
    skip_n: int = 0
    limit_n: int = 0

    def find(self, predicate: Predicate) -> "MemoryQueryable":
        return replace(self, predicate=cast_predicate(predicate, self.field_types))

    def sort(self, spec: SortSpec) -> "MemoryQueryable":
        return replace(self, sort_spec=spec)

    def select(self, spec: ProjectionSpec) -> "MemoryQueryable":
        return replace(self, projection=spec)

    def skip(self, n: int) -> "MemoryQueryable":
        return replace(self, skip_n=max(0, n))

    def limit(self, n: int) -> "MemoryQueryable":
        return replace(self, limit_n=max(0, n))

    def execute(self) -> List[Dict[str, Any]]:
        docs = [d for d in self.source() if matches(d, self.predicate)]
        if self.sort_spec:
            docs = sort_records(docs, self.sort_spec)
        docs = docs[self.skip_n:]
        # limit 0 means no limit, as with a Mongo cursor
        if self.limit_n:
            docs = docs[:self.limit_n]
        if self.projection:
            docs = [project(d, self.projection) for d in docs]
        return docs

    def execute_one(self) -> Optional[Dict[str, Any]]:
        docs = replace(self, limit_n=1).execute()
        return docs[0] if docs else None

    def aggregate(self, stages: Sequence[Any]) -> List[Dict[str, Any]]:
        return run_pipeline(stages, self.source())


class MemoryTourStore:
    """Tours kept in process memory; handy for local runs and tests."""

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None, field_types: Optional[FieldTypes] = None):
        self._lock = threading.Lock()
        self._docs: List[Dict[str, Any]] = []
        self.field_types = field_types
        for doc in documents or []:
            self.insert(doc)

    def startup(self) -> None:
        pass

    def shutdown(self) -> None:
        pass

    def _snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._docs)

    def query(self) -> MemoryQueryable:
        return MemoryQueryable(self._snapshot, self.field_types)

    def _name_taken(self, name: Any, exclude: Optional[ObjectId] = None) -> bool:
        return any(d.get("name") == name and d["_id"] != exclude for d in self._docs)

    def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        with self._lock:
            if self._name_taken(doc.get("name")):
                raise DuplicateTourError(f"Duplicate tour name: {doc.get('name')!r}")
            self._docs.append(doc)
        return copy.deepcopy(doc)

    def update(self, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            for doc in self._docs:
                if doc["_id"] == oid:
                    if "name" in changes and self._name_taken(changes["name"], exclude=oid):
                        raise DuplicateTourError(f"Duplicate tour name: {changes['name']!r}")
                    doc.update(copy.deepcopy(changes))
                    return copy.deepcopy(doc)
        return None

    def delete(self, oid: ObjectId) -> bool:
        with self._lock:
            for i, doc in enumerate(self._docs):
                if doc["_id"] == oid:
                    del self._docs[i]
                    return True
        return False
