from typing import Any, Dict, List, Optional, Protocol, Sequence

from .plan import Predicate, ProjectionSpec, SortSpec

Record = Dict[str, Any]


class Queryable(Protocol):
    """Deferred view over a document collection.

    Chain methods refine the pending retrieval and return a handle for it;
    nothing touches storage until ``execute``/``execute_one``/``aggregate``.
    """

    def find(self, predicate: Predicate) -> "Queryable": ...

    def sort(self, spec: SortSpec) -> "Queryable": ...

    def select(self, spec: ProjectionSpec) -> "Queryable": ...

    def skip(self, n: int) -> "Queryable": ...

    def limit(self, n: int) -> "Queryable": ...

    def execute(self) -> List[Record]: ...

    def execute_one(self) -> Optional[Record]: ...

    def aggregate(self, stages: Sequence[Any]) -> List[Record]: ...
