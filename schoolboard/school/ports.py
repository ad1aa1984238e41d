"""
Repository port for school data.

Keep this small and framework-agnostic so the web layer and tests can supply
either the Postgres adapter or the in-memory one.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from schoolboard.access_policy.predicates import Predicate

from .schema import EntityKind

# Keeps OFFSET well inside PostgreSQL `bigint`.
MAX_PAGE = 2**31 - 1


@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return self.page_size * (self.page - 1)

    @property
    def limit(self) -> int:
        return self.page_size

    @classmethod
    def from_query(cls, page_raw: Optional[str], page_size: int) -> "Pagination":
        """1-indexed page from a query string; anything invalid becomes page 1.

        Oversized pages are clamped to `MAX_PAGE`.
        """
        try:
            page = int(page_raw) if page_raw is not None else 1
        except (TypeError, ValueError):
            page = 1
        return cls(page=min(max(1, page), MAX_PAGE), page_size=max(1, int(page_size)))


class SchoolRepoProtocol(Protocol):
    """Minimal interface over the relational store.

    Intent:
        `list` applies the predicate exactly as given; visibility is the
        caller's responsibility (the policy engine builds it).

    Errors:
        Implementations raise `RepositoryError` for store failures, and
        `LookupError` / `ValueError` for missing rows or constraint violations.
    """

    def list(
        self,
        kind: EntityKind,
        predicate: Predicate,
        pagination: Pagination,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Tuple[List[Dict[str, Any]], int]: ...

    def count(self, kind: EntityKind, predicate: Predicate) -> int: ...

    def get(self, kind: EntityKind, row_id: Any, predicate: Optional[Predicate] = None) -> Optional[Dict[str, Any]]: ...

    def create(self, kind: EntityKind, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, kind: EntityKind, row_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    def delete(self, kind: EntityKind, row_id: Any) -> bool: ...


__all__ = ["Pagination", "SchoolRepoProtocol"]
