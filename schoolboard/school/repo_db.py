"""
Postgres-backed repository for school data.

Security:
- Every WHERE clause comes from `sql_predicates.to_sql`; identifiers are taken
  from the static schema and values are bound parameters.
- Driver errors are logged server-side and surfaced as `RepositoryError`
  without internal details.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- A listing reads rows and total count in one read-only REPEATABLE READ
  transaction so both reflect the same snapshot.
- Returns plain dicts to keep the web adapter independent of the driver.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Tuple

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row

from schoolboard.access_policy.errors import RepositoryError
from schoolboard.access_policy.predicates import ALWAYS, Predicate

from .ports import Pagination
from .schema import EntityKind, EntitySchema, schema_for
from .sql_predicates import to_sql

logger = logging.getLogger("schoolboard.school.repo_db")

LINK_KEYS = {EntityKind.TEACHER: "subject_ids", EntityKind.SUBJECT: "teacher_ids"}


def _dsn() -> str:
    for key in ("SCHOOL_DATABASE_URL", "DATABASE_URL"):
        dsn = os.getenv(key)
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for DBSchoolRepo")


def _select_list(schema: EntitySchema, alias: str = "t0") -> str:
    cols = [f"{alias}.{c}" for c in schema.columns]
    if schema.kind is EntityKind.TEACHER:
        cols.append(
            f"array(select ts.subject_id from teacher_subjects ts where ts.teacher_id = {alias}.id order by 1) as subject_ids"
        )
    elif schema.kind is EntityKind.SUBJECT:
        cols.append(
            f"array(select ts.teacher_id from teacher_subjects ts where ts.subject_id = {alias}.id order by 1) as teacher_ids"
        )
    return ", ".join(cols)


class DBSchoolRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        self._dsn = dsn or _dsn()

    def _connect(self):
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _fail(self, action: str, exc: Exception) -> RepositoryError:
        logger.exception("school repo %s failed", action)
        return RepositoryError("repository_unavailable")

    # --- reads ---------------------------------------------------------------
    def list(
        self,
        kind: EntityKind,
        predicate: Predicate,
        pagination: Pagination,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Tuple[List[Dict[str, Any]], int]:
        schema = schema_for(kind)
        column = order_by or schema.default_order
        if not schema.has_column(column):
            raise ValueError(f"unknown_column:{kind.value}.{column}")
        where, params = to_sql(predicate, kind)
        direction = "desc" if descending else "asc"
        rows_sql = (
            f"select {_select_list(schema)} from {schema.table} t0 where {where} "
            f"order by t0.{column} {direction} nulls last, t0.id limit %s offset %s"
        )
        count_sql = f"select count(*) as total from {schema.table} t0 where {where}"
        try:
            with self._connect() as conn:
                conn.isolation_level = psycopg.IsolationLevel.REPEATABLE_READ
                conn.read_only = True
                with conn.cursor() as cur:
                    cur.execute(rows_sql, [*params, int(pagination.limit), int(pagination.offset)])
                    rows = cur.fetchall() or []
                    cur.execute(count_sql, params)
                    total = int((cur.fetchone() or {}).get("total", 0))
        except psycopg.Error as exc:
            raise self._fail("list", exc) from exc
        return [dict(r) for r in rows], total

    def count(self, kind: EntityKind, predicate: Predicate) -> int:
        schema = schema_for(kind)
        where, params = to_sql(predicate, kind)
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"select count(*) as total from {schema.table} t0 where {where}", params)
                    return int((cur.fetchone() or {}).get("total", 0))
        except psycopg.Error as exc:
            raise self._fail("count", exc) from exc

    def get(self, kind: EntityKind, row_id: Any, predicate: Optional[Predicate] = None) -> Optional[Dict[str, Any]]:
        schema = schema_for(kind)
        where, params = to_sql(predicate or ALWAYS, kind)
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"select {_select_list(schema)} from {schema.table} t0 where t0.id = %s and {where}",
                        [row_id, *params],
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise self._fail("get", exc) from exc
        return dict(row) if row else None

    # --- writes --------------------------------------------------------------
    def create(self, kind: EntityKind, data: Dict[str, Any]) -> Dict[str, Any]:
        schema = schema_for(kind)
        payload = dict(data)
        links = payload.pop(LINK_KEYS.get(kind, ""), None)
        if not schema.text_id:
            payload.pop("id", None)
        elif not payload.get("id"):
            raise ValueError("missing_id")
        cols = [c for c in schema.columns if c in payload]
        placeholders = ", ".join(["%s"] * len(cols))
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"insert into {schema.table} ({', '.join(cols)}) values ({placeholders}) returning id",
                        [payload[c] for c in cols],
                    )
                    row_id = cur.fetchone()["id"]
                    if links is not None:
                        self._replace_links(cur, kind, row_id, links)
                    cur.execute(f"select {_select_list(schema)} from {schema.table} t0 where t0.id = %s", [row_id])
                    row = cur.fetchone()
        except psycopg.IntegrityError as exc:
            raise _integrity_error(exc) from exc
        except psycopg.Error as exc:
            raise self._fail("create", exc) from exc
        return dict(row)

    def update(self, kind: EntityKind, row_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        schema = schema_for(kind)
        payload = dict(data)
        links = payload.pop(LINK_KEYS.get(kind, ""), None)
        cols = [c for c in schema.columns if c in payload and c != "id"]
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    if cols:
                        assignments = ", ".join(f"{c} = %s" for c in cols)
                        cur.execute(
                            f"update {schema.table} set {assignments} where id = %s returning id",
                            [*(payload[c] for c in cols), row_id],
                        )
                    else:
                        cur.execute(f"select id from {schema.table} where id = %s", [row_id])
                    if cur.fetchone() is None:
                        return None
                    if links is not None:
                        self._replace_links(cur, kind, row_id, links)
                    cur.execute(f"select {_select_list(schema)} from {schema.table} t0 where t0.id = %s", [row_id])
                    row = cur.fetchone()
        except psycopg.IntegrityError as exc:
            raise _integrity_error(exc) from exc
        except psycopg.Error as exc:
            raise self._fail("update", exc) from exc
        return dict(row)

    def delete(self, kind: EntityKind, row_id: Any) -> bool:
        schema = schema_for(kind)
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"delete from {schema.table} where id = %s", [row_id])
                    return cur.rowcount > 0
        except pg_errors.ForeignKeyViolation as exc:
            raise ValueError("row_referenced") from exc
        except psycopg.Error as exc:
            raise self._fail("delete", exc) from exc

    @staticmethod
    def _replace_links(cur, kind: EntityKind, row_id: Any, ids: Iterable[Any]) -> None:
        own, other = ("teacher_id", "subject_id") if kind is EntityKind.TEACHER else ("subject_id", "teacher_id")
        cur.execute(f"delete from teacher_subjects where {own} = %s", [row_id])
        for target in ids:
            cur.execute(f"insert into teacher_subjects ({own}, {other}) values (%s, %s)", [row_id, target])


def _integrity_error(exc: Exception) -> ValueError:
    if isinstance(exc, pg_errors.UniqueViolation):
        return ValueError("duplicate_id")
    if isinstance(exc, pg_errors.ForeignKeyViolation):
        return ValueError("foreign_key_violation")
    return ValueError("constraint_violation")


def build_default_repo():
    """Prefer Postgres when a DSN is configured; else in-memory."""
    dsn = os.getenv("SCHOOL_DATABASE_URL") or os.getenv("DATABASE_URL")
    if dsn:
        return DBSchoolRepo(dsn)
    from .repo_memory import InMemorySchoolRepo

    logger.warning("No database configured; using in-memory school repository")
    return InMemorySchoolRepo()
