"""PostgreSQL access via psycopg3 and the store used by the ingestion core."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from leadgraph.config import Settings

CONFLICT_MODES = ("fill", "prefer_incoming", "ignore")


def get_connection(settings: Settings | None = None) -> psycopg.Connection:
    """Open a synchronous connection to PostgreSQL with dict row factory.

    The connection's ``search_path`` points at the configured schema.
    """
    if settings is None:
        from leadgraph.config import get_settings
        settings = get_settings()

    return psycopg.connect(
        settings.database_url,
        row_factory=dict_row,
        options=f"-c search_path={settings.database_schema}",
    )


def execute_query(
    conn: psycopg.Connection,
    query: str | sql.Composable,
    params: Sequence[Any] = (),
) -> list[dict]:
    """Execute a query and return all rows as dicts."""
    with conn.cursor() as cur:
        cur.execute(query, params)
        if cur.description:
            return cur.fetchall()
        return []


def collapse_by_key(rows: Iterable[Mapping[str, Any]], key_columns: Sequence[str]) -> list[dict]:
    """Merge rows sharing the same key columns, first non-null value per column wins.

    A single ``INSERT ... ON CONFLICT DO UPDATE`` cannot touch the same row
    twice, so batches are collapsed before they are written.
    """
    merged: dict[tuple, dict] = {}
    for row in rows:
        key = tuple(row.get(col) for col in key_columns)
        current = merged.get(key)
        if current is None:
            merged[key] = dict(row)
            continue
        for col, value in row.items():
            if current.get(col) is None and value is not None:
                current[col] = value
    return list(merged.values())


def _adapt(value: Any) -> Any:
    if isinstance(value, dict):
        return Jsonb(value)
    return value


class Store(Protocol):
    """Operations the ingestion core needs from persistence."""

    def find_by_identifiers(
        self,
        table: str,
        predicates: Sequence[Mapping[str, Any]],
        *,
        casefold: Iterable[str] = (),
    ) -> dict | None: ...

    def select_where(self, table: str, filters: Mapping[str, Sequence[Any]]) -> list[dict]: ...

    def select_since(self, table: str, column: str, since: datetime) -> list[dict]: ...

    def upsert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        conflict_columns: Sequence[str],
        *,
        on_conflict: str = "fill",
    ) -> list[dict]: ...

    def update_fields(self, table: str, row_id: Any, partial: Mapping[str, Any]) -> list[str]: ...

    def update_where(
        self, table: str, filters: Mapping[str, Sequence[Any]], values: Mapping[str, Any]
    ) -> int: ...

    def delete_where(self, table: str, filters: Mapping[str, Sequence[Any]]) -> int: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class PostgresStore:
    """:class:`Store` over a psycopg connection.

    Unique constraints the core relies on: ``companies.company_key``,
    ``people.person_key``, ``job_posts.finn_id`` and
    ``(owner, person_id, role)`` on each link table.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        self.conn = conn

    # -- reads ---------------------------------------------------------------

    def find_by_identifiers(
        self,
        table: str,
        predicates: Sequence[Mapping[str, Any]],
        *,
        casefold: Iterable[str] = (),
    ) -> dict | None:
        """Try each predicate group in order and return the first matching row.

        A group is an AND of ``column = value``; groups with a ``None`` value
        are skipped.  Columns listed in *casefold* compare on ``lower()``.
        """
        folded = set(casefold)
        for group in predicates:
            if not group or any(v is None for v in group.values()):
                continue
            clauses = []
            params: list[Any] = []
            for column, value in group.items():
                if column in folded:
                    clauses.append(sql.SQL("lower({}) = lower(%s)").format(sql.Identifier(column)))
                else:
                    clauses.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
                params.append(value)
            query = sql.SQL("SELECT * FROM {} WHERE {} LIMIT 1").format(
                sql.Identifier(table), sql.SQL(" AND ").join(clauses)
            )
            rows = execute_query(self.conn, query, tuple(params))
            if rows:
                return rows[0]
        return None

    def select_where(self, table: str, filters: Mapping[str, Sequence[Any]]) -> list[dict]:
        """Rows whose columns are each in the given value list (all rows if no filters)."""
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table))
        params: list[Any] = []
        if filters:
            if any(len(values) == 0 for values in filters.values()):
                return []
            query = query + sql.SQL(" WHERE ") + sql.SQL(" AND ").join(
                sql.SQL("{} = ANY(%s)").format(sql.Identifier(col)) for col in filters
            )
            params = [list(values) for values in filters.values()]
        return execute_query(self.conn, query, tuple(params))

    def select_since(self, table: str, column: str, since: datetime) -> list[dict]:
        query = sql.SQL("SELECT * FROM {} WHERE {} >= %s ORDER BY {}").format(
            sql.Identifier(table), sql.Identifier(column), sql.Identifier(column)
        )
        return execute_query(self.conn, query, (since,))

    # -- writes --------------------------------------------------------------

    def upsert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        conflict_columns: Sequence[str],
        *,
        on_conflict: str = "fill",
    ) -> list[dict]:
        """Multi-row ``INSERT ... ON CONFLICT`` returning the written rows.

        ``fill`` keeps stored non-null values and fills nulls,
        ``prefer_incoming`` lets incoming non-null values win, ``ignore``
        leaves conflicting rows untouched (and does not return them).
        Nulls never overwrite stored values.
        """
        if on_conflict not in CONFLICT_MODES:
            msg = f"on_conflict must be one of {CONFLICT_MODES}, got {on_conflict!r}"
            raise ValueError(msg)
        if not rows:
            return []

        batch = collapse_by_key(rows, conflict_columns)
        columns: list[str] = []
        for row in batch:
            columns.extend(col for col in row if col not in columns)

        table_id = sql.Identifier(table)
        row_placeholder = sql.SQL("({})").format(sql.SQL(", ").join(sql.Placeholder() * len(columns)))
        params: list[Any] = []
        for row in batch:
            params.extend(_adapt(row.get(col)) for col in columns)

        update_columns = [col for col in columns if col not in conflict_columns]
        if on_conflict == "ignore" or not update_columns:
            action = sql.SQL("DO NOTHING")
        else:
            if on_conflict == "fill":
                template = "COALESCE({table}.{col}, EXCLUDED.{col})"
            else:
                template = "COALESCE(EXCLUDED.{col}, {table}.{col})"
            action = sql.SQL("DO UPDATE SET ") + sql.SQL(", ").join(
                sql.SQL("{col} = " + template).format(col=sql.Identifier(col), table=table_id)
                for col in update_columns
            )

        query = sql.SQL(
            "INSERT INTO {table} ({columns}) VALUES {values} ON CONFLICT ({conflict}) {action} RETURNING *"
        ).format(
            table=table_id,
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join([row_placeholder] * len(batch)),
            conflict=sql.SQL(", ").join(map(sql.Identifier, conflict_columns)),
            action=action,
        )
        return execute_query(self.conn, query, tuple(params))

    def update_fields(self, table: str, row_id: Any, partial: Mapping[str, Any]) -> list[str]:
        """Write the columns of *partial* that differ from the stored row.

        Returns the names of the columns actually changed.
        """
        if not partial:
            return []
        current = self.find_by_identifiers(table, [{"id": row_id}])
        if current is None:
            return []
        changed = {col: value for col, value in partial.items() if current.get(col) != value}
        if not changed:
            return []

        query = sql.SQL("UPDATE {} SET {} WHERE id = %s").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(col)) for col in changed),
        )
        execute_query(self.conn, query, (*[_adapt(v) for v in changed.values()], row_id))
        return list(changed)

    def update_where(
        self, table: str, filters: Mapping[str, Sequence[Any]], values: Mapping[str, Any]
    ) -> int:
        if not filters or not values:
            return 0
        query = sql.SQL("UPDATE {} SET {} WHERE {}").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(col)) for col in values),
            sql.SQL(" AND ").join(
                sql.SQL("{} = ANY(%s)").format(sql.Identifier(col)) for col in filters
            ),
        )
        params = [*(_adapt(v) for v in values.values()), *(list(v) for v in filters.values())]
        with self.conn.cursor() as cur:
            cur.execute(query, tuple(params))
            return cur.rowcount

    def delete_where(self, table: str, filters: Mapping[str, Sequence[Any]]) -> int:
        if not filters:
            msg = "delete_where requires at least one filter"
            raise ValueError(msg)
        query = sql.SQL("DELETE FROM {} WHERE {}").format(
            sql.Identifier(table),
            sql.SQL(" AND ").join(
                sql.SQL("{} = ANY(%s)").format(sql.Identifier(col)) for col in filters
            ),
        )
        with self.conn.cursor() as cur:
            cur.execute(query, tuple(list(v) for v in filters.values()))
            return cur.rowcount

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()
