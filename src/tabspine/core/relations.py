"""
Foreign-key checks and eager loading.

Relations are declared per column (``Column(references=...)``) and point
from a child table to a parent table.  This module works them in both
directions:

- **Write side:** ``validate_foreign_keys`` confirms each referenced parent
  row exists before a child is written.
- **Read side:** ``load_related`` attaches child lists to parent records,
  reading every requested child table in a single batched call.

Keys are compared as text, so ``1`` in one tab matches ``"1"`` in another.

Tags:
    relations, foreign-key, eager-load, tabspine
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from typing import Any

from tabspine.core.errors import SchemaError, ValidationError, ValidationIssue
from tabspine.core.logging import get_logger
from tabspine.core.protocols import Transport, ValueRender
from tabspine.core.schema import Record, Relation, TableSchema

logger = get_logger(__name__)


def match_key(value: Any) -> str:
    """Text form used for key comparison (``2.0`` and ``"2"`` agree)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def target_column(relation: Relation, tables: Mapping[str, TableSchema]) -> str:
    """Column a relation resolves to: the target's primary key when it has one."""
    target = tables[relation.target_table]
    return target.primary_key or relation.target_column


def check_relations(tables: Mapping[str, TableSchema]) -> None:
    """Every relation must name a registered table and one of its columns."""
    for schema in tables.values():
        for rel in schema.relations:
            target = tables.get(rel.target_table)
            if target is None:
                raise SchemaError(
                    f'Table "{schema.name}" column "{rel.source_column}" references '
                    f'unknown table "{rel.target_table}"'
                )
            if rel.target_column not in target.headers:
                raise SchemaError(
                    f'Table "{schema.name}" column "{rel.source_column}" references '
                    f'unknown column "{rel.target_table}.{rel.target_column}"'
                )


def find_back_relation(child: TableSchema, parent: TableSchema) -> Relation | None:
    """The relation on ``child`` that points at ``parent``, if any."""
    for rel in child.relations:
        if rel.target_table == parent.name:
            return rel
    return None


async def validate_foreign_keys(
    record: Mapping[str, Any],
    schema: TableSchema,
    tables: Mapping[str, TableSchema],
    transport: Transport,
    *,
    fields: Collection[str] | None = None,
) -> None:
    """Raise ``ValidationError`` when a referenced parent row does not exist.

    Null references are not checked; an empty string is checked like any
    other value.  With ``fields`` given, only relations
    whose source column is in ``fields`` are checked.  Each target table is
    read at most once per call.
    """
    target_rows: dict[str, list[list[Any]]] = {}
    for rel in schema.relations:
        if fields is not None and rel.source_column not in fields:
            continue
        value = record.get(rel.source_column)
        if value is None:
            continue

        target = tables[rel.target_table]
        column = target_column(rel, tables)
        index = target.headers.index(column)
        if target.name not in target_rows:
            target_rows[target.name] = await transport.read_range(
                target.read_range, ValueRender.UNFORMATTED
            )

        wanted = match_key(value)
        found = any(
            index < len(row) and match_key(row[index]) == wanted
            for row in target_rows[target.name]
        )
        if not found:
            logger.info(
                "relations.foreign_key_missing",
                table=schema.name,
                field=rel.source_column,
                target=f"{target.name}.{column}",
                value=value,
            )
            raise ValidationError(
                f'Foreign key violation: {rel.source_column}="{value}" does not exist '
                f"in {target.name}.{column}",
                issues=[
                    ValidationIssue(
                        rel.source_column,
                        f"No row in {target.name}.{column} matches",
                        value,
                    )
                ],
            )


def resolve_includes(
    parent: TableSchema,
    include: Sequence[str],
    tables: Mapping[str, TableSchema],
) -> list[TableSchema]:
    """Validate and de-duplicate an include list (order preserved)."""
    related: list[TableSchema] = []
    seen: set[str] = set()
    for name in include:
        if name in seen:
            continue
        seen.add(name)
        schema = tables.get(name)
        if schema is None:
            raise SchemaError(f'Cannot include unknown table "{name}"')
        related.append(schema)
    if related and parent.primary_key is None:
        raise SchemaError(f'Table "{parent.name}" has no primary key to load relations by')
    return related


async def load_related(
    records: Sequence[Record],
    parent: TableSchema,
    include: Sequence[str],
    tables: Mapping[str, TableSchema],
    transport: Transport,
) -> list[Record]:
    """Attach child lists to copies of ``records``.

    Every child table in ``include`` is read in one ``batch_read``.  Each
    parent gets ``parent[child_table]`` set to its matching children, or an
    empty list when none match or the child table has no relation back.
    """
    related = resolve_includes(parent, include, tables)
    if not related:
        return list(records)

    pk = parent.primary_key
    results = await transport.batch_read(
        [schema.read_range for schema in related], ValueRender.UNFORMATTED
    )

    grouped: dict[str, dict[str, list[Record]]] = {}
    for schema, rows in zip(related, results):
        rel = find_back_relation(schema, parent)
        groups: dict[str, list[Record]] = {}
        if rel is not None:
            for child in schema.parse_rows(rows):
                ref = child.get(rel.source_column)
                if ref is None:
                    continue
                groups.setdefault(match_key(ref), []).append(child)
        else:
            logger.debug("relations.no_back_relation", parent=parent.name, child=schema.name)
        grouped[schema.name] = groups

    loaded = []
    for record in records:
        enriched = dict(record)
        value = record.get(pk)
        key = None if value is None else match_key(value)
        for name, groups in grouped.items():
            enriched[name] = list(groups.get(key, []))
        loaded.append(enriched)

    logger.debug(
        "relations.loaded",
        parent=parent.name,
        include=[s.name for s in related],
        parents=len(loaded),
    )
    return loaded


__all__ = [
    "match_key",
    "target_column",
    "check_relations",
    "find_back_relation",
    "validate_foreign_keys",
    "resolve_includes",
    "load_related",
]
