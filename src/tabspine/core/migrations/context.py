"""Structural operations available to a migration procedure.

Each method is one ``structural_update`` call.  Tables are addressed by
name; the physical tab id is looked up from live store metadata on every
call, so a table created or renamed earlier in the same run resolves
correctly.
"""

from __future__ import annotations

from tabspine.core import structural
from tabspine.core.errors import SchemaError
from tabspine.core.logging import get_logger
from tabspine.core.protocols import Transport
from tabspine.core.ranges import quote_sheet

logger = get_logger(__name__)


class MigrationContext:
    """Handed to ``Migration.up``.

    Only structural edits go through here.  Record writes through a
    repository must not be made from inside a migration: the connection's
    write token is already held and is not re-entrant.
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    async def _tab_id(self, table: str) -> int:
        for tab in await self.transport.fetch_metadata():
            if tab.title == table:
                return tab.tab_id
        raise SchemaError(f'Table "{table}" not found in store')

    async def create_table(self, name: str) -> None:
        await self.transport.structural_update([structural.add_tab(name)])
        logger.info("migration.create_table", table=name)

    async def add_column(self, table: str, column: str, index: int | None = None) -> None:
        """Insert a column with header ``column``.

        With ``index=None`` the column goes after the last header cell.
        """
        tab_id = await self._tab_id(table)
        if index is None:
            header = await self.transport.read_range(f"{quote_sheet(table)}!1:1")
            index = len(header[0]) if header else 0
        await self.transport.structural_update(
            [
                structural.insert_column(tab_id, index),
                structural.set_header_cell(tab_id, index, column),
            ]
        )
        logger.info("migration.add_column", table=table, column=column, index=index)

    async def remove_column(self, table: str, index: int) -> None:
        tab_id = await self._tab_id(table)
        await self.transport.structural_update([structural.delete_column(tab_id, index)])
        logger.info("migration.remove_column", table=table, index=index)

    async def rename_column(self, table: str, index: int, new_name: str) -> None:
        tab_id = await self._tab_id(table)
        await self.transport.structural_update(
            [structural.set_header_cell(tab_id, index, new_name)]
        )
        logger.info("migration.rename_column", table=table, index=index, column=new_name)

    async def rename_table(self, old_name: str, new_name: str) -> None:
        tab_id = await self._tab_id(old_name)
        await self.transport.structural_update([structural.rename_tab(tab_id, new_name)])
        logger.info("migration.rename_table", table=old_name, new_name=new_name)


__all__ = ["MigrationContext"]
