"""SQLite schema management (code-first, contributed by feature modules)."""

import logging

from cleanslate.core import db_client
from cleanslate.core.module_registry import get_all_indexes, get_all_table_schemas, get_module, register_module


logger = logging.getLogger(__name__)


def register_default_modules() -> None:
    """Register the built-in feature modules (idempotent)."""
    from cleanslate.modules.appointments import AppointmentsModule
    from cleanslate.modules.directory import DirectoryModule

    for module in (DirectoryModule(), AppointmentsModule()):
        if get_module(module.name) is None:
            register_module(module)


async def init_db(*, db_path: str | None = None) -> None:
    """Create all module tables and indexes (idempotent)."""
    register_default_modules()

    conn = await db_client.get_connection(db_path=db_path)

    schemas = get_all_table_schemas()
    for table_name, ddl in schemas.items():
        await conn.execute(ddl)
        logger.debug("Ensured table %s", table_name)

    for index_ddl in get_all_indexes():
        await conn.execute(index_ddl)

    await conn.commit()
    logger.info("Database schema initialized", extra={"tables": list(schemas)})
