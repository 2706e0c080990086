import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  (registers tables on Base.metadata)
from app.db.session import Base, engine


# Creation order: masters, student demands/collections, then issuance and its trail
REQUIRED_TABLES: List[str] = [
    "students",
    "fee_setups",
    "bus_fee_setups",
    "student_fee_demands",
    "fee_collections",
    "transfer_certificates",
    "arrear_fees",
    "fee_audit_logs",
]


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """
    Ensure that all required tables exist in the connected database.
    Missing tables are created; existing ones are left untouched. Returns the created names.
    """
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        if missing:
            tables = [Base.metadata.tables[name] for name in missing]
            await conn.run_sync(lambda sync_conn: Base.metadata.create_all(sync_conn, tables=tables))
    return missing


async def main() -> None:
    missing = await ensure_tables(engine)
    if missing:
        print("Created missing tables: " + ", ".join(missing))
    else:
        print("All required fee and TC tables already exist in the database.")


if __name__ == "__main__":
    asyncio.run(main())
