"""
Create the LedgerFlow tables in the configured database.
Run this script once against a fresh database:

    python scripts/create_tables.py
"""

import asyncio

from ledgerflow.database import Base, init_db, close_db


async def create_tables():
    await init_db()
    for table in Base.metadata.sorted_tables:
        print(f'{table.name} table ready')
    await close_db()


if __name__ == '__main__':
    asyncio.run(create_tables())
