# civic_hierarchy/services/db.py
# Centralized database client access. `main.py` initializes Beanie on the same
# client, so sessions started here are valid for Beanie operations.
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from pymongo import AsyncMongoClient
from pymongo.asynchronous.client_session import AsyncClientSession

from civic_hierarchy.configs import env, configs

logger = logging.getLogger(__name__)

db_client: Optional[AsyncMongoClient] = None


async def get_database_client() -> AsyncMongoClient:
    """Returns the MongoDB async client."""
    global db_client
    if db_client is None:
        db_client = AsyncMongoClient(env.get("MONGO_URI"))
    return db_client


async def close_database_client() -> None:
    global db_client
    if db_client is not None:
        await db_client.close()
        db_client = None


def transactions_enabled() -> bool:
    # standalone mongod does not support transactions
    return bool(configs.get("database", {}).get("transactions", True))


@asynccontextmanager
async def transaction() -> AsyncIterator[Optional[AsyncClientSession]]:
    """
    Runs the enclosed reads and writes in one MongoDB transaction. Yields the
    session to pass as `session=` to Beanie calls, or None when transactions
    are disabled in config.
    """
    if not transactions_enabled():
        yield None
        return

    client = await get_database_client()
    async with client.start_session() as session:
        async with await session.start_transaction():
            yield session


def all_of(*filters: dict) -> dict:
    """Conjunction of query filters; empty filters match everything and are dropped."""
    clauses = [query for query in filters if query]
    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}
