from typing import Any, Dict

from fastapi import APIRouter

from datepoll import db
from datepoll.db.schema import get_schema_info
from datepoll.dependencies import OptionalPool, Pool

router = APIRouter()


@router.get("/health")
async def health(pool: OptionalPool) -> Dict[str, str]:
    return {"status": "ok", "database": await db.check_pool(pool)}


@router.get("/health/db")
async def health_db(pool: Pool) -> Dict[str, Any]:
    return {
        "pool": db.get_pool_stats(pool),
        "schema": await get_schema_info(pool),
    }
