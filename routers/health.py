"""Health check and table inspection router."""
import re

from fastapi import APIRouter, Depends
from sqlalchemy import MetaData, Table, select

from database import Database
from dependencies import get_database
from errors import InvalidInput, NotFound

router = APIRouter(tags=["health"])

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
TABLE_ROW_LIMIT = 50


@router.get("/health")
async def health():
    """Liveness check."""
    return {"status": "healthy"}


@router.get("/api/health")
def database_health(database: Database = Depends(get_database)):
    """Readiness check listing the tables the service can see."""
    return {
        "status": "ok",
        "database": database.engine.url.render_as_string(hide_password=True),
        "tables": database.table_names()
    }


@router.get("/api/table/{table_name}")
def table_rows(table_name: str, database: Database = Depends(get_database)):
    """Return up to 50 rows of one table, for inspecting the store by hand."""
    if not TABLE_NAME_PATTERN.match(table_name):
        raise InvalidInput("Invalid table name supplied.")
    if table_name not in database.table_names():
        raise NotFound(f"Table '{table_name}' not found.")

    table = Table(table_name, MetaData(), autoload_with=database.engine)
    with database.engine.connect() as connection:
        rows = [dict(row._mapping) for row in connection.execute(select(table).limit(TABLE_ROW_LIMIT))]

    return {"table": table_name, "count": len(rows), "rows": rows}
