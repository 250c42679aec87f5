from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import mssql, mysql, postgresql, sqlite
from sqlalchemy.engine import Dialect

DIALECTS: dict[str, Dialect] = {
    "sqlite": sqlite.dialect(),
    "postgresql": postgresql.dialect(),
    "mysql": mysql.dialect(),
    "mssql": mssql.dialect(),
}


def compile_sql(clause: Any, dialect: str = "sqlite") -> str:
    """Render a statement or clause with bound values inlined."""
    return " ".join(str(clause.compile(dialect=DIALECTS[dialect], compile_kwargs={"literal_binds": True})).split())
