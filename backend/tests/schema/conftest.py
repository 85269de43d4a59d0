"""Pytest fixtures for schema tests.

Schema checks run against the declarative metadata and the Alembic revision
files, so no database server is required.
"""

import re
from pathlib import Path
from typing import Dict, Set

import pytest
from sqlalchemy import MetaData

from kakunin.models import Base


MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "migrations" / "versions"

_CREATE_TABLE = re.compile(r"op\.create_table\(\s*'(\w+)',(.*?)\n    \)", re.DOTALL)
_COLUMN = re.compile(r"sa\.Column\('(\w+)'")


@pytest.fixture(scope="session")
def metadata() -> MetaData:
    """Metadata with every model registered."""
    return Base.metadata


@pytest.fixture(scope="session")
def migration_tables() -> Dict[str, Set[str]]:
    """Table name -> column names, as created by the migration files."""
    tables: Dict[str, Set[str]] = {}
    for path in sorted(MIGRATIONS_DIR.glob("*.py")):
        for name, body in _CREATE_TABLE.findall(path.read_text(encoding="utf-8")):
            tables[name] = set(_COLUMN.findall(body))
    return tables
