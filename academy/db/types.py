"""Column types shared by the academy models."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JsonColumn = JSON().with_variant(JSONB(), "postgresql")
