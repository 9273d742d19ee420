"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# UUID type that works with both databases (CHAR(32) on SQLite)
UUIDType = PG_UUID

# Money: 2 decimals. Quantities: 3 decimals (Kg -> MT conversions keep grams).
MoneyType = Numeric(14, 2)
QuantityType = Numeric(14, 3)
RateType = Numeric(12, 2)
