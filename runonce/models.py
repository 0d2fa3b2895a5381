#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SQLAlchemy ORM Models for migration bookkeeping
===============================================

Defines the two bookkeeping tables using SQLAlchemy 2.0 ORM with type hints:
- Migration: One uniquely keyed schema change, created once, never updated
- MigrationStatement: One SQL statement of a migration and its outcome

Usage:
    from runonce.models import Base, Migration, MigrationStatement

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Inspect a migration's statements
    async with AsyncSession(engine) as session:
        result = await session.execute(
            select(MigrationStatement)
            .join(Migration)
            .where(Migration.migration_key == 'Articles_author_id_fk')
            .order_by(MigrationStatement.id)
        )
        statements = result.scalars().all()
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

MIGRATIONS_TABLE = 'migrations'
STATEMENTS_TABLE = 'migration_statements'
STATEMENT_FK_NAME = 'migration_statements_migration_id_fk'

STATUS_PENDING = 'pending'
STATUS_SUCCESS = 'success'
STATUS_FAILURE = 'failure'

STATEMENT_STATUSES = (STATUS_PENDING, STATUS_SUCCESS, STATUS_FAILURE)


# ============================================================================
# Base Class
# ============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for the bookkeeping models.

    Only the bookkeeping tables live on this metadata, so
    ``Base.metadata.create_all`` never touches application tables.
    """
    pass


# ============================================================================
# Migration
# ============================================================================

class Migration(Base):
    """
    One logical, uniquely keyed schema change.

    The migration_key is the idempotency token supplied by the application.
    A row is created the first time a key is seen and is never updated or
    deleted by the engine; deleting it by hand removes its statements too.
    """
    __tablename__ = MIGRATIONS_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    migration_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Application supplied idempotency key"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now()
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    statements: Mapped[List['MigrationStatement']] = relationship(
        back_populates='migration',
        order_by='MigrationStatement.id',
        passive_deletes=True,
    )

    __table_args__ = (
        {'comment': 'Migrations that have been run (once) against this database'},
    )

    def __repr__(self) -> str:
        return f"<Migration(id={self.id}, migration_key='{self.migration_key}')>"


# ============================================================================
# Migration Statement
# ============================================================================

class MigrationStatement(Base):
    """
    One SQL statement belonging to a migration, in submission order.

    Rows are created 'pending' as a batch right after their migration and
    each is updated once to 'success' or 'failure'. error_code and
    error_info are only populated for failures.
    """
    __tablename__ = STATEMENTS_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    migration_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey(
            f'{MIGRATIONS_TABLE}.id',
            name=STATEMENT_FK_NAME,
            ondelete='CASCADE'
        ),
        nullable=False,
        index=True
    )

    sql_statement: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_PENDING,
        server_default=STATUS_PENDING,
        comment="pending, success or failure"
    )

    error_code: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Driver reported error code (failure only)"
    )

    error_info: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Full driver error description (failure only)"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now()
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    migration: Mapped[Migration] = relationship(back_populates='statements')

    __table_args__ = (
        {'comment': 'SQL statements of each migration and their outcome'},
    )

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    def __repr__(self) -> str:
        return (
            f"<MigrationStatement(id={self.id}, "
            f"migration_id={self.migration_id}, "
            f"status='{self.status}')>"
        )
