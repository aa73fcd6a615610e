"""Unit tests for sqlforge.schema.converters."""

from __future__ import annotations

import dataclasses
import datetime
import decimal
from typing import Optional

import pytest
from pydantic import BaseModel
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sqlforge import PlaceholderContext, QueryBuilder, col, prepare
from sqlforge.schema.columns import ValueKind
from sqlforge.schema.converters import (
    columns_from_model,
    columns_from_sqlalchemy,
    entity_from_sqlalchemy,
)


# ---------------------------------------------------------------------------
# Python models
# ---------------------------------------------------------------------------


class TodoModel(BaseModel):
    Id: int
    Title: str
    Description: Optional[str] = None
    IsCompleted: bool = False
    DueAt: datetime.datetime | None = None


@dataclasses.dataclass
class Invoice:
    id: int
    amount: decimal.Decimal
    paid: bool
    note: str | None = None


def _by_name(columns):
    return {c.name: c for c in columns}


class TestColumnsFromModel:
    def test_pydantic_model(self):
        cols = _by_name(columns_from_model(TodoModel))
        assert list(cols) == ["Id", "Title", "Description", "IsCompleted", "DueAt"]
        assert cols["Id"].is_key
        assert cols["Id"].value_kind == ValueKind.NUMERIC
        assert cols["IsCompleted"].value_kind == ValueKind.BOOLEAN
        assert cols["DueAt"].value_kind == ValueKind.TEMPORAL
        assert cols["IsCompleted"].physical_name == "is_completed"

    def test_optional_is_nullable(self):
        cols = _by_name(columns_from_model(TodoModel))
        assert cols["Description"].nullable
        assert cols["DueAt"].nullable
        assert not cols["Title"].nullable

    def test_dataclass(self):
        cols = _by_name(columns_from_model(Invoice))
        assert cols["id"].is_key
        assert cols["amount"].logical_type == "decimal"
        assert cols["paid"].logical_type == "bool"
        assert cols["note"].nullable

    def test_custom_key_columns(self):
        cols = _by_name(columns_from_model(Invoice, key_columns=("note",)))
        assert cols["note"].is_key
        assert not cols["id"].is_key

    @pytest.mark.parametrize("bad", [object, Invoice(1, decimal.Decimal("1"), True), "Todo"])
    def test_rejects_other_types(self, bad):
        with pytest.raises(TypeError):
            columns_from_model(bad)

    def test_model_columns_drive_templates(self):
        ctx = PlaceholderContext.create("sqlite", table="todo", columns=columns_from_model(TodoModel))
        sql = prepare("{{insert}} ({{columns:auto}}) VALUES ({{values:auto}})", ctx).sql
        assert sql == (
            "INSERT INTO todo ([title], [description], [is_completed], [due_at]) "
            "VALUES (@title, @description, @is_completed, @due_at)"
        )


# ---------------------------------------------------------------------------
# SQLAlchemy
# ---------------------------------------------------------------------------


def _users_table() -> Table:
    return Table(
        "users",
        MetaData(),
        Column("id", BigInteger, primary_key=True),
        Column("email_address", String(200), key="Email", nullable=False),
        Column("is_active", Boolean),
        Column("salary", Numeric(10, 2)),
        Column("created_at", DateTime),
        Column("age", Integer),
    )


class Base(DeclarativeBase):
    pass


class Account(Base):
    __tablename__ = "accounts"

    Id: Mapped[int] = mapped_column("account_id", primary_key=True)
    Owner: Mapped[str] = mapped_column("owner_name", String(100))


class TestSqlAlchemyConverter:
    def test_kinds(self):
        cols = _by_name(columns_from_sqlalchemy(_users_table()))
        assert cols["id"].logical_type == "long"
        assert cols["is_active"].value_kind == ValueKind.BOOLEAN
        assert cols["salary"].logical_type == "decimal"
        assert cols["created_at"].value_kind == ValueKind.TEMPORAL
        assert cols["age"].logical_type == "int"

    def test_key_and_physical_names(self):
        cols = _by_name(columns_from_sqlalchemy(_users_table()))
        assert cols["id"].is_key
        assert cols["Email"].physical_name == "email_address"
        assert not cols["Email"].nullable

    def test_entity_from_table(self):
        entity = entity_from_sqlalchemy(_users_table())
        assert entity.name == "users"
        assert entity.table_name == "users"

    def test_entity_from_declarative_class(self):
        entity = entity_from_sqlalchemy(Account)
        assert entity.name == "Account"
        assert entity.table_name == "accounts"
        assert [c.physical_name for c in entity.columns] == ["account_id", "owner_name"]

    def test_reflected_entity_in_builder(self):
        entity = entity_from_sqlalchemy(_users_table())
        sql = QueryBuilder("postgres", entity).select("Email").where(col("is_active")).to_sql()
        assert sql == 'SELECT "email_address"\nFROM "users"\nWHERE "is_active" = 1'

    def test_rejects_non_table(self):
        with pytest.raises(TypeError):
            columns_from_sqlalchemy("users")
