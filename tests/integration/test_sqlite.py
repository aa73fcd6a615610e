"""Integration tests: generate → execute against a real SQLite in-memory DB.

SQLite accepts ``@name`` parameters with the prefix-free name as the mapping
key, so generated SQL runs unchanged through :mod:`sqlite3`.
"""
from __future__ import annotations

import sqlite3
from typing import Any

import pytest

import sqlforge
from sqlforge import PlaceholderContext, QueryBuilder, TranslationOptions, col, param, prepare

DDL = """
CREATE TABLE todo (
    id           INTEGER PRIMARY KEY,
    title        TEXT    NOT NULL,
    description  TEXT,
    is_completed INTEGER NOT NULL
);
"""

ROWS = [
    (1, "Write docs", "user guide", 0),
    (2, "Fix bug", None, 1),
    (3, "Release", "tag and publish", 0),
]


def _unprefixed(params: dict[str, Any]) -> dict[str, Any]:
    return {name.lstrip("@"): value for name, value in params.items()}


@pytest.fixture()
def db() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.executescript(DDL)
    conn.executemany("INSERT INTO todo VALUES (?,?,?,?)", ROWS)
    yield conn
    conn.close()


@pytest.fixture()
def ctx(todo) -> PlaceholderContext:
    return PlaceholderContext.create("sqlite", todo)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class TestTemplates:
    def test_insert(self, db, ctx):
        sql = prepare("{{insert}} ({{columns:auto}}) VALUES ({{values:auto}})", ctx).render()
        db.execute(sql, {"title": "New", "description": None, "is_completed": 0})
        row = db.execute("SELECT * FROM todo WHERE title = 'New'").fetchone()
        assert row["id"] == 4

    def test_update_by_key(self, db, ctx):
        sql = prepare("{{update}} SET {{set:auto}} WHERE {{where:id}}", ctx).render()
        db.execute(sql, {"id": 2, "title": "Fixed", "description": "done", "is_completed": 1})
        assert db.execute("SELECT title FROM todo WHERE id = 2").fetchone()["title"] == "Fixed"

    def test_dynamic_select(self, db, ctx):
        tpl = prepare(
            "SELECT {{columns}} FROM {{table}} WHERE {{where --param cond}} "
            "{{orderby --param sort}} {{limit --param take}}",
            ctx,
        )
        rows = db.execute(tpl.render(cond="[is_completed] = 0", sort="Title desc", take=1)).fetchall()
        assert [r["title"] for r in rows] == ["Write docs"]

        rows = db.execute(tpl.render(cond=None, sort="Id", take=None)).fetchall()
        assert [r["id"] for r in rows] == [1, 2, 3]

    def test_conditional_filter(self, db, ctx):
        tpl = prepare(
            "SELECT {{count}} FROM {{table}}{{if notnull=title}} WHERE [title] = @title{{/if}}", ctx
        )
        assert db.execute(tpl.render()).fetchone()[0] == 3
        assert db.execute(tpl.render(title="Fix bug"), {"title": "Fix bug"}).fetchone()[0] == 1

    def test_coalesced_aggregates_on_empty_table(self, db, ctx):
        db.execute("DELETE FROM todo")
        sql = prepare("SELECT {{count:coalesce=true}}, {{sum:column=Id|default=0}} FROM {{table}}", ctx).sql
        assert tuple(db.execute(sql).fetchone()) == (0, 0)

    def test_membership_literal(self, db, ctx):
        tpl = prepare("SELECT {{count}} FROM {{table}} WHERE [id] IN {{values --param ids}}", ctx)
        assert db.execute(tpl.render(ids=[1, 3])).fetchone()[0] == 2
        assert db.execute(tpl.render(ids=[])).fetchone()[0] == 0


# ---------------------------------------------------------------------------
# QueryBuilder
# ---------------------------------------------------------------------------


class TestBuilder:
    def test_select_with_paging(self, db, todo):
        sql = (
            QueryBuilder("sqlite", todo)
            .select("Id")
            .where(~col("IsCompleted"))
            .order_by_desc("Id")
            .skip(1)
            .to_sql()
        )
        assert [r["id"] for r in db.execute(sql)] == [1]

    def test_insert_update_delete(self, db, todo):
        compiled = QueryBuilder("sqlite", todo).insert(
            {"Id": 10, "Title": "Ten", "Description": None, "IsCompleted": False}
        ).build()
        db.execute(compiled.sql, _unprefixed(compiled.params))

        compiled = QueryBuilder("sqlite", todo).set("Title", "Ten!").where(col("Id") == 10).build()
        db.execute(compiled.sql, _unprefixed(compiled.params))
        assert db.execute("SELECT title FROM todo WHERE id = 10").fetchone()[0] == "Ten!"

        db.execute(QueryBuilder("sqlite", todo).delete().where(col("Id") == 10).to_sql())
        assert db.execute("SELECT COUNT(*) FROM todo").fetchone()[0] == 3

    def test_parameterized_where(self, db, todo):
        qb = QueryBuilder("sqlite", todo, options=TranslationOptions(parameterize=True))
        qb.select("Title").where(col("Title").contains("e")).where(col("Id") > param("min")).bind("min", 1)
        rows = db.execute(qb.to_sql(), _unprefixed(dict(qb.get_parameters()))).fetchall()
        assert [r["title"] for r in rows] == ["Release"]

    def test_string_functions_execute(self, db, todo):
        sql = (
            QueryBuilder("sqlite", todo)
            .select(col("Title").upper())
            .where(col("Title").startswith("Re"))
            .to_sql()
        )
        assert db.execute(sql).fetchone()[0] == "RELEASE"

    def test_upsert(self, db, todo):
        sql = QueryBuilder("sqlite", todo).upsert_sql()
        values = {"id": 1, "title": "Rewritten", "description": None, "is_completed": 1}
        db.execute(sql, values)
        db.execute(sql, {**values, "id": 99})
        assert db.execute("SELECT title FROM todo WHERE id = 1").fetchone()[0] == "Rewritten"
        assert db.execute("SELECT COUNT(*) FROM todo").fetchone()[0] == 4

    def test_batch_insert(self, db, todo):
        sql = QueryBuilder("sqlite", todo).batch_insert_sql(2)
        db.execute(
            sql,
            {
                "title0": "a", "description0": None, "is_completed0": 0,
                "title1": "b", "description1": "x", "is_completed1": 1,
            },
        )
        assert db.execute("SELECT COUNT(*) FROM todo").fetchone()[0] == 5


def test_translated_fragment_with_parameters(db, todo):
    result = sqlforge.translate(
        (col("IsCompleted") == False) & (col("Title") != "Release"),  # noqa: E712
        "sqlite",
        todo,
        TranslationOptions(parameterize=True),
    )
    rows = db.execute(f"SELECT id FROM todo WHERE {result.sql}", _unprefixed(dict(result.parameters)))
    assert [r["id"] for r in rows] == [1]
