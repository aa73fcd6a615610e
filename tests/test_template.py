"""Unit tests for template parsing, prepare-time expansion and rendering."""

from __future__ import annotations

import pytest

import sqlforge
from sqlforge import PlaceholderContext, prepare
from sqlforge.errors import GenerationError
from sqlforge.schema.columns import ColumnMeta
from sqlforge.template.handlers import PlaceholderEntry, PlaceholderRegistry
from sqlforge.template.parser import ConditionKind, parse_placeholder, parse_template

TODO_PHYSICAL = {"Id": "id", "Title": "title", "Description": "description", "IsCompleted": "is_completed"}


@pytest.fixture(scope="module")
def ss_todo(todo) -> PlaceholderContext:
    return PlaceholderContext.create("sqlserver", todo)


@pytest.fixture(scope="module")
def pg_todo(todo) -> PlaceholderContext:
    return PlaceholderContext.create("postgres", todo)


@pytest.fixture(scope="module")
def ss_users(users) -> PlaceholderContext:
    return PlaceholderContext.create("sqlserver", users)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestParser:
    def test_colon_options(self):
        token = parse_placeholder("columns:auto|exclude=Id")
        assert token.name == "columns"
        assert token.kind == "auto"
        assert token.get("exclude") == "Id"

    def test_flags_and_args(self):
        token = parse_placeholder("orderby Title Name --desc")
        assert token.args == ("Title", "Name")
        assert token.flags == {"desc": ""}

    def test_flag_values_are_joined(self):
        token = parse_placeholder("columns --exclude Id CreatedAt")
        assert token.names("exclude") == ["Id", "CreatedAt"]

    def test_colon_option_wins_over_flag(self):
        token = parse_placeholder("count:column=Id --column Name")
        assert token.get("column") == "Id"

    def test_spaces_inside_colon_options(self):
        token = parse_placeholder("columns:auto | exclude=Id, Title --raw")
        assert token.kind == "auto"
        assert token.names("exclude") == ["Id", "Title"]
        assert token.args == ()
        assert token.flags == {"raw": ""}

    def test_conditional_block_tree(self):
        nodes = parse_template("A{{if notnull=x}}B{{/if}}C")
        assert len(nodes) == 3
        block = nodes[1]
        assert block.condition.kind == ConditionKind.NOT_NULL
        assert block.condition.param == "x"

    @pytest.mark.parametrize(
        "template",
        [
            "SELECT {{columns",
            "SELECT 1 {{/if}}",
            "{{if x}}SELECT 1",
            "{{ }}",
            "{{columns!}}",
            "{{if weird=x}}A{{/if}}",
            "{{if not a name}}A{{/if}}",
        ],
    )
    def test_malformed_templates_raise(self, template):
        with pytest.raises(GenerationError) as exc_info:
            parse_template(template)
        assert exc_info.value.code == "SQLX001"


# ---------------------------------------------------------------------------
# Column lists
# ---------------------------------------------------------------------------


class TestColumnPlaceholders:
    def test_insert_statement(self, ss_todo):
        tpl = prepare("{{insert}} ({{columns:auto|exclude=Id}}) VALUES ({{values:auto}})", ss_todo)
        assert tpl.render() == (
            "INSERT INTO todo ([title], [description], [is_completed]) "
            "VALUES (@title, @description, @is_completed)"
        )

    def test_all_columns(self, ss_todo):
        assert prepare("{{columns}}", ss_todo).sql == "[id], [title], [description], [is_completed]"

    def test_unquoted_columns(self, ss_todo):
        assert prepare("{{columns:auto|raw}}", ss_todo).sql == "title, description, is_completed"

    def test_exclude_forms(self, ss_todo):
        expected = "[title], [is_completed]"
        assert prepare("{{columns --exclude Id,Description}}", ss_todo).sql == expected
        assert prepare("{{columns --exclude Id Description}}", ss_todo).sql == expected
        assert prepare("{{columns:all|exclude=id,description}}", ss_todo).sql == expected

    def test_exclude_physical_name(self, ss_todo):
        assert prepare("{{columns:auto|exclude=is_completed}}", ss_todo).sql == "[title], [description]"

    def test_unknown_exclusion_is_ignored(self, ss_todo):
        assert prepare("{{columns --exclude Nope}}", ss_todo).sql.count(",") == 3

    def test_only(self, ss_todo):
        assert prepare("{{columns --only Title}}", ss_todo).sql == "[title]"

    def test_include(self, ss_todo):
        assert prepare("{{columns:include=Title}}", ss_todo).sql == "[title]"
        assert prepare("{{columns --include Title IsCompleted}}", ss_todo).sql == "[title], [is_completed]"
        assert prepare("{{set:include=Title|exclude=Id}}", ss_todo).sql == "[title] = @title"
        assert prepare("{{values:include=Title,IsCompleted}}", ss_todo).sql == "@title, @is_completed"

    def test_exclude_wins_over_include(self, ss_todo):
        template = "{{set:include=Title,Description|exclude=description}}"
        assert prepare(template, ss_todo).sql == "[title] = @title"
        assert prepare("{{values:auto|include=Id,Title}}", ss_todo).sql == "@title"

    def test_spaced_option_list(self, ss_todo):
        assert prepare("{{columns:auto|exclude=Id, Title}}", ss_todo).sql == "[description], [is_completed]"
        assert prepare("{{values:include = Title , Description}}", ss_todo).sql == "@title, @description"

    def test_empty_selection_raises(self, ss_todo):
        with pytest.raises(GenerationError):
            prepare("{{columns --only Nope}}", ss_todo)

    def test_values_prefix_follows_dialect(self, pg_todo):
        assert prepare("{{values:auto}}", pg_todo).sql == "$title, $description, $is_completed"

    def test_set(self, ss_todo):
        assert prepare("{{set:auto}}", ss_todo).sql == (
            "[title] = @title, [description] = @description, [is_completed] = @is_completed"
        )

    def test_wrap(self, ss_todo):
        assert prepare("{{wrap:IsCompleted}}", ss_todo).sql == "[is_completed]"

    def test_columns_without_metadata_raise(self):
        with pytest.raises(GenerationError):
            prepare("{{columns}}", "sqlserver")

    def test_context_from_table_and_columns(self):
        ctx = PlaceholderContext.create(
            "sqlite",
            table="users",
            columns=[ColumnMeta(name="Id", is_key=True), ColumnMeta(name="Name")],
        )
        tpl = prepare("{{insert}} ({{columns:auto}}) VALUES ({{values:auto}})", ctx)
        assert tpl.sql == "INSERT INTO users ([name]) VALUES (@name)"


@pytest.mark.parametrize("excluded", list(TODO_PHYSICAL))
def test_excluded_column_never_appears(ss_todo, excluded):
    remaining = [p for n, p in TODO_PHYSICAL.items() if n != excluded]

    columns = prepare(f"{{{{columns --exclude {excluded}}}}}", ss_todo).sql
    assert [c.strip("[]") for c in columns.split(", ")] == remaining

    values = prepare(f"{{{{values --exclude {excluded}}}}}", ss_todo).sql
    assert [v.lstrip("@") for v in values.split(", ")] == remaining

    assignments = prepare(f"{{{{set --exclude {excluded}}}}}", ss_todo).sql.split(", ")
    assert [a.split(" = ")[0].strip("[]") for a in assignments] == remaining
    assert [a.split(" = ")[1].lstrip("@") for a in assignments] == remaining


@pytest.mark.parametrize("included", list(TODO_PHYSICAL))
def test_included_column_is_the_only_one(ss_todo, included):
    physical = TODO_PHYSICAL[included]
    assert prepare(f"{{{{columns:include={included}}}}}", ss_todo).sql == f"[{physical}]"
    assert prepare(f"{{{{values:include={included}}}}}", ss_todo).sql == f"@{physical}"
    assert prepare(f"{{{{set:include={included}}}}}", ss_todo).sql == f"[{physical}] = @{physical}"


# ---------------------------------------------------------------------------
# Table and statement heads
# ---------------------------------------------------------------------------


class TestTablePlaceholders:
    def test_table_is_quoted(self, ss_todo, pg_todo):
        assert prepare("{{table}}", ss_todo).sql == "[todo]"
        assert prepare("{{table}}", pg_todo).sql == '"todo"'

    def test_raw_and_explicit_table(self, ss_todo):
        assert prepare("{{table:raw}}", ss_todo).sql == "todo"
        assert prepare("{{table archive}}", ss_todo).sql == "[archive]"

    def test_table_parameter(self, ss_todo):
        tpl = prepare("SELECT * FROM {{table --param t}}", ss_todo)
        assert tpl.render("t", "todo_2024") == "SELECT * FROM [todo_2024]"

    def test_heads(self, ss_todo):
        assert prepare("{{update}}", ss_todo).sql == "UPDATE todo"
        assert prepare("{{delete}}", ss_todo).sql == "DELETE FROM todo"
        assert prepare("{{update:quoted}}", ss_todo).sql == "UPDATE [todo]"

    def test_table_without_metadata_raises(self):
        with pytest.raises(GenerationError):
            prepare("SELECT * FROM {{table}}", "sqlserver")


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class TestAggregatePlaceholders:
    def test_count(self, ss_todo):
        assert prepare("{{count}}", ss_todo).sql == "COUNT(*)"

    def test_count_coalesce(self, ss_todo):
        assert prepare("{{count:coalesce=true}}", ss_todo).sql == "COALESCE(COUNT(*), 0)"
        assert prepare("{{count --coalesce true}}", ss_todo).sql == "COALESCE(COUNT(*), 0)"

    def test_count_distinct_column(self, ss_todo):
        assert prepare("{{count:distinct|column=Id}}", ss_todo).sql == "COUNT(DISTINCT [id])"

    def test_column_forms(self, ss_users):
        assert prepare("{{sum:Salary}}", ss_users).sql == "SUM([salary])"
        assert prepare("{{max Age}}", ss_users).sql == "MAX([age])"
        assert prepare("{{min --column Age}}", ss_users).sql == "MIN([age])"

    def test_coalesce_default(self, ss_users):
        assert prepare("{{sum:column=Salary|default=-1}}", ss_users).sql == "COALESCE(SUM([salary]), -1)"
        assert prepare("{{avg:coalesce|column=Age}}", ss_users).sql == "COALESCE(AVG([age]), 0)"

    def test_sum_requires_column(self, ss_users):
        with pytest.raises(GenerationError):
            prepare("{{sum}}", ss_users)


# ---------------------------------------------------------------------------
# WHERE, paging, ordering
# ---------------------------------------------------------------------------


class TestWherePlaceholder:
    def test_key_equality(self, ss_todo, pg_todo):
        assert prepare("{{where:id}}", ss_todo).sql == "[id] = @id"
        assert prepare("{{where:id}}", pg_todo).sql == '"id" = $id'

    def test_all_and_none(self, ss_todo):
        assert prepare("{{where:all}}", ss_todo).sql == "1=1"
        assert prepare("{{where:none}}", ss_todo).sql == "1=0"

    def test_dynamic_condition(self, ss_todo):
        tpl = prepare("SELECT * FROM {{table}} WHERE {{where --param cond}}", ss_todo)
        assert tpl.has_dynamic_placeholders
        assert tpl.render("cond", "[is_completed] = 0") == "SELECT * FROM [todo] WHERE [is_completed] = 0"
        assert tpl.render("cond", None) == "SELECT * FROM [todo] WHERE 1=1"

    def test_bare_where_is_named_where(self, ss_todo):
        tpl = prepare("WHERE {{where}}", ss_todo)
        assert tpl.render(where="[id] = 1") == "WHERE [id] = 1"

    def test_missing_value_raises(self, ss_todo):
        tpl = prepare("WHERE {{where --param cond}}", ss_todo)
        with pytest.raises(GenerationError) as exc_info:
            tpl.render()
        assert exc_info.value.details["parameter"] == "cond"


class TestPagingPlaceholders:
    def test_static_limit(self, ss_todo, pg_todo):
        assert prepare("{{limit --count 10}}", pg_todo).sql == "LIMIT 10"
        assert prepare("{{limit --count 10}}", ss_todo).sql == "OFFSET 0 ROWS FETCH NEXT 10 ROWS ONLY"
        assert prepare("{{limit 5}}", pg_todo).sql == "LIMIT 5"

    def test_presets(self, pg_todo):
        assert prepare("{{limit:small}}", pg_todo).sql == "LIMIT 10"
        assert prepare("{{limit:page}}", pg_todo).sql == "LIMIT 20"
        assert prepare("{{limit:large}}", pg_todo).sql == "LIMIT 100"

    def test_dynamic_limit(self, pg_todo):
        tpl = prepare("SELECT 1 {{limit --param take}}", pg_todo)
        assert tpl.render("take", 25) == "SELECT 1 LIMIT 25"
        assert tpl.render("take", None) == "SELECT 1 "

    def test_dynamic_offset(self, ss_todo):
        tpl = prepare("{{offset --param skip}}", ss_todo)
        assert tpl.render("skip", 40) == "OFFSET 40 ROWS"

    def test_lone_limit_gets_zero_offset(self, ss_todo):
        paired = "OFFSET 0 ROWS FETCH NEXT 10 ROWS ONLY"
        assert prepare("SELECT * FROM t ORDER BY id {{limit:small}}", ss_todo).sql.endswith(paired)
        tpl = prepare("SELECT * FROM t ORDER BY id {{limit --param n}}", ss_todo)
        assert tpl.render("n", 10).endswith(paired)
        assert tpl.render("n", None) == "SELECT * FROM t ORDER BY id "

    def test_offset_placeholder_pairs_with_limit(self, ss_todo):
        tpl = prepare("ORDER BY id {{offset --param s}} {{limit --param t}}", ss_todo)
        assert tpl.render(s=40, t=20) == "ORDER BY id OFFSET 40 ROWS FETCH NEXT 20 ROWS ONLY"
        assert tpl.render(s=None, t=20) == "ORDER BY id OFFSET 0 ROWS FETCH NEXT 20 ROWS ONLY"
        assert prepare("{{offset 5}} {{limit:tiny}}", ss_todo).sql == "OFFSET 5 ROWS FETCH NEXT 5 ROWS ONLY"

    def test_unpaired_dialects_ignore_offset_pairing(self, pg_todo):
        tpl = prepare("{{offset --param s}} {{limit --param t}}", pg_todo)
        assert tpl.render(s=None, t=20) == " LIMIT 20"
        assert tpl.render(s=40, t=20) == "OFFSET 40 LIMIT 20"

    def test_invalid_values_raise(self, pg_todo):
        with pytest.raises(GenerationError):
            prepare("{{limit --count abc}}", pg_todo)
        tpl = prepare("{{limit --param take}}", pg_todo)
        with pytest.raises(GenerationError):
            tpl.render("take", -1)
        with pytest.raises(GenerationError):
            tpl.render("take", "10")


class TestOrderByPlaceholder:
    def test_static_forms(self, ss_todo):
        assert prepare("{{orderby Title}}", ss_todo).sql == "ORDER BY [title] ASC"
        assert prepare("{{orderby:Title_desc}}", ss_todo).sql == "ORDER BY [title] DESC"
        assert prepare("{{orderby Title --desc}}", ss_todo).sql == "ORDER BY [title] DESC"
        assert prepare("{{orderby --asc Title --desc Id}}", ss_todo).sql == "ORDER BY [title] ASC, [id] DESC"

    def test_dynamic(self, ss_todo):
        tpl = prepare("{{orderby --param sort}}", ss_todo)
        assert tpl.render("sort", "Title desc, Id") == "ORDER BY [title] DESC, [id] ASC"
        assert tpl.render("sort", "") == ""

    def test_dynamic_rejects_injection(self, ss_todo):
        tpl = prepare("{{orderby --param sort}}", ss_todo)
        with pytest.raises(GenerationError):
            tpl.render("sort", "Title; DROP TABLE todo")

    def test_requires_column(self, ss_todo):
        with pytest.raises(GenerationError):
            prepare("{{orderby}}", ss_todo)


# ---------------------------------------------------------------------------
# Dialect literals and parameters
# ---------------------------------------------------------------------------


class TestDialectPlaceholders:
    def test_booleans(self):
        assert prepare("{{bool_true}} {{bool_false}}", "postgres").sql == "true false"
        assert prepare("{{bool_true}} {{bool_false}}", "sqlserver").sql == "1 0"

    def test_current_timestamp(self):
        assert prepare("{{current_timestamp}}", "sqlserver").sql == "GETDATE()"
        assert prepare("{{current_timestamp}}", "mysql").sql == "NOW()"

    def test_random(self):
        assert prepare("{{random}}", "mysql").sql == "RAND()"
        assert prepare("{{random}}", "postgres").sql == "RANDOM()"

    def test_arg(self):
        assert prepare("{{arg --param userId}}", "sqlserver").sql == "@userId"
        assert prepare("{{arg --param userId}}", "postgres").sql == "$userId"

    def test_literal_parameter_hole(self, ss_todo):
        tpl = prepare("WHERE [id] IN {{values --param ids}}", ss_todo)
        assert tpl.render("ids", [1, 2]) == "WHERE [id] IN (1, 2)"
        assert tpl.render("ids", []) == "WHERE [id] IN (NULL)"

    def test_literal_hole_escapes_strings(self, ss_todo):
        tpl = prepare("WHERE [title] = {{values --param title}}", ss_todo)
        assert tpl.render("title", "O'Brien") == "WHERE [title] = 'O''Brien'"
        assert tpl.render("title", None) == "WHERE [title] = NULL"

    def test_arg_param_wins_over_kind(self):
        assert prepare("{{arg:x --param name}}", "sqlserver").sql == "@name"

    def test_unknown_placeholder(self):
        with pytest.raises(GenerationError) as exc_info:
            prepare("SELECT {{bogus}}", "sqlserver")
        assert "bogus" in str(exc_info.value)
        assert "columns" in exc_info.value.details["registered"]

    def test_custom_placeholder(self, monkeypatch):
        entry = PlaceholderEntry(lambda token, ctx: ctx.provider.parameter("tenant_id"))
        monkeypatch.setitem(PlaceholderRegistry._handlers, "tenant", entry)
        assert prepare("WHERE [tenant_id] = {{tenant}}", "postgres").sql == "WHERE [tenant_id] = $tenant_id"


# ---------------------------------------------------------------------------
# Conditional blocks
# ---------------------------------------------------------------------------


class TestConditionalBlocks:
    TEMPLATE = "SELECT * FROM {{table}}{{if notnull=name}} WHERE [title] = @name{{/if}}"

    def test_notnull(self, ss_todo):
        tpl = prepare(self.TEMPLATE, ss_todo)
        assert tpl.render(name="x") == "SELECT * FROM [todo] WHERE [title] = @name"
        assert tpl.render(name=None) == "SELECT * FROM [todo]"
        assert tpl.render() == "SELECT * FROM [todo]"

    def test_open_block_shown_in_sql(self, ss_todo):
        tpl = prepare(self.TEMPLATE, ss_todo)
        assert tpl.sql == "SELECT * FROM [todo]{{if notnull=name}} WHERE [title] = @name{{/if}}"

    def test_null(self):
        tpl = prepare("A{{if null=x}}B{{/if}}", "sqlserver")
        assert tpl.render() == "AB"
        assert tpl.render(x=1) == "A"

    def test_empty_and_notempty(self):
        tpl = prepare("A{{if notempty=ids}}B{{endif}}{{if empty=ids}}C{{endif}}", "sqlserver")
        assert tpl.render(ids=[1]) == "AB"
        assert tpl.render(ids=[]) == "AC"
        assert tpl.render(ids="") == "AC"

    def test_truthy_and_nested(self):
        tpl = prepare("A{{if a}}B{{if b}}C{{/if}}{{/if}}", "sqlserver")
        assert tpl.render(a=1, b=0) == "AB"
        assert tpl.render(a=1, b=1) == "ABC"
        assert tpl.render(a=0, b=1) == "A"

    def test_holes_inside_blocks(self, pg_todo):
        tpl = prepare("SELECT 1{{if notnull=take}} {{limit --param take}}{{/if}}", pg_todo)
        assert tpl.render(take=3) == "SELECT 1 LIMIT 3"
        assert tpl.render() == "SELECT 1"


# ---------------------------------------------------------------------------
# SqlTemplate surface
# ---------------------------------------------------------------------------


class TestSqlTemplate:
    def test_static_template_renders_prepared_sql(self, ss_todo):
        tpl = prepare("SELECT {{columns}} FROM {{table}}", ss_todo)
        assert not tpl.has_dynamic_placeholders
        assert tpl.render() == tpl.sql

    def test_render_call_forms_agree(self, ss_todo):
        tpl = prepare("SELECT 1 WHERE {{where --param c}}", ss_todo)
        expected = "SELECT 1 WHERE [id] = 1"
        assert tpl.render("c", "[id] = 1") == expected
        assert tpl.render({"c": "[id] = 1"}) == expected
        assert tpl.render(values={"c": "[id] = 1"}) == expected
        assert tpl.render(c="[id] = 1") == expected

    def test_two_pair_render(self, ss_todo):
        tpl = prepare("SELECT 1 WHERE {{where --param c}} {{limit --param n}}", ss_todo)
        expected = "SELECT 1 WHERE [id] = 1 OFFSET 0 ROWS FETCH NEXT 5 ROWS ONLY"
        assert tpl.render("c", "[id] = 1", "n", 5) == expected
        assert tpl.render("n", 5, "c", "[id] = 1") == expected
        assert tpl.render("c", "[id] = 1", "n", 5) == tpl.render(c="[id] = 1", n=5)
        with pytest.raises(GenerationError):
            tpl.render("c", "[id] = 1", "x", 5)

    def test_mapping_twice_raises(self, ss_todo):
        tpl = prepare("SELECT 1 WHERE {{where --param c}}", ss_todo)
        with pytest.raises(TypeError):
            tpl.render({"c": "1=1"}, values={"c": "1=1"})

    def test_render_is_idempotent(self, ss_todo):
        tpl = prepare("SELECT * FROM {{table}} WHERE {{where --param c}} {{orderby --param s}}", ss_todo)
        first = tpl.render(c="[id] = 1", s="Title")
        sqlforge.clear_cache()
        assert tpl.render(c="[id] = 1", s="Title") == first

    def test_parameter_names(self, ss_todo, pg_todo):
        template = "{{update}} SET {{set:auto}} WHERE {{where:id}}"
        assert prepare(template, ss_todo).parameter_names == ["@title", "@description", "@is_completed", "@id"]
        assert prepare(template, pg_todo).parameter_names == ["$title", "$description", "$is_completed", "$id"]

    def test_parameter_names_skip_string_literals(self):
        tpl = prepare("WHERE [x] = '@nope' AND [y] = @real", "sqlserver")
        assert tpl.parameter_names == ["@real"]

    def test_dynamic_parameters(self, ss_todo):
        tpl = prepare("{{where --param cond}} {{limit --param take}}{{if notnull=x}}{{/if}}", ss_todo)
        assert tpl.dynamic_parameters == ["cond", "take", "x"]
