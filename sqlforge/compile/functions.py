"""Built-in method handlers for the expression translator.

Each handler receives the translator and the :class:`MethodCallNode` and
returns SQL.  Dialect differences go through the provider (function
spellings, date arithmetic, padding, ``STRING_AGG``).

String receivers use ``node.target``; static math functions take their
operands from ``node.args``.  Either form is accepted wherever it makes
sense, so ``fn.abs(x)`` and ``x.method("abs")`` translate the same way.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from sqlforge.compile.registry import MethodRegistry
from sqlforge.errors import InvalidExpressionError
from sqlforge.schema.columns import ValueKind
from sqlforge.schema.expressions import ConstantNode, ExpressionNode, MethodCallNode

if TYPE_CHECKING:
    from sqlforge.compile.expression_builder import ExpressionTranslator

TEXT = ValueKind.TEXT
NUMERIC = ValueKind.NUMERIC
BOOLEAN = ValueKind.BOOLEAN
TEMPORAL = ValueKind.TEMPORAL


def _operands(node: MethodCallNode) -> list[ExpressionNode]:
    return ([node.target] if node.target is not None else []) + list(node.args)


def _expect(node: MethodCallNode, *counts: int) -> list[ExpressionNode]:
    operands = _operands(node)
    if len(operands) not in counts:
        expected = " or ".join(str(c) for c in counts)
        raise InvalidExpressionError(
            f"Method '{node.method}' expects {expected} operand(s), got {len(operands)}.",
            construct=node.method,
        )
    return operands


def _inline_int(t: ExpressionTranslator, node: ExpressionNode) -> int | None:
    """The integer value of an inlinable constant, else ``None``."""
    if t.ctx.options.parameterize or not isinstance(node, ConstantNode):
        return None
    value = node.value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _simple(sql_name: str):
    def handler(t: ExpressionTranslator, node: MethodCallNode) -> str:
        (operand,) = _expect(node, 1)
        return f"{sql_name}({t.sql(operand)})"

    return handler


# ---------------------------------------------------------------------------
# String methods
# ---------------------------------------------------------------------------


def _like(t: ExpressionTranslator, node: MethodCallNode, prefix: bool, suffix: bool) -> str:
    target, pattern = _expect(node, 2)
    provider = t.provider
    if (
        isinstance(pattern, ConstantNode)
        and isinstance(pattern.value, str)
        and not t.ctx.options.parameterize
    ):
        text = f"{'%' if prefix else ''}{pattern.value}{'%' if suffix else ''}"
        return f"{t.sql(target)} LIKE {provider.quote_string(text)}"
    wildcard = provider.quote_string("%")
    parts = [wildcard] if prefix else []
    parts.append(t.sql(pattern))
    if suffix:
        parts.append(wildcard)
    return f"{t.sql(target)} LIKE {provider.concat(*parts)}"


@MethodRegistry.register("contains", result_kind=BOOLEAN)
def _contains(t: ExpressionTranslator, node: MethodCallNode) -> str:
    return _like(t, node, prefix=True, suffix=True)


@MethodRegistry.register("starts_with", "startswith", result_kind=BOOLEAN)
def _starts_with(t: ExpressionTranslator, node: MethodCallNode) -> str:
    return _like(t, node, prefix=False, suffix=True)


@MethodRegistry.register("ends_with", "endswith", result_kind=BOOLEAN)
def _ends_with(t: ExpressionTranslator, node: MethodCallNode) -> str:
    return _like(t, node, prefix=True, suffix=False)


for _names, _sql in (
    (("upper", "to_upper"), "UPPER"),
    (("lower", "to_lower"), "LOWER"),
    (("trim", "strip"), "TRIM"),
    (("trim_start", "lstrip"), "LTRIM"),
    (("trim_end", "rstrip"), "RTRIM"),
):
    MethodRegistry.register(*_names, result_kind=TEXT)(_simple(_sql))


@MethodRegistry.register("length", "len", result_kind=NUMERIC)
def _length(t: ExpressionTranslator, node: MethodCallNode) -> str:
    (operand,) = _expect(node, 1)
    return f"{t.provider.length_function}({t.sql(operand)})"


@MethodRegistry.register("substring", result_kind=TEXT)
def _substring(t: ExpressionTranslator, node: MethodCallNode) -> str:
    operands = _expect(node, 2, 3)
    target, start = operands[0], operands[1]
    # Zero-based in the expression, one-based in SQL.
    folded = _inline_int(t, start)
    start_sql = str(folded + 1) if folded is not None else f"{t.sql(start)} + 1"
    length_sql = t.sql(operands[2]) if len(operands) == 3 else None
    return t.provider.substring(t.sql(target), start_sql, length_sql)


@MethodRegistry.register("replace", result_kind=TEXT)
def _replace(t: ExpressionTranslator, node: MethodCallNode) -> str:
    target, old, new = _expect(node, 3)
    return f"REPLACE({t.sql(target)}, {t.sql(old)}, {t.sql(new)})"


def _pad(t: ExpressionTranslator, node: MethodCallNode, left: bool) -> str:
    operands = _expect(node, 2, 3)
    target, width = operands[0], operands[1]
    pad = t.sql(operands[2]) if len(operands) == 3 else t.provider.quote_string(" ")
    render = t.provider.pad_left if left else t.provider.pad_right
    return render(t.sql(target), t.sql(width), pad)


@MethodRegistry.register("pad_left", result_kind=TEXT)
def _pad_left(t: ExpressionTranslator, node: MethodCallNode) -> str:
    return _pad(t, node, left=True)


@MethodRegistry.register("pad_right", result_kind=TEXT)
def _pad_right(t: ExpressionTranslator, node: MethodCallNode) -> str:
    return _pad(t, node, left=False)


@MethodRegistry.register("index_of", result_kind=NUMERIC)
def _index_of(t: ExpressionTranslator, node: MethodCallNode) -> str:
    operands = _expect(node, 2, 3)
    start = t.sql(operands[2]) if len(operands) == 3 else None
    return t.provider.index_of(t.sql(operands[0]), t.sql(operands[1]), start)


# ---------------------------------------------------------------------------
# Math functions
# ---------------------------------------------------------------------------

for _name, _sql in (
    ("abs", "ABS"),
    ("floor", "FLOOR"),
    ("sqrt", "SQRT"),
    ("sign", "SIGN"),
    ("exp", "EXP"),
    ("log10", "LOG10"),
    ("sin", "SIN"),
    ("cos", "COS"),
    ("tan", "TAN"),
    ("asin", "ASIN"),
    ("acos", "ACOS"),
    ("atan", "ATAN"),
):
    MethodRegistry.register(_name, result_kind=NUMERIC)(_simple(_sql))


@MethodRegistry.register("round", result_kind=NUMERIC)
def _round(t: ExpressionTranslator, node: MethodCallNode) -> str:
    operands = _expect(node, 1, 2)
    return f"ROUND({', '.join(t.sql(o) for o in operands)})"


@MethodRegistry.register("ceiling", "ceil", result_kind=NUMERIC)
def _ceiling(t: ExpressionTranslator, node: MethodCallNode) -> str:
    (operand,) = _expect(node, 1)
    return f"{t.provider.ceiling_function}({t.sql(operand)})"


@MethodRegistry.register("pow", "power", result_kind=NUMERIC)
def _pow(t: ExpressionTranslator, node: MethodCallNode) -> str:
    base, exponent = _expect(node, 2)
    return f"{t.provider.power_function}({t.sql(base)}, {t.sql(exponent)})"


@MethodRegistry.register("log", result_kind=NUMERIC)
def _log(t: ExpressionTranslator, node: MethodCallNode) -> str:
    (operand,) = _expect(node, 1)
    return f"{t.provider.log_function}({t.sql(operand)})"


@MethodRegistry.register("atan2", result_kind=NUMERIC)
def _atan2(t: ExpressionTranslator, node: MethodCallNode) -> str:
    y, x = _expect(node, 2)
    return f"{t.provider.atan2_function}({t.sql(y)}, {t.sql(x)})"


@MethodRegistry.register("truncate", "trunc", result_kind=NUMERIC)
def _truncate(t: ExpressionTranslator, node: MethodCallNode) -> str:
    (operand,) = _expect(node, 1)
    return t.provider.truncate(t.sql(operand))


@MethodRegistry.register("min", "least", result_kind=NUMERIC)
def _least(t: ExpressionTranslator, node: MethodCallNode) -> str:
    a, b = _expect(node, 2)
    return f"{t.provider.least_function}({t.sql(a)}, {t.sql(b)})"


@MethodRegistry.register("max", "greatest", result_kind=NUMERIC)
def _greatest(t: ExpressionTranslator, node: MethodCallNode) -> str:
    a, b = _expect(node, 2)
    return f"{t.provider.greatest_function}({t.sql(a)}, {t.sql(b)})"


# ---------------------------------------------------------------------------
# Date arithmetic
# ---------------------------------------------------------------------------


def _date_add(unit: str):
    def handler(t: ExpressionTranslator, node: MethodCallNode) -> str:
        target, amount = _expect(node, 2)
        return t.provider.date_add(unit, t.sql(amount), t.sql(target))

    return handler


for _unit in ("YEAR", "MONTH", "DAY", "HOUR", "MINUTE", "SECOND"):
    MethodRegistry.register(f"add_{_unit.lower()}s", result_kind=TEMPORAL)(_date_add(_unit))
