"""Typed expression AST for predicates and projections.

Every node is an immutable pydantic model tagged by a ``kind`` field, so a
tree can be dumped with ``model_dump()`` and rebuilt from plain dicts::

    from sqlforge.schema.expressions import to_node

    node = to_node({
        "kind": "binary",
        "op": ">",
        "left": {"kind": "column", "name": "Age"},
        "right": {"kind": "constant", "value": 18},
    })

Application code usually builds trees through :mod:`sqlforge.schema.fluent`
instead (``col("Age") > 18``).
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)

from sqlforge.schema.columns import ValueKind

# ---------------------------------------------------------------------------
# Operator enums
# ---------------------------------------------------------------------------


class NodeKind(str, Enum):
    """The discriminator value for each node type."""

    CONSTANT = "constant"
    COLUMN = "column"
    PARAMETER = "parameter"
    UNARY = "unary"
    BINARY = "binary"
    METHOD = "method"
    CONDITIONAL = "conditional"
    COALESCE = "coalesce"
    AGGREGATE = "aggregate"
    CAST = "cast"
    NEW = "new"


class BinaryOp(str, Enum):
    """Binary operators, spelled the way host expressions spell them."""

    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    EQ = "=="
    NE = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    AND = "&&"
    OR = "||"


class UnaryOp(str, Enum):
    NOT = "not"
    NEGATE = "neg"


class AggregateFunc(str, Enum):
    """Aggregate functions usable inside a GROUP BY projection."""

    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    STRING_AGG = "STRING_AGG"


ARITHMETIC_OPS: frozenset[BinaryOp] = frozenset(
    {BinaryOp.ADD, BinaryOp.SUBTRACT, BinaryOp.MULTIPLY, BinaryOp.DIVIDE, BinaryOp.MODULO}
)

COMPARISON_OPS: frozenset[BinaryOp] = frozenset(
    {BinaryOp.EQ, BinaryOp.NE, BinaryOp.GT, BinaryOp.GTE, BinaryOp.LT, BinaryOp.LTE}
)

LOGICAL_OPS: frozenset[BinaryOp] = frozenset({BinaryOp.AND, BinaryOp.OR})


# ---------------------------------------------------------------------------
# Node types
# ---------------------------------------------------------------------------


class _Node(BaseModel):
    """Shared config: immutable, no unknown keys, optional declared kind."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    value_kind: ValueKind | None = None


class ConstantNode(_Node):
    """A literal value, or a collection of values for membership checks."""

    kind: Literal["constant"] = "constant"
    value: Any = None

    @field_validator("value", mode="before")
    @classmethod
    def _freeze_collections(cls, v: Any) -> Any:
        if isinstance(v, list):
            return tuple(v)
        if isinstance(v, (set, frozenset)):
            return tuple(sorted(v, key=repr))
        return v

    @property
    def is_collection(self) -> bool:
        return isinstance(self.value, tuple)


class ColumnNode(_Node):
    """A reference to a mapped column by logical (or physical) name."""

    kind: Literal["column"] = "column"
    name: str


class ParameterNode(_Node):
    """A caller-named bind parameter, rendered with the dialect prefix."""

    kind: Literal["parameter"] = "parameter"
    name: str


class UnaryNode(_Node):
    kind: Literal["unary"] = "unary"
    op: UnaryOp
    operand: ExpressionNode


class BinaryNode(_Node):
    kind: Literal["binary"] = "binary"
    op: BinaryOp
    left: ExpressionNode
    right: ExpressionNode


class MethodCallNode(_Node):
    """A method or function call.

    ``target`` is the receiver (``None`` for static math functions);
    ``method`` is matched case-insensitively, and PascalCase names such as
    ``StartsWith`` are accepted.
    """

    kind: Literal["method"] = "method"
    method: str
    target: ExpressionNode | None = None
    args: tuple[ExpressionNode, ...] = Field(default_factory=tuple)


class ConditionalNode(_Node):
    """A ternary: ``test ? if_true : if_false``."""

    kind: Literal["conditional"] = "conditional"
    test: ExpressionNode
    if_true: ExpressionNode
    if_false: ExpressionNode


class CoalesceNode(_Node):
    """Null-coalescing: ``left ?? right``."""

    kind: Literal["coalesce"] = "coalesce"
    left: ExpressionNode
    right: ExpressionNode


class AggregateNode(_Node):
    """An aggregate call.

    ``COUNT`` without an argument is ``COUNT(*)``; with a ``predicate`` it
    counts matching rows.  ``separator`` only applies to ``STRING_AGG``.
    """

    kind: Literal["aggregate"] = "aggregate"
    func: AggregateFunc
    argument: ExpressionNode | None = None
    predicate: ExpressionNode | None = None
    distinct: bool = False
    separator: str = ","


class CastNode(_Node):
    """Explicit conversion to a logical type (``'int'``, ``'string'``, ...)."""

    kind: Literal["cast"] = "cast"
    operand: ExpressionNode
    target_type: str


class ProjectionMember(BaseModel):
    """One ``expr AS alias`` item of a :class:`NewNode`."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    alias: str
    expr: ExpressionNode


class NewNode(_Node):
    """A projection building a new row shape from named members."""

    kind: Literal["new"] = "new"
    members: tuple[ProjectionMember, ...]


# ---------------------------------------------------------------------------
# Discriminated union
# ---------------------------------------------------------------------------

_NODE_TYPES: dict[str, type[_Node]] = {
    "constant": ConstantNode,
    "column": ColumnNode,
    "parameter": ParameterNode,
    "unary": UnaryNode,
    "binary": BinaryNode,
    "method": MethodCallNode,
    "conditional": ConditionalNode,
    "coalesce": CoalesceNode,
    "aggregate": AggregateNode,
    "cast": CastNode,
    "new": NewNode,
}


def _node_discriminator(v: Any) -> str | None:
    """Return the tag for the Pydantic discriminated union."""
    if isinstance(v, dict):
        return v.get("kind")
    return getattr(v, "kind", None)


ExpressionNode = Annotated[
    Annotated[ConstantNode, Tag("constant")]
    | Annotated[ColumnNode, Tag("column")]
    | Annotated[ParameterNode, Tag("parameter")]
    | Annotated[UnaryNode, Tag("unary")]
    | Annotated[BinaryNode, Tag("binary")]
    | Annotated[MethodCallNode, Tag("method")]
    | Annotated[ConditionalNode, Tag("conditional")]
    | Annotated[CoalesceNode, Tag("coalesce")]
    | Annotated[AggregateNode, Tag("aggregate")]
    | Annotated[CastNode, Tag("cast")]
    | Annotated[NewNode, Tag("new")],
    Discriminator(_node_discriminator),
]

# Resolve forward references in recursive types.
for _model in (*_NODE_TYPES.values(), ProjectionMember):
    _model.model_rebuild()

#: Parse a raw dict into a typed node at any call site.
NODE_ADAPTER: TypeAdapter[ExpressionNode] = TypeAdapter(ExpressionNode)


def is_node(v: Any) -> bool:
    """True when ``v`` is already a typed expression node."""
    return isinstance(v, _Node)


def to_node(v: dict | ExpressionNode) -> ExpressionNode:
    """Convert a raw node dict to a typed node, or return it as-is."""
    if is_node(v):
        return v
    return NODE_ADAPTER.validate_python(v)


def iter_children(node: ExpressionNode) -> Iterable[ExpressionNode]:
    """Yield the direct child nodes of ``node`` in evaluation order."""
    if isinstance(node, UnaryNode):
        yield node.operand
    elif isinstance(node, (BinaryNode, CoalesceNode)):
        yield node.left
        yield node.right
    elif isinstance(node, MethodCallNode):
        if node.target is not None:
            yield node.target
        yield from node.args
    elif isinstance(node, ConditionalNode):
        yield node.test
        yield node.if_true
        yield node.if_false
    elif isinstance(node, AggregateNode):
        if node.argument is not None:
            yield node.argument
        if node.predicate is not None:
            yield node.predicate
    elif isinstance(node, CastNode):
        yield node.operand
    elif isinstance(node, NewNode):
        for member in node.members:
            yield member.expr
