"""Type-checked SQL over the JSON ``attributes`` column.

Attribute values are a scalar or a list of scalars. A filter value matches
when the stored value equals it, or when the stored list contains it, and
only values of the same JSON type ever compare. Nothing here casts a
stored value that is not a JSON number, so a type mismatch is no match
rather than a store error.

The expressions compile differently for SQLite (``json_each``/``json_type``)
and PostgreSQL (``json_array_elements``/``json_typeof``).
"""

from typing import Any

from sqlalchemy import Boolean, Float, String, bindparam
from sqlalchemy.exc import CompileError
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.elements import ColumnElement


class AttributeMatch(ColumnElement[bool]):
    """Attribute equals a scalar, or is a list containing it."""

    inherit_cache = False
    type = Boolean()

    def __init__(self, column: ColumnElement[Any], attribute: str, value: Any) -> None:
        self.column = column
        self.attribute = attribute
        self.value = value

    @property
    def _from_objects(self) -> list[Any]:
        return self.column._from_objects


class AttributeNumber(ColumnElement[float]):
    """Numeric attribute value, NULL unless the stored value is a JSON number."""

    inherit_cache = False
    type = Float()

    def __init__(self, column: ColumnElement[Any], attribute: str) -> None:
        self.column = column
        self.attribute = attribute

    @property
    def _from_objects(self) -> list[Any]:
        return self.column._from_objects


def _bind(compiler: Any, value: Any, type_: Any, **kw: Any) -> str:
    return compiler.process(bindparam(None, value, type_=type_), **kw)


def _json_path(key: str) -> str:
    return f'$."{key}"'


# ============================================================================
# SQLite
# ============================================================================


@compiles(AttributeMatch, "sqlite")
def _sqlite_match(element: AttributeMatch, compiler: Any, **kw: Any) -> str:
    column = compiler.process(element.column, **kw)
    path = _bind(compiler, _json_path(element.attribute), String(), **kw)
    value = element.value

    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        condition = f"m.type = '{'true' if value else 'false'}'"
    elif isinstance(value, (int, float)):
        number = _bind(compiler, float(value), Float(), **kw)
        condition = f"m.type IN ('integer', 'real') AND m.value = {number}"
    else:
        text = _bind(compiler, str(value), String(), **kw)
        condition = f"m.type = 'text' AND m.value = {text}"

    # json_each walks list elements, or yields a scalar as its only row
    return (
        f"(json_type({column}, {path}) <> 'object' AND EXISTS "
        f"(SELECT 1 FROM json_each({column}, {path}) AS m WHERE {condition}))"
    )


@compiles(AttributeNumber, "sqlite")
def _sqlite_number(element: AttributeNumber, compiler: Any, **kw: Any) -> str:
    column = compiler.process(element.column, **kw)
    path = _bind(compiler, _json_path(element.attribute), String(), **kw)
    return (
        f"(CASE WHEN json_type({column}, {path}) IN ('integer', 'real') "
        f"THEN json_extract({column}, {path}) END)"
    )


# ============================================================================
# PostgreSQL
# ============================================================================


@compiles(AttributeMatch, "postgresql")
def _postgresql_match(element: AttributeMatch, compiler: Any, **kw: Any) -> str:
    column = compiler.process(element.column, **kw)
    key = _bind(compiler, element.attribute, String(), **kw)
    value = element.value
    stored = f"({column} -> {key})"

    if isinstance(value, bool):
        condition = (
            f"json_typeof(m.v) = 'boolean' AND m.v #>> '{{}}' = '{'true' if value else 'false'}'"
        )
    elif isinstance(value, (int, float)):
        number = _bind(compiler, float(value), Float(), **kw)
        # CASE keeps the cast away from non-numbers
        condition = (
            f"CASE WHEN json_typeof(m.v) = 'number' "
            f"THEN CAST(m.v #>> '{{}}' AS DOUBLE PRECISION) = {number} ELSE false END"
        )
    else:
        text = _bind(compiler, str(value), String(), **kw)
        condition = f"json_typeof(m.v) = 'string' AND m.v #>> '{{}}' = {text}"

    return (
        f"EXISTS (SELECT 1 FROM json_array_elements("
        f"CASE json_typeof({stored}) WHEN 'array' THEN {stored} "
        f"ELSE json_build_array({stored}) END) AS m(v) WHERE {condition})"
    )


@compiles(AttributeNumber, "postgresql")
def _postgresql_number(element: AttributeNumber, compiler: Any, **kw: Any) -> str:
    column = compiler.process(element.column, **kw)
    key = _bind(compiler, element.attribute, String(), **kw)
    return (
        f"(CASE WHEN json_typeof({column} -> {key}) = 'number' "
        f"THEN CAST({column} ->> {key} AS DOUBLE PRECISION) END)"
    )


@compiles(AttributeMatch)
@compiles(AttributeNumber)
def _unsupported(element: Any, compiler: Any, **kw: Any) -> str:
    raise CompileError(f"JSON attribute queries are not supported on {compiler.dialect.name}")
