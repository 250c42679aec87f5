"""Operator strategies for nested filter requests.

Each strategy turns a validated ``(column, values)`` pair into exactly one SQLAlchemy
predicate built from bound parameters. Strategies never interpolate values into SQL.

Features:
    Equality and ordering comparisons, set membership, ranges, escaped pattern
    matching, null checks, and case-sensitive variants that defeat case-insensitive
    collations on every supported dialect.

Note:
    All strategies implement :class:`OperatorStrategy`. When an operator receives
    several values the resulting clauses are combined with ``AND`` unless the
    operator defines its own combination (``$in``, ``$between``).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Literal, Optional, Union, cast

from sqlalchemy import ColumnElement, LargeBinary, String, and_, literal, not_, or_, type_coerce
from sqlalchemy import cast as sql_cast
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import operators as op
from sqlalchemy.sql.compiler import SQLCompiler
from sqlalchemy.sql.visitors import InternalTraversal
from sqlalchemy.types import Boolean

from sieve_alchemy.exceptions import FieldNotSupportedError, InvalidOperatorValueError
from sieve_alchemy.schema import filterable_fields

if TYPE_CHECKING:
    from sqlalchemy.orm import InstrumentedAttribute

    from sieve_alchemy.query import FilterQuery

__all__ = (
    "DEFAULT_STRATEGIES",
    "BetweenOperator",
    "CaseSensitiveMatch",
    "ContainsCaseSensitiveOperator",
    "ContainsOperator",
    "EndsWithCaseSensitiveOperator",
    "EndsWithOperator",
    "EqualCaseSensitiveOperator",
    "EqualOperator",
    "GreaterThanOperator",
    "GreaterThanOrEqualOperator",
    "InOperator",
    "LessThanOperator",
    "LessThanOrEqualOperator",
    "NotBetweenOperator",
    "NotContainsCaseSensitiveOperator",
    "NotContainsOperator",
    "NotEqualOperator",
    "NotInOperator",
    "NotNullOperator",
    "NullOperator",
    "OperatorStrategy",
    "StartsWithCaseSensitiveOperator",
    "StartsWithOperator",
)

MatchMode = Literal["exact", "contains", "startswith", "endswith"]


class CaseSensitiveMatch(ColumnElement[bool]):
    """A byte-exact comparison of a column against a string value.

    Compiles to the idiom each dialect needs to ignore a case-insensitive column
    collation: ``COLLATE BINARY`` / ``GLOB`` on SQLite, ``CAST(... AS BINARY)`` on
    MySQL and MariaDB, a binary collation on SQL Server, and plain ``=`` / ``LIKE``
    where those are already case-sensitive.

    The value, its ``LIKE`` pattern and its ``GLOB`` pattern are bound parameters that
    take part in the statement cache key, so a cached compilation is reused with the
    values of each new statement.
    """

    type = Boolean()
    inherit_cache = False
    _traverse_internals = [
        ("column", InternalTraversal.dp_clauseelement),
        ("value_param", InternalTraversal.dp_clauseelement),
        ("like_param", InternalTraversal.dp_clauseelement),
        ("glob_param", InternalTraversal.dp_clauseelement),
        ("mode", InternalTraversal.dp_string),
        ("negate", InternalTraversal.dp_boolean),
    ]

    def __init__(
        self, column: "ColumnElement[Any]", value: str, mode: MatchMode = "exact", negate: bool = False
    ) -> None:
        self.column = column.__clause_element__() if hasattr(column, "__clause_element__") else column
        self.value = value
        self.mode = mode
        self.negate = negate
        self.value_param = literal(value, String)
        self.like_param = literal(self.like_pattern(), String)
        self.glob_param = literal(self.glob_pattern(), String)

    @property
    def _from_objects(self) -> "list[Any]":
        return self.column._from_objects  # pyright: ignore[reportPrivateUsage]

    def finalize(self, clause: ColumnElement[bool]) -> ColumnElement[bool]:
        return not_(clause) if self.negate else clause

    def like_pattern(self) -> str:
        """Translate the value into a ``LIKE`` pattern escaped with ``/``."""
        escaped = self.value.replace("/", "//").replace("%", "/%").replace("_", "/_")
        if self.mode == "contains":
            return f"%{escaped}%"
        if self.mode == "startswith":
            return f"{escaped}%"
        return f"%{escaped}"

    def like_clause(self, column: "ColumnElement[Any]") -> ColumnElement[bool]:
        """Build an ``=`` or escaped ``LIKE`` clause for ``column``."""
        if self.mode == "exact":
            return self.finalize(cast("ColumnElement[bool]", column == self.value_param))
        return self.finalize(column.like(self.like_param, escape="/"))

    def glob_pattern(self) -> str:
        """Translate the value into a SQLite ``GLOB`` pattern."""
        escaped = "".join(f"[{char}]" if char in "*?[" else char for char in self.value)
        if self.mode == "contains":
            return f"*{escaped}*"
        if self.mode == "startswith":
            return f"{escaped}*"
        return f"*{escaped}"


@compiles(CaseSensitiveMatch)
def compile_case_sensitive_default(element: CaseSensitiveMatch, compiler: SQLCompiler, **kwargs: Any) -> str:
    """Default compilation - ``=`` and ``LIKE`` compare case-sensitively."""
    return compiler.process(element.like_clause(element.column), **kwargs)


@compiles(CaseSensitiveMatch, "sqlite")
def compile_case_sensitive_sqlite(element: CaseSensitiveMatch, compiler: SQLCompiler, **kwargs: Any) -> str:
    """Compile for SQLite, where ``LIKE`` ignores case for ASCII characters."""
    if element.mode == "exact":
        clause = cast("ColumnElement[bool]", element.column.collate("BINARY") == element.value_param)
    else:
        clause = element.column.op("GLOB", is_comparison=True)(element.glob_param)
    return compiler.process(element.finalize(clause), **kwargs)


@compiles(CaseSensitiveMatch, "mysql")
@compiles(CaseSensitiveMatch, "mariadb")
def compile_case_sensitive_mysql(element: CaseSensitiveMatch, compiler: SQLCompiler, **kwargs: Any) -> str:
    """Compile for MySQL and MariaDB by comparing the binary representation."""
    binary = type_coerce(sql_cast(element.column, LargeBinary), String)
    return compiler.process(element.like_clause(binary), **kwargs)


@compiles(CaseSensitiveMatch, "mssql")
def compile_case_sensitive_mssql(element: CaseSensitiveMatch, compiler: SQLCompiler, **kwargs: Any) -> str:
    """Compile for SQL Server using a binary collation."""
    return compiler.process(element.like_clause(element.column.collate("Latin1_General_BIN")), **kwargs)


def _combine(clauses: "list[ColumnElement[bool]]") -> ColumnElement[bool]:
    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)


@dataclass
class OperatorStrategy(ABC):
    """Abstract base class for operator strategies.

    A strategy is constructed with the attribute name of the terminal column and the
    list of values supplied in the request, and builds one predicate against a model.
    """

    column: str
    """Attribute name of the column on the model being filtered."""
    values: "list[Any]" = field(default_factory=list)
    """Values supplied for the operator."""

    operator: ClassVar[str]
    """Operator token detected in filter requests."""
    min_values: ClassVar[int] = 1
    max_values: ClassVar[Optional[int]] = None

    def __post_init__(self) -> None:
        if len(self.values) < self.min_values:
            msg = f"expected at least {self.min_values} value(s), got {len(self.values)}"
            raise InvalidOperatorValueError(self.operator, msg)
        if self.max_values is not None and len(self.values) > self.max_values:
            msg = f"expected at most {self.max_values} value(s), got {len(self.values)}"
            raise InvalidOperatorValueError(self.operator, msg)

    def get_attribute(self, model: Any) -> "InstrumentedAttribute[Any]":
        """Return the attribute :attr:`column` names on ``model``.

        Raises:
            FieldNotSupportedError: If ``model`` does not map :attr:`column`.
        """
        if self.column not in sa_inspect(model).all_orm_descriptors:
            raise FieldNotSupportedError(self.column, model.__name__, filterable_fields(model))
        return cast("InstrumentedAttribute[Any]", getattr(model, self.column))

    @abstractmethod
    def get_clause(self, model: Any) -> ColumnElement[bool]:
        """Build the predicate for ``model``.

        Args:
            model: The SQLAlchemy model class owning :attr:`column`.

        Returns:
            ColumnElement[bool]: The predicate to append to a query.
        """

    def __call__(self, query: "FilterQuery") -> "FilterQuery":
        """Append the predicate to ``query``.

        Args:
            query: Query handle scoped to the model owning :attr:`column`.

        Returns:
            FilterQuery: The same query handle.
        """
        return query.where(self.get_clause(query.model))


class ValueComparisonStrategy(OperatorStrategy):
    """Compares the column with every value and ANDs the results."""

    @staticmethod
    @abstractmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]: ...

    def get_clause(self, model: Any) -> ColumnElement[bool]:
        attribute = self.get_attribute(model)
        return _combine([self.compare(attribute, value) for value in self.values])


class TextComparisonStrategy(ValueComparisonStrategy):
    """Value comparison restricted to string values."""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not all(isinstance(value, str) for value in self.values):
            raise InvalidOperatorValueError(self.operator, "only string values are supported")


@dataclass
class EqualOperator(ValueComparisonStrategy):
    operator: ClassVar[str] = "$eq"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op.eq(attribute, value))


@dataclass
class EqualCaseSensitiveOperator(TextComparisonStrategy):
    """Byte-exact equality, even when the column collation ignores case."""

    operator: ClassVar[str] = "$eqc"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return CaseSensitiveMatch(attribute, value)


@dataclass
class NotEqualOperator(ValueComparisonStrategy):
    operator: ClassVar[str] = "$ne"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op.ne(attribute, value))


@dataclass
class LessThanOperator(ValueComparisonStrategy):
    operator: ClassVar[str] = "$lt"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op.lt(attribute, value))


@dataclass
class LessThanOrEqualOperator(ValueComparisonStrategy):
    operator: ClassVar[str] = "$lte"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op.le(attribute, value))


@dataclass
class GreaterThanOperator(ValueComparisonStrategy):
    operator: ClassVar[str] = "$gt"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op.gt(attribute, value))


@dataclass
class GreaterThanOrEqualOperator(ValueComparisonStrategy):
    operator: ClassVar[str] = "$gte"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op.ge(attribute, value))


@dataclass
class ContainsOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$contains"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return attribute.icontains(value, autoescape=True)


@dataclass
class NotContainsOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$notContains"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return not_(attribute.icontains(value, autoescape=True))


@dataclass
class ContainsCaseSensitiveOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$containsc"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return CaseSensitiveMatch(attribute, value, "contains")


@dataclass
class NotContainsCaseSensitiveOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$notContainsc"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return CaseSensitiveMatch(attribute, value, "contains", negate=True)


@dataclass
class StartsWithOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$startsWith"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return attribute.istartswith(value, autoescape=True)


@dataclass
class StartsWithCaseSensitiveOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$startsWithc"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return CaseSensitiveMatch(attribute, value, "startswith")


@dataclass
class EndsWithOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$endsWith"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return attribute.iendswith(value, autoescape=True)


@dataclass
class EndsWithCaseSensitiveOperator(TextComparisonStrategy):
    operator: ClassVar[str] = "$endsWithc"

    @staticmethod
    def compare(attribute: Any, value: Any) -> ColumnElement[bool]:
        return CaseSensitiveMatch(attribute, value, "endswith")


@dataclass
class InOperator(OperatorStrategy):
    """Membership in the whole list of values."""

    operator: ClassVar[str] = "$in"

    def get_clause(self, model: Any) -> ColumnElement[bool]:
        return self.get_attribute(model).in_(self.values)


@dataclass
class NotInOperator(OperatorStrategy):
    operator: ClassVar[str] = "$notIn"

    def get_clause(self, model: Any) -> ColumnElement[bool]:
        return self.get_attribute(model).not_in(self.values)


@dataclass
class BetweenOperator(OperatorStrategy):
    """Inclusive range, ``values[0]`` to ``values[1]``."""

    operator: ClassVar[str] = "$between"
    min_values: ClassVar[int] = 2
    max_values: ClassVar[Optional[int]] = 2

    def get_clause(self, model: Any) -> ColumnElement[bool]:
        lower, upper = self.values
        return self.get_attribute(model).between(lower, upper)


@dataclass
class NotBetweenOperator(BetweenOperator):
    operator: ClassVar[str] = "$notBetween"

    def get_clause(self, model: Any) -> ColumnElement[bool]:
        lower, upper = self.values
        attribute = self.get_attribute(model)
        return or_(attribute < lower, attribute > upper)


def _is_truthy(value: Union[str, bool, int, None]) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in {"0", "false", "no", "off", ""}
    return bool(value)


@dataclass
class NullOperator(OperatorStrategy):
    """``IS NULL``; a false value (``false``, ``"0"``) selects ``IS NOT NULL`` instead."""

    operator: ClassVar[str] = "$null"
    min_values: ClassVar[int] = 0
    max_values: ClassVar[Optional[int]] = 1

    def expects_null(self) -> bool:
        if not self.values or self.values[0] is None:
            return True
        return _is_truthy(self.values[0])

    def get_clause(self, model: Any) -> ColumnElement[bool]:
        attribute = self.get_attribute(model)
        return attribute.is_(None) if self.expects_null() else attribute.is_not(None)


@dataclass
class NotNullOperator(NullOperator):
    operator: ClassVar[str] = "$notNull"

    def expects_null(self) -> bool:
        return not super().expects_null()


DEFAULT_STRATEGIES: "tuple[type[OperatorStrategy], ...]" = (
    EqualOperator,
    EqualCaseSensitiveOperator,
    NotEqualOperator,
    LessThanOperator,
    LessThanOrEqualOperator,
    GreaterThanOperator,
    GreaterThanOrEqualOperator,
    InOperator,
    NotInOperator,
    BetweenOperator,
    NotBetweenOperator,
    ContainsOperator,
    NotContainsOperator,
    ContainsCaseSensitiveOperator,
    NotContainsCaseSensitiveOperator,
    StartsWithOperator,
    StartsWithCaseSensitiveOperator,
    EndsWithOperator,
    EndsWithCaseSensitiveOperator,
    NullOperator,
    NotNullOperator,
)
"""Every built-in strategy, in registration order."""
