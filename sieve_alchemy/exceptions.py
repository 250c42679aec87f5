# ruff: noqa: UP007
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

__all__ = (
    "FieldNotSupportedError",
    "FilterValidationError",
    "ImproperConfigurationError",
    "InvalidOperatorValueError",
    "MissingDependencyError",
    "NoOperatorMatchError",
    "OperatorNotSupportedError",
    "SieveAlchemyError",
)


def _join(values: Iterable[str]) -> str:
    return ", ".join(sorted(values))


class SieveAlchemyError(Exception):
    """Base exception class from which all Sieve Alchemy exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SieveAlchemyError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class MissingDependencyError(SieveAlchemyError, ImportError):
    """Missing optional dependency.

    This exception is raised when a module depends on a dependency that has not been installed.

    Args:
        package: Name of the missing package.
        install_package: Optional alternative package name to install.
    """

    def __init__(self, package: str, install_package: str | None = None) -> None:
        super().__init__(
            f"Package {package!r} is not installed but required. You can install it by running "
            f"'pip install sieve_alchemy[{install_package or package}]' to install sieve_alchemy with the required extra "
            f"or 'pip install {install_package or package}' to install the package separately",
        )


class ImproperConfigurationError(SieveAlchemyError):
    """Improper Configuration error.

    This exception is raised when there is an issue with the configuration of a module,
    such as registering an operator strategy twice or declaring an unknown generic relation target.
    """


class FilterValidationError(SieveAlchemyError):
    """Base class for errors caused by an invalid filter request.

    These never represent a storage or connectivity fault. In silent mode the resolver
    swallows them and skips the offending field.
    """


class NoOperatorMatchError(FilterValidationError):
    """No recognizable operator was found anywhere in a filter expression.

    Args:
        available_operators: The operator tokens that would have been accepted.
    """

    def __init__(self, available_operators: Iterable[str]) -> None:
        self.available_operators = sorted(available_operators)
        super().__init__(
            detail="Filter expression does not contain a valid operator. "
            f"Available operators: {_join(self.available_operators)}"
        )


class FieldNotSupportedError(FilterValidationError):
    """A field is not declared filterable on the model being resolved.

    Args:
        field: The requested field name.
        model: Name of the model the field was looked up on.
        available_fields: The fields the model declares as filterable.
    """

    def __init__(self, field: str, model: str, available_fields: Iterable[str]) -> None:
        self.field = field
        self.model = model
        self.available_fields = sorted(available_fields)
        super().__init__(
            detail=f"Field {field!r} is not filterable on {model}. Available fields: {_join(self.available_fields)}"
        )


class OperatorNotSupportedError(FilterValidationError):
    """An operator is known but not allowed for a specific field.

    Args:
        field: The field being filtered.
        operator: The rejected operator token.
        available_operators: The operator tokens allowed for ``field``.
        model: Name of the model declaring ``field``.
    """

    def __init__(
        self, field: str, operator: str, available_operators: Iterable[str], model: str | None = None
    ) -> None:
        self.field = field
        self.operator = operator
        self.model = model
        self.available_operators = sorted(available_operators)
        super().__init__(
            detail=f"Operator {operator!r} is not allowed for field {field!r}. "
            f"Allowed operators: {_join(self.available_operators)}"
        )


class InvalidOperatorValueError(FilterValidationError):
    """An operator received values it cannot build a predicate from.

    Args:
        operator: The operator token.
        reason: What was wrong with the values.
    """

    def __init__(self, operator: str, reason: str) -> None:
        self.operator = operator
        super().__init__(detail=f"Invalid values for operator {operator!r}: {reason}")
