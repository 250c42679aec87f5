import inspect
from collections.abc import Iterable, Iterator
from typing import Optional

from sieve_alchemy.exceptions import ImproperConfigurationError
from sieve_alchemy.operators import DEFAULT_STRATEGIES, OperatorStrategy

__all__ = ("OperatorRegistry", "default_registry")


class OperatorRegistry:
    """Maps operator tokens to the strategy classes that implement them.

    The registry is populated once at start-up and only read while filters are
    resolved. Strategies are checked when they are registered, so a resolution never
    meets a token without a usable strategy.
    """

    def __init__(self, strategies: "Iterable[type[OperatorStrategy]]" = ()) -> None:
        self._registry: dict[str, type[OperatorStrategy]] = {}
        for strategy in strategies:
            self.register(strategy)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and token in self._registry

    def __iter__(self) -> Iterator[str]:
        return iter(self._registry)

    def __len__(self) -> int:
        return len(self._registry)

    def register(
        self, strategy: "type[OperatorStrategy]", token: Optional[str] = None, replace: bool = False
    ) -> None:
        """Register an operator strategy.

        Args:
            strategy: A concrete :class:`OperatorStrategy` subclass.
            token: Token to register the strategy under. Defaults to ``strategy.operator``.
            replace: Allow overriding a token that is already registered.

        Raises:
            ImproperConfigurationError: If the strategy is not a concrete strategy class,
                has no token, or the token is already registered.
        """
        if not (isinstance(strategy, type) and issubclass(strategy, OperatorStrategy)):
            msg = f"{strategy!r} is not an OperatorStrategy subclass"
            raise ImproperConfigurationError(msg)
        if inspect.isabstract(strategy):
            msg = f"{strategy.__name__} does not implement every abstract method of OperatorStrategy"
            raise ImproperConfigurationError(msg)
        token = token if token is not None else getattr(strategy, "operator", None)
        if not isinstance(token, str) or not token:
            msg = f"{strategy.__name__} does not declare an operator token"
            raise ImproperConfigurationError(msg)
        if token in self._registry and not replace:
            msg = f'Operator "{token}" is already registered to {self._registry[token].__name__}'
            raise ImproperConfigurationError(msg)
        self._registry[token] = strategy

    def unregister(self, token: str) -> None:
        """Unregister an operator token."""
        if token in self._registry:
            del self._registry[token]

    def resolve(self, token: str) -> "Optional[type[OperatorStrategy]]":
        """Return the strategy registered for ``token``, if any."""
        return self._registry.get(token)

    def get_strategy(self, token: str) -> "type[OperatorStrategy]":
        """Retrieve the strategy registered for ``token``.

        Raises:
            ImproperConfigurationError: If no strategy is registered with the given token.
        """
        try:
            return self._registry[token]
        except KeyError as e:
            msg = f'No operator strategy registered with token "{token}"'
            raise ImproperConfigurationError(msg) from e

    def known_tokens(self) -> frozenset[str]:
        """Return every registered token."""
        return frozenset(self._registry)

    def copy(self) -> "OperatorRegistry":
        """Return an independent registry with the same strategies."""
        registry = OperatorRegistry()
        registry._registry = dict(self._registry)
        return registry


default_registry = OperatorRegistry(DEFAULT_STRATEGIES)
