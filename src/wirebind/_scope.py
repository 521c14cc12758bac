from __future__ import annotations

import functools
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._context import ResolutionContext
    from ._factories import Factory
    from ._key import Key

    T = TypeVar("T")


class ScopeStrategy(Protocol):
    """Per-thread policy backing the REQUEST, SESSION and WIZARD scopes.

    Each method returns a cached instance for ``(type, name)`` or calls
    `factory` to create one, and decides itself how long the result lives.
    """

    def find_in_request(self, type: type[T], name: str, factory: Callable[[], T]) -> T: ...

    def find_in_session(self, type: type[T], name: str, factory: Callable[[], T]) -> T: ...

    def find_in_wizard(self, type: type[T], name: str, factory: Callable[[], T]) -> T: ...


class Scope(Enum):
    """Caching policy applied around a binding's factory."""

    DEFAULT = "default"  # new instance per injection
    SINGLETON = "singleton"  # one instance per container
    THREAD = "thread"  # one instance per thread
    REQUEST = "request"
    SESSION = "session"
    WIZARD = "wizard"

    def scope_factory(self, key: Key, factory: Factory, lock: threading.RLock | None = None) -> Factory:
        """Wrap `factory` with this scope.

        Every singleton of one container is created under the same `lock`.
        """
        if self is Scope.DEFAULT:
            return factory
        if self is Scope.SINGLETON:
            return _SingletonFactory(key, factory, lock or threading.RLock())
        if self is Scope.THREAD:
            return _ThreadFactory(key, factory)
        return _StrategyFactory(key, factory, f"find_in_{self.value}")


class _ScopedFactory:
    def __init__(self, key: Key, factory: Factory) -> None:
        self.key = key
        self.factory = factory

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key}, {self.factory!r})"


class _SingletonFactory(_ScopedFactory):
    def __init__(self, key: Key, factory: Factory, lock: threading.RLock) -> None:
        super().__init__(key, factory)
        self._instance: object | None = None
        self._lock = lock

    def create(self, context: ResolutionContext) -> Any:
        with self._lock:
            if self._instance is None:
                self._instance = self.factory.create(context)
            return self._instance


class _ThreadFactory(_ScopedFactory):
    def __init__(self, key: Key, factory: Factory) -> None:
        super().__init__(key, factory)
        self._local = threading.local()

    def create(self, context: ResolutionContext) -> Any:
        instance = getattr(self._local, "instance", None)
        if instance is None:
            instance = self._local.instance = self.factory.create(context)
        return instance


class _StrategyFactory(_ScopedFactory):
    def __init__(self, key: Key, factory: Factory, finder: str) -> None:
        super().__init__(key, factory)
        self._finder = finder

    def create(self, context: ResolutionContext) -> Any:
        find = getattr(context.scope_strategy, self._finder)
        return find(self.key.type, self.key.name, functools.partial(self.factory.create, context))
