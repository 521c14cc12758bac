"""Reflection-driven dependency injection container.

This package resolves object graphs from an immutable registry of named,
typed factories. It supports constructor, field and method injection, breaks
circular dependencies between interface-typed bindings with deferred proxies,
and keeps in-progress construction state per thread.

Exports:
- `ContainerBuilder`: collects bindings and creates a `Container`.
- `Container`: `inject`, `get_instance`, `get_instance_names` and the
  per-thread scope strategy setters.
- `Inject` / `inject`: the injection marker, as ``Annotated`` metadata or as a
  decorator for constructors and methods.
- `Key`, `Scope`, `ScopeStrategy` and the factory types.
- `DependencyError` and its subclasses.
"""

from ._container import Container, ContainerBuilder
from ._context import ExternalContext
from ._errors import (
    AmbiguousConstructorError,
    DependencyError,
    InjectionError,
    MissingDependencyError,
    NoSuitableConstructorError,
    ScopeStrategyError,
    UnproxyableCycleError,
)
from ._factories import ConstantFactory, ConstructingFactory, CustomFactory, Factory
from ._key import DEFAULT_NAME, Key
from ._markers import Inject, inject
from ._proxy import is_proxy
from ._scope import Scope, ScopeStrategy


__all__ = [
    "DEFAULT_NAME",
    "AmbiguousConstructorError",
    "ConstantFactory",
    "ConstructingFactory",
    "Container",
    "ContainerBuilder",
    "CustomFactory",
    "DependencyError",
    "ExternalContext",
    "Factory",
    "Inject",
    "InjectionError",
    "Key",
    "MissingDependencyError",
    "NoSuitableConstructorError",
    "Scope",
    "ScopeStrategy",
    "ScopeStrategyError",
    "UnproxyableCycleError",
    "inject",
    "is_proxy",
]
