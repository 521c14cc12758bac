from __future__ import annotations


class DependencyError(RuntimeError):
    """Fatal configuration or resolution failure."""


class MissingDependencyError(DependencyError):
    """No factory is registered for a requested key."""


class AmbiguousConstructorError(DependencyError):
    pass


class NoSuitableConstructorError(DependencyError):
    pass


class UnproxyableCycleError(DependencyError):
    """A circular dependency was found but the requested type cannot be proxied."""


class InjectionError(DependencyError):
    """User code raised while a constructor, method or attribute was being invoked."""


class ScopeStrategyError(DependencyError):
    pass
