from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from ._errors import DependencyError, InjectionError


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._context import ExternalContext, ResolutionContext


class Factory(Protocol):
    """Produces, or returns a cached, instance for one key."""

    def create(self, context: ResolutionContext) -> Any: ...


class ConstantFactory:
    def __init__(self, value: object) -> None:
        self.value = value

    def create(self, context: ResolutionContext) -> Any:
        return self.value

    def __repr__(self) -> str:
        return f"ConstantFactory({self.value!r})"


class ConstructingFactory:
    """Builds `implementation` through its constructor plan.

    `type` is the type the binding was requested as; it is what a cycle proxy
    has to stand in for.
    """

    def __init__(self, type: type, implementation: type | None = None) -> None:
        self.type = type
        self.implementation = implementation or type

    def create(self, context: ResolutionContext) -> Any:
        plan = context.container.get_constructor(self.implementation)
        return plan.construct(context, self.type)

    def __repr__(self) -> str:
        return f"ConstructingFactory({self.type.__qualname__} -> {self.implementation.__qualname__})"


class CustomFactory:
    """Delegates to a user callable receiving the current `ExternalContext`."""

    def __init__(self, fn: Callable[[ExternalContext], object]) -> None:
        self.fn = fn

    def create(self, context: ResolutionContext) -> Any:
        external = context.external_context
        try:
            return self.fn(external)  # type: ignore[arg-type]
        except DependencyError:
            raise
        except Exception as e:
            msg = f"Custom factory {self.fn!r} raised while resolving {context.describe_site()}: {e}"
            raise InjectionError(msg) from e

    def __repr__(self) -> str:
        return f"CustomFactory({self.fn!r})"
