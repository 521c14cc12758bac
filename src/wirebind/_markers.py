from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, TypeVar, get_args, get_origin, overload

from ._key import DEFAULT_NAME


if TYPE_CHECKING:
    from collections.abc import Callable

    F = TypeVar("F", bound=Callable[..., Any])

_MARKER_ATTR = "__wirebind_inject__"


@dataclass(frozen=True)
class Inject:
    """Injection marker.

    Used as ``Annotated`` metadata on fields and parameters, and attached to
    constructors and methods by the `inject` decorator.

    `required` applies only to fields and methods; constructor parameters are
    always required.
    """

    name: str = DEFAULT_NAME
    required: bool = True


@overload
def inject(name: F) -> F: ...


@overload
def inject(name: str = ..., *, required: bool = ...) -> Callable[[F], F]: ...


def inject(name: Any = DEFAULT_NAME, *, required: bool = True) -> Any:
    """Mark a constructor or method for injection.

    Example:
      class Engine:
          @inject()
          def __init__(self, wheel: Wheel): ...

          @inject("fast", required=False)
          def set_turbo(self, turbo: Turbo): ...

    """
    if callable(name) or isinstance(name, (classmethod, staticmethod)):
        return _mark(name, Inject())

    marker = Inject(name=name, required=required)

    def decorator(member: F) -> F:
        return _mark(member, marker)

    return decorator


def _mark(member: Any, marker: Inject) -> Any:
    target = member.__func__ if isinstance(member, (classmethod, staticmethod)) else member
    setattr(target, _MARKER_ATTR, marker)
    return member


def marker_of(member: object) -> Inject | None:
    """Return the marker attached to a function, classmethod or staticmethod."""
    if isinstance(member, (classmethod, staticmethod)):
        member = member.__func__
    marker = getattr(member, _MARKER_ATTR, None)
    return marker if isinstance(marker, Inject) else None


def split_annotated(hint: object) -> tuple[object, Inject | None]:
    """Unwrap ``Annotated[T, Inject(...)]`` into ``(T, marker)``."""
    if get_origin(hint) is not Annotated:
        return hint, None

    base, *metadata = get_args(hint)
    for item in metadata:
        if isinstance(item, Inject):
            return base, item
    return base, None
