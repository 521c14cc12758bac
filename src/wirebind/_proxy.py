from __future__ import annotations

import functools
import inspect
import types
import typing
from typing import Any, Protocol, cast

from ._errors import DependencyError, UnproxyableCycleError


_DELEGATE = "_wirebind_delegate"
_LABEL = "_wirebind_label"
_UNSET: Any = object()

_NOT_FORWARDED = frozenset(
    {
        "__init__",
        "__new__",
        "__init_subclass__",
        "__subclasshook__",
        "__class_getitem__",
        "__getattr__",
        "__getattribute__",
        "__setattr__",
        "__delattr__",
        "__repr__",
    }
)


class DeferredProxy:
    """Stand-in for an instance whose construction is still in progress.

    Every attribute access is forwarded to the delegate, which is set exactly
    once when the real instance has been allocated.
    """

    def __getattr__(self, name: str) -> Any:
        return getattr(_resolve(self), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(_resolve(self), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(_resolve(self), name)

    def __repr__(self) -> str:
        return f"<{_state(self)[1]} proxy>"


def _state(proxy: object) -> tuple[Any, str]:
    namespace = object.__getattribute__(proxy, "__dict__")
    return namespace[_DELEGATE], namespace[_LABEL]


def _resolve(proxy: object) -> Any:
    delegate, label = _state(proxy)
    if delegate is _UNSET:
        msg = f"{label} proxy was used before its delegate finished construction."
        raise DependencyError(msg)
    return delegate


def is_proxy(obj: object) -> bool:
    return isinstance(obj, DeferredProxy)


def set_delegate(proxy: object, delegate: object) -> None:
    namespace = object.__getattribute__(proxy, "__dict__")
    if namespace[_DELEGATE] is not _UNSET:
        msg = f"{namespace[_LABEL]} proxy already has a delegate."
        raise DependencyError(msg)
    namespace[_DELEGATE] = delegate


def is_proxyable(tp: object) -> bool:
    """Only interface-like types (protocols and abstract classes) can be proxied."""
    return inspect.isclass(tp) and (is_protocol(tp) or inspect.isabstract(tp))


def ensure_proxyable(expected_type: type, implementation: type) -> None:
    if not is_proxyable(expected_type):
        msg = (
            f"Circular dependency while constructing {implementation.__qualname__}: "
            f"{getattr(expected_type, '__qualname__', expected_type)!r} is not a Protocol or abstract class "
            "and cannot be proxied."
        )
        raise UnproxyableCycleError(msg)


def create_proxy(expected_type: type, implementation: type) -> object:
    ensure_proxyable(expected_type, implementation)
    proxy = object.__new__(_proxy_class(expected_type))
    namespace = object.__getattribute__(proxy, "__dict__")
    namespace[_DELEGATE] = _UNSET
    namespace[_LABEL] = f"{expected_type.__qualname__}({implementation.__qualname__})"
    return proxy


@functools.lru_cache(maxsize=None)
def _proxy_class(expected_type: type) -> type:
    namespace: dict[str, Any] = {}

    for klass in reversed(expected_type.__mro__):
        if klass in (object, typing.Generic, Protocol):
            continue
        for name, value in vars(klass).items():
            if name in _NOT_FORWARDED:
                continue
            if inspect.isfunction(value):
                namespace[name] = _forward_method(name)
            elif isinstance(value, property):
                namespace[name] = _forward_property(name)

    # abstract classmethods/staticmethods would otherwise block instantiation
    for name in getattr(expected_type, "__abstractmethods__", ()):
        namespace.setdefault(name, _forward_method(name))

    return types.new_class(
        f"{expected_type.__name__}Proxy",
        (DeferredProxy, expected_type),
        exec_body=lambda ns: ns.update(namespace),
    )


def _forward_method(name: str) -> Any:
    def forward(self: object, *args: Any, **kwargs: Any) -> Any:
        return getattr(_resolve(self), name)(*args, **kwargs)

    forward.__name__ = name
    return forward


def _forward_property(name: str) -> property:
    def fget(self: object) -> Any:
        return getattr(_resolve(self), name)

    def fset(self: object, value: Any) -> None:
        setattr(_resolve(self), name, value)

    return property(fget, fset)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def is_protocol(tp: type) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: type) -> bool:
        if not inspect.isclass(tp):
            return False
        return issubclass(tp, cast("type", Protocol)) and bool(getattr(tp, "_is_protocol", False))
