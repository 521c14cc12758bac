from __future__ import annotations

import functools
import inspect
import logging
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, get_args, get_origin, get_type_hints

from ._context import ConstructionState, ExternalContext
from ._errors import (
    AmbiguousConstructorError,
    DependencyError,
    InjectionError,
    MissingDependencyError,
    NoSuitableConstructorError,
)
from ._key import Key
from ._markers import Inject, marker_of, split_annotated


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ._container import Container
    from ._context import ResolutionContext
    from ._factories import Factory


logger = logging.getLogger(__name__)

_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


class Injector(Protocol):
    """Applies one field or method injection to an existing instance."""

    def inject(self, context: ResolutionContext, target: object) -> None: ...


class ParameterInjector:
    def __init__(self, external_context: ExternalContext, factory: Factory, keyword: str | None = None) -> None:
        self.external_context = external_context
        self.factory = factory
        # keyword-only parameters are passed by name
        self.keyword = keyword

    def inject(self, context: ResolutionContext) -> Any:
        with context.external(self.external_context):
            return self.factory.create(context)


class FieldInjector:
    def __init__(self, container: Container, owner: type, name: str, field_type: object, marker: Inject) -> None:
        self.name = name
        self.member = f"{owner.__qualname__}.{name}"
        key = Key(field_type, marker.name)  # type: ignore[arg-type]
        self.factory = _require_factory(container, key, self.member)
        self.external_context = ExternalContext(container, key, self.member)

    def inject(self, context: ResolutionContext, target: object) -> None:
        with context.external(self.external_context):
            value = self.factory.create(context)
            try:
                setattr(target, self.name, value)
            except DependencyError:
                raise
            except Exception as e:
                msg = f"Could not set field {self.member}: {e}"
                raise InjectionError(msg) from e

    def __repr__(self) -> str:
        return f"FieldInjector({self.member})"


class MethodInjector:
    def __init__(
        self,
        container: Container,
        owner: type,
        function: Callable[..., Any],
        marker: Inject,
        *,
        static: bool = False,
    ) -> None:
        self.function = function
        self.static = static
        self.member = f"{owner.__qualname__}.{function.__name__}()"
        self.parameter_injectors = _parameter_injectors(
            container, owner, function, self.member, marker.name, skip_first=not static
        )
        if not self.parameter_injectors:
            msg = f"{self.member} has no parameters to inject."
            raise DependencyError(msg)

    def inject(self, context: ResolutionContext, target: object) -> None:
        args, kwargs = _resolve_arguments(context, self.parameter_injectors)
        # the declared function is called directly, so an override in a
        # subclass does not run in place of the base class injection
        if self.static:
            _invoke(self.member, self.function, *args, **kwargs)
        else:
            _invoke(self.member, self.function, target, *args, **kwargs)

    def __repr__(self) -> str:
        return f"MethodInjector({self.member})"


class ConstructorPlan:
    """Cached recipe for building and fully injecting one implementation class."""

    def __init__(self, container: Container, implementation: type) -> None:
        self.implementation = implementation

        name, function, marker = _find_constructor(implementation)
        self.member = f"{implementation.__qualname__}.{name}()"
        self._allocate = implementation if name == "__init__" else getattr(implementation, name)

        if marker is None:
            # no-argument constructor
            self.parameter_injectors: tuple[ParameterInjector, ...] = ()
        else:
            self.parameter_injectors = _parameter_injectors(
                container, implementation, function, self.member, marker.name
            )

        self.injectors = container.get_member_injectors(implementation)

        logger.debug(
            "Built constructor plan for %s: %s with %d parameter(s), %d member injector(s)",
            implementation.__qualname__,
            self.member,
            len(self.parameter_injectors),
            len(self.injectors),
        )

    def construct(self, context: ResolutionContext, expected_type: type) -> Any:
        """Construct an instance; may return a proxy when called re-entrantly."""
        record = context.record_for(self.implementation)

        # re-entered from a member injector, or already built in this context
        reference = record.reference
        if reference is not None:
            return reference

        # circular reference between constructors
        if record.state is ConstructionState.IN_PROGRESS:
            return record.create_proxy(expected_type)

        record.start()
        try:
            args, kwargs = _resolve_arguments(context, self.parameter_injectors)
            instance = _invoke(self.member, self._allocate, *args, **kwargs)
            record.allocated(instance)

            for injector in self.injectors:
                injector.inject(context, instance)

            record.finish(instance)
            return instance
        finally:
            record.current_reference = None
            if record.state is not ConstructionState.FINISHED:
                # a later request in this context constructs again
                context.discard(record)

    def __repr__(self) -> str:
        return f"ConstructorPlan({self.member})"


def collect_member_injectors(container: Container, cls: type) -> tuple[Injector, ...]:
    """Field and method injectors for `cls`, superclasses first."""
    injectors: list[Injector] = []

    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        _add_field_injectors(container, klass, injectors)
        _add_method_injectors(container, klass, injectors)

    return tuple(injectors)


def collect_static_injectors(container: Container, cls: type) -> tuple[Injector, ...]:
    """Injectors for the static fields and staticmethods declared on `cls` itself."""
    injectors: list[Injector] = []

    _add_field_injectors(container, cls, injectors, static=True)
    for value in vars(cls).values():
        marker = marker_of(value) if isinstance(value, staticmethod) else None
        if marker is None:
            continue
        build = functools.partial(MethodInjector, container, cls, value.__func__, marker, static=True)
        _add_member(injectors, marker, build)

    return tuple(injectors)


def _add_field_injectors(
    container: Container, klass: type, injectors: list[Injector], *, static: bool = False
) -> None:
    own = _own_annotations(klass)
    if not own:
        return

    hints = _get_type_hints(klass, klass)
    for name, raw in own.items():
        hint = hints.get(name, raw)
        # static fields are declared as ClassVar[Annotated[T, Inject()]]
        if (get_origin(hint) is ClassVar) != static:
            continue
        if static:
            args = get_args(hint)
            if not args:
                continue
            hint = args[0]
        field_type, marker = split_annotated(hint)
        if marker is None:
            continue
        _add_member(injectors, marker, functools.partial(FieldInjector, container, klass, name, field_type, marker))


def _add_method_injectors(container: Container, klass: type, injectors: list[Injector]) -> None:
    for name, value in vars(klass).items():
        if name == "__init__" or not inspect.isfunction(value):
            continue
        marker = marker_of(value)
        if marker is None:
            continue
        _add_member(injectors, marker, functools.partial(MethodInjector, container, klass, value, marker))


def _add_member(injectors: list[Injector], marker: Inject, build: Callable[[], Injector]) -> None:
    try:
        injectors.append(build())
    except MissingDependencyError as e:
        if marker.required:
            raise
        logger.debug("Skipping optional injection: %s", e)


def _find_constructor(cls: type) -> tuple[str, Callable[..., Any], Inject | None]:
    found: list[tuple[str, Callable[..., Any], Inject]] = []

    for name, value in vars(cls).items():
        if name != "__init__" and not isinstance(value, classmethod):
            continue
        marker = marker_of(value)
        if marker is not None:
            function = value.__func__ if isinstance(value, classmethod) else value
            found.append((name, function, marker))

    if len(found) > 1:
        names = ", ".join(name for name, _, _ in found)
        msg = f"More than one constructor marked with @inject found in {cls.__qualname__}: {names}."
        raise AmbiguousConstructorError(msg)

    if found:
        return found[0]

    init = cls.__init__
    if _takes_no_arguments(init):
        return "__init__", init, None

    msg = f"Could not find a suitable constructor in {cls.__qualname__}."
    inherited = _inherited_marked_init(cls)
    if inherited is not None:
        msg += (
            f" The marked {inherited.__qualname__}.__init__() is inherited and is not used;"
            f" declare a marked __init__ on {cls.__qualname__}."
        )
    raise NoSuitableConstructorError(msg)


def _inherited_marked_init(cls: type) -> type | None:
    if "__init__" in vars(cls):
        return None
    for klass in cls.__mro__[1:]:
        init = vars(klass).get("__init__")
        if init is not None:
            return klass if marker_of(init) is not None else None
    return None


def _takes_no_arguments(init: Callable[..., Any]) -> bool:
    try:
        params = list(inspect.signature(init).parameters.values())[1:]
    except (TypeError, ValueError):
        # builtin slot wrappers without a signature
        return True

    return all(p.kind in _VARIADIC or p.default is not inspect.Parameter.empty for p in params)


def _parameter_injectors(
    container: Container,
    owner: type,
    function: Callable[..., Any],
    member: str,
    default_name: str,
    *,
    skip_first: bool = True,
) -> tuple[ParameterInjector, ...]:
    params = list(inspect.signature(function).parameters.values())
    if skip_first:
        # self or cls
        params = params[1:]
    hints = _get_type_hints(function, owner)

    injectors = []
    for p in params:
        if p.kind in _VARIADIC:
            continue

        hint = hints.get(p.name, p.annotation)
        if hint is inspect.Parameter.empty:
            msg = f"Parameter '{p.name}' of {member} has no type annotation."
            raise DependencyError(msg)

        param_type, marker = split_annotated(hint)
        key = Key(param_type, marker.name if marker else default_name)  # type: ignore[arg-type]
        factory = _require_factory(container, key, member)
        keyword = p.name if p.kind is inspect.Parameter.KEYWORD_ONLY else None
        injectors.append(ParameterInjector(ExternalContext(container, key, member), factory, keyword))

    return tuple(injectors)


def _require_factory(container: Container, key: Key, member: str) -> Factory:
    factory = container.get_factory(key)
    if factory is None:
        msg = f"No mapping found for dependency {key} in {member}."
        raise MissingDependencyError(msg)
    return factory


def _resolve_arguments(
    context: ResolutionContext, injectors: Sequence[ParameterInjector]
) -> tuple[list[Any], dict[str, Any]]:
    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    for injector in injectors:
        value = injector.inject(context)
        if injector.keyword is None:
            args.append(value)
        else:
            kwargs[injector.keyword] = value
    return args, kwargs


def _invoke(member: str, function: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    try:
        return function(*args, **kwargs)
    except DependencyError:
        raise
    except Exception as e:
        msg = f"Error invoking {member}: {e}"
        raise InjectionError(msg) from e


def _own_annotations(klass: type) -> dict[str, Any]:
    try:
        return dict(inspect.get_annotations(klass))
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s annotations", exc.name, klass.__qualname__)
        return {}


def _get_type_hints(obj: object, owner: type) -> dict[str, Any]:
    try:
        hints = get_type_hints(obj, include_extras=True)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, owner.__name__, owner.__qualname__)
        hints = {}

    return hints
