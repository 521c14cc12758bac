from __future__ import annotations

import inspect
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar, get_type_hints, overload

from ._cache import MemoCache
from ._context import ExternalContext, ResolutionContext
from ._factories import ConstantFactory, ConstructingFactory, CustomFactory
from ._injectors import ConstructorPlan, collect_member_injectors, collect_static_injectors
from ._key import DEFAULT_NAME, Key
from ._proxy import is_protocol
from ._scope import Scope


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping

    from ._factories import Factory
    from ._injectors import Injector
    from ._scope import ScopeStrategy

    T = TypeVar("T")


class Container:
    """Immutable registry of factories that builds and injects object graphs.

    - inject(instance): run field and method injection on an existing object
    - inject(cls): construct `cls` through its constructor plan
    - get_instance(type, name): resolve a registered binding
    - get_instance_names(type): every name registered for `type`
    - inject_statics(classes): inject the static members of classes

    Containers are created by `ContainerBuilder.create()`.
    """

    def __init__(self, factories: Mapping[Key, Factory]) -> None:
        self._factories: Mapping[Key, Factory] = MappingProxyType(dict(factories))

        names: defaultdict[type, set[str]] = defaultdict(set)
        for key in self._factories:
            names[key.type].add(key.name)
        self._names_by_type: Mapping[type, frozenset[str]] = MappingProxyType(
            {tp: frozenset(n) for tp, n in names.items()}
        )

        self._constructors: MemoCache[ConstructorPlan] = MemoCache(lambda impl: ConstructorPlan(self, impl))
        self._injectors: MemoCache[tuple[Injector, ...]] = MemoCache(lambda cls: collect_member_injectors(self, cls))
        self._local = threading.local()

    @overload
    def inject(self, target: type[T]) -> T: ...

    @overload
    def inject(self, target: object) -> None: ...

    def inject(self, target: Any) -> Any:
        """Construct and inject a new `target` when given a class, else inject into `target`.

        Example:
          engine = container.inject(Engine)
          container.inject(existing_action)

        """
        with self._context() as context:
            if inspect.isclass(target):
                return self.get_constructor(target).construct(context, target)

            for injector in self.get_member_injectors(type(target)):
                injector.inject(context, target)
            return None

    @overload
    def get_instance(self, type: type[T], name: str = ...) -> T | None: ...

    @overload
    def get_instance(self, type: object, name: str = ...) -> Any: ...

    def get_instance(self, type: Any, name: str = DEFAULT_NAME) -> Any:
        """Resolve the binding for ``(type, name)``; ``None`` when nothing is registered."""
        key = Key(type, name)
        with self._context() as context, context.external(ExternalContext(self, key)):
            factory = self.get_factory(key)
            if factory is None:
                return None
            return factory.create(context)

    def inject_statics(self, classes: Iterable[type]) -> None:
        """Inject the static members declared on each of `classes`.

        Every injector is built before any is run, and all of them run in one
        resolution context.
        """
        injectors = [(cls, injector) for cls in classes for injector in collect_static_injectors(self, cls)]

        with self._context() as context:
            for cls, injector in injectors:
                injector.inject(context, cls)
        logger.debug("Injected %d static member(s)", len(injectors))

    def get_instance_names(self, type: object) -> frozenset[str]:
        return self._names_by_type.get(type, frozenset())  # type: ignore[arg-type]

    def set_scope_strategy(self, strategy: ScopeStrategy) -> None:
        """Set the scope strategy for the current thread."""
        self._local.scope_strategy = strategy

    def remove_scope_strategy(self) -> None:
        """Remove the scope strategy for the current thread."""
        self._local.scope_strategy = None

    @property
    def scope_strategy(self) -> ScopeStrategy | None:
        return getattr(self._local, "scope_strategy", None)

    def get_factory(self, key: Key) -> Factory | None:
        return self._factories.get(key)

    def get_constructor(self, implementation: type) -> ConstructorPlan:
        return self._constructors.get(implementation)

    def get_member_injectors(self, cls: type) -> tuple[Injector, ...]:
        return self._injectors.get(cls)

    @contextmanager
    def _context(self) -> Iterator[ResolutionContext]:
        """Yield the thread's resolution context, creating it if necessary.

        Only the call that created the context removes it.
        """
        context = getattr(self._local, "context", None)
        if context is not None:
            yield context
            return

        context = self._local.context = ResolutionContext(self)
        logger.debug("Opened resolution context on thread %s", threading.current_thread().name)
        try:
            yield context
        finally:
            self._local.context = None

    def __repr__(self) -> str:
        return f"Container({len(self._factories)} bindings)"


class _ContainerFactory:
    def create(self, context: ResolutionContext) -> Container:
        return context.container


class ContainerBuilder:
    """Collects bindings and creates an immutable `Container`.

    Example:
      builder = ContainerBuilder()
      builder.constant(Wheel, Wheel(17))
      builder.factory(Engine, scope=Scope.SINGLETON)
      container = builder.create()

    The container binds itself under ``Key(Container)``.
    """

    def __init__(self) -> None:
        self._factories: dict[Key, Factory] = {Key(Container): _ContainerFactory()}
        self._singletons: list[Key] = []
        self._static_injections: list[type] = []
        self._created = False
        self._lock = threading.RLock()
        self._singleton_lock = threading.RLock()

    def register(self, key: Key, factory: Factory, *, replace: bool = False) -> ContainerBuilder:
        """Register a factory for `key`."""
        with self._lock:
            self._ensure_not_created()
            if not replace and key in self._factories:
                msg = f"Dependency mapping for {key} already exists. Pass replace=True to overwrite."
                raise KeyError(msg)
            self._factories[key] = factory
        return self

    def constant(self, type: type[T], value: T, name: str = DEFAULT_NAME) -> ContainerBuilder:
        """Bind a pre-built value (always the same object)."""
        if inspect.isclass(type):
            _validate_impl(cls=type, impl=value.__class__, instance=value)
        return self.register(Key(type, name), ConstantFactory(value))

    def factory(
        self,
        type: type[T],
        implementation: type[T] | None = None,
        name: str = DEFAULT_NAME,
        scope: Scope = Scope.DEFAULT,
    ) -> ContainerBuilder:
        """Bind `type` to a class constructed through its constructor plan."""
        implementation = implementation or type
        if implementation is not type:
            _validate_impl(cls=type, impl=implementation)
        if inspect.isabstract(implementation) or is_protocol(implementation):
            msg = f"Implementation {implementation.__qualname__} is abstract and cannot be constructed."
            raise TypeError(msg)

        key = Key(type, name)
        self._register_scoped(key, ConstructingFactory(type, implementation), scope)
        return self

    def custom(
        self,
        type: type[T],
        fn: Callable[[ExternalContext], T],
        name: str = DEFAULT_NAME,
        scope: Scope = Scope.DEFAULT,
    ) -> ContainerBuilder:
        """Bind `type` to a callable receiving the `ExternalContext` of each resolution."""
        key = Key(type, name)
        self._register_scoped(key, CustomFactory(fn), scope)
        return self

    def inject_statics(self, *classes: type) -> ContainerBuilder:
        """Inject the static members of `classes` once the container is created.

        Static members are ``ClassVar[Annotated[T, Inject()]]`` annotations,
        set on the class itself, and marked staticmethods. Only members
        declared on each class are considered.
        """
        with self._lock:
            self._ensure_not_created()
            self._static_injections.extend(classes)
        return self

    def contains(self, type: object, name: str = DEFAULT_NAME) -> bool:
        return Key(type, name) in self._factories  # type: ignore[arg-type]

    def create(self, *, load_singletons: bool = False) -> Container:
        """Create the container; the builder cannot be used afterwards."""
        with self._lock:
            self._ensure_not_created()
            self._created = True
            container = Container(self._factories)

        if self._static_injections:
            container.inject_statics(self._static_injections)

        if load_singletons:
            for key in self._singletons:
                container.get_instance(key.type, key.name)
            logger.debug("Loaded %d singleton(s)", len(self._singletons))

        return container

    def _register_scoped(self, key: Key, factory: Factory, scope: Scope) -> None:
        with self._lock:
            self.register(key, scope.scope_factory(key, factory, self._singleton_lock))
            if scope is Scope.SINGLETON:
                self._singletons.append(key)

    def _ensure_not_created(self) -> None:
        if self._created:
            msg = "Container already created."
            raise RuntimeError(msg)


def _validate_impl(cls: type, impl: type, instance: object = None) -> None:
    """Validate that `impl` can stand in for `cls`.

    - For normal classes/ABCs: require issubclass(impl, cls).
    - For Protocols: nominal via MRO, otherwise every public member must exist
      on `instance` when one is given, else on `impl`.
    """
    if not is_protocol(cls):
        if not issubclass(impl, cls):
            msg = f"Implementation {impl.__name__} must be a subclass of {cls.__name__}"
            raise TypeError(msg)
        return

    if cls in getattr(impl, "__mro__", ()):
        return

    try:
        proto_hints = get_type_hints(cls, include_extras=True)
    except (TypeError, NameError):
        proto_hints = {}

    members = [name for name in proto_hints if not name.startswith("_")]
    members += [
        name for name, attr in vars(cls).items() if not name.startswith("_") and inspect.isfunction(attr)
    ]
    target = impl if instance is None else instance
    missing = [name for name in members if not hasattr(target, name)]
    if missing:
        msg = (
            f"Implementation {impl.__name__} does not structurally conform to protocol "
            f"{cls.__name__}: missing members: {', '.join(missing)}"
        )
        raise TypeError(msg)
