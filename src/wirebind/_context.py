from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ._errors import DependencyError, ScopeStrategyError
from ._proxy import create_proxy, ensure_proxyable, set_delegate


if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._container import Container
    from ._key import Key
    from ._scope import ScopeStrategy


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalContext:
    """What a factory may know about the site it is resolving for.

    `member` names the field, method or constructor being injected, or is
    ``None`` for direct `Container.get_instance` calls.
    """

    container: Container
    key: Key
    member: str | None = None

    @property
    def type(self) -> type:
        return self.key.type

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def scope_strategy(self) -> ScopeStrategy | None:
        return self.container.scope_strategy

    def __str__(self) -> str:
        site = self.member or "Container.get_instance()"
        return f"{self.key} in {site}"


class ConstructionState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class ConstructionRecord:
    """Construction progress of one implementation class within one context."""

    def __init__(self, implementation: type) -> None:
        self.implementation = implementation
        self.state = ConstructionState.NOT_STARTED
        self.proxy: object | None = None
        self.current_reference: object | None = None
        self.instance: object | None = None

    @property
    def reference(self) -> object | None:
        """The partially injected or finished instance, if one exists yet."""
        if self.current_reference is not None:
            return self.current_reference
        return self.instance

    def start(self) -> None:
        if self.state is not ConstructionState.NOT_STARTED:
            msg = f"Construction of {self.implementation.__qualname__} already {self.state.value}."
            raise DependencyError(msg)
        self.state = ConstructionState.IN_PROGRESS

    def create_proxy(self, expected_type: type) -> object:
        # one proxy per record, shared by every edge pointing back at it
        if self.proxy is None:
            self.proxy = create_proxy(expected_type, self.implementation)
            logger.debug(
                "Circular dependency on %s; handing out a %s proxy",
                self.implementation.__qualname__,
                expected_type.__qualname__,
            )
        else:
            ensure_proxyable(expected_type, self.implementation)
        return self.proxy

    def allocated(self, instance: object) -> None:
        if self.proxy is not None:
            set_delegate(self.proxy, instance)
        self.current_reference = instance

    def finish(self, instance: object) -> None:
        self.instance = instance
        self.state = ConstructionState.FINISHED

    def __repr__(self) -> str:
        return f"ConstructionRecord({self.implementation.__qualname__}, {self.state.value})"


class ResolutionContext:
    """Per-thread scratch state for one top-level call into a container."""

    def __init__(self, container: Container) -> None:
        self.container = container
        self.external_context: ExternalContext | None = None
        self._records: dict[type, ConstructionRecord] = {}

    @property
    def scope_strategy(self) -> ScopeStrategy:
        strategy = self.container.scope_strategy
        if strategy is None:
            msg = "Scope strategy not set. Please call Container.set_scope_strategy()."
            raise ScopeStrategyError(msg)
        return strategy

    def record_for(self, implementation: type) -> ConstructionRecord:
        record = self._records.get(implementation)
        if record is None:
            record = self._records[implementation] = ConstructionRecord(implementation)
        return record

    def discard(self, record: ConstructionRecord) -> None:
        """Forget an unfinished record so the class can be constructed again."""
        if self._records.get(record.implementation) is record:
            del self._records[record.implementation]

    @contextmanager
    def external(self, external_context: ExternalContext) -> Iterator[ExternalContext]:
        """Make `external_context` the active resolution site for the block."""
        previous = self.external_context
        self.external_context = external_context
        try:
            yield external_context
        finally:
            self.external_context = previous

    def describe_site(self) -> str:
        if self.external_context is None:
            return "<top level>"
        return str(self.external_context)
