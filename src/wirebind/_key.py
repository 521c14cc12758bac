from __future__ import annotations

from dataclasses import dataclass


DEFAULT_NAME = "default"


@dataclass(frozen=True)
class Key:
    """Identity of a dependency: the declared type plus a binding name."""

    type: type
    name: str = DEFAULT_NAME

    def __str__(self) -> str:
        type_name = getattr(self.type, "__qualname__", repr(self.type))
        return f"Key[type={type_name}, name='{self.name}']"
