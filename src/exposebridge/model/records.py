from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .nodes import MarkerDirective, SourceLocation, TypeId

FunctionKind = Literal["method", "function", "lambda"]


@dataclass(slots=True, frozen=True)
class ExposedFunction:
    """One callable carrying a valid ``@decorator expose`` marker."""

    kind: FunctionKind
    name: str
    owner: str | None
    type: TypeId
    directive: MarkerDirective
    namespace: str
    location: SourceLocation
    is_async_iterator: bool = False

    @property
    def channel_key(self) -> str:
        return f"{self.namespace}:{self.name}"


@dataclass(slots=True, frozen=True)
class NamespaceGroup:
    key: str
    functions: tuple[ExposedFunction, ...]


@dataclass(slots=True, frozen=True)
class ImportDescriptor:
    """One ``from <path> import <names>`` line."""

    is_type_only: bool
    path: str
    names: tuple[str, ...]

    def render(self) -> str:
        return f"from {self.path} import {', '.join(self.names)}"
