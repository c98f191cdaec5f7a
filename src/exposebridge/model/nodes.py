"""
Normalized type model.

Every node kind is its own frozen dataclass; children are referenced by
``TypeId`` (an index into the run's ``TypeArena``) so that self- and
mutually-recursive type graphs can be represented without mutating a node
after construction. A slot is reserved before its children are extracted and
filled once they are known.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Literal, Union

TypeId = int

PrimitiveName = Literal[
    "str", "int", "float", "complex", "bool", "bytes", "None", "Any", "object"
]

NodeKind = Literal[
    "primitive",
    "interface",
    "object",
    "enum",
    "enum-value",
    "function",
    "array",
    "type-reference",
    "type-alias",
    "generic-parameter",
    "union",
    "intersection",
    "unknown",
]


@dataclass(slots=True, frozen=True)
class SourceLocation:
    """Where a declaration or type comes from."""

    file: str | None
    package: str | None
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def describe(self) -> str:
        return f"{self.file or self.package}:{self.start_line}"


@dataclass(slots=True, frozen=True)
class MarkerDirective:
    """A parsed ``@decorator <name> [args...]`` marker."""

    decorator: str
    args: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True, kw_only=True)
class Property:
    name: str
    type: TypeId
    is_optional: bool = False
    location: SourceLocation | None = None

    @property
    def member_string(self) -> str:
        return f"{self.name}{'?' if self.is_optional else ''}"


@dataclass(slots=True, frozen=True, kw_only=True)
class Parameter:
    name: str
    type: TypeId
    is_optional: bool = False
    is_rest: bool = False
    location: SourceLocation | None = None

    @property
    def member_string(self) -> str:
        return f"{'*' if self.is_rest else ''}{self.name}{'?' if self.is_optional else ''}"


@dataclass(slots=True, frozen=True, kw_only=True)
class PrimitiveType:
    name: PrimitiveName
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["primitive"] = field(default="primitive", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class InterfaceType:
    name: str
    properties: tuple[Property, ...] = ()
    type_parameters: tuple[TypeId, ...] = ()
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["interface"] = field(default="interface", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class ObjectType:
    properties: tuple[Property, ...] = ()
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["object"] = field(default="object", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class EnumType:
    name: str
    values: tuple[TypeId, ...] = ()
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["enum"] = field(default="enum", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class EnumValueType:
    name: str
    value: str | int | float | None
    parent: TypeId
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["enum-value"] = field(default="enum-value", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class FunctionType:
    parameters: tuple[Parameter, ...] = ()
    return_type: TypeId
    type_string: str
    name: str | None = None
    location: SourceLocation | None = None
    kind: Literal["function"] = field(default="function", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class ArrayType:
    element_type: TypeId
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["array"] = field(default="array", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class TypeReference:
    referenced_type: TypeId
    type_arguments: tuple[TypeId, ...] = ()
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["type-reference"] = field(default="type-reference", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class TypeAliasType:
    name: str
    type_arguments: tuple[TypeId, ...] = ()
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["type-alias"] = field(default="type-alias", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class GenericParameterType:
    name: str
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["generic-parameter"] = field(
        default="generic-parameter", init=False
    )


@dataclass(slots=True, frozen=True, kw_only=True)
class UnionType:
    members: tuple[TypeId, ...]
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["union"] = field(default="union", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class IntersectionType:
    members: tuple[TypeId, ...]
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["intersection"] = field(default="intersection", init=False)


@dataclass(slots=True, frozen=True, kw_only=True)
class UnknownType:
    type_string: str
    location: SourceLocation | None = None
    kind: Literal["unknown"] = field(default="unknown", init=False)


TypeNode = Union[
    PrimitiveType,
    InterfaceType,
    ObjectType,
    EnumType,
    EnumValueType,
    FunctionType,
    ArrayType,
    TypeReference,
    TypeAliasType,
    GenericParameterType,
    UnionType,
    IntersectionType,
    UnknownType,
]


class TypeArena:
    """
    Slot storage for the nodes of one extraction run.

    ``reserve`` hands out a stable id before the node's children exist,
    ``fill`` finalizes it exactly once, and ``forward`` redirects a reserved
    slot to another node (a union that collapses to a single member).
    """

    def __init__(self) -> None:
        self._slots: list[TypeNode | None] = []
        self._forward: dict[TypeId, TypeId] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, type_id: TypeId) -> TypeNode:
        node = self._slots[self.resolve(type_id)]
        if node is None:
            raise LookupError(f"Type slot {type_id} was reserved but never filled")
        return node

    def reserve(self) -> TypeId:
        self._slots.append(None)
        return len(self._slots) - 1

    def is_filled(self, type_id: TypeId) -> bool:
        return self._slots[self.resolve(type_id)] is not None

    def fill(self, type_id: TypeId, node: TypeNode) -> TypeId:
        if type_id in self._forward or self._slots[type_id] is not None:
            raise ValueError(f"Type slot {type_id} is already finalized")
        self._slots[type_id] = node
        return type_id

    def add(self, node: TypeNode) -> TypeId:
        return self.fill(self.reserve(), node)

    def forward(self, type_id: TypeId, target: TypeId) -> TypeId:
        if self._slots[type_id] is not None:
            raise ValueError(f"Type slot {type_id} is already finalized")
        target = self.resolve(target)
        if target != type_id:
            self._forward[type_id] = target
        return target

    def resolve(self, type_id: TypeId) -> TypeId:
        while type_id in self._forward:
            type_id = self._forward[type_id]
        return type_id

    def items(self) -> Iterator[tuple[TypeId, TypeNode]]:
        for type_id, node in enumerate(self._slots):
            if node is not None:
                yield type_id, node
