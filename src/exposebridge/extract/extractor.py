from __future__ import annotations

from ..model.nodes import (
    ArrayType,
    EnumType,
    EnumValueType,
    FunctionType,
    GenericParameterType,
    InterfaceType,
    IntersectionType,
    ObjectType,
    Parameter,
    PrimitiveType,
    Property,
    SourceLocation,
    TypeArena,
    TypeAliasType,
    TypeId,
    TypeNode,
    TypeReference,
    UnionType,
    UnknownType,
)
from ..semantic.checker import (
    ObjectKind,
    PropertyInfo,
    ResolvedType,
    Signature,
    TypeChecker,
    TypeFlags,
)
from ..semantic.symbols import Symbol

_ENUM_PATTERN = TypeFlags.ENUM_LITERAL | TypeFlags.UNION


class TypeModelExtractor:
    """
    Converts resolved types into ``TypeNode``s stored in one run's arena.

    The memo is keyed by resolved-type identity and records a slot before
    any child is visited, so recursive type graphs end in back-references.
    One extractor (and its arena) lives for exactly one run.
    """

    def __init__(self, checker: TypeChecker, arena: TypeArena | None = None) -> None:
        self._checker = checker
        self.arena = arena if arena is not None else TypeArena()
        self._memo: dict[int, TypeId] = {}
        self._generic_bases: dict[int, TypeId] = {}

    def extract(
        self, t: ResolvedType, fallback: SourceLocation | None = None
    ) -> TypeId:
        cached = self._memo.get(id(t))
        if cached is not None:
            return self.arena.resolve(cached)

        slot = self.arena.reserve()
        self._memo[id(t)] = slot
        node = self._classify(t, slot, fallback)
        if node is not None:
            self.arena.fill(slot, node)
        return self.arena.resolve(slot)

    # --- Classification ---

    def _classify(
        self, t: ResolvedType, slot: TypeId, fallback: SourceLocation | None
    ) -> TypeNode | None:
        checker = self._checker
        text = checker.type_to_string(t)
        location = checker.location_of(t) or fallback

        if t.alias_symbol is not None:
            args = tuple(self.extract(a, fallback) for a in t.alias_arguments)
            if t.flags == _ENUM_PATTERN:
                return EnumType(
                    name=t.alias_symbol.name,
                    values=tuple(self.extract(m, fallback) for m in t.members),
                    type_string=text,
                    location=location,
                )
            return TypeAliasType(
                name=t.alias_symbol.name,
                type_arguments=args,
                type_string=text,
                location=location,
            )

        if t.flags & TypeFlags.PRIMITIVE:
            return PrimitiveType(name=t.name, type_string=text)  # type: ignore[arg-type]

        kind = t.object_kind
        if kind is ObjectKind.ARRAY:
            element = (
                t.type_arguments[0] if t.type_arguments else checker.primitive("Any")
            )
            return ArrayType(
                element_type=self.extract(element, fallback),
                type_string=text,
                location=location,
            )

        if kind is ObjectKind.REFERENCE and t.type_arguments and t.symbol is not None:
            return TypeReference(
                referenced_type=self._generic_base(t.symbol, len(t.type_arguments)),
                type_arguments=tuple(self.extract(a, fallback) for a in t.type_arguments),
                type_string=text,
                location=location,
            )

        signature = checker.call_signature_of(t)
        if signature is not None and kind is ObjectKind.CALLABLE:
            return self._function(signature, text, location, fallback)
        if signature is not None and kind is ObjectKind.CLASS and t.symbol is not None:
            # callable protocol: printed and imported by its own name
            return self._function(signature, text, location, fallback, name=t.symbol.name)

        if kind is ObjectKind.FUNCTION and t.signature is not None:
            return self._function(t.signature, text, location, fallback)
        if kind is ObjectKind.TYPED_DICT:
            return ObjectType(
                properties=self._properties(checker.properties_of(t), fallback),
                type_string=text,
                location=location,
            )

        if kind in (ObjectKind.CLASS, ObjectKind.REFERENCE) and t.symbol is not None:
            return InterfaceType(
                name=t.symbol.name,
                properties=self._properties(checker.properties_of(t), fallback),
                type_parameters=tuple(
                    self.extract(p, fallback)
                    for p in checker.type_parameters_of(t.symbol)
                ),
                type_string=text,
                location=location,
            )

        if t.flags & TypeFlags.TYPE_PARAMETER:
            return GenericParameterType(name=t.name, type_string=text, location=location)

        if t.flags & TypeFlags.UNION:
            return self._union(t, slot, text, location, fallback)

        if t.flags & TypeFlags.INTERSECTION:
            return IntersectionType(
                members=tuple(self.extract(m, fallback) for m in t.members),
                type_string=text,
                location=location,
            )

        if t.flags & TypeFlags.ENUM_LITERAL:
            parent = checker.parent_enum(t)
            if parent is not None:
                value = t.value if isinstance(t.value, (str, int, float)) else None
                return EnumValueType(
                    name=t.name,
                    value=value,
                    parent=self.extract(parent, fallback),
                    type_string=text,
                    location=location,
                )

        return UnknownType(type_string=text, location=location)

    # --- Payload Builders ---

    def _generic_base(self, symbol: Symbol, arity: int) -> TypeId:
        """Interface node of a generic declaration, printed as ``Base[T, ...]``."""
        cached = self._generic_bases.get(id(symbol))
        if cached is not None:
            return cached
        slot = self.arena.reserve()
        self._generic_bases[id(symbol)] = slot

        checker = self._checker
        location = checker.declaration_location(symbol)
        declared = checker.type_parameters_of(symbol)
        if declared and len(declared) == arity:
            names = [p.name for p in declared]
            params = tuple(self.extract(p, location) for p in declared)
        else:
            names = [f"T{i}" for i in range(arity)]
            params = tuple(
                self.arena.add(UnknownType(type_string=n, location=location))
                for n in names
            )

        class_type = checker.class_type(symbol)
        self.arena.fill(
            slot,
            InterfaceType(
                name=symbol.name,
                properties=self._properties(checker.properties_of(class_type), location),
                type_parameters=params,
                type_string=f"{symbol.name}[{', '.join(names)}]",
                location=location,
            ),
        )
        return slot

    def _function(
        self,
        signature: Signature,
        text: str,
        location: SourceLocation | None,
        fallback: SourceLocation | None,
        name: str | None = None,
    ) -> FunctionType:
        params = tuple(
            Parameter(
                name=p.name,
                type=self.extract(p.type, fallback),
                is_optional=p.optional,
                is_rest=p.rest,
                location=fallback,
            )
            for p in signature.parameters
        )
        return FunctionType(
            parameters=params,
            return_type=self.extract(signature.returns, fallback),
            type_string=text,
            location=location,
            name=name,
        )

    def _properties(
        self, props: tuple[PropertyInfo, ...], fallback: SourceLocation | None
    ) -> tuple[Property, ...]:
        out: list[Property] = []
        for prop in props:
            location = (
                self._checker.node_location(prop.node, prop.source)
                if prop.source is not None
                else fallback
            )
            out.append(
                Property(
                    name=prop.name,
                    type=self.extract(prop.type, location),
                    is_optional=prop.optional,
                    location=location,
                )
            )
        return tuple(out)

    def _union(
        self,
        t: ResolvedType,
        slot: TypeId,
        text: str,
        location: SourceLocation | None,
        fallback: SourceLocation | None,
    ) -> TypeNode | None:
        arena = self.arena
        member_ids = [self.extract(m, fallback) for m in t.members]
        present = set(member_ids)

        covered: set[TypeId] = set()
        for mid in member_ids:
            node = arena[mid] if arena.is_filled(mid) else None
            if node is None or node.kind != "enum-value":
                continue
            parent_id = arena.resolve(node.parent)
            if parent_id in covered or not arena.is_filled(parent_id):
                continue
            parent = arena[parent_id]
            if parent.kind == "enum" and parent.values and all(
                arena.resolve(v) in present for v in parent.values
            ):
                covered.add(parent_id)

        members: list[TypeId] = []
        for mid in member_ids:
            node = arena[mid] if arena.is_filled(mid) else None
            if node is not None and node.kind == "enum-value":
                parent_id = arena.resolve(node.parent)
                if parent_id in covered:
                    if parent_id not in members:
                        members.append(parent_id)
                    continue
            members.append(mid)

        if len(members) == 1:
            arena.forward(slot, members[0])
            return None
        return UnionType(members=tuple(members), type_string=text, location=location)
