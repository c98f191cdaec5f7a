"""
Annotation-level type checker over a loaded ``Program``.

Annotation expressions are resolved, never evaluated, into interned
``ResolvedType`` objects: structurally equal types resolved twice yield the
same object, which is what lets the extractor memoize by identity.

Enum classes resolve to a union of their member literals flagged
``ENUM_LITERAL | UNION`` with the enum as alias symbol. Unions flatten the
enums they contain into member literals; the extractor folds them back.
"""

from __future__ import annotations

import ast
import enum
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..model.nodes import SourceLocation
from .ast_ops import AstUtils, FunctionNode
from .program import ModuleSource, Program
from .symbols import ModuleScope, Symbol, alias_value

TYPING_MODULES = frozenset(
    {"typing", "typing_extensions", "collections.abc", "builtins", "asyncio", "types"}
)
WRAPPER_MODULES = frozenset({"typing", "typing_extensions", "collections.abc", "asyncio"})
DEFERRED_WRAPPERS = frozenset({"Awaitable", "Coroutine", "Future"})
ASYNC_SEQUENCE_WRAPPERS = frozenset({"AsyncIterator", "AsyncIterable", "AsyncGenerator"})

PRIMITIVE_NAMES = frozenset(
    {"str", "int", "float", "complex", "bool", "bytes", "object"}
)
BUILTIN_NAMES = PRIMITIVE_NAMES | frozenset(
    {"list", "dict", "set", "frozenset", "tuple", "type", "NoneType"}
)
# typing aliases of builtin generics
_TYPING_BUILTINS = {
    "List": "list",
    "Dict": "dict",
    "Set": "set",
    "FrozenSet": "frozenset",
    "Tuple": "tuple",
    "Type": "type",
    "Text": "str",
}
_TRANSPARENT_FORMS = frozenset(
    {"ClassVar", "Final", "Required", "NotRequired", "ReadOnly", "Annotated"}
)


class TypeFlags(enum.IntFlag):
    NONE = 0
    PRIMITIVE = enum.auto()
    LITERAL = enum.auto()
    ENUM_LITERAL = enum.auto()
    UNION = enum.auto()
    INTERSECTION = enum.auto()
    TYPE_PARAMETER = enum.auto()
    OBJECT = enum.auto()
    UNKNOWN = enum.auto()


class ObjectKind(enum.Enum):
    CLASS = "class"
    REFERENCE = "reference"
    ARRAY = "array"
    CALLABLE = "callable"
    FUNCTION = "function"
    TYPED_DICT = "typed-dict"


@dataclass(slots=True, eq=False)
class ParamInfo:
    name: str
    type: ResolvedType
    optional: bool = False
    rest: bool = False
    node: ast.AST | None = None


@dataclass(slots=True, eq=False)
class PropertyInfo:
    name: str
    type: ResolvedType
    optional: bool = False
    node: ast.AST | None = None
    source: ModuleSource | None = None


@dataclass(slots=True, eq=False)
class Signature:
    parameters: tuple[ParamInfo, ...]
    returns: ResolvedType
    declared_returns: ResolvedType | None = None
    keyword_only_required: tuple[str, ...] = ()
    is_async: bool = False
    is_async_generator: bool = False


@dataclass(slots=True, eq=False)
class ResolvedType:
    """
    A resolved type. Mutable only while the checker builds it: alias types
    are interned before their target is resolved so recursive aliases
    terminate.
    """

    flags: TypeFlags
    name: str = ""
    object_kind: ObjectKind | None = None
    symbol: Symbol | None = None
    alias_symbol: Symbol | None = None
    alias_arguments: tuple[ResolvedType, ...] = ()
    type_arguments: tuple[ResolvedType, ...] = ()
    members: tuple[ResolvedType, ...] = ()
    origin: tuple[ResolvedType, ...] = ()
    signature: Signature | None = None
    items: tuple[PropertyInfo, ...] = ()
    value: Any = None
    display: str | None = None

    def adopt(self, target: ResolvedType) -> None:
        """Take over the structure of ``target``, keeping alias identity."""
        self.flags = target.flags
        self.object_kind = target.object_kind
        self.symbol = target.symbol
        self.type_arguments = target.type_arguments
        self.members = target.members
        self.origin = target.origin
        self.signature = target.signature
        self.items = target.items
        self.value = target.value
        self.display = target.display
        if target.name:
            self.name = target.name


@dataclass(slots=True)
class Context:
    """Resolution scope: a module plus the type parameters in view."""

    module: str
    type_params: dict[str, ResolvedType] = field(default_factory=dict)

    def with_params(self, params: dict[str, ResolvedType]) -> "Context":
        if not params:
            return self
        merged = dict(self.type_params)
        merged.update(params)
        return Context(self.module, merged)


class TypeChecker:
    """Resolves annotation expressions of a ``Program`` into ``ResolvedType``s."""

    def __init__(self, program: Program) -> None:
        self.program = program
        self._scopes: dict[str, ModuleScope | None] = {}
        self._interned: dict[tuple, ResolvedType] = {}
        self._externals: dict[tuple[str, str | None], Symbol] = {}
        self._modules: dict[str, Symbol] = {}
        self._enum_members: dict[int, list[Symbol]] = {}
        self._pep695: dict[int, Symbol] = {}
        self._properties: dict[int, tuple[PropertyInfo, ...]] = {}
        self._type_params: dict[int, tuple[ResolvedType, ...]] = {}
        self._call_signatures: dict[int, Signature | None] = {}

    # --- Scopes & Symbols ---

    def scope(self, module: str) -> ModuleScope | None:
        if module not in self._scopes:
            source = self.program.get(module)
            self._scopes[module] = ModuleScope.build(source) if source else None
        return self._scopes[module]

    def lookup(
        self, name: str, module: str, _seen: set[tuple[str, str]] | None = None
    ) -> Symbol | None:
        """Find what ``name`` denotes at the top level of ``module``."""
        seen = _seen if _seen is not None else set()
        if (module, name) in seen:
            return None
        seen.add((module, name))

        scope = self.scope(module)
        symbol = scope.get(name) if scope else None
        if symbol is None and scope:
            for star in scope.star_imports:
                if star in self.program:
                    symbol = self.lookup(name, star, seen)
                else:
                    symbol = self._external(star, name)
                if symbol is not None:
                    return symbol

        if symbol is None:
            if name in BUILTIN_NAMES:
                return self._external("builtins", name)
            return None
        if symbol.kind == "import":
            return self._follow_import(symbol, seen)
        return symbol

    def member(self, symbol: Symbol, attr: str) -> Symbol | None:
        if symbol.kind == "module":
            found = self.lookup(attr, symbol.name)
            if found is not None:
                return found
            return self._module_symbol(f"{symbol.name}.{attr}", strict=True)
        if symbol.kind == "external-module":
            sub = self._module_symbol(f"{symbol.name}.{attr}", strict=True)
            return sub or self._external(symbol.name, attr)
        if symbol.kind == "external":
            return self._external(symbol.module, f"{symbol.name}.{attr}")
        if symbol.kind == "enum":
            for member in self.enum_members(symbol):
                if member.name == attr:
                    return member
        return None

    def _follow_import(self, symbol: Symbol, seen: set[tuple[str, str]]) -> Symbol | None:
        target = symbol.target_module or ""
        if symbol.target_name is None:
            return self._module_symbol(target)

        if target in self.program:
            found = self.lookup(symbol.target_name, target, seen)
            if found is not None:
                return found
            return self._module_symbol(f"{target}.{symbol.target_name}", strict=True)

        sub = self._module_symbol(f"{target}.{symbol.target_name}", strict=True)
        return sub or self._external(target, symbol.target_name)

    def _module_symbol(self, name: str, strict: bool = False) -> Symbol | None:
        if name in self._modules:
            return self._modules[name]
        source = self.program.get(name)
        if source is None:
            if strict:
                return None
            symbol = Symbol(name=name, kind="external-module", module=name)
        else:
            symbol = Symbol(
                name=name, kind="module", module=name, node=source.tree, source=source
            )
        self._modules[name] = symbol
        return symbol

    def _external(self, module: str, name: str) -> Symbol:
        key = (module, name)
        if key not in self._externals:
            self._externals[key] = Symbol(
                name=name, kind="external", module=module, target_module=module
            )
        return self._externals[key]

    def _lookup_expr(self, expr: ast.expr, ctx: Context) -> Symbol | None:
        if isinstance(expr, ast.Name):
            return self.lookup(expr.id, ctx.module)
        if isinstance(expr, ast.Attribute):
            base = self._lookup_expr(expr.value, ctx)
            return self.member(base, expr.attr) if base else None
        return None

    @staticmethod
    def special_name(symbol: Symbol | None) -> str | None:
        """Name of a typing/builtins construct, or None for user symbols."""
        if symbol is None or symbol.kind != "external":
            return None
        if symbol.module in TYPING_MODULES:
            return symbol.name
        return None

    # --- Interning ---

    def _intern(self, key: tuple, build: Any) -> ResolvedType:
        found = self._interned.get(key)
        if found is None:
            found = build()
            self._interned[key] = found
        return found

    def primitive(self, name: str) -> ResolvedType:
        return self._intern(
            ("prim", name), lambda: ResolvedType(TypeFlags.PRIMITIVE, name=name)
        )

    def unknown(self, text: str) -> ResolvedType:
        return self._intern(
            ("unknown", text), lambda: ResolvedType(TypeFlags.UNKNOWN, name=text)
        )

    def literal(self, value: Any) -> ResolvedType:
        return self._intern(
            ("lit", type(value).__name__, value),
            lambda: ResolvedType(TypeFlags.LITERAL, name=repr(value), value=value),
        )

    def class_type(self, symbol: Symbol) -> ResolvedType:
        return self._intern(
            ("class", id(symbol)),
            lambda: ResolvedType(
                TypeFlags.OBJECT,
                name=symbol.name,
                object_kind=ObjectKind.CLASS,
                symbol=symbol,
            ),
        )

    def reference(self, symbol: Symbol, args: Iterable[ResolvedType]) -> ResolvedType:
        args = tuple(args)
        return self._intern(
            ("ref", id(symbol), tuple(id(a) for a in args)),
            lambda: ResolvedType(
                TypeFlags.OBJECT,
                name=symbol.name,
                object_kind=ObjectKind.REFERENCE,
                symbol=symbol,
                type_arguments=args,
            ),
        )

    def array(self, element: ResolvedType) -> ResolvedType:
        return self._intern(
            ("array", id(element)),
            lambda: ResolvedType(
                TypeFlags.OBJECT,
                name="list",
                object_kind=ObjectKind.ARRAY,
                symbol=self._external("builtins", "list"),
                type_arguments=(element,),
            ),
        )

    def typing_reference(self, name: str, args: Iterable[ResolvedType]) -> ResolvedType:
        return self.reference(self._external("collections.abc", name), args)

    def union(
        self, parts: Iterable[ResolvedType], display: str | None = None
    ) -> ResolvedType:
        origin = tuple(parts)
        flat: list[ResolvedType] = []
        for part in origin:
            for member in part.members if part.flags & TypeFlags.UNION else (part,):
                if not any(member is seen for seen in flat):
                    flat.append(member)
        if len(flat) == 1:
            return flat[0]
        return self._intern(
            ("union", tuple(id(m) for m in flat)),
            lambda: ResolvedType(
                TypeFlags.UNION, members=tuple(flat), origin=origin, display=display
            ),
        )

    def intersection(self, parts: Iterable[ResolvedType]) -> ResolvedType:
        flat: list[ResolvedType] = []
        for part in parts:
            for member in (
                part.members if part.flags & TypeFlags.INTERSECTION else (part,)
            ):
                if not any(member is seen for seen in flat):
                    flat.append(member)
        if len(flat) == 1:
            return flat[0]
        return self._intern(
            ("inter", tuple(id(m) for m in flat)),
            lambda: ResolvedType(TypeFlags.INTERSECTION, members=tuple(flat)),
        )

    def enum_type(self, symbol: Symbol) -> ResolvedType:
        key = ("enum", id(symbol))
        if key in self._interned:
            return self._interned[key]
        t = ResolvedType(
            TypeFlags.ENUM_LITERAL | TypeFlags.UNION,
            name=symbol.name,
            symbol=symbol,
            alias_symbol=symbol,
        )
        self._interned[key] = t
        t.members = tuple(self.enum_literal(m) for m in self.enum_members(symbol))
        return t

    def enum_literal(self, member: Symbol) -> ResolvedType:
        return self._intern(
            ("enumlit", id(member)),
            lambda: ResolvedType(
                TypeFlags.ENUM_LITERAL,
                name=member.name,
                symbol=member,
                value=member.value,
            ),
        )

    def parent_enum(self, t: ResolvedType) -> ResolvedType | None:
        """The enum type an enum literal belongs to."""
        if t.symbol is None or t.symbol.parent is None:
            return None
        return self.enum_type(t.symbol.parent)

    def _typevar(self, symbol: Symbol) -> ResolvedType:
        return self._intern(
            ("tvar", id(symbol)),
            lambda: ResolvedType(
                TypeFlags.TYPE_PARAMETER, name=symbol.name, symbol=symbol
            ),
        )

    def alias_type(
        self, symbol: Symbol, args: tuple[ResolvedType, ...] = ()
    ) -> ResolvedType:
        key = ("alias", id(symbol), tuple(id(a) for a in args))
        if key in self._interned:
            return self._interned[key]
        t = ResolvedType(
            TypeFlags.NONE, name=symbol.name, alias_symbol=symbol, alias_arguments=args
        )
        self._interned[key] = t

        ctx = Context(symbol.module).with_params(
            self._declared_params(symbol.node, symbol.source)
        )
        value = alias_value(symbol)
        t.adopt(self.resolve(value, ctx) if value is not None else self.unknown(symbol.name))
        return t

    # --- Annotation Resolution ---

    def resolve(self, expr: ast.expr | None, ctx: Context) -> ResolvedType:
        """Resolve an annotation expression. Never raises."""
        if expr is None:
            return self.primitive("Any")

        if isinstance(expr, ast.Constant):
            if expr.value is None:
                return self.primitive("None")
            if isinstance(expr.value, str):
                return self._forward_reference(expr.value, ctx)
            return self.unknown(AstUtils.unparse_node(expr) or "...")

        if isinstance(expr, ast.Name) and expr.id in ctx.type_params:
            return ctx.type_params[expr.id]

        if isinstance(expr, (ast.Name, ast.Attribute)):
            symbol = self._lookup_expr(expr, ctx)
            return self._type_from_symbol(symbol, AstUtils.unparse_node(expr) or "")

        if isinstance(expr, ast.Subscript):
            return self._resolve_subscript(expr, ctx)

        if isinstance(expr, ast.BinOp):
            if isinstance(expr.op, ast.BitOr):
                return self.union(
                    (self.resolve(expr.left, ctx), self.resolve(expr.right, ctx))
                )
            if isinstance(expr.op, ast.BitAnd):
                return self.intersection(
                    (self.resolve(expr.left, ctx), self.resolve(expr.right, ctx))
                )

        return self.unknown(AstUtils.unparse_node(expr) or "")

    def _forward_reference(self, text: str, ctx: Context) -> ResolvedType:
        try:
            parsed = ast.parse(text.strip(), mode="eval").body
        except SyntaxError:
            return self.unknown(text)
        return self.resolve(parsed, ctx)

    def _type_from_symbol(self, symbol: Symbol | None, text: str) -> ResolvedType:
        if symbol is None:
            return self.unknown(text)

        special = self.special_name(symbol)
        if special is not None:
            special = _TYPING_BUILTINS.get(special, special)
            if special == "Any":
                return self.primitive("Any")
            if special in PRIMITIVE_NAMES:
                return self.primitive(special)
            if special == "NoneType":
                return self.primitive("None")
            if special == "list":
                return self.array(self.primitive("Any"))
            if special in _TRANSPARENT_FORMS or special in (
                "Optional", "Union", "Literal", "Callable", "TypeAlias", "Intersection"
            ):
                if special == "Callable":
                    return self._callable(None, None)
                return self.unknown(text)
            if symbol.module == "builtins" or special in _TYPING_BUILTINS.values():
                return self.class_type(self._external("builtins", special))
            return self.class_type(symbol)

        if symbol.kind in ("class", "external"):
            return self.class_type(symbol)
        if symbol.kind == "enum":
            return self.enum_type(symbol)
        if symbol.kind == "alias":
            return self.alias_type(symbol)
        if symbol.kind == "typevar":
            return self._typevar(symbol)
        return self.unknown(text)

    def _resolve_subscript(self, expr: ast.Subscript, ctx: Context) -> ResolvedType:
        text = AstUtils.unparse_node(expr) or ""
        slice_ = expr.slice
        arg_nodes = list(slice_.elts) if isinstance(slice_, ast.Tuple) else [slice_]
        base = self._lookup_expr(expr.value, ctx)
        special = self.special_name(base)

        if special is not None:
            special = _TYPING_BUILTINS.get(special, special)
            if special == "Optional":
                return self.union((self.resolve(arg_nodes[0], ctx), self.primitive("None")))
            if special == "Union":
                return self.union(self.resolve(a, ctx) for a in arg_nodes)
            if special == "Literal":
                return self._literal_union(arg_nodes, ctx)
            if special in _TRANSPARENT_FORMS:
                return self.resolve(arg_nodes[0], ctx)
            if special == "Callable":
                return self._callable(arg_nodes, ctx)
            if special == "list":
                return self.array(self.resolve(arg_nodes[0], ctx))
            if special == "Intersection":
                return self.intersection(self.resolve(a, ctx) for a in arg_nodes)
            if special == "TypedDict" and isinstance(slice_, ast.Dict):
                return self._inline_typed_dict(expr, slice_, ctx)
            if special in _TYPING_BUILTINS.values():
                base = self._external("builtins", special)

        if base is None:
            return self.unknown(text)

        args = tuple(self.resolve(a, ctx) for a in arg_nodes)
        if base.kind == "alias":
            return self.alias_type(base, args)
        if base.kind in ("class", "external"):
            return self.reference(base, args)
        return self.unknown(text)

    def _literal_union(self, arg_nodes: list[ast.expr], ctx: Context) -> ResolvedType:
        parts: list[ResolvedType] = []
        for node in arg_nodes:
            value, _ = AstUtils.extract_literal_value(node)
            if isinstance(node, ast.Constant) and node.value is None:
                parts.append(self.primitive("None"))
            elif value is not None:
                parts.append(self.literal(value))
            elif isinstance(node, ast.Attribute):
                symbol = self._lookup_expr(node, ctx)
                if symbol is not None and symbol.kind == "enum-member":
                    parts.append(self.enum_literal(symbol))
                else:
                    parts.append(self.unknown(AstUtils.unparse_node(node) or ""))
            else:
                parts.append(self.unknown(AstUtils.unparse_node(node) or ""))

        if len(parts) == 1:
            return parts[0]
        display = "Literal[" + ", ".join(
            self.type_to_string(p).removeprefix("Literal[").removesuffix("]")
            for p in parts
        ) + "]"
        return self.union(parts, display=display)

    def _callable(
        self, arg_nodes: list[ast.expr] | None, ctx: Context | None
    ) -> ResolvedType:
        if arg_nodes is None or ctx is None or len(arg_nodes) != 2:
            any_t = self.primitive("Any")
            params: tuple[ParamInfo, ...] = (ParamInfo("args", any_t, rest=True),)
            returns = any_t
        else:
            spec, ret_node = arg_nodes
            returns = self.resolve(ret_node, ctx)
            if isinstance(spec, ast.List):
                params = tuple(
                    ParamInfo(f"arg{i}", self.resolve(p, ctx), node=p)
                    for i, p in enumerate(spec.elts)
                )
            else:
                params = (ParamInfo("args", self.primitive("Any"), rest=True),)

        signature = Signature(parameters=params, returns=returns, declared_returns=returns)
        key = (
            "callable",
            tuple((p.name, id(p.type), p.optional, p.rest) for p in params),
            id(returns),
        )
        return self._intern(
            key,
            lambda: ResolvedType(
                TypeFlags.OBJECT,
                name="Callable",
                object_kind=ObjectKind.CALLABLE,
                signature=signature,
            ),
        )

    def _inline_typed_dict(
        self, expr: ast.Subscript, spec: ast.Dict, ctx: Context
    ) -> ResolvedType:
        key = ("tdict", id(expr))
        if key in self._interned:
            return self._interned[key]
        t = ResolvedType(TypeFlags.OBJECT, name="TypedDict", object_kind=ObjectKind.TYPED_DICT)
        self._interned[key] = t

        items: list[PropertyInfo] = []
        for key_node, value_node in zip(spec.keys, spec.values):
            if not (isinstance(key_node, ast.Constant) and isinstance(key_node.value, str)):
                continue
            items.append(
                PropertyInfo(
                    name=key_node.value,
                    type=self.resolve(value_node, ctx),
                    optional=self._is_wrapped_in(value_node, "NotRequired", ctx),
                    node=key_node,
                    source=self.program.get(ctx.module),
                )
            )
        t.items = tuple(items)
        return t

    def _is_wrapped_in(self, expr: ast.expr, form: str, ctx: Context) -> bool:
        if not isinstance(expr, ast.Subscript):
            return False
        return self.special_name(self._lookup_expr(expr.value, ctx)) == form

    # --- Enums ---

    def enum_members(self, symbol: Symbol) -> list[Symbol]:
        cached = self._enum_members.get(id(symbol))
        if cached is not None:
            return cached

        node = symbol.node
        members: list[Symbol] = []
        self._enum_members[id(symbol)] = members
        if not isinstance(node, ast.ClassDef):
            return members

        bases = AstUtils.base_names(node)
        is_str = "StrEnum" in bases
        is_flag = "Flag" in bases or "IntFlag" in bases
        last: int = 0

        for stmt in node.body:
            if isinstance(stmt, ast.Assign) and len(stmt.targets) == 1:
                target, value_node = stmt.targets[0], stmt.value
            elif isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
                target, value_node = stmt.target, stmt.value
            else:
                continue
            if not isinstance(target, ast.Name) or target.id.startswith("_"):
                continue
            if isinstance(value_node, ast.Lambda):
                continue

            if isinstance(value_node, ast.Call) and (
                AstUtils.unparse_node(value_node.func) or ""
            ).endswith("auto"):
                if is_str:
                    value: Any = target.id.lower()
                elif is_flag:
                    value = 1 if last <= 0 else 1 << last.bit_length()
                else:
                    value = last + 1
            else:
                value, _ = AstUtils.extract_literal_value(value_node)

            if isinstance(value, int) and not isinstance(value, bool):
                last = value
            if isinstance(value, bool):
                value = int(value)

            members.append(
                Symbol(
                    name=target.id,
                    kind="enum-member",
                    module=symbol.module,
                    node=stmt,
                    source=symbol.source,
                    parent=symbol,
                    value=value,
                )
            )
        return members

    # --- Functions ---

    def function_type(
        self,
        node: FunctionNode,
        module: str,
        owner: ast.ClassDef | None = None,
    ) -> ResolvedType:
        """The callable type of a ``def`` (bound: ``self``/``cls`` dropped)."""
        key = ("def", id(node))
        if key in self._interned:
            return self._interned[key]

        source = self.program.get(module)
        ctx = Context(module)
        if owner is not None:
            ctx = ctx.with_params(self._declared_params(owner, source))
        ctx = ctx.with_params(self._declared_params(node, source))

        bound = owner is not None and not AstUtils.is_static(node)
        params = self._parameters(node.args, ctx, skip_first=bound)
        required_kw = tuple(
            a.arg
            for a, default in zip(node.args.kwonlyargs, node.args.kw_defaults)
            if default is None
        )

        declared = self.resolve(node.returns, ctx) if node.returns is not None else None
        is_async = isinstance(node, ast.AsyncFunctionDef)
        is_async_gen = is_async and AstUtils.contains_yield(node)
        any_t = self.primitive("Any")
        if is_async_gen:
            returns = declared or self.typing_reference(
                "AsyncGenerator", (any_t, self.primitive("None"))
            )
        elif is_async:
            returns = self.typing_reference("Coroutine", (any_t, any_t, declared or any_t))
        else:
            returns = declared or any_t

        t = ResolvedType(
            TypeFlags.OBJECT,
            name=node.name,
            object_kind=ObjectKind.FUNCTION,
            signature=Signature(
                parameters=params,
                returns=returns,
                declared_returns=declared,
                keyword_only_required=required_kw,
                is_async=is_async,
                is_async_generator=is_async_gen,
            ),
        )
        self._interned[key] = t
        return t

    def lambda_type(self, node: ast.Lambda, module: str) -> ResolvedType:
        key = ("def", id(node))
        if key in self._interned:
            return self._interned[key]
        any_t = self.primitive("Any")
        t = ResolvedType(
            TypeFlags.OBJECT,
            name="<lambda>",
            object_kind=ObjectKind.FUNCTION,
            signature=Signature(
                parameters=self._parameters(node.args, Context(module), skip_first=False),
                returns=any_t,
            ),
        )
        self._interned[key] = t
        return t

    def _parameters(
        self, args: ast.arguments, ctx: Context, skip_first: bool
    ) -> tuple[ParamInfo, ...]:
        positional = list(args.posonlyargs) + list(args.args)
        first_default = len(positional) - len(args.defaults)
        params: list[ParamInfo] = []
        for index, arg in enumerate(positional):
            if skip_first and index == 0:
                continue
            params.append(
                ParamInfo(
                    name=arg.arg,
                    type=self.resolve(arg.annotation, ctx),
                    optional=index >= first_default,
                    node=arg,
                )
            )
        if args.vararg is not None:
            params.append(
                ParamInfo(
                    name=args.vararg.arg,
                    type=self.resolve(args.vararg.annotation, ctx),
                    rest=True,
                    node=args.vararg,
                )
            )
        return tuple(params)

    # --- Classes ---

    def _declared_params(
        self, node: ast.AST | None, source: ModuleSource | None
    ) -> dict[str, ResolvedType]:
        """PEP 695 type parameters declared on a class, function or alias."""
        params: dict[str, ResolvedType] = {}
        for param in getattr(node, "type_params", None) or ():
            symbol = self._pep695.get(id(param))
            if symbol is None:
                symbol = Symbol(
                    name=param.name,
                    kind="typevar",
                    module=source.name if source else "",
                    node=param,
                    source=source,
                )
                self._pep695[id(param)] = symbol
            params[param.name] = self._typevar(symbol)
        return params

    def class_node(self, symbol: Symbol | None) -> ast.ClassDef | None:
        if symbol is None or symbol.source is None:
            return None
        return symbol.node if isinstance(symbol.node, ast.ClassDef) else None

    def _class_context(self, symbol: Symbol, node: ast.ClassDef) -> Context:
        return Context(symbol.module).with_params(
            self._declared_params(node, symbol.source)
        )

    def type_parameters_of(self, symbol: Symbol) -> tuple[ResolvedType, ...]:
        """Declared type parameters of a generic class, in declaration order."""
        cached = self._type_params.get(id(symbol))
        if cached is not None:
            return cached
        node = self.class_node(symbol)
        result: tuple[ResolvedType, ...] = ()
        if node is not None:
            declared = self._declared_params(node, symbol.source)
            if declared:
                result = tuple(declared.values())
            else:
                result = self._base_type_parameters(symbol, node)
        self._type_params[id(symbol)] = result
        return result

    def _base_type_parameters(
        self, symbol: Symbol, node: ast.ClassDef
    ) -> tuple[ResolvedType, ...]:
        ctx = self._class_context(symbol, node)
        collected: list[ResolvedType] = []
        for base in node.bases:
            if not isinstance(base, ast.Subscript):
                continue
            args = base.slice.elts if isinstance(base.slice, ast.Tuple) else [base.slice]
            resolved = [self.resolve(a, ctx) for a in args]
            typevars = [r for r in resolved if r.flags & TypeFlags.TYPE_PARAMETER]
            if self.special_name(self._lookup_expr(base.value, ctx)) in ("Generic", "Protocol"):
                return tuple(typevars)
            for tv in typevars:
                if not any(tv is seen for seen in collected):
                    collected.append(tv)
        return tuple(collected)

    def _base_symbols(self, symbol: Symbol, node: ast.ClassDef) -> list[Symbol]:
        ctx = Context(symbol.module)
        found: list[Symbol] = []
        for base in node.bases:
            target = base.value if isinstance(base, ast.Subscript) else base
            resolved = self._lookup_expr(target, ctx)
            if resolved is not None:
                found.append(resolved)
        return found

    def _is_typed_dict(self, symbol: Symbol, seen: set[int] | None = None) -> bool:
        node = self.class_node(symbol)
        if node is None:
            return False
        seen = seen if seen is not None else set()
        if id(symbol) in seen:
            return False
        seen.add(id(symbol))
        for base in self._base_symbols(symbol, node):
            if self.special_name(base) == "TypedDict" or self._is_typed_dict(base, seen):
                return True
        return False

    def properties_of(self, t: ResolvedType) -> tuple[PropertyInfo, ...]:
        """Structural members of a class or inline TypedDict type."""
        if t.object_kind is ObjectKind.TYPED_DICT:
            return t.items
        if t.symbol is None or t.object_kind not in (ObjectKind.CLASS, ObjectKind.REFERENCE):
            return ()
        return self._class_properties(t.symbol, set())

    def _class_properties(
        self, symbol: Symbol, seen: set[int]
    ) -> tuple[PropertyInfo, ...]:
        cached = self._properties.get(id(symbol))
        if cached is not None:
            return cached
        node = self.class_node(symbol)
        if node is None or id(symbol) in seen:
            return ()
        seen.add(id(symbol))

        merged: dict[str, PropertyInfo] = {}
        for base in self._base_symbols(symbol, node):
            if base.kind == "class":
                for prop in self._class_properties(base, seen):
                    merged[prop.name] = prop

        ctx = self._class_context(symbol, node)
        typed_dict = self._is_typed_dict(symbol)
        total = True
        for kw in node.keywords:
            if kw.arg == "total" and isinstance(kw.value, ast.Constant):
                total = bool(kw.value.value)

        for stmt in node.body:
            if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                name = stmt.target.id
                if name.startswith("_") or self._is_wrapped_in(
                    stmt.annotation, "ClassVar", ctx
                ):
                    continue
                if typed_dict:
                    optional = (
                        not total and not self._is_wrapped_in(stmt.annotation, "Required", ctx)
                    ) or self._is_wrapped_in(stmt.annotation, "NotRequired", ctx)
                else:
                    optional = stmt.value is not None
                merged[name] = PropertyInfo(
                    name=name,
                    type=self.resolve(stmt.annotation, ctx),
                    optional=optional,
                    node=stmt,
                    source=symbol.source,
                )
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                if stmt.name.startswith("_") or not AstUtils.is_property(stmt):
                    continue
                merged[stmt.name] = PropertyInfo(
                    name=stmt.name,
                    type=self.resolve(stmt.returns, ctx),
                    node=stmt,
                    source=symbol.source,
                )

        result = tuple(merged.values())
        self._properties[id(symbol)] = result
        return result

    def call_signature_of(self, t: ResolvedType) -> Signature | None:
        """Explicit call signature: ``Callable[...]`` or a protocol with ``__call__``."""
        if t.object_kind is ObjectKind.CALLABLE:
            return t.signature
        if t.object_kind is not ObjectKind.CLASS or t.symbol is None:
            return None
        if id(t.symbol) in self._call_signatures:
            return self._call_signatures[id(t.symbol)]

        signature: Signature | None = None
        node = self.class_node(t.symbol)
        if node is not None and "Protocol" in AstUtils.base_names(node):
            for stmt in node.body:
                if (
                    isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef))
                    and stmt.name == "__call__"
                ):
                    signature = self.function_type(stmt, t.symbol.module, node).signature
                    break
        self._call_signatures[id(t.symbol)] = signature
        return signature

    # --- Wrappers ---

    @staticmethod
    def wrapper_name(t: ResolvedType) -> str | None:
        """``Awaitable``/``AsyncIterator``/... when ``t`` is such a wrapper."""
        symbol = t.symbol
        if (
            symbol is None
            or symbol.kind != "external"
            or symbol.module not in WRAPPER_MODULES
            or t.object_kind not in (ObjectKind.REFERENCE, ObjectKind.CLASS)
        ):
            return None
        if symbol.name in DEFERRED_WRAPPERS or symbol.name in ASYNC_SEQUENCE_WRAPPERS:
            return symbol.name
        return None

    # --- Locations & Printing ---

    def declaration_location(self, symbol: Symbol) -> SourceLocation:
        if symbol.source is None:
            return SourceLocation(
                file="builtins.pyi" if symbol.module == "builtins" else None,
                package=symbol.module,
                start_line=1,
                start_column=0,
                end_line=1,
                end_column=0,
            )
        return self.node_location(symbol.node, symbol.source)

    @staticmethod
    def node_location(node: ast.AST | None, source: ModuleSource) -> SourceLocation:
        line = getattr(node, "lineno", 1)
        col = getattr(node, "col_offset", 0)
        return SourceLocation(
            file=str(source.path),
            package=None,
            start_line=line,
            start_column=col,
            end_line=getattr(node, "end_lineno", None) or line,
            end_column=getattr(node, "end_col_offset", None) or col,
        )

    def location_of(self, t: ResolvedType) -> SourceLocation | None:
        symbol = t.alias_symbol or t.symbol
        if symbol is None:
            return None
        return self.declaration_location(symbol)

    def type_to_string(self, t: ResolvedType) -> str:
        if t.alias_symbol is not None:
            name = t.alias_symbol.name
            if t.alias_arguments:
                name += f"[{', '.join(self.type_to_string(a) for a in t.alias_arguments)}]"
            return name
        if t.display is not None:
            return t.display

        if t.flags & TypeFlags.UNION:
            return " | ".join(self.type_to_string(p) for p in t.origin or t.members)
        if t.flags & TypeFlags.INTERSECTION:
            return " & ".join(self.type_to_string(m) for m in t.members)
        if t.flags & TypeFlags.ENUM_LITERAL:
            parent = t.symbol.parent.name if t.symbol and t.symbol.parent else "?"
            return f"Literal[{parent}.{t.name}]"
        if t.flags & TypeFlags.LITERAL:
            return f"Literal[{t.value!r}]"

        kind = t.object_kind
        if kind is ObjectKind.ARRAY:
            return f"list[{self.type_to_string(t.type_arguments[0])}]"
        if kind is ObjectKind.REFERENCE:
            args = ", ".join(self.type_to_string(a) for a in t.type_arguments)
            return f"{t.name}[{args}]"
        if kind in (ObjectKind.CALLABLE, ObjectKind.FUNCTION) and t.signature:
            return self.signature_to_string(t.signature)
        if kind is ObjectKind.TYPED_DICT:
            fields = ", ".join(
                f"{p.name!r}: {self.type_to_string(p.type)}" for p in t.items
            )
            return f"TypedDict[{{{fields}}}]"
        return t.name

    def signature_to_string(self, signature: Signature) -> str:
        ret = self.type_to_string(signature.returns)
        if any(p.rest for p in signature.parameters):
            return f"Callable[..., {ret}]"
        params = ", ".join(self.type_to_string(p.type) for p in signature.parameters)
        return f"Callable[[{params}], {ret}]"
