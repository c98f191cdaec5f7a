from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Any, Literal

from .ast_ops import AstUtils
from .program import ModuleSource

SymbolKind = Literal[
    "class",
    "enum",
    "enum-member",
    "function",
    "alias",
    "typevar",
    "variable",
    "import",
    "module",
    "external",
    "external-module",
]

_TYPEVAR_FACTORIES = frozenset({"TypeVar", "ParamSpec", "TypeVarTuple"})


@dataclass(slots=True, eq=False)
class Symbol:
    """
    A named declaration. Identity matters: the checker interns resolved types
    by symbol identity, so one declaration must map to one ``Symbol``.
    """

    name: str
    kind: SymbolKind
    module: str
    node: ast.AST | None = None
    source: ModuleSource | None = None
    # import bindings: ``target_name`` is None when the module itself is bound
    target_module: str | None = None
    target_name: str | None = None
    # enum members
    parent: Symbol | None = None
    value: Any = None

    @property
    def is_external(self) -> bool:
        return self.source is None


@dataclass(slots=True)
class ModuleScope:
    """Top-level bindings of one module."""

    source: ModuleSource
    symbols: dict[str, Symbol] = field(default_factory=dict)
    star_imports: list[str] = field(default_factory=list)

    def get(self, name: str) -> Symbol | None:
        return self.symbols.get(name)

    @classmethod
    def build(cls, source: ModuleSource) -> "ModuleScope":
        scope = cls(source=source)
        for stmt in AstUtils.iter_module_statements(source.tree.body):
            scope._bind(stmt)
        return scope

    # --- Private Helpers ---

    def _add(self, name: str, kind: SymbolKind, node: ast.AST, **extra: Any) -> None:
        self.symbols[name] = Symbol(
            name=name, kind=kind, module=self.source.name, node=node,
            source=self.source, **extra,
        )

    def _bind(self, stmt: ast.stmt) -> None:
        type_alias_stmt = getattr(ast, "TypeAlias", None)

        if isinstance(stmt, ast.ClassDef):
            self._add(stmt.name, "enum" if AstUtils.is_enum(stmt) else "class", stmt)

        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            self._add(stmt.name, "function", stmt)

        elif type_alias_stmt is not None and isinstance(stmt, type_alias_stmt):
            self._add(stmt.name.id, "alias", stmt)

        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            ann = AstUtils.unparse_node(stmt.annotation) or ""
            is_alias = ann.rpartition(".")[2] == "TypeAlias" and stmt.value is not None
            self._add(stmt.target.id, "alias" if is_alias else "variable", stmt)

        elif (
            isinstance(stmt, ast.Assign)
            and len(stmt.targets) == 1
            and isinstance(stmt.targets[0], ast.Name)
        ):
            self._add(stmt.targets[0].id, self._assignment_kind(stmt.value), stmt)

        elif isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if alias.asname:
                    self._add(
                        alias.asname, "import", stmt, target_module=alias.name
                    )
                else:
                    # ``import a.b`` binds ``a``
                    head = alias.name.partition(".")[0]
                    self._add(head, "import", stmt, target_module=head)

        elif isinstance(stmt, ast.ImportFrom):
            target = self._absolute_module(stmt)
            if target is None:
                return
            for alias in stmt.names:
                if alias.name == "*":
                    self.star_imports.append(target)
                    continue
                self._add(
                    alias.asname or alias.name,
                    "import",
                    stmt,
                    target_module=target,
                    target_name=alias.name,
                )

    def _absolute_module(self, stmt: ast.ImportFrom) -> str | None:
        if not stmt.level:
            return stmt.module
        parts = self.source.package.split(".") if self.source.package else []
        up = stmt.level - 1
        if up > len(parts):
            return None
        base = parts[: len(parts) - up] if up else parts
        if stmt.module:
            base = base + stmt.module.split(".")
        return ".".join(base) or None

    @staticmethod
    def _assignment_kind(value: ast.expr) -> SymbolKind:
        if isinstance(value, ast.Call):
            func = AstUtils.unparse_node(value.func) or ""
            short = func.rpartition(".")[2]
            if short in _TYPEVAR_FACTORIES:
                return "typevar"
            if short == "NewType":
                return "alias"
            return "variable"
        if isinstance(value, ast.Subscript):
            return "alias"
        if isinstance(value, ast.BinOp) and isinstance(
            value.op, (ast.BitOr, ast.BitAnd)
        ):
            return "alias"
        return "variable"


def alias_value(symbol: Symbol) -> ast.expr | None:
    """The aliased type expression of an ``alias`` symbol."""
    node = symbol.node
    if isinstance(node, (ast.Assign, ast.AnnAssign)):
        value = node.value
        if isinstance(value, ast.Call):
            # NewType("UserId", int)
            return value.args[1] if len(value.args) > 1 else None
        return value
    return getattr(node, "value", None)
