import ast
import re
from typing import Any, Iterator

FunctionNode = ast.FunctionDef | ast.AsyncFunctionDef

_COMMENT_RE = re.compile(r"^\s*#(.*)$")


class AstUtils:
    """
    Static utilities for AST analysis and node extraction.
    """

    ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})

    @staticmethod
    def unparse_node(node: ast.AST | None) -> str | None:
        if node is None:
            return None
        try:
            return ast.unparse(node)
        except Exception:
            return f"<ast.{type(node).__name__}>"

    @staticmethod
    def get_docstring(node: ast.AST) -> str | None:
        if not isinstance(
            node, (ast.AsyncFunctionDef, ast.FunctionDef, ast.ClassDef, ast.Module)
        ):
            return None
        doc = ast.get_docstring(node, clean=True)
        return doc if doc else None

    @staticmethod
    def extract_literal_value(node: ast.expr | None) -> tuple[Any | None, str]:
        value_repr = AstUtils.unparse_node(node) or "None"

        if node is None:
            return None, value_repr

        if isinstance(node, ast.Constant):
            val = node.value
            if isinstance(val, (str, int, float, bool, type(None))):
                return val, value_repr

        # Negative numbers parse as a unary operation
        if (
            isinstance(node, ast.UnaryOp)
            and isinstance(node.op, ast.USub)
            and isinstance(node.operand, ast.Constant)
            and isinstance(node.operand.value, (int, float))
            and not isinstance(node.operand.value, bool)
        ):
            return -node.operand.value, value_repr

        return None, value_repr

    @staticmethod
    def base_names(node: ast.ClassDef) -> list[str]:
        names: list[str] = []
        for base in node.bases:
            if isinstance(base, ast.Subscript):
                base = base.value
            if isinstance(base, ast.Name):
                names.append(base.id)
            elif isinstance(base, ast.Attribute):
                names.append(base.attr)
        return names

    @staticmethod
    def is_enum(node: ast.ClassDef) -> bool:
        return any(name in AstUtils.ENUM_BASES for name in AstUtils.base_names(node))

    @staticmethod
    def decorator_names(decorators: list[ast.expr]) -> list[str]:
        names: list[str] = []
        for deco in decorators:
            target = deco.func if isinstance(deco, ast.Call) else deco
            name = AstUtils.unparse_node(target)
            if name:
                names.append(name)
        return names

    @staticmethod
    def is_static(node: FunctionNode) -> bool:
        return any(
            n.endswith("staticmethod") for n in AstUtils.decorator_names(node.decorator_list)
        )

    @staticmethod
    def is_property(node: FunctionNode) -> bool:
        return any(
            n == "property" or n.endswith(".getter") or n.endswith("cached_property")
            for n in AstUtils.decorator_names(node.decorator_list)
        )

    @staticmethod
    def contains_yield(node: FunctionNode | ast.Lambda) -> bool:
        """True when the function body itself (not nested scopes) yields."""
        stack: list[ast.AST] = list(ast.iter_child_nodes(node))
        while stack:
            child = stack.pop()
            if isinstance(child, (ast.Yield, ast.YieldFrom)):
                return True
            if isinstance(
                child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)
            ):
                continue
            stack.extend(ast.iter_child_nodes(child))
        return False

    @staticmethod
    def leading_comments(lines: list[str], node: ast.stmt) -> list[str]:
        """
        Text of the contiguous ``#`` comment block directly above a statement
        (above its decorators, if any), top to bottom.
        """
        first = node.lineno
        for deco in getattr(node, "decorator_list", []):
            first = min(first, deco.lineno)

        collected: list[str] = []
        index = first - 2  # 0-based index of the line above
        while index >= 0:
            match = _COMMENT_RE.match(lines[index])
            if not match:
                break
            collected.append(match.group(1).strip())
            index -= 1
        collected.reverse()
        return collected

    @staticmethod
    def iter_module_statements(body: list[ast.stmt]) -> Iterator[ast.stmt]:
        """Top-level statements, descending into ``if``/``try`` blocks."""
        for stmt in body:
            if isinstance(stmt, ast.If):
                yield from AstUtils.iter_module_statements(stmt.body)
                yield from AstUtils.iter_module_statements(stmt.orelse)
            elif isinstance(stmt, ast.Try):
                yield from AstUtils.iter_module_statements(stmt.body)
                for handler in stmt.handlers:
                    yield from AstUtils.iter_module_statements(handler.body)
                yield from AstUtils.iter_module_statements(stmt.orelse)
                yield from AstUtils.iter_module_statements(stmt.finalbody)
            else:
                yield stmt
