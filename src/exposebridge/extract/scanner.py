from __future__ import annotations

import ast
import re
from pathlib import Path
from typing import Iterable

from ..generate.grouping import resolve_namespace
from ..model.nodes import MarkerDirective
from ..model.records import ExposedFunction, FunctionKind
from ..semantic.ast_ops import AstUtils, FunctionNode
from ..semantic.checker import (
    ASYNC_SEQUENCE_WRAPPERS,
    DEFERRED_WRAPPERS,
    Context,
    ObjectKind,
    ResolvedType,
    Signature,
    TypeChecker,
)
from ..semantic.program import ModuleSource
from ..shared.console import BridgeLogger
from .extractor import TypeModelExtractor

EXPOSE = "expose"

_MARKER_RE = re.compile(r"^@decorator\s+(\S+)(?:\s+(.*?))?\s*$")
_NAMESPACE_RE = re.compile(r"^[a-z][a-zA-Z0-9]*$")


def parse_marker(lines: Iterable[str]) -> MarkerDirective | None:
    """
    First ``@decorator expose [args...]`` directive in ``lines``.

    Directives naming another decorator are ignored.
    """
    for raw in lines:
        match = _MARKER_RE.match(raw.strip())
        if not match or match.group(1) != EXPOSE:
            continue
        args = tuple(match.group(2).split()) if match.group(2) else ()
        return MarkerDirective(decorator=EXPOSE, args=args)
    return None


class DeclarationScanner:
    """
    Finds marker-annotated classes' methods, functions and lambda bindings
    in a module and turns the valid ones into ``ExposedFunction`` records.
    """

    def __init__(
        self,
        checker: TypeChecker,
        extractor: TypeModelExtractor,
        logger: BridgeLogger,
        *,
        default_namespace: str = "mainProcess",
        async_iterators: bool = False,
        skip_paths: Iterable[Path] = (),
    ) -> None:
        self._checker = checker
        self._extractor = extractor
        self._logger = logger
        self._default_namespace = default_namespace
        self._async_iterators = async_iterators
        self._skip = {p.resolve() for p in skip_paths}

    def scan(self, module: ModuleSource) -> list[ExposedFunction]:
        if module.path in self._skip:
            self._logger.debug(f"Skipping generated artifact {module.path}")
            return []

        found: list[ExposedFunction | None] = []
        for stmt in module.tree.body:
            if isinstance(stmt, ast.ClassDef):
                for member in stmt.body:
                    if isinstance(member, (ast.FunctionDef, ast.AsyncFunctionDef)):
                        fn_type = self._checker.function_type(member, module.name, stmt)
                        found.append(
                            self._consider(
                                module, member, "method", member.name, stmt.name, fn_type
                            )
                        )

            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                fn_type = self._checker.function_type(stmt, module.name)
                found.append(
                    self._consider(module, stmt, "function", stmt.name, None, fn_type)
                )

            elif (binding := self._lambda_binding(stmt, module)) is not None:
                name, fn_type = binding
                found.append(self._consider(module, stmt, "lambda", name, None, fn_type))

        return [fn for fn in found if fn is not None]

    # --- Private Helpers ---

    def _lambda_binding(
        self, stmt: ast.stmt, module: ModuleSource
    ) -> tuple[str, ResolvedType] | None:
        if isinstance(stmt, ast.Assign):
            if len(stmt.targets) != 1 or not isinstance(stmt.targets[0], ast.Name):
                return None
            target, value, annotation = stmt.targets[0], stmt.value, None
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            target, value, annotation = stmt.target, stmt.value, stmt.annotation
        else:
            return None
        if not isinstance(value, ast.Lambda):
            return None

        if annotation is not None:
            declared = self._checker.resolve(annotation, Context(module.name))
            if declared.object_kind is ObjectKind.CALLABLE:
                return target.id, declared
        return target.id, self._checker.lambda_type(value, module.name)

    def _consider(
        self,
        module: ModuleSource,
        node: FunctionNode | ast.stmt,
        kind: FunctionKind,
        name: str,
        owner: str | None,
        fn_type: ResolvedType,
    ) -> ExposedFunction | None:
        directive = parse_marker(self._marker_lines(module, node))
        if directive is None:
            return None

        where = f"{owner}.{name}" if owner else name
        at = f"{module.path}:{node.lineno}"
        subject = "method" if owner else "function"
        signature = self._checker.call_signature_of(fn_type) or fn_type.signature

        if len(directive.args) > 1:
            self._logger.warning(
                f"@decorator expose takes at most one namespace argument, "
                f"got {len(directive.args)}: {where} at {at}"
            )
            return None
        if directive.args and not _NAMESPACE_RE.match(directive.args[0]):
            self._logger.warning(
                f'@decorator expose argument should be camelCase: "{directive.args[0]}" '
                f"in {where} at {at}"
            )
            return None
        if signature is not None and signature.keyword_only_required:
            self._logger.warning(
                f"@decorator expose {subject} has required keyword-only parameters "
                f"({', '.join(signature.keyword_only_required)}): {where} at {at}"
            )
            return None

        is_async_iterator = self._is_async_iterator(signature)
        if not self._returns_deferred(signature, is_async_iterator):
            expected = "an awaitable or async iterator" if self._async_iterators else "an awaitable"
            self._logger.warning(
                f"@decorator expose {subject} should return {expected}: {where} at {at}"
            )
            return None

        location = self._checker.node_location(node, module)
        return ExposedFunction(
            kind=kind,
            name=name,
            owner=owner,
            type=self._extractor.extract(fn_type, location),
            directive=directive,
            namespace=resolve_namespace(directive, owner, self._default_namespace),
            location=location,
            is_async_iterator=is_async_iterator,
        )

    def _marker_lines(self, module: ModuleSource, node: ast.stmt) -> list[str]:
        lines = AstUtils.leading_comments(module.lines, node)
        doc = AstUtils.get_docstring(node)
        if doc:
            lines.extend(doc.splitlines())
        return lines

    def _is_async_iterator(self, signature: Signature | None) -> bool:
        if signature is None:
            return False
        if signature.is_async_generator:
            return True
        declared = signature.declared_returns
        return (
            declared is not None
            and self._checker.wrapper_name(declared) in ASYNC_SEQUENCE_WRAPPERS
        )

    def _returns_deferred(self, signature: Signature | None, is_async_iterator: bool) -> bool:
        if signature is None:
            return True
        if is_async_iterator:
            return self._async_iterators
        if signature.is_async:
            return True
        declared = signature.declared_returns
        if declared is None:
            return True
        return self._checker.wrapper_name(declared) in DEFERRED_WRAPPERS

