from __future__ import annotations

from pathlib import Path

from ..model.nodes import FunctionType, TypeArena, TypeId
from ..model.records import ExposedFunction, NamespaceGroup
from ..semantic.checker import DEFERRED_WRAPPERS, WRAPPER_MODULES
from .imports import ImportResolver, render_imports

TOOL_NAME = "expose-bridge"


def banner(description: str) -> list[str]:
    return [
        f"# This is auto-generated {description} by {TOOL_NAME}.",
        "# Do not edit manually this file.",
    ]


def join_blocks(blocks: list[list[str]]) -> list[str]:
    """Top-level blocks separated by two blank lines (imports end with one)."""
    lines: list[str] = []
    for block in blocks:
        lines.extend(["", ""] if lines else [""])
        lines.extend(block)
    return lines


class ArtifactGenerator:
    """
    Base of the three artifact generators: owns the arena, the artifact
    path and a fresh ``ImportResolver`` per ``generate`` call.
    """

    DESCRIPTION = ""

    def __init__(
        self,
        arena: TypeArena,
        artifact_path: Path,
        *,
        source_roots: list[Path],
        import_style: str = "relative",
        rpc_module: str = "exposebridge.runtime",
    ) -> None:
        self._arena = arena
        self.artifact_path = artifact_path
        self._source_roots = source_roots
        self._import_style = import_style
        self._rpc_module = rpc_module

    def generate(self, groups: list[NamespaceGroup]) -> str:
        imports = ImportResolver(
            self.artifact_path,
            self._arena,
            source_roots=self._source_roots,
            import_style=self._import_style,
        )
        body = self._body(groups, imports)
        lines = banner(self.DESCRIPTION)
        lines.extend(render_imports(imports.value_imports(), imports.type_imports()))
        lines.extend(body)
        return "\n".join(lines).rstrip("\n") + "\n"

    def _body(self, groups: list[NamespaceGroup], imports: ImportResolver) -> list[str]:
        raise NotImplementedError

    # --- Shared Helpers ---

    def function_node(self, fn: ExposedFunction) -> FunctionType:
        node = self._arena[fn.type]
        if not isinstance(node, FunctionType):
            raise TypeError(f"{fn.channel_key} does not carry a function type")
        return node

    def type_string(self, type_id: TypeId) -> str:
        return self._arena[type_id].type_string

    def unwrap_deferred(self, type_id: TypeId) -> TypeId | None:
        """
        Inner type when ``type_id`` is literally a reference to a deferred
        wrapper (``Awaitable[T]``, ``Coroutine[Any, Any, T]``, ``Future[T]``).
        Aliases and nested wrappers are not looked through.
        """
        node = self._arena[type_id]
        if node.kind != "type-reference" or not node.type_arguments:
            return None
        base = self._arena[node.referenced_type]
        if base.kind != "interface" or base.name not in DEFERRED_WRAPPERS:
            return None
        if base.location is None or base.location.package not in WRAPPER_MODULES:
            return None
        return node.type_arguments[-1] if base.name == "Coroutine" else node.type_arguments[0]

    def parameter_list(
        self, fn_node: FunctionType, imports: ImportResolver, optional_default: str
    ) -> str:
        """``self, a: int, b: str = <default>, *rest: T`` for a method header."""
        parts = ["self"]
        for param in fn_node.parameters:
            imports.collect(param.type)
            annotation = self.type_string(param.type)
            if param.is_rest:
                parts.append(f"*{param.name}: {annotation}")
            elif param.is_optional:
                parts.append(f"{param.name}: {annotation} = {optional_default}")
            else:
                parts.append(f"{param.name}: {annotation}")
        return ", ".join(parts)
