from __future__ import annotations

import os
from pathlib import Path

from ..model.nodes import SourceLocation, TypeArena, TypeId
from ..model.records import ImportDescriptor
from ..semantic.program import module_name_for

BUILTINS_STUB = "builtins.pyi"

# Typing constructs that appear in printed type strings
_TYPING_ORIGINS = {
    "Any": "typing",
    "Callable": "typing",
    "Literal": "typing",
    "TypedDict": "typing_extensions",
}


class ImportResolver:
    """
    Collects the imports one artifact needs.

    Value imports are bound at runtime; type-only imports are rendered under
    ``if TYPE_CHECKING:``. Each resolver owns its visited set, so the same
    type graph can be walked again for another artifact.
    """

    def __init__(
        self,
        artifact_path: Path,
        arena: TypeArena,
        *,
        source_roots: list[Path],
        import_style: str = "relative",
    ) -> None:
        self._out_dir = artifact_path.parent
        self._arena = arena
        self._roots = source_roots
        self._package = _package_scope(artifact_path, source_roots)
        self._style = import_style
        self._values: dict[str, set[str]] = {}
        self._types: dict[str, set[str]] = {}
        self._visited: set[TypeId] = set()

    def module_path(self, location: SourceLocation | None) -> str | None:
        """
        Import path for a declaration, or None when nothing must be imported
        (the builtins surface, or no known origin).
        """
        if location is None:
            return None
        if location.package is not None:
            if location.file and location.file.endswith(BUILTINS_STUB):
                return None
            return location.package
        if location.file is None:
            return None

        source = Path(location.file)
        if (
            self._style == "absolute"
            or self._package is None
            or _package_scope(source, self._roots) != self._package
        ):
            # a relative import may not climb above the top-level package
            return module_name_for(source, self._roots)
        return relative_module_path(self._out_dir, source)

    def add_value(self, location: SourceLocation | None, name: str) -> None:
        path = self.module_path(location)
        if path is not None:
            self._values.setdefault(path, set()).add(name)

    def add_type(self, location: SourceLocation | None, name: str) -> None:
        path = self.module_path(location)
        if path is not None:
            self._types.setdefault(path, set()).add(name.partition(".")[0])

    def add_module_value(self, path: str, name: str) -> None:
        self._values.setdefault(path, set()).add(name)

    def add_module_type(self, path: str, name: str) -> None:
        self._types.setdefault(path, set()).add(name)

    def collect(self, type_id: TypeId) -> None:
        """Walk a type graph and record every name its printed form uses."""
        type_id = self._arena.resolve(type_id)
        if type_id in self._visited or not self._arena.is_filled(type_id):
            return
        self._visited.add(type_id)
        node = self._arena[type_id]

        if node.kind == "primitive":
            if node.name == "Any":
                self._typing("Any")
        elif node.kind in ("interface", "enum"):
            self.add_type(node.location, node.name)
        elif node.kind == "type-reference":
            base = self._arena[node.referenced_type]
            if base.kind == "interface":
                self.add_type(base.location, base.name)
            for arg in node.type_arguments:
                self.collect(arg)
        elif node.kind == "type-alias":
            self.add_type(node.location, node.name)
            for arg in node.type_arguments:
                self.collect(arg)
        elif node.kind == "array":
            self.collect(node.element_type)
        elif node.kind in ("union", "intersection"):
            for member in node.members:
                self.collect(member)
        elif node.kind == "object":
            self._typing("TypedDict")
            for prop in node.properties:
                self.collect(prop.type)
        elif node.kind == "function" and node.name is not None:
            self.add_type(node.location, node.name)
        elif node.kind == "function":
            self._typing("Callable")
            for param in node.parameters:
                self.collect(param.type)
            self.collect(node.return_type)
        elif node.kind == "enum-value":
            self._typing("Literal")
            self.collect(node.parent)
        elif node.kind == "unknown" and node.type_string.startswith("Literal["):
            self._typing("Literal")

    def value_imports(self) -> list[ImportDescriptor]:
        return _descriptors(self._values, is_type_only=False)

    def type_imports(self) -> list[ImportDescriptor]:
        types: dict[str, set[str]] = {}
        for path, names in self._types.items():
            remaining = names - self._values.get(path, set())
            if remaining:
                types[path] = remaining
        return _descriptors(types, is_type_only=True)

    def _typing(self, name: str) -> None:
        self.add_module_type(_TYPING_ORIGINS[name], name)


def relative_module_path(out_dir: Path, source: Path) -> str:
    """
    Dotted relative import path of ``source`` as seen from a module in
    ``out_dir``: ``.models``, ``..services.user``.
    """
    target = source.with_suffix("")
    if target.name == "__init__":
        target = target.parent
    rel = os.path.relpath(target, out_dir).replace(os.sep, "/")

    parts = [p for p in rel.split("/") if p not in ("", ".")]
    ups = 0
    while parts and parts[0] == "..":
        ups += 1
        parts.pop(0)
    return "." * (ups + 1) + ".".join(parts)


def _package_scope(path: Path, roots: list[Path]) -> tuple[Path, str] | None:
    """
    Deepest source root holding ``path`` and the top-level package under it,
    or None for modules outside every root or directly inside one.
    """
    best: Path | None = None
    for root in roots:
        if path.is_relative_to(root) and (best is None or len(root.parts) > len(best.parts)):
            best = root
    if best is None:
        return None
    parts = path.relative_to(best).parts
    if len(parts) < 2:
        return None
    return best, parts[0]


def _descriptors(table: dict[str, set[str]], *, is_type_only: bool) -> list[ImportDescriptor]:
    return [
        ImportDescriptor(is_type_only=is_type_only, path=path, names=tuple(sorted(names)))
        for path, names in sorted(table.items())
    ]


def render_imports(
    values: list[ImportDescriptor], types: list[ImportDescriptor]
) -> list[str]:
    """Import section lines of a generated module (after the banner)."""
    lines = ["from __future__ import annotations", ""]
    if types:
        values = _with_name(values, "typing", "TYPE_CHECKING")
    if values:
        lines.extend(d.render() for d in values)
        lines.append("")
    if types:
        lines.append("if TYPE_CHECKING:")
        lines.extend(f"    {d.render()}" for d in types)
        lines.append("")
    return lines


def _with_name(
    descriptors: list[ImportDescriptor], path: str, name: str
) -> list[ImportDescriptor]:
    table = {d.path: set(d.names) for d in descriptors}
    table.setdefault(path, set()).add(name)
    return _descriptors(table, is_type_only=False)
