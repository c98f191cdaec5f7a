from __future__ import annotations

from ..model.records import NamespaceGroup
from .base import ArtifactGenerator, join_blocks
from .grouping import namespace_class
from .imports import ImportResolver


class TypeDeclarationGenerator(ArtifactGenerator):
    """
    Type declaration module: one ``Protocol`` per namespace plus
    ``ExposedNamespaces`` with one read-only property per namespace.
    """

    DESCRIPTION = "type declarations"

    def _body(self, groups: list[NamespaceGroup], imports: ImportResolver) -> list[str]:
        imports.add_module_value("typing", "Protocol")

        blocks: list[list[str]] = []
        for group in groups:
            block = [f"class {namespace_class(group.key)}(Protocol):"]
            for index, fn in enumerate(group.functions):
                fn_node = self.function_node(fn)
                params = self.parameter_list(fn_node, imports, "...")
                imports.collect(fn_node.return_type)
                if index:
                    block.append("")
                block.append(
                    f"    def {fn.name}({params}) -> "
                    f"{self.type_string(fn_node.return_type)}: ..."
                )
            blocks.append(block)

        namespaces = [
            "class ExposedNamespaces(Protocol):",
            '    """Every exposed namespace, as seen from the client context."""',
        ]
        for group in groups:
            namespaces.extend(
                [
                    "",
                    "    @property",
                    f"    def {group.key}(self) -> {namespace_class(group.key)}: ...",
                ]
            )
        blocks.append(namespaces)
        return join_blocks(blocks)
