from __future__ import annotations

from ..model.records import ExposedFunction, NamespaceGroup
from .base import ArtifactGenerator, join_blocks
from .grouping import namespace_class
from .imports import ImportResolver

OMITTED = "_OMITTED"

_SENTINEL_BLOCK = [
    f"{OMITTED}: Any = object()",
    "",
    "",
    "def _args(*values: Any) -> tuple[Any, ...]:",
    '    """Positional arguments with trailing omitted ones dropped."""',
    "    end = len(values)",
    f"    while end and values[end - 1] is {OMITTED}:",
    "        end -= 1",
    "    return values[:end]",
]


class ClientModuleGenerator(ArtifactGenerator):
    """
    Client bridge module: one forwarder class per namespace, a ``Bridge``
    tuple holding them, and ``expose(controller)`` building it.
    """

    DESCRIPTION = "client bridge module"

    def _body(self, groups: list[NamespaceGroup], imports: ImportResolver) -> list[str]:
        imports.add_module_type(self._rpc_module, "RpcController")
        imports.add_module_value("typing", "NamedTuple")

        needs_sentinel = False
        classes: list[list[str]] = []
        for group in groups:
            block = [
                f"class {namespace_class(group.key)}:",
                "    def __init__(self, controller: RpcController) -> None:",
                "        self._controller = controller",
            ]
            for fn in group.functions:
                forwarder, uses_sentinel = self._forwarder(fn, imports)
                needs_sentinel = needs_sentinel or uses_sentinel
                block.append("")
                block.extend(forwarder)
            classes.append(block)

        bridge = ["class Bridge(NamedTuple):"]
        factory = ["def expose(controller: RpcController) -> Bridge:"]
        if groups:
            bridge.extend(f"    {g.key}: {namespace_class(g.key)}" for g in groups)
            factory.append("    return Bridge(")
            factory.extend(
                f"        {g.key}={namespace_class(g.key)}(controller)," for g in groups
            )
            factory.append("    )")
        else:
            bridge.append('    """No namespaces are exposed."""')
            factory.append("    return Bridge()")

        blocks: list[list[str]] = []
        if needs_sentinel:
            imports.add_module_value("typing", "Any")
            blocks.append(list(_SENTINEL_BLOCK))
        blocks.extend(classes)
        blocks.extend([bridge, factory])
        return join_blocks(blocks)

    def _forwarder(
        self, fn: ExposedFunction, imports: ImportResolver
    ) -> tuple[list[str], bool]:
        fn_node = self.function_node(fn)
        params = self.parameter_list(fn_node, imports, OMITTED)

        positional = [p.name for p in fn_node.parameters if not p.is_rest]
        rest = [p.name for p in fn_node.parameters if p.is_rest]
        uses_sentinel = any(p.is_optional for p in fn_node.parameters)
        if uses_sentinel:
            args = [f"*_args({', '.join(positional)})"]
        else:
            args = list(positional)
        args.extend(f"*{name}" for name in rest)
        call_args = "".join(f", {a}" for a in args)

        if fn.is_async_iterator:
            returns = fn_node.return_type
            header = f"    def {fn.name}({params}) -> {self.type_string(returns)}:"
            call = f'        return self._controller.iterate("{fn.channel_key}"{call_args})'
        elif (inner := self.unwrap_deferred(fn_node.return_type)) is not None:
            returns = inner
            header = f"    async def {fn.name}({params}) -> {self.type_string(returns)}:"
            call = f'        return await self._controller.invoke("{fn.channel_key}"{call_args})'
        else:
            returns = fn_node.return_type
            header = f"    def {fn.name}({params}) -> {self.type_string(returns)}:"
            call = f'        return self._controller.invoke("{fn.channel_key}"{call_args})'

        imports.collect(returns)
        return [header, call], uses_sentinel
