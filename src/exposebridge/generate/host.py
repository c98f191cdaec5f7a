from __future__ import annotations

from ..model.records import NamespaceGroup
from .base import ArtifactGenerator, join_blocks
from .grouping import snake_case
from .imports import ImportResolver


def instance_name(owner: str) -> str:
    """Module-level singleton holding an owner class instance."""
    return f"_{snake_case(owner)}_instance"


class HostModuleGenerator(ArtifactGenerator):
    """
    Host registration module: one singleton per owner class and one
    ``controller.register`` call per exposed function.
    """

    DESCRIPTION = "host registration module"

    def _body(self, groups: list[NamespaceGroup], imports: ImportResolver) -> list[str]:
        imports.add_module_type(self._rpc_module, "RpcController")

        owners: set[str] = set()
        registrations: list[str] = []
        for group in groups:
            for fn in group.functions:
                if fn.owner:
                    imports.add_value(fn.location, fn.owner)
                    owners.add(fn.owner)
                    target = f"{instance_name(fn.owner)}.{fn.name}"
                else:
                    imports.add_value(fn.location, fn.name)
                    target = fn.name
                method = "register_generator" if fn.is_async_iterator else "register"
                registrations.append(
                    f'    controller.{method}("{fn.channel_key}", {target})'
                )

        blocks: list[list[str]] = []
        if owners:
            blocks.append([f"{instance_name(o)} = {o}()" for o in sorted(owners)])
        blocks.append(
            [
                "def register_handlers(controller: RpcController) -> None:",
                '    """Bind every exposed function to its channel key."""',
                *registrations,
            ]
        )
        return join_blocks(blocks)
