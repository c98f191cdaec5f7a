from __future__ import annotations

from typing import Iterable

from ..model.nodes import MarkerDirective
from ..model.records import ExposedFunction, NamespaceGroup
from ..shared.console import BridgeLogger


def camel_case(name: str) -> str:
    """``UserService`` -> ``userService``."""
    return name[:1].lower() + name[1:]


def pascal_case(name: str) -> str:
    """``userAPI`` -> ``UserAPI``."""
    return name[:1].upper() + name[1:]


def namespace_class(key: str) -> str:
    """Class generated for a namespace: ``userAPI`` -> ``UserAPINamespace``."""
    return f"{pascal_case(key)}Namespace"


def snake_case(name: str) -> str:
    """``UserService`` -> ``user_service``."""
    out: list[str] = []
    for i, ch in enumerate(name):
        if ch.isupper() and i and (
            not name[i - 1].isupper() or (i + 1 < len(name) and name[i + 1].islower())
        ):
            out.append("_")
        out.append(ch.lower())
    return "".join(out)


def resolve_namespace(
    directive: MarkerDirective, owner: str | None, default_namespace: str
) -> str:
    """Explicit marker argument, then the owning class, then the default."""
    if directive.args:
        return directive.args[0]
    if owner:
        return camel_case(owner)
    return default_namespace


def group_by_namespace(
    functions: Iterable[ExposedFunction], logger: BridgeLogger | None = None
) -> list[NamespaceGroup]:
    """
    Buckets functions by namespace. Groups are sorted by key and members by
    name, so every artifact walks them in the same order.
    """
    buckets: dict[str, list[ExposedFunction]] = {}
    for fn in functions:
        buckets.setdefault(fn.namespace, []).append(fn)

    groups: list[NamespaceGroup] = []
    for key in sorted(buckets):
        members = sorted(buckets[key], key=lambda f: (f.name, f.owner or ""))
        if logger is not None:
            for prev, cur in zip(members, members[1:]):
                if prev.name == cur.name:
                    logger.warning(
                        f'Channel key "{cur.channel_key}" is exposed more than once: '
                        f"{prev.location.describe()} and {cur.location.describe()}"
                    )
        groups.append(NamespaceGroup(key=key, functions=tuple(members)))
    return groups
