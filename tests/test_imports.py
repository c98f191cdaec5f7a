from pathlib import Path

from exposebridge.generate.imports import (
    ImportResolver,
    relative_module_path,
    render_imports,
)
from exposebridge.model.nodes import (
    FunctionType,
    InterfaceType,
    Parameter,
    PrimitiveType,
    SourceLocation,
    TypeArena,
    TypeReference,
    UnionType,
)
from exposebridge.model.records import ImportDescriptor


def _at(file=None, package=None):
    return SourceLocation(file, package, 1, 0, 1, 0)


class TestRelativeModulePath:
    def test_sibling_directory(self):
        assert relative_module_path(Path("/p/generated"), Path("/p/app/models.py")) == "..app.models"

    def test_nested_source(self):
        out = Path("/p/src/gen")
        assert relative_module_path(out, Path("/p/src/services/user.py")) == "..services.user"

    def test_same_directory(self):
        assert relative_module_path(Path("/p/gen"), Path("/p/gen/models.py")) == ".models"

    def test_package_init(self):
        assert relative_module_path(Path("/p/gen"), Path("/p/gen/pkg/__init__.py")) == ".pkg"


class TestImportResolver:
    def _resolver(self, arena, style="relative"):
        return ImportResolver(
            Path("/p/generated/client.py"),
            arena,
            source_roots=[Path("/p")],
            import_style=style,
        )

    def test_builtins_are_suppressed(self):
        resolver = self._resolver(TypeArena())
        assert resolver.module_path(_at(file="builtins.pyi", package="builtins")) is None

    def test_external_package_as_written(self):
        resolver = self._resolver(TypeArena())
        assert resolver.module_path(_at(package="pydantic")) == "pydantic"

    def test_absolute_style(self):
        resolver = self._resolver(TypeArena(), style="absolute")
        assert resolver.module_path(_at(file="/p/app/models.py")) == "app.models"

    def test_relative_style_stays_inside_the_top_level_package(self):
        resolver = ImportResolver(
            Path("/p/app/generated/client.py"),
            TypeArena(),
            source_roots=[Path("/p")],
        )

        assert resolver.module_path(_at(file="/p/app/models.py")) == "..models"
        assert resolver.module_path(_at(file="/p/app/generated/extra.py")) == ".extra"

    def test_relative_style_falls_back_across_packages(self):
        resolver = self._resolver(TypeArena())

        assert resolver.module_path(_at(file="/p/app/models.py")) == "app.models"
        assert resolver.module_path(_at(file="/p/tool.py")) == "tool"

    def test_artifact_outside_any_package_uses_absolute_paths(self):
        resolver = ImportResolver(
            Path("/p/client.py"), TypeArena(), source_roots=[Path("/p")]
        )
        assert resolver.module_path(_at(file="/p/app/models.py")) == "app.models"

    def test_collect_walks_the_type_graph(self):
        arena = TypeArena()
        user = arena.add(
            InterfaceType(name="User", type_string="User", location=_at(file="/p/app/models.py"))
        )
        none = arena.add(PrimitiveType(name="None", type_string="None"))
        any_t = arena.add(PrimitiveType(name="Any", type_string="Any"))
        optional = arena.add(
            UnionType(members=(user, none), type_string="User | None")
        )
        base = arena.add(
            InterfaceType(
                name="Coroutine",
                type_string="Coroutine[T0, T1, T2]",
                location=_at(package="collections.abc"),
            )
        )
        ref = arena.add(
            TypeReference(
                referenced_type=base,
                type_arguments=(any_t, any_t, optional),
                type_string="Coroutine[Any, Any, User | None]",
            )
        )

        resolver = self._resolver(arena)
        resolver.add_value(_at(file="/p/app/services.py"), "UserService")
        resolver.collect(ref)
        resolver.collect(ref)

        assert resolver.value_imports() == [
            ImportDescriptor(False, "app.services", ("UserService",))
        ]
        assert resolver.type_imports() == [
            ImportDescriptor(True, "app.models", ("User",)),
            ImportDescriptor(True, "collections.abc", ("Coroutine",)),
            ImportDescriptor(True, "typing", ("Any",)),
        ]

    def test_named_callable_protocol_is_imported_by_name(self):
        arena = TypeArena()
        int_t = arena.add(PrimitiveType(name="int", type_string="int"))
        str_t = arena.add(PrimitiveType(name="str", type_string="str"))
        handler = arena.add(
            FunctionType(
                parameters=(Parameter(name="x", type=int_t),),
                return_type=str_t,
                type_string="Handler",
                name="Handler",
                location=_at(file="/p/app/handlers.py"),
            )
        )
        resolver = self._resolver(arena)
        resolver.collect(handler)

        assert resolver.type_imports() == [
            ImportDescriptor(True, "app.handlers", ("Handler",))
        ]

    def test_anonymous_callable_needs_typing_callable(self):
        arena = TypeArena()
        int_t = arena.add(PrimitiveType(name="int", type_string="int"))
        callback = arena.add(
            FunctionType(
                parameters=(Parameter(name="arg0", type=int_t),),
                return_type=int_t,
                type_string="Callable[[int], int]",
            )
        )
        resolver = self._resolver(arena)
        resolver.collect(callback)

        assert resolver.type_imports() == [
            ImportDescriptor(True, "typing", ("Callable",))
        ]

    def test_value_import_shadows_type_import(self):
        arena = TypeArena()
        user = arena.add(
            InterfaceType(name="User", type_string="User", location=_at(file="/p/app/models.py"))
        )
        resolver = self._resolver(arena)
        resolver.add_value(_at(file="/p/app/models.py"), "User")
        resolver.collect(user)

        assert resolver.type_imports() == []


class TestRenderImports:
    def test_type_only_block(self):
        lines = render_imports(
            [ImportDescriptor(False, "typing", ("NamedTuple",))],
            [ImportDescriptor(True, "exposebridge.runtime", ("RpcController",))],
        )

        assert lines == [
            "from __future__ import annotations",
            "",
            "from typing import NamedTuple, TYPE_CHECKING",
            "",
            "if TYPE_CHECKING:",
            "    from exposebridge.runtime import RpcController",
            "",
        ]

    def test_values_only(self):
        lines = render_imports([ImportDescriptor(False, "typing", ("Protocol",))], [])
        assert lines == [
            "from __future__ import annotations",
            "",
            "from typing import Protocol",
            "",
        ]
