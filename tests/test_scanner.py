"""Marker parsing and validation of exposed declarations."""

import pytest

from exposebridge.config import BridgeOptions
from exposebridge.extract.scanner import parse_marker
from exposebridge.model.nodes import MarkerDirective
from exposebridge.pipeline import BridgeGenerator


class TestParseMarker:
    def test_bare_expose(self):
        assert parse_marker(["@decorator expose"]) == MarkerDirective("expose", ())

    def test_namespace_argument(self):
        directive = parse_marker(["some text", "  @decorator expose userAPI  "])
        assert directive == MarkerDirective("expose", ("userAPI",))

    def test_other_decorators_are_ignored(self):
        assert parse_marker(["@decorator memoize", "@decoratorexpose"]) is None

    def test_first_expose_wins(self):
        directive = parse_marker(["@decorator expose a", "@decorator expose b"])
        assert directive.args == ("a",)


def _scan(write_project, generator, source):
    root = write_project({"api.py": source})
    path = root / "api.py"
    return generator.analyze_files([path]), path


class TestDeclarationScanner:
    def test_pascal_case_namespace_is_rejected(self, write_project, generator, logger):
        analysis, path = _scan(
            write_project,
            generator,
            """
            class Files:
                # @decorator expose FileAPI
                async def read(self, path: str) -> str:
                    return path
            """,
        )

        assert analysis.functions == []
        assert logger.warnings == [
            '@decorator expose argument should be camelCase: "FileAPI" '
            f"in Files.read at {path}:3"
        ]

    def test_too_many_arguments(self, write_project, generator, logger):
        analysis, path = _scan(
            write_project,
            generator,
            """
            # @decorator expose one two
            async def both() -> None: ...
            """,
        )

        assert analysis.functions == []
        assert len(logger.warnings) == 1
        assert logger.warnings[0].endswith(f"both at {path}:2")

    def test_non_awaitable_return_is_rejected(self, write_project, generator, logger):
        analysis, path = _scan(
            write_project,
            generator,
            """
            # @decorator expose
            def version() -> str:
                return "1"
            """,
        )

        assert analysis.functions == []
        assert logger.warnings == [
            f"@decorator expose function should return an awaitable: version at {path}:2"
        ]

    def test_awaitable_and_unannotated_returns_are_accepted(
        self, write_project, generator, logger
    ):
        analysis, _ = _scan(
            write_project,
            generator,
            """
            import asyncio
            from typing import Awaitable


            # @decorator expose
            def ping() -> Awaitable[bool]:
                return asyncio.sleep(0, True)


            # @decorator expose
            def legacy():
                return asyncio.sleep(0)
            """,
        )

        assert sorted(fn.name for fn in analysis.functions) == ["legacy", "ping"]
        assert logger.warnings == []

    def test_required_keyword_only_parameters(self, write_project, generator, logger):
        analysis, path = _scan(
            write_project,
            generator,
            """
            # @decorator expose
            async def login(*, token: str) -> bool:
                return True
            """,
        )

        assert analysis.functions == []
        assert "(token)" in logger.warnings[0]
        assert logger.warnings[0].endswith(f"login at {path}:2")

    def test_lambda_binding(self, write_project, generator):
        analysis, _ = _scan(
            write_project,
            generator,
            """
            import asyncio

            # @decorator expose
            tick = lambda delay: asyncio.sleep(delay)
            """,
        )

        [fn] = analysis.functions
        assert fn.kind == "lambda"
        assert fn.channel_key == "mainProcess:tick"

    def test_docstring_marker(self, write_project, generator):
        analysis, _ = _scan(
            write_project,
            generator,
            '''
            async def stats() -> dict[str, int]:
                """Collect counters.

                @decorator expose metrics
                """
                return {}
            ''',
        )

        [fn] = analysis.functions
        assert fn.namespace == "metrics"

    def test_unmarked_and_foreign_markers_are_ignored(
        self, write_project, generator, logger
    ):
        analysis, _ = _scan(
            write_project,
            generator,
            """
            # @decorator memoize
            async def cached() -> int:
                return 1


            async def plain() -> int:
                return 2
            """,
        )

        assert analysis.functions == []
        assert logger.warnings == []

    def test_owner_class_gives_the_namespace(self, write_project, generator):
        analysis, _ = _scan(
            write_project,
            generator,
            """
            class SettingsStore:
                # @decorator expose
                @staticmethod
                async def load(name: str) -> str:
                    return name
            """,
        )

        [fn] = analysis.functions
        assert fn.channel_key == "settingsStore:load"
        params = analysis.arena[fn.type].parameters
        assert [p.name for p in params] == ["name"]


ASYNC_ITERATOR_SOURCE = """
from typing import AsyncIterator


# @decorator expose
async def ticks(limit: int) -> AsyncIterator[int]:
    for i in range(limit):
        yield i
"""


class TestAsyncIterators:
    def test_rejected_unless_enabled(self, write_project, generator, logger):
        analysis, _ = _scan(write_project, generator, ASYNC_ITERATOR_SOURCE)

        assert analysis.functions == []
        assert "should return an awaitable" in logger.warnings[0]

    @pytest.fixture
    def iterating(self, tmp_path, logger):
        options = BridgeOptions(base_dir=str(tmp_path), async_iterators=True)
        return BridgeGenerator(options, logger)

    def test_accepted_when_enabled(self, write_project, iterating, logger):
        root = write_project({"api.py": ASYNC_ITERATOR_SOURCE})
        iterating.run([root / "api.py"])

        host = (root / "generated/host_bridge.py").read_text(encoding="utf-8")
        client = (root / "generated/client_bridge.py").read_text(encoding="utf-8")
        assert '    controller.register_generator("mainProcess:ticks", ticks)' in host
        assert "    def ticks(self, limit: int) -> AsyncIterator[int]:" in client
        assert '        return self._controller.iterate("mainProcess:ticks", limit)' in client
        assert "    from typing import AsyncIterator" in client
        assert logger.warnings == []
