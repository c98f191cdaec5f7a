"""End-to-end generation of the host, client and type declaration modules."""

import asyncio
import hashlib
import importlib
import sys
from pathlib import Path

import pytest
import yaml

from exposebridge.config import BridgeOptions
from exposebridge.errors import NoValidFilesError
from exposebridge.pipeline import BridgeGenerator

EXPECTED_HOST = '''\
# This is auto-generated host registration module by expose-bridge.
# Do not edit manually this file.
from __future__ import annotations

from app.services import UserService, getUptime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from exposebridge.runtime import RpcController


_user_service_instance = UserService()


def register_handlers(controller: RpcController) -> None:
    """Bind every exposed function to its channel key."""
    controller.register("mainProcess:getUptime", getUptime)
    controller.register("userAPI:getUser", _user_service_instance.getUser)
'''

EXPECTED_CLIENT = '''\
# This is auto-generated client bridge module by expose-bridge.
# Do not edit manually this file.
from __future__ import annotations

from typing import NamedTuple, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models import User
    from exposebridge.runtime import RpcController


class MainProcessNamespace:
    def __init__(self, controller: RpcController) -> None:
        self._controller = controller

    async def getUptime(self) -> float:
        return await self._controller.invoke("mainProcess:getUptime")


class UserAPINamespace:
    def __init__(self, controller: RpcController) -> None:
        self._controller = controller

    async def getUser(self, id: int) -> User:
        return await self._controller.invoke("userAPI:getUser", id)


class Bridge(NamedTuple):
    mainProcess: MainProcessNamespace
    userAPI: UserAPINamespace


def expose(controller: RpcController) -> Bridge:
    return Bridge(
        mainProcess=MainProcessNamespace(controller),
        userAPI=UserAPINamespace(controller),
    )
'''

EXPECTED_TYPES = '''\
# This is auto-generated type declarations by expose-bridge.
# Do not edit manually this file.
from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from app.models import User
    from collections.abc import Coroutine
    from typing import Any


class MainProcessNamespace(Protocol):
    def getUptime(self) -> Coroutine[Any, Any, float]: ...


class UserAPINamespace(Protocol):
    def getUser(self, id: int) -> Coroutine[Any, Any, User]: ...


class ExposedNamespaces(Protocol):
    """Every exposed namespace, as seen from the client context."""

    @property
    def mainProcess(self) -> MainProcessNamespace: ...

    @property
    def userAPI(self) -> UserAPINamespace: ...
'''


def _digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


class TestGeneratedArtifacts:
    def test_host_module_text(self, user_project, generator):
        generator.run([user_project / "app/services.py"])
        host = user_project / "generated/host_bridge.py"
        assert host.read_text(encoding="utf-8") == EXPECTED_HOST

    def test_client_module_text(self, user_project, generator):
        generator.run([user_project / "app/services.py"])
        client = user_project / "generated/client_bridge.py"
        assert client.read_text(encoding="utf-8") == EXPECTED_CLIENT

    def test_type_declarations_text(self, user_project, generator):
        generator.run([user_project / "app/services.py"])
        types = user_project / "generated/bridge_types.py"
        assert types.read_text(encoding="utf-8") == EXPECTED_TYPES

    def test_channel_keys_and_namespaces(self, user_project, generator):
        analysis = generator.analyze_files([user_project / "app/services.py"])

        assert [g.key for g in analysis.groups] == ["mainProcess", "userAPI"]
        assert sorted(fn.channel_key for fn in analysis.functions) == [
            "mainProcess:getUptime",
            "userAPI:getUser",
        ]
        get_user = next(fn for fn in analysis.functions if fn.name == "getUser")
        assert get_user.kind == "method"
        assert get_user.owner == "UserService"

    def test_absolute_import_style(self, user_project, logger, tmp_path):
        options = BridgeOptions(base_dir=str(tmp_path), import_style="absolute")
        BridgeGenerator(options, logger).run([user_project / "app/services.py"])

        host = (user_project / "generated/host_bridge.py").read_text(encoding="utf-8")
        assert "from app.services import UserService, getUptime" in host

    def test_summary_is_logged(self, user_project, generator, logger):
        report = generator.run([user_project / "app/services.py"])

        assert report.functions == 2
        assert report.namespaces == 2
        assert logger.infos[0] == "Generated files:"
        assert "  - Found 2 exposed functions in 2 namespaces" in logger.infos

    def test_relative_imports_inside_the_package(self, user_project, logger, tmp_path):
        options = BridgeOptions(
            base_dir=str(tmp_path),
            host_file="app/generated/host_bridge.py",
            client_file="app/generated/client_bridge.py",
            types_file="app/generated/bridge_types.py",
        )
        BridgeGenerator(options, logger).run([user_project / "app/services.py"])

        generated = user_project / "app/generated"
        host = (generated / "host_bridge.py").read_text(encoding="utf-8")
        client = (generated / "client_bridge.py").read_text(encoding="utf-8")
        assert "from ..services import UserService, getUptime" in host
        assert "    from ..models import User" in client

class TestRunBehaviour:
    def test_output_is_deterministic(self, user_project, logger, tmp_path):
        files = [user_project / "app/services.py"]
        narrow = BridgeGenerator(BridgeOptions(base_dir=str(tmp_path), concurrency=1), logger)
        wide = BridgeGenerator(BridgeOptions(base_dir=str(tmp_path), concurrency=8), logger)

        first = narrow.generate(narrow.analyze_files(files))
        second = wide.generate(wide.analyze_files(files))

        assert list(first) == list(second)

    def test_second_run_leaves_files_untouched(self, user_project, generator):
        files = [user_project / "app/services.py"]
        first = generator.run(files)
        digests = {o.path: _digest(o.path) for o in first.outcomes}
        mtimes = {o.path: o.path.stat().st_mtime_ns for o in first.outcomes}

        second = generator.run(files)

        assert first.changed
        assert not second.changed
        for outcome in second.outcomes:
            assert _digest(outcome.path) == digests[outcome.path]
            assert outcome.path.stat().st_mtime_ns == mtimes[outcome.path]

    def test_missing_file_is_skipped_with_warning(self, user_project, generator, logger):
        missing = user_project / "app/missing.py"
        report = generator.run([user_project / "app/services.py", missing])

        assert report.functions == 2
        assert any(str(missing) in w for w in logger.warnings)

    def test_no_valid_files(self, tmp_path, generator):
        with pytest.raises(NoValidFilesError):
            generator.run([tmp_path / "nope.py"])

    def test_zero_functions_still_writes_artifacts(self, write_project, generator):
        root = write_project({"plain.py": "def helper() -> int:\n    return 1\n"})
        report = generator.run([root / "plain.py"])

        assert report.functions == 0
        client = (root / "generated/client_bridge.py").read_text(encoding="utf-8")
        assert "class Bridge(NamedTuple):\n    \"\"\"No namespaces are exposed.\"\"\"" in client
        assert "    return Bridge()" in client


class TestModelDump:
    def test_dump_model_writes_yaml(self, user_project, generator, tmp_path):
        target = tmp_path / "out" / "model.yaml"
        generator.run([user_project / "app/services.py"], dump_path=target)

        with open(target, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        assert data["stats"]["functions"] == 2
        assert [ns["key"] for ns in data["namespaces"]] == ["mainProcess", "userAPI"]
        channels = [fn["channel"] for ns in data["namespaces"] for fn in ns["functions"]]
        assert channels == ["mainProcess:getUptime", "userAPI:getUser"]
        kinds = {t["kind"] for t in data["types"]}
        assert {"function", "interface", "primitive", "type-reference"} <= kinds


class LoopbackController:
    """Host and client in one process: invoke calls the registered handler."""

    def __init__(self) -> None:
        self.handlers = {}

    def register(self, channel, handler):
        self.handlers[channel] = handler

    def invoke(self, channel, *args):
        return self.handlers[channel](*args)


@pytest.fixture
def import_root(user_project, monkeypatch):
    """Makes the generated project importable and forgets it afterwards."""
    monkeypatch.syspath_prepend(str(user_project))
    importlib.invalidate_caches()
    yield user_project
    for name in list(sys.modules):
        if name.split(".")[0] in ("app", "generated"):
            del sys.modules[name]


class TestGeneratedModulesRun:
    def test_host_and_client_import_and_round_trip(self, import_root, generator):
        generator.run([import_root / "app/services.py"])

        host = importlib.import_module("generated.host_bridge")
        client = importlib.import_module("generated.client_bridge")
        controller = LoopbackController()
        host.register_handlers(controller)
        bridge = client.expose(controller)

        assert sorted(controller.handlers) == ["mainProcess:getUptime", "userAPI:getUser"]
        user = asyncio.run(bridge.userAPI.getUser(7))
        assert (user.id, user.name) == (7, "Ada")
        assert asyncio.run(bridge.mainProcess.getUptime()) == 1.0

    def test_types_module_imports(self, import_root, generator):
        generator.run([import_root / "app/services.py"])

        types = importlib.import_module("generated.bridge_types")

        assert types.ExposedNamespaces.__name__ == "ExposedNamespaces"


class TestPrintedNames:
    def test_namespace_class_does_not_shadow_a_model(self, write_project, generator):
        root = write_project(
            {
                "app/__init__.py": "",
                "app/models.py": "class User:\n    name: str\n",
                "app/users.py": """
                    from .models import User


                    # @decorator expose user
                    async def get() -> User: ...
                    """,
            }
        )
        generator.run([root / "app/users.py"])

        client = (root / "generated/client_bridge.py").read_text(encoding="utf-8")
        assert "    from app.models import User\n" in client
        assert "class UserNamespace:\n" in client
        assert "    async def get(self) -> User:\n" in client
        assert "class User:" not in client

    def test_callable_protocol_is_imported(self, write_project, generator):
        root = write_project(
            {
                "app/__init__.py": "",
                "app/handlers.py": """
                    from typing import Protocol


                    class Handler(Protocol):
                        def __call__(self, x: int) -> str: ...
                    """,
                "app/jobs.py": """
                    from .handlers import Handler


                    # @decorator expose
                    async def schedule(cb: Handler) -> None: ...
                    """,
            }
        )
        generator.run([root / "app/jobs.py"])

        for name in ("client_bridge.py", "bridge_types.py"):
            text = (root / "generated" / name).read_text(encoding="utf-8")
            assert "    from app.handlers import Handler\n" in text
            assert "cb: Handler" in text
