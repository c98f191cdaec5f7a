import pytest

from exposebridge.config import BridgeOptions, ConfigurationManager
from exposebridge.errors import ConfigurationError


class TestConfigurationManager:
    def test_packaged_defaults(self):
        options = ConfigurationManager().load_options(None, {})

        assert options.host_file == "generated/host_bridge.py"
        assert options.client_file == "generated/client_bridge.py"
        assert options.types_file == "generated/bridge_types.py"
        assert options.default_namespace == "mainProcess"
        assert options.import_style == "relative"
        assert options.async_iterators is False
        assert "**/.venv/**" in options.exclude
        assert options.concurrency >= 1

    def test_jsonc_user_file(self, tmp_path):
        config = tmp_path / "bridge.jsonc"
        config.write_text(
            "{\n"
            "  // namespace for free functions\n"
            '  "default_namespace": "core",\n'
            '  "async_iterators": true\n'
            "}\n",
            encoding="utf-8",
        )

        options = ConfigurationManager().load_options(str(config), {})

        assert options.default_namespace == "core"
        assert options.async_iterators is True

    def test_pyproject_table(self, tmp_path):
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text(
            "[tool.expose-bridge]\n"
            'default-namespace = "app"\n'
            'source-roots = ["src"]\n'
            'import-style = "absolute"\n',
            encoding="utf-8",
        )

        options = ConfigurationManager().load_options(None, {}, str(pyproject))

        assert options.default_namespace == "app"
        assert options.source_roots == ("src",)
        assert options.import_style == "absolute"

    def test_cli_overrides_win_and_none_is_ignored(self, tmp_path):
        config = tmp_path / "bridge.json"
        config.write_text('{"default_namespace": "core", "host_file": "h.py"}', encoding="utf-8")

        options = ConfigurationManager().load_options(
            str(config), {"default_namespace": "cli", "host_file": None, "concurrency": 3}
        )

        assert options.default_namespace == "cli"
        assert options.host_file == "h.py"
        assert options.concurrency == 3

    def test_missing_user_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigurationManager().load_options(str(tmp_path / "nope.json"), {})

    def test_unparsable_user_file(self, tmp_path):
        config = tmp_path / "bad.json"
        config.write_text("{ not json", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigurationManager().load_options(str(config), {})

    def test_invalid_import_style(self):
        with pytest.raises(ConfigurationError):
            ConfigurationManager().load_options(None, {"import_style": "star"})


class TestBridgeOptions:
    def test_source_roots_must_be_a_list(self):
        with pytest.raises(ConfigurationError):
            BridgeOptions.from_dict({"source_roots": "src"})

    def test_unknown_keys_are_ignored(self):
        options = BridgeOptions.from_dict({"default_namespace": "x", "colour": "red"})
        assert options.default_namespace == "x"

    def test_artifact_paths_resolve_against_base(self, tmp_path):
        options = BridgeOptions(base_dir=str(tmp_path), host_file="out/h.py")
        host, client, types = options.artifact_paths

        assert host == (tmp_path / "out/h.py").resolve()
        assert client == (tmp_path / "generated/client_bridge.py").resolve()
        assert types.name == "bridge_types.py"
