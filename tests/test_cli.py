import pytest
import yaml

from exposebridge.cli import EXIT_CONFIG, EXIT_FAILURE, EXIT_OK, CliInterface


class TestCliInterface:
    def test_generate(self, user_project):
        code = CliInterface().run(
            ["generate", "app/services.py", "-b", str(user_project), "-q", "--no-color"]
        )

        assert code == EXIT_OK
        for name in ("host_bridge.py", "client_bridge.py", "bridge_types.py"):
            assert (user_project / "generated" / name).is_file()

    def test_generate_directory_with_custom_outputs(self, user_project):
        code = CliInterface().run(
            [
                "generate",
                "app",
                "-b",
                str(user_project),
                "--host",
                "out/host.py",
                "--client",
                "out/client.py",
                "--types",
                "out/types.py",
                "-n",
                "core",
                "-q",
            ]
        )

        assert code == EXIT_OK
        host = (user_project / "out/host.py").read_text(encoding="utf-8")
        assert 'controller.register("core:getUptime", getUptime)' in host

    def test_dump_model(self, user_project):
        target = user_project / "model.yaml"
        code = CliInterface().run(
            [
                "generate",
                "app/services.py",
                "-b",
                str(user_project),
                "--dump-model",
                str(target),
                "-q",
            ]
        )

        assert code == EXIT_OK
        with open(target, "r", encoding="utf-8") as f:
            assert yaml.safe_load(f)["stats"]["namespaces"] == 2

    def test_configuration_error_exits_1(self, user_project):
        code = CliInterface().run(
            [
                "generate",
                "app/services.py",
                "-b",
                str(user_project),
                "--config",
                str(user_project / "missing.json"),
                "-q",
            ]
        )
        assert code == EXIT_CONFIG

    def test_no_valid_files_exits_2(self, tmp_path):
        code = CliInterface().run(["generate", "missing.py", "-b", str(tmp_path), "-q"])
        assert code == EXIT_FAILURE

    def test_files_are_required(self):
        with pytest.raises(SystemExit):
            CliInterface().run(["generate"])
