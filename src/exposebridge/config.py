import json
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

import commentjson  # type: ignore

from .errors import ConfigurationError

ImportStyle = Literal["relative", "absolute"]


@dataclass(slots=True, frozen=True)
class BridgeOptions:
    """Effective settings of one generator instance."""

    host_file: str = "generated/host_bridge.py"
    client_file: str = "generated/client_bridge.py"
    types_file: str = "generated/bridge_types.py"
    default_namespace: str = "mainProcess"
    base_dir: str = "."
    source_roots: tuple[str, ...] = (".",)
    exclude: tuple[str, ...] = ()
    import_style: ImportStyle = "relative"
    async_iterators: bool = False
    rpc_module: str = "exposebridge.runtime"
    concurrency: int = field(default_factory=lambda: os.cpu_count() or 1)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BridgeOptions":
        """Build options from a merged config dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key in ("source_roots", "exclude"):
                if isinstance(value, str) or not isinstance(value, (list, tuple)):
                    raise ConfigurationError(f"'{key}' must be a list of strings")
                value = tuple(str(v) for v in value)
            values[key] = value

        if values.get("import_style", "relative") not in ("relative", "absolute"):
            raise ConfigurationError(
                f"'import_style' must be 'relative' or 'absolute', "
                f"got {values['import_style']!r}"
            )
        if "concurrency" in values:
            values["concurrency"] = max(1, int(values["concurrency"]))
        return cls(**values)

    @property
    def base_path(self) -> Path:
        return Path(self.base_dir).resolve()

    def resolve(self, path: str) -> Path:
        """Resolve a configured path against the base directory."""
        return (self.base_path / path).resolve()

    @property
    def artifact_paths(self) -> tuple[Path, Path, Path]:
        return (
            self.resolve(self.host_file),
            self.resolve(self.client_file),
            self.resolve(self.types_file),
        )


class ConfigurationManager:
    """
    Manages loading and merging of application configuration.
    """

    PYPROJECT_TABLE = "expose-bridge"

    def __init__(self, *, base_path: Path | None = None) -> None:
        self._base_path = base_path or Path(__file__).parent

    def load_config(
        self,
        user_config_path: str | None,
        cli_overrides: dict[str, Any],
        pyproject_path: str | None = None,
    ) -> dict[str, Any]:
        """
        Loads defaults, merges with user JSONC / pyproject, and applies CLI overrides.
        """
        config = self._load_defaults()

        if pyproject_path:
            config.update(self._read_pyproject(Path(pyproject_path)))

        if user_config_path:
            self._merge_user_file(config, Path(user_config_path))

        # Apply CLI overrides (filtering out None values)
        config.update({k: v for k, v in cli_overrides.items() if v is not None})

        # Ensure concurrency is set
        if not config.get("concurrency"):
            config["concurrency"] = os.cpu_count() or 1

        return config

    def load_options(
        self,
        user_config_path: str | None,
        cli_overrides: dict[str, Any],
        pyproject_path: str | None = None,
    ) -> BridgeOptions:
        config = self.load_config(user_config_path, cli_overrides, pyproject_path)
        return BridgeOptions.from_dict(config)

    def _load_defaults(self) -> dict[str, Any]:
        defaults_path = self._base_path / "defaults.json"
        if not defaults_path.exists():
            return {}

        try:
            with open(defaults_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError):
            return {}

    def _merge_user_file(self, config: dict[str, Any], path: Path) -> None:
        if not path.is_file():
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                user_conf = commentjson.load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to parse config file {path}: {e}")
        if not isinstance(user_conf, dict):
            raise ConfigurationError(f"Config file {path} must contain an object")
        config.update(user_conf)

    def _read_pyproject(self, path: Path) -> dict[str, Any]:
        if not path.is_file():
            raise ConfigurationError(f"pyproject.toml not found: {path}")
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}")

        table = data.get("tool", {}).get(self.PYPROJECT_TABLE, {})
        # TOML keys are kebab-case by convention
        return {k.replace("-", "_"): v for k, v in table.items()}
