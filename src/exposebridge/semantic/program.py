from __future__ import annotations

import ast
import concurrent.futures
from dataclasses import dataclass, field
from pathlib import Path

import pathspec

from ..config import BridgeOptions
from ..shared.console import BridgeLogger


@dataclass(slots=True)
class ModuleSource:
    """One parsed module of the analyzed program."""

    name: str
    path: Path
    tree: ast.Module
    lines: list[str] = field(repr=False)

    @property
    def is_package(self) -> bool:
        return self.path.name == "__init__.py"

    @property
    def package(self) -> str:
        if self.is_package:
            return self.name
        return self.name.rpartition(".")[0]


class Program:
    """
    All modules visible to the type checker: every ``.py`` file under the
    configured source roots plus the explicitly requested files.
    """

    def __init__(
        self,
        modules: list[ModuleSource],
        requested: list[ModuleSource],
        roots: list[Path],
    ) -> None:
        self._by_name: dict[str, ModuleSource] = {}
        self._by_path: dict[Path, ModuleSource] = {}
        for module in modules:
            # First one wins when two roots provide the same module name
            self._by_name.setdefault(module.name, module)
            self._by_path[module.path] = module
        self.requested = requested
        self.roots = roots

    def __contains__(self, module_name: str) -> bool:
        return module_name in self._by_name

    def __len__(self) -> int:
        return len(self._by_path)

    def get(self, module_name: str) -> ModuleSource | None:
        return self._by_name.get(module_name)

    def module_for_path(self, path: Path) -> ModuleSource | None:
        return self._by_path.get(path.resolve())

    @classmethod
    def load(
        cls,
        files: list[Path],
        options: BridgeOptions,
        logger: BridgeLogger,
    ) -> "Program":
        roots = [options.resolve(r) for r in options.source_roots]
        requested_paths: list[Path] = []
        for f in files:
            p = f if f.is_absolute() else options.base_path / f
            requested_paths.append(p.resolve())

        support = cls._collect_files(roots, options.exclude, logger)
        wanted = set(requested_paths)
        candidates = sorted(wanted | set(support))

        parsed: dict[Path, ModuleSource | str] = {}
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, options.concurrency)
        ) as executor:
            futures = {
                executor.submit(cls._parse_file, path, roots): path
                for path in candidates
            }
            for future in concurrent.futures.as_completed(futures):
                path = futures[future]
                try:
                    parsed[path] = future.result()
                except Exception as e:
                    parsed[path] = f"Worker Error: {e}"

        modules: list[ModuleSource] = []
        requested: list[ModuleSource] = []
        for path in candidates:
            result = parsed[path]
            if isinstance(result, str):
                if path in wanted:
                    logger.warning(f"Skipping {path}: {result}")
                else:
                    logger.debug(f"Ignoring unparsable support file {path}: {result}")
                continue
            modules.append(result)
            if path in wanted:
                requested.append(result)

        logger.debug(
            f"Loaded {len(modules)} modules ({len(requested)} requested) "
            f"from {len(roots)} source roots"
        )
        return cls(modules, requested, roots)

    # --- Private Helpers ---

    @staticmethod
    def _collect_files(
        roots: list[Path], exclude: tuple[str, ...], logger: BridgeLogger
    ) -> list[Path]:
        matcher: pathspec.PathSpec | None = None
        if exclude:
            try:
                matcher = pathspec.PathSpec.from_lines("gitwildmatch", exclude)
            except Exception as e:
                logger.warning(f"Invalid exclude patterns: {e}")

        found: list[Path] = []
        for root in roots:
            if not root.is_dir():
                logger.debug(f"Source root {root} does not exist")
                continue
            try:
                for f in root.rglob("*.py"):
                    if not f.is_file() or f.is_symlink():
                        continue
                    rel = f.relative_to(root).as_posix()
                    if matcher and matcher.match_file(rel):
                        continue
                    found.append(f.resolve())
            except PermissionError as e:
                logger.warning(f"Permission denied: {e}")
        return sorted(set(found))

    @staticmethod
    def _parse_file(path: Path, roots: list[Path]) -> ModuleSource | str:
        if not path.is_file():
            return "File not found"
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return f"Read Error: {e}"
        try:
            tree = ast.parse(text, filename=str(path))
        except SyntaxError as e:
            return f"Parse Error: {e}"
        return ModuleSource(
            name=module_name_for(path, roots),
            path=path,
            tree=tree,
            lines=text.splitlines(),
        )


def module_name_for(path: Path, roots: list[Path]) -> str:
    """
    Dotted module name of ``path`` relative to the deepest containing root.
    Files outside every root are named by their stem.
    """
    best: Path | None = None
    for root in roots:
        try:
            path.relative_to(root)
        except ValueError:
            continue
        if best is None or len(root.parts) > len(best.parts):
            best = root

    if best is None:
        return path.stem

    parts = list(path.relative_to(best).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts) or path.parent.name
