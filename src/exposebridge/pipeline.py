from __future__ import annotations

import dataclasses
import datetime
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import yaml

from .config import BridgeOptions
from .errors import NoValidFilesError
from .extract.extractor import TypeModelExtractor
from .extract.scanner import DeclarationScanner
from .generate.client import ClientModuleGenerator
from .generate.grouping import group_by_namespace
from .generate.host import HostModuleGenerator
from .generate.typedecl import TypeDeclarationGenerator
from .model.nodes import TypeArena
from .model.records import ExposedFunction, NamespaceGroup
from .semantic.checker import TypeChecker
from .semantic.program import Program
from .shared.console import BridgeLogger
from .writer import ArtifactWriter, WriteOutcome


@dataclass(slots=True)
class AnalysisResult:
    """Everything one run learned about the requested files."""

    files: list[Path]
    functions: list[ExposedFunction]
    groups: list[NamespaceGroup]
    arena: TypeArena
    source_roots: list[Path]


@dataclass(slots=True, frozen=True)
class GeneratedArtifacts:
    host: tuple[Path, str]
    client: tuple[Path, str]
    types: tuple[Path, str]

    def __iter__(self):
        return iter((self.host, self.client, self.types))


@dataclass(slots=True, frozen=True)
class RunReport:
    functions: int
    namespaces: int
    outcomes: tuple[WriteOutcome, ...]

    @property
    def changed(self) -> bool:
        return any(o.changed for o in self.outcomes)


class BridgeGenerator:
    """
    Runs the whole pipeline: load the program, scan for exposed functions,
    group them and emit the host, client and type declaration modules.
    """

    def __init__(self, options: BridgeOptions, logger: BridgeLogger) -> None:
        self._options = options
        self._logger = logger
        self._writer = ArtifactWriter(logger)

    @property
    def options(self) -> BridgeOptions:
        return self._options

    def analyze_files(self, paths: Sequence[str | Path]) -> AnalysisResult:
        files = [Path(p) for p in paths]
        program = Program.load(files, self._options, self._logger)
        if not program.requested:
            raise NoValidFilesError(len(files))

        # Extraction mutates the run's memo and arena; keep it on this thread
        checker = TypeChecker(program)
        extractor = TypeModelExtractor(checker)
        scanner = DeclarationScanner(
            checker,
            extractor,
            self._logger,
            default_namespace=self._options.default_namespace,
            async_iterators=self._options.async_iterators,
            skip_paths=self._options.artifact_paths,
        )

        functions: list[ExposedFunction] = []
        analyzed: list[Path] = []
        for module in sorted(program.requested, key=lambda m: str(m.path)):
            try:
                found = scanner.scan(module)
            except RecursionError as e:
                self._logger.warning(f"Analysis error for {module.path}: {e}")
                continue
            analyzed.append(module.path)
            functions.extend(found)
            if found:
                self._logger.debug(f"{module.path}: {len(found)} exposed functions")

        return AnalysisResult(
            files=analyzed,
            functions=functions,
            groups=group_by_namespace(functions, self._logger),
            arena=extractor.arena,
            source_roots=program.roots,
        )

    def generate(self, analysis: AnalysisResult) -> GeneratedArtifacts:
        host_path, client_path, types_path = self._options.artifact_paths
        common: dict[str, Any] = {
            "source_roots": analysis.source_roots,
            "import_style": self._options.import_style,
            "rpc_module": self._options.rpc_module,
        }
        generators = (
            HostModuleGenerator(analysis.arena, host_path, **common),
            ClientModuleGenerator(analysis.arena, client_path, **common),
            TypeDeclarationGenerator(analysis.arena, types_path, **common),
        )
        host, client, types = (
            (g.artifact_path, g.generate(analysis.groups)) for g in generators
        )
        return GeneratedArtifacts(host=host, client=client, types=types)

    def write(self, artifacts: GeneratedArtifacts) -> list[WriteOutcome]:
        return [self._writer.write(path, text) for path, text in artifacts]

    def run(
        self, paths: Sequence[str | Path], dump_path: str | Path | None = None
    ) -> RunReport:
        analysis = self.analyze_files(paths)
        if dump_path:
            self.dump_model(analysis, dump_path)
        outcomes = self.write(self.generate(analysis))

        self._logger.info("Generated files:")
        for outcome in outcomes:
            suffix = "" if outcome.changed else " (unchanged)"
            self._logger.info(f"  - {outcome.path}{suffix}")
        self._logger.info(
            f"  - Found {len(analysis.functions)} exposed functions "
            f"in {len(analysis.groups)} namespaces"
        )
        return RunReport(
            functions=len(analysis.functions),
            namespaces=len(analysis.groups),
            outcomes=tuple(outcomes),
        )

    def dump_model(self, analysis: AnalysisResult, path: str | Path) -> None:
        """
        Writes the extracted model (namespaces, functions and the type arena)
        to a YAML file.
        """
        data = {
            "meta": {
                "generated_at": datetime.datetime.now(datetime.timezone.utc)
                .isoformat()
                .replace("+00:00", "Z"),
                "base_dir": str(self._options.base_path),
                "files": [str(f) for f in analysis.files],
            },
            "stats": {
                "functions": len(analysis.functions),
                "namespaces": len(analysis.groups),
                "types": len(analysis.arena),
            },
            "namespaces": [
                {
                    "key": group.key,
                    "functions": [_function_record(fn) for fn in group.functions],
                }
                for group in analysis.groups
            ],
            "types": [
                {"id": type_id, **_plain(dataclasses.asdict(node))}
                for type_id, node in analysis.arena.items()
            ],
        }
        out_p = Path(path)
        out_p.parent.mkdir(parents=True, exist_ok=True)
        with open(out_p, "w", encoding="utf-8") as f:
            _yaml_dump_no_alias(data, f)
        self._logger.info(f"Model written to: {out_p.resolve()}")


def _function_record(fn: ExposedFunction) -> dict[str, Any]:
    record = {
        "name": fn.name,
        "kind": fn.kind,
        "channel": fn.channel_key,
        "type": fn.type,
        "location": fn.location.describe(),
    }
    if fn.owner:
        record["owner"] = fn.owner
    if fn.directive.args:
        record["namespace_arg"] = fn.directive.args[0]
    if fn.is_async_iterator:
        record["async_iterator"] = True
    return record


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _yaml_dump_no_alias(data: Any, stream: Any) -> None:
    class MultilineDumper(yaml.SafeDumper):
        def represent_scalar(self, tag, value, style=None):
            if isinstance(value, str) and "\n" in value:
                style = "|"
            return super().represent_scalar(tag, value, style)

    class NoAliasDumper(MultilineDumper):
        def ignore_aliases(self, data):
            return True

    yaml.dump(data, stream, Dumper=NoAliasDumper, sort_keys=False, allow_unicode=True)
