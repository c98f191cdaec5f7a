import argparse
import concurrent.futures
import itertools
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Sequence

from .config import BridgeOptions, ConfigurationManager
from .errors import ConfigurationError, ExposeBridgeError
from .pipeline import BridgeGenerator, RunReport
from .scheduler import RegenerationScheduler
from .shared.console import ConsoleManager, PrefixedLogger
from .watch import SourceWatcher, expand_inputs

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_FAILURE = 2


class CliInterface:
    """
    Handles command-line arguments and application bootstrapping.
    """

    def __init__(self) -> None:
        self._parser = self._build_parser()

    def run(self, argv: Sequence[str] | None = None) -> int:
        args = self._parser.parse_args(argv)

        logger = ConsoleManager.configure(
            level=args.log_level or logging.INFO, no_color=args.no_color
        )

        try:
            options = self._build_options(args)
        except ConfigurationError as e:
            logger.error(str(e))
            return EXIT_CONFIG

        try:
            if args.command == "watch":
                return self._watch(args, options, logger)
            return self._generate(args, options, logger)
        except ExposeBridgeError as e:
            logger.error(str(e))
            return EXIT_FAILURE
        except Exception as e:
            logger.critical(f"Unexpected error: {e}", exc_info=True)
            return EXIT_FAILURE

    def _generate(
        self, args: argparse.Namespace, options: BridgeOptions, logger: ConsoleManager
    ) -> int:
        files = expand_inputs(args.files, options, logger)
        generator = BridgeGenerator(options, PrefixedLogger(logger, "expose-bridge"))
        generator.run(files, dump_path=args.dump_model)
        return EXIT_OK

    def _watch(
        self, args: argparse.Namespace, options: BridgeOptions, logger: ConsoleManager
    ) -> int:
        counter = itertools.count(1)

        def regenerate(files: list[Path]) -> RunReport:
            tagged = PrefixedLogger(logger, f"expose-bridge:watch:{next(counter)}")
            return BridgeGenerator(options, tagged).run(
                files, dump_path=args.dump_model
            )

        def report(handle: "concurrent.futures.Future[RunReport]") -> None:
            if handle.cancelled():
                return
            error = handle.exception()
            if error is not None:
                logger.error(f"Regeneration failed: {error}")

        def discover() -> list[Path]:
            return expand_inputs(args.files, options, logger)

        def on_change(changed: list[Path]) -> None:
            logger.debug(f"Changed: {', '.join(str(p) for p in changed)}")
            scheduler.request(discover()).add_done_callback(report)

        stop = threading.Event()
        files = discover()
        watcher = SourceWatcher(
            options, logger, extra_paths=files, interval=args.interval
        )
        with RegenerationScheduler(regenerate, logger) as scheduler:
            scheduler.request(files).add_done_callback(report)
            try:
                watcher.run(on_change, stop)
            except KeyboardInterrupt:
                logger.info("Stopping watcher")
                stop.set()
            scheduler.wait_idle()
        return EXIT_OK

    def _build_options(self, args: argparse.Namespace) -> BridgeOptions:
        overrides: dict[str, Any] = {
            "host_file": args.host_file,
            "client_file": args.client_file,
            "types_file": args.types_file,
            "default_namespace": args.namespace,
            "base_dir": args.base_dir,
            "source_roots": args.source_roots,
            "exclude": args.excludes,
            "import_style": args.import_style,
            "async_iterators": args.async_iterators,
            "rpc_module": args.rpc_module,
            "concurrency": args.concurrency,
        }

        pyproject = args.pyproject_path
        if pyproject is None and args.config is None:
            candidate = Path(args.base_dir or ".") / "pyproject.toml"
            if candidate.is_file():
                pyproject = str(candidate)

        mgr = ConfigurationManager()
        return mgr.load_options(args.config, overrides, pyproject)

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="expose-bridge",
            description="Generate host/client bridge modules for exposed functions.",
            formatter_class=argparse.RawTextHelpFormatter,
        )

        # Options shared by both commands
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("files", nargs="+", help="Files, directories or globs.")
        common.add_argument("-b", "--base-dir", dest="base_dir")
        common.add_argument("--config", help="Path to JSONC config.")
        common.add_argument("--pyproject", dest="pyproject_path")
        common.add_argument("--host", dest="host_file")
        common.add_argument("--client", dest="client_file")
        common.add_argument("--types", dest="types_file")
        common.add_argument("-n", "--namespace", help="Default namespace.")
        common.add_argument(
            "-r", "--source-root", action="append", dest="source_roots"
        )
        common.add_argument("-e", "--exclude", action="append", dest="excludes")
        common.add_argument("--import-style", choices=["relative", "absolute"])
        common.add_argument("--rpc-module")
        common.add_argument("--async-iterators", action="store_true", default=None)
        common.add_argument(
            "--no-async-iterators", action="store_false", dest="async_iterators"
        )
        common.add_argument("--dump-model", metavar="PATH")
        common.add_argument("-j", "--concurrency", type=int)

        # Log
        log_g = common.add_mutually_exclusive_group()
        log_g.add_argument(
            "-v",
            "--verbose",
            action="store_const",
            dest="log_level",
            const=logging.DEBUG,
        )
        log_g.add_argument(
            "-q", "--quiet", action="store_const", dest="log_level", const=logging.ERROR
        )
        common.add_argument("--no-color", action="store_true")

        commands = parser.add_subparsers(dest="command", required=True)
        commands.add_parser(
            "generate", parents=[common], help="Generate the bridge modules once."
        )
        watch = commands.add_parser(
            "watch", parents=[common], help="Regenerate whenever sources change."
        )
        watch.add_argument(
            "--interval", type=float, default=1.0, help="Polling interval in seconds."
        )

        return parser


def main() -> None:
    sys.exit(CliInterface().run())


if __name__ == "__main__":
    main()
