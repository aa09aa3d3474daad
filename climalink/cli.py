"""Command line interface for climalink transfers."""
from __future__ import annotations

import argparse
import logging
import logging.config
import os
from pathlib import Path
from typing import List, Optional

from climalink import bootstrap
from climalink.core.errors import ConfigurationError, DataError
from climalink.core.registry import consumers, suppliers
from climalink.core.reporting import LoggingReportingListener
from climalink.core.utils import package_version
from climalink.jobs import DEFAULT_CONSUMER, DEFAULT_SUPPLIER, JobDefinition, load_jobs
from climalink.settings import Settings, TransferMode

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def load_environment(path: Path = Path(".env")) -> None:
    """Seed unset environment variables from the ``KEY=value`` lines of *path*."""

    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        if sep and not key.startswith("#"):
            os.environ.setdefault(key.strip(), value.strip().strip('"'))


def configure_logging(settings: Settings) -> None:
    """Use the INI file named by ``LOGGING_CONFIG`` or a basic stderr handler."""

    if config_path := os.getenv("LOGGING_CONFIG"):
        try:
            logging.config.fileConfig(config_path, disable_existing_loggers=False)
        except (OSError, KeyError, ValueError, RuntimeError) as exc:
            raise ConfigurationError(f"Cannot load logging config {config_path}") from exc
        return
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _run_job(job: JobDefinition, settings: Settings) -> int:
    try:
        linker = job.build(settings)
    except KeyError as exc:
        print(f"Error: {exc.args[0] if exc.args else exc}")
        return EXIT_USAGE
    linker.add_reporting_listener(LoggingReportingListener(logging.getLogger("climalink.transfer")))
    logger.info("Running job %s: %s -> %s", job.name, job.supplier, job.consumer)
    future = linker.submit()
    try:
        future.result()
    except DataError as exc:
        logger.error("Job %s failed: %s", job.name, exc.message)
        return EXIT_FAILED
    logger.info("Job %s finished using %s transfer", job.name, linker.transfer_mode.name.lower())
    return EXIT_OK


def command_run(args: argparse.Namespace, settings: Settings) -> int:
    job = JobDefinition(
        name="cli",
        source=Path(args.directory),
        files=tuple(args.files),
        supplier=args.supplier,
        consumer=args.consumer,
        store=args.store,
        names=args.names,
        mode=TransferMode.parse(args.mode) if args.mode else None,
    )
    return _run_job(job, settings)


def command_jobs(args: argparse.Namespace, settings: Settings) -> int:
    jobs = load_jobs(Path(args.catalog))
    for job in jobs:
        status = _run_job(job, settings)
        if status != EXIT_OK:
            return status
    return EXIT_OK


def command_backends(_: argparse.Namespace, __: Settings) -> int:
    print("Registered suppliers:")
    for definition in suppliers.items():
        print(f"- {definition.name}: {definition.description} ({definition.module})")
    print("Registered consumers:")
    for definition in consumers.items():
        print(f"- {definition.name}: {definition.description} ({definition.module})")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transfer gridded climate files into storage backends.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {package_version()}")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    parser_run = subparsers.add_parser("run", help="Run one transfer")
    parser_run.add_argument("directory", help="Directory holding the source files.")
    parser_run.add_argument("files", nargs="+", help="Source file names, one record store each.")
    parser_run.add_argument("--supplier", default=DEFAULT_SUPPLIER, help="Registered supplier key.")
    parser_run.add_argument("--consumer", default=DEFAULT_CONSUMER, help="Registered consumer key.")
    parser_run.add_argument("--store", default=None, help="Store location; defaults to CLIMALINK_STORE_ROOT.")
    parser_run.add_argument(
        "--name",
        dest="names",
        action="append",
        default=None,
        help="Record store name; repeat once per file.",
    )
    parser_run.add_argument(
        "--mode",
        choices=[mode.name.lower() for mode in TransferMode],
        default=None,
        help="Force push or pull transfers instead of deciding from memory.",
    )
    parser_run.set_defaults(func=command_run)

    parser_jobs = subparsers.add_parser("jobs", help="Run every job of a YAML catalog")
    parser_jobs.add_argument("catalog", help="Path to the jobs YAML file.")
    parser_jobs.set_defaults(func=command_jobs)

    parser_backends = subparsers.add_parser("backends", help="List registered suppliers and consumers")
    parser_backends.set_defaults(func=command_backends)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_environment()
    try:
        settings = Settings.load()
        configure_logging(settings)
    except ConfigurationError as exc:
        print(f"Error: {exc.message}")
        return EXIT_USAGE
    bootstrap()
    settings.ensure_directories()
    try:
        return args.func(args, settings)
    except ConfigurationError as exc:
        print(f"Error: {exc.message}")
        return EXIT_USAGE


if __name__ == "__main__":  # pragma: no cover - entry point for CLI usage
    raise SystemExit(main())
