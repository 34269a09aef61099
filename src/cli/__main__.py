from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from src.client.backend import BackendClient
from src.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from src.logging.audit_log import AuditLogBuffer
from src.logging.init import log_summary, set_debug, setup_logging
from src.models.stage import Stage
from src.services.dispatcher import StageDispatcher
from src.services.orchestrator import ProcessingError, process_all
from src.services.status_tracker import StageStatusTracker
from src.services.summary import render_summary_line

"""CLI entrypoint.

    python -m src.cli preflight PATH...   run the local stages on CSV/Excel files
    python -m src.cli status FILE_ID      refresh backend-validated stage status

Exit codes: 0 every file advanceable (or status fetched), 2 some file blocked
(or status refresh failed), 1 fatal (config, missing path).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

REMOTE_STAGES = (Stage.DATA_PREFLIGHT, Stage.DATA_VALIDATION)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values override variables already set in the process."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="python -m src.cli", description="Tabular import wizard tools")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the wizard YAML config")
    sub = p.add_subparsers(dest="command", required=True)

    pre = sub.add_parser("preflight", help="Run FileUpload, DataPreflight and DataValidation locally")
    pre.add_argument("paths", nargs="+", type=Path, help="Files or directories to check")
    pre.add_argument("--logs-dir", type=Path, default=None, help="Directory for the audit log")

    st = sub.add_parser("status", help="Refresh stage status for an uploaded file from the backend")
    st.add_argument("file_id", help="Backend file id")
    return p.parse_args(argv)


def _run_preflight(args: argparse.Namespace, cfg, logger) -> int:
    audit = AuditLogBuffer(args.logs_dir)
    try:
        result = process_all(args.paths, cfg, audit)
    except ProcessingError as e:
        logger.error(f"preflight: {e}")
        return EXIT_FATAL
    finally:
        path = audit.flush()
        if path is not None:
            logger.info(f"audit log written to {path}")

    log_summary(render_summary_line(result).removeprefix("SUMMARY "))
    if result.blocked_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _run_status(args: argparse.Namespace, cfg, logger) -> int:
    client = BackendClient.from_config(cfg.backend)
    tracker = StageStatusTracker()
    dispatcher = StageDispatcher(tracker, client=client, file_id=args.file_id, session_id=args.file_id)
    failed = 0
    for stage in REMOTE_STAGES:
        outcome = dispatcher.refresh_stage_status(stage)
        if outcome.status is None:
            failed += 1
            logger.error(f"{stage.value}: {outcome.error_kind.value if outcome.error_kind else 'error'}: {outcome.message}")
            continue
        logger.info(f"{stage.value}: {outcome.status.value} ({outcome.message})")
    advanceable = sum(1 for s in REMOTE_STAGES if tracker.can_advance(s))
    log_summary(f"file={args.file_id} stages={len(REMOTE_STAGES)} advanceable={advanceable} failed={failed}")
    return EXIT_PARTIAL_FAILURE if failed else EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only read sys.argv when argv is None; tests pass [] explicitly
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "preflight":
        return _run_preflight(args, cfg, logger)
    return _run_status(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
