"""CLI entrypoint for the mining claims precompile pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from precompile.common.config_loader import ConfigBundle, load_all_configs, resolve_region_settings, resolve_regions
from precompile.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, REBUILD_MODES
from precompile.common.errors import ConfigError, PipelineError
from precompile.common.http import HttpClient
from precompile.common.ids import generate_run_id
from precompile.common.logging import build_logger, log_event
from precompile.pipeline.reports import write_run_summary
from precompile.pipeline.runner import update_region


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--region", action="append", default=None, help="Region slug; repeatable. Defaults to all.")
    parser.add_argument("--rebuild", default=None, choices=REBUILD_MODES)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--root-dir", default=".")
    parser.add_argument("--debug-cap-items", type=int, default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def process_region(
    region: str,
    bundle: ConfigBundle,
    args: argparse.Namespace,
    client: HttpClient,
    logger: logging.Logger,
    run_id: str,
) -> dict:
    """Run one region and always return a report; failures become ``status: error``."""
    log_event(logger, "region start", run_id=run_id, region=region, event="REGION_START", status="ok")
    try:
        settings = resolve_region_settings(bundle, region, Path(args.root_dir), debug_cap_items=args.debug_cap_items)
        report = update_region(settings, bundle.classification, client, logger, rebuild=args.rebuild)
    except PipelineError as exc:
        log_event(
            logger,
            f"region update failed: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            region=region,
            stage=getattr(exc, "stage", None),
            event="REGION_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return {"region": region, "status": "error", "error_code": exc.error_code}
    except Exception:
        logger.exception(
            f"unexpected failure for region {region}",
            extra={
                "run_id": run_id,
                "region": region,
                "event": "REGION_FAIL",
                "status": "error",
                "error_code": "UNEXPECTED_ERROR",
            },
        )
        return {"region": region, "status": "error", "error_code": "UNEXPECTED_ERROR"}

    log_event(logger, "region end", run_id=run_id, region=region, event="REGION_END", status=report["status"])
    return report


def run_command(args: argparse.Namespace, client: HttpClient | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    log_dir = Path(args.root_dir) / "private" / "run_meta"

    logger = build_logger(run_id, log_dir=log_dir, level=args.log_level)
    try:
        bundle = load_all_configs(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
        regions = resolve_regions(bundle, args.region)
    except ConfigError as exc:
        log_event(
            logger,
            str(exc),
            level=logging.ERROR,
            run_id=run_id,
            event="CONFIG_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL

    region_reports: dict[str, dict] = {}
    aborted = False
    owns_client = client is None
    client = client or HttpClient()
    try:
        for region in regions:
            report = process_region(region, bundle, args, client, logger, run_id)
            region_reports[region] = report
            if args.strict and report["status"] != "ok":
                aborted = True
                break
    finally:
        if owns_client:
            client.close()

    write_run_summary(log_dir, run_id=run_id, region_reports=region_reports)
    if aborted:
        return EXIT_HARD_FAIL
    if any(report["status"] != "ok" for report in region_reports.values()):
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
