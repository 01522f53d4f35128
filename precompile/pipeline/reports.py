"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from precompile.common.fs import write_json


def write_run_summary(log_dir: Path, run_id: str, region_reports: dict[str, dict]) -> Path:
    failed = sorted(region for region, report in region_reports.items() if report.get("status") == "error")
    degraded = sorted(region for region, report in region_reports.items() if report.get("status") == "partial")
    if failed and len(failed) == len(region_reports):
        status = "error"
    elif failed or degraded:
        status = "partial"
    else:
        status = "success"

    totals = {"features": 0, "records": 0, "highlights": 0, "files_written": 0}
    for report in region_reports.values():
        counts = report.get("counts", {})
        for key in totals:
            totals[key] += int(counts.get(key, 0))

    summary_path = log_dir / "run_summary.json"
    payload = {
        "run_id": run_id,
        "status": status,
        "regions": sorted(region_reports),
        "failed_regions": failed,
        "degraded_regions": degraded,
        "totals": totals,
        "region_reports": region_reports,
    }
    write_json(summary_path, payload, pretty=True)
    return summary_path
