import json
from pathlib import Path

from precompile.pipeline.export import plan_partition_files, write_files
from precompile.pipeline.reports import write_run_summary


def test_plan_partition_files_skips_empty_buckets(tmp_path: Path):
    record = {"processo": "1"}
    planned = plan_partition_files(
        tmp_path,
        {
            "municipality": {"bage": [record], "alvorada": []},
            "phase": {"licenciamento": [record]},
            "substance": {},
        },
        highlights=[],
        all_projects=[record],
        index={"total": 1},
    )
    names = [str(path.relative_to(tmp_path)) for path, _ in planned]
    assert names == [
        "by-municipality/bage.json",
        "by-phase/licenciamento.json",
        "highlights.json",
        "all-projects.json",
        "index.json",
    ]
    assert dict(planned)[tmp_path / "highlights.json"] == {"projects": []}


def test_write_files_creates_parent_directories(tmp_path: Path):
    target = tmp_path / "by-substance" / "areia.json"
    written = write_files([(target, {"projects": []})], max_workers=2)
    assert written == [target]
    assert json.loads(target.read_text(encoding="utf-8")) == {"projects": []}


def test_write_run_summary_statuses(tmp_path: Path):
    ok = {"status": "ok", "counts": {"records": 3, "files_written": 5}}
    partial = {"status": "partial", "counts": {"records": 2}}
    error = {"status": "error"}

    path = write_run_summary(tmp_path, "run-1", {"rs": ok})
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["status"] == "success"
    assert payload["totals"]["records"] == 3

    payload = json.loads(write_run_summary(tmp_path, "run-2", {"rs": ok, "sc": partial}).read_text(encoding="utf-8"))
    assert payload["status"] == "partial"
    assert payload["degraded_regions"] == ["sc"]

    payload = json.loads(write_run_summary(tmp_path, "run-3", {"rs": error}).read_text(encoding="utf-8"))
    assert payload["status"] == "error"
    assert payload["failed_regions"] == ["rs"]
