"""Partition file export."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Mapping, Sequence

from precompile.common.fs import write_json

GROUP_DIRS = {
    "municipality": "by-municipality",
    "phase": "by-phase",
    "substance": "by-substance",
}
MAX_WRITE_WORKERS = 8


def projects_payload(records: Sequence[dict[str, Any]]) -> dict[str, Any]:
    return {"projects": list(records)}


def plan_partition_files(
    cache_dir: Path,
    groups: Mapping[str, Mapping[str, Sequence[dict[str, Any]]]],
    *,
    highlights: Sequence[dict[str, Any]],
    all_projects: Sequence[dict[str, Any]],
    index: dict[str, Any] | None = None,
) -> list[tuple[Path, Any]]:
    """List every ``(path, payload)`` pair to write; empty buckets are left out."""
    planned: list[tuple[Path, Any]] = []
    for group, buckets in groups.items():
        group_dir = cache_dir / GROUP_DIRS[group]
        for slug in sorted(buckets):
            if buckets[slug]:
                planned.append((group_dir / f"{slug}.json", projects_payload(buckets[slug])))
    planned.append((cache_dir / "highlights.json", projects_payload(highlights)))
    planned.append((cache_dir / "all-projects.json", projects_payload(all_projects)))
    if index is not None:
        planned.append((cache_dir / "index.json", index))
    return planned


def write_files(planned: Sequence[tuple[Path, Any]], max_workers: int = MAX_WRITE_WORKERS) -> list[Path]:
    """Write independent files concurrently; the first failure is re-raised once all are done."""
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [(path, executor.submit(write_json, path, payload)) for path, payload in planned]
    written = []
    for path, future in futures:
        future.result()
        written.append(path)
    return written
