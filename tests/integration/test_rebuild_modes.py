from __future__ import annotations

from pathlib import Path

import pytest

from precompile.cli import parse_args, run_command
from precompile.common.config_loader import load_all_configs, resolve_region_settings
from precompile.common.constants import EXIT_PARTIAL, EXIT_SUCCESS
from precompile.common.fs import read_json, write_json


@pytest.fixture()
def populated(config_dir: Path, tmp_path: Path, write_municipalities, sample_kml, make_kmz, fake_client_factory):
    settings = resolve_region_settings(load_all_configs(config_dir), "rs", tmp_path)
    write_municipalities(settings.municipalities_path)
    client = fake_client_factory(make_kmz(tmp_path / "source" / "RS.kmz", sample_kml).read_bytes())
    assert run_command(_args(tmp_path, config_dir), client=client) == EXIT_SUCCESS
    return settings, client


def _args(root: Path, config_dir: Path, *extra: str):
    return parse_args(["--root-dir", str(root), "--config-dir", str(config_dir), *extra])


@pytest.mark.integration
def test_rebuild_highlights_only_reads_all_projects(populated, config_dir, tmp_path):
    settings, client = populated
    payload = read_json(settings.all_projects_path)
    for record in payload["projects"]:
        if record["processo"] == "810002/2010":
            record["substance_slug"] = "areia"
    write_json(settings.all_projects_path, payload)
    carvao_before = (settings.cache_dir / "by-substance" / "carvao_mineral.json").read_bytes()

    assert run_command(_args(tmp_path, config_dir, "--rebuild", "highlights"), client=client) == EXIT_SUCCESS

    assert read_json(settings.highlights_path) == {"projects": []}
    assert (settings.cache_dir / "by-substance" / "carvao_mineral.json").read_bytes() == carvao_before
    assert len(client.calls) == 1


@pytest.mark.integration
def test_rebuild_highlights_without_records_fails(config_dir, tmp_path, fake_client_factory):
    client = fake_client_factory(b"")
    assert run_command(_args(tmp_path, config_dir, "--rebuild", "highlights"), client=client) == EXIT_PARTIAL
    assert client.calls == []


@pytest.mark.integration
def test_rebuild_cache_rederives_from_local_archive(populated, config_dir, tmp_path):
    settings, client = populated
    stray = settings.cache_dir / "by-phase" / "obsolete.json"
    stray.write_text("{}", encoding="utf-8")

    assert run_command(_args(tmp_path, config_dir, "--rebuild", "cache"), client=client) == EXIT_SUCCESS

    assert len(client.calls) == 1
    assert not stray.exists()
    assert settings.raw_geo_path.exists()
    assert len(read_json(settings.all_projects_path)["projects"]) == 3


@pytest.mark.integration
def test_rebuild_everything_downloads_again(populated, config_dir, tmp_path):
    settings, client = populated

    assert run_command(_args(tmp_path, config_dir, "--rebuild", "everything"), client=client) == EXIT_SUCCESS

    assert len(client.calls) == 2
    assert len(read_json(settings.all_projects_path)["projects"]) == 3


@pytest.mark.integration
def test_debug_cap_limits_records(config_dir, tmp_path, write_municipalities, sample_kml, make_kmz, fake_client_factory):
    settings = resolve_region_settings(load_all_configs(config_dir), "rs", tmp_path)
    write_municipalities(settings.municipalities_path)
    client = fake_client_factory(make_kmz(tmp_path / "source" / "RS.kmz", sample_kml).read_bytes())

    assert run_command(_args(tmp_path, config_dir, "--debug-cap-items", "1"), client=client) == EXIT_SUCCESS

    assert len(read_json(settings.all_projects_path)["projects"]) == 1
