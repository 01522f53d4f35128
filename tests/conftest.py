"""Shared pytest fixtures: sample SIGMINE markup, archives and settings."""

from __future__ import annotations

import json
import logging
import zipfile
from pathlib import Path

import pytest

from precompile.common.config_loader import load_all_configs, resolve_region_settings

REPO_CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"

# Squares side by side: a polygon straddling x=10 touches both.
MUNICIPALITIES = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "properties": {"id": "4300001", "name": "Alvorada"},
            "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]]]},
        },
        {
            "type": "Feature",
            "properties": {"id": "4300002", "name": "Bagé"},
            "geometry": {"type": "Polygon", "coordinates": [[[10, 0], [20, 0], [20, 10], [10, 10], [10, 0]]]},
        },
    ],
}


def square(x: float, y: float, size: float) -> list[list[list[float]]]:
    return [[[x, y], [x + size, y], [x + size, y + size], [x, y + size], [x, y]]]


def description_table(rows: list[tuple[str, str]]) -> str:
    body = "".join(f"<tr><td></td><td>{label}</td><td>{value}</td></tr>" for label, value in rows)
    return (
        "<html><body><table>"
        '<tr><td colspan="3">SIGMINE</td></tr>'
        "<tr><th></th><th>Atributo</th><th>Valor</th></tr>"
        f"{body}</table></body></html>"
    )


def claim_rows(processo: str, fase: str, substancia: str, evento: str) -> list[tuple[str, str]]:
    return [
        ("PROCESSO", processo),
        ("FASE", fase),
        ("SUBSTÂNCIA", substancia),
        ("ÚLTIMO EVENTO", evento),
        ("USO", "Industrial"),
    ]


def kml_document(placemarks: list[tuple[str, str, list[list[list[float]]]]]) -> str:
    parts = []
    for name, description, rings in placemarks:
        outer = " ".join(f"{x},{y},0" for x, y in rings[0])
        parts.append(
            "<Placemark>"
            f"<name>{name}</name>"
            f"<description><![CDATA[{description}]]></description>"
            "<Polygon><outerBoundaryIs><LinearRing>"
            f"<coordinates>{outer}</coordinates>"
            "</LinearRing></outerBoundaryIs></Polygon>"
            "</Placemark>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<kml xmlns="http://www.opengis.net/kml/2.2"><Document>'
        + "".join(parts)
        + "</Document></kml>"
    )


SAMPLE_PLACEMARKS = [
    (
        "810001/2014",
        description_table(
            claim_rows(
                "810001/2014",
                "REQUERIMENTO DE PESQUISA",
                "AREIA",
                "100 - REQ PESQ/REQUERIMENTO PESQUISA PROTOCOLIZADO EM 14/07/2014",
            )
        ),
        square(1, 1, 2),
    ),
    (
        "810002/2010",
        description_table(
            claim_rows(
                "810002/2010",
                "CONCESSÃO DE LAVRA",
                "CARVÃO MINERAL",
                "400 - CONC LAV/CONCESSAO DE LAVRA PUBLICADA EM 03/02/2019",
            )
        ),
        square(8, 2, 4),
    ),
    (
        "810003/2001",
        description_table(
            claim_rows(
                "810003/2001",
                "LICENCIAMENTO",
                "BASALTO",
                "700 - LICEN/LICENCIAMENTO AUTORIZADO EM 9/1/2020",
            )
        ),
        square(30, 30, 1),
    ),
]


@pytest.fixture()
def config_dir() -> Path:
    return REPO_CONFIG_DIR


@pytest.fixture()
def bundle(config_dir: Path):
    return load_all_configs(config_dir)


@pytest.fixture()
def classification(bundle):
    return bundle.classification


@pytest.fixture()
def settings(bundle, tmp_path: Path):
    return resolve_region_settings(bundle, "rs", tmp_path)


@pytest.fixture()
def logger() -> logging.Logger:
    return logging.getLogger("precompile.tests")


@pytest.fixture()
def sample_kml() -> str:
    return kml_document(SAMPLE_PLACEMARKS)


@pytest.fixture()
def make_kmz():
    def _make(path: Path, kml_text: str, *, kml_name: str = "doc.kml") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(kml_name, kml_text)
            archive.writestr("legend0.png", b"\x89PNG")
        return path

    return _make


@pytest.fixture()
def write_municipalities():
    def _write(path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(MUNICIPALITIES), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def make_feature():
    def _make(rows: list[tuple[str, str]] | None = None, *, description: str | None = None, geometry=None) -> dict:
        if description is None:
            description = description_table(rows or [])
        return {
            "type": "Feature",
            "geometry": geometry if geometry is not None else {"type": "Polygon", "coordinates": square(0, 0, 1)},
            "properties": {"name": "claim", "description": description},
        }

    return _make


class FakeClient:
    """Stands in for HttpClient: serves a prepared archive and counts downloads."""

    def __init__(self, payload: bytes | None = None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: list[str] = []

    def download_file(self, url: str, target_path: Path, **_kwargs) -> int:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_bytes(self.payload or b"")
        return len(self.payload or b"")

    def close(self) -> None:
        pass


@pytest.fixture()
def fake_client_factory():
    return FakeClient
