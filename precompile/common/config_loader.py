"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping
from urllib.parse import urlparse

from precompile.common.errors import ConfigError
from precompile.common.fs import read_yaml
from precompile.common.schema import validate_classification_config, validate_regions_config
from precompile.common.slug import slugify


@dataclass(frozen=True)
class Classification:
    phases: Mapping[str, int]
    advanced_phases: tuple[str, ...]
    advanced_bucket: str
    substance_icons: Mapping[str, str]
    highlight_filters: Mapping[str, frozenset[str]]


@dataclass(frozen=True)
class RegionSettings:
    region: str
    download_url: str
    input_dir: Path
    cache_dir: Path
    archive_path: Path
    kml_path: Path
    stale_assets: tuple[str, ...]
    municipalities_path: Path
    age_limit_days: float
    debug_cap_items: int
    center_point_tolerance: float

    @property
    def raw_geo_path(self) -> Path:
        return self.cache_dir / "raw_geo.json"

    @property
    def all_projects_path(self) -> Path:
        return self.cache_dir / "all-projects.json"

    @property
    def highlights_path(self) -> Path:
        return self.cache_dir / "highlights.json"

    @property
    def index_path(self) -> Path:
        return self.cache_dir / "index.json"


@dataclass(frozen=True)
class ConfigBundle:
    region_defaults: dict
    regions: dict[str, dict]
    classification: Classification


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def build_classification(cfg: dict) -> Classification:
    return Classification(
        phases=MappingProxyType(dict(cfg["phases"])),
        advanced_phases=tuple(cfg["advanced_phases"]),
        advanced_bucket=cfg["advanced_bucket"],
        substance_icons=MappingProxyType(dict(cfg["substance_icons"])),
        highlight_filters=MappingProxyType(
            {key: frozenset(values) for key, values in cfg["highlight_filters"].items()}
        ),
    )


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    def overlay_for(name: str) -> Path | None:
        return overlay_config_dir / name if overlay_config_dir is not None else None

    regions_cfg = validate_regions_config(
        _load_yaml_with_overlay(config_dir / "regions.yml", overlay_for("regions.yml")),
        allow_unknown=allow_unknown,
    )
    classification_cfg = validate_classification_config(
        _load_yaml_with_overlay(config_dir / "classification.yml", overlay_for("classification.yml"))
    )
    regions = {slugify(name): dict(overrides or {}) for name, overrides in regions_cfg["regions"].items()}
    return ConfigBundle(
        region_defaults=dict(regions_cfg["defaults"]),
        regions=regions,
        classification=build_classification(classification_cfg),
    )


def resolve_regions(bundle: ConfigBundle, targets: list[str] | None) -> list[str]:
    if not targets or targets == ["all"]:
        return list(bundle.regions)
    resolved = [slugify(target) for target in targets]
    unknown = [region for region in resolved if region not in bundle.regions]
    if unknown:
        raise ConfigError(f"Unknown regions: {', '.join(unknown)}")
    return resolved


def _archive_filename(download_url: str, region: str) -> str:
    basename = Path(urlparse(download_url).path).name
    if basename:
        return basename
    return f"{region.upper()}.kmz"


def resolve_region_settings(
    bundle: ConfigBundle,
    region: str,
    root_dir: Path,
    *,
    debug_cap_items: int | None = None,
) -> RegionSettings:
    if region not in bundle.regions:
        raise ConfigError(f"Unknown region: {region}")
    cfg = {**bundle.region_defaults, **bundle.regions[region]}
    template_values = {
        "region": region,
        "region_upper": region.upper(),
        "ibge_code": cfg.get("ibge_code", ""),
    }
    try:
        download_url = cfg["download_url"].format(**template_values)
        input_dir = root_dir / cfg["input_dir"].format(**template_values)
        cache_dir = root_dir / cfg["cache_dir"].format(**template_values)
        municipalities_path = root_dir / cfg["municipalities_geojson"].format(**template_values)
    except KeyError as exc:
        raise ConfigError(f"Unknown template field {exc} in settings for region {region}") from exc

    cap = cfg["debug_cap_items"] if debug_cap_items is None else debug_cap_items
    return RegionSettings(
        region=region,
        download_url=download_url,
        input_dir=input_dir,
        cache_dir=cache_dir,
        archive_path=input_dir / _archive_filename(download_url, region),
        kml_path=input_dir / cfg["kml_filename"],
        stale_assets=tuple(cfg.get("stale_assets") or ()),
        municipalities_path=municipalities_path,
        age_limit_days=float(cfg["age_limit_days"]),
        debug_cap_items=int(cap),
        center_point_tolerance=float(cfg["center_point_tolerance"]),
    )
