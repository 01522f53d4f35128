"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from precompile.common.errors import ConfigError

REGION_SETTING_KEYS = {
    "age_limit_days",
    "debug_cap_items",
    "center_point_tolerance",
    "download_url",
    "input_dir",
    "cache_dir",
    "kml_filename",
    "stale_assets",
    "municipalities_geojson",
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_mapping(obj, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def validate_regions_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "regions config")
    _assert_required_keys(cfg, {"defaults", "regions"}, "regions config")
    _assert_no_unknown_keys(cfg, {"defaults", "regions"}, "regions config", allow_unknown)

    defaults = cfg["defaults"]
    _assert_mapping(defaults, "defaults")
    _assert_required_keys(defaults, REGION_SETTING_KEYS, "defaults")
    _assert_no_unknown_keys(defaults, REGION_SETTING_KEYS, "defaults", allow_unknown)

    if not isinstance(cfg["regions"], dict) or not cfg["regions"]:
        raise ConfigError("regions must be a non-empty mapping")
    for name, overrides in cfg["regions"].items():
        overrides = overrides or {}
        _assert_mapping(overrides, f"regions.{name}")
        _assert_no_unknown_keys(overrides, REGION_SETTING_KEYS | {"ibge_code"}, f"regions.{name}", allow_unknown)

    if float(defaults["age_limit_days"]) < 0:
        raise ConfigError("defaults.age_limit_days must not be negative")
    if int(defaults["debug_cap_items"]) < 0:
        raise ConfigError("defaults.debug_cap_items must not be negative")
    return cfg


def validate_classification_config(cfg: dict) -> dict:
    _assert_mapping(cfg, "classification config")
    required = {"phases", "advanced_phases", "advanced_bucket", "substance_icons", "highlight_filters"}
    _assert_required_keys(cfg, required, "classification config")

    phases = cfg["phases"]
    if not isinstance(phases, dict) or not phases:
        raise ConfigError("classification.phases must be a non-empty mapping")
    for slug, rank in phases.items():
        if not isinstance(rank, int) or isinstance(rank, bool) or rank < 0:
            raise ConfigError(f"classification.phases.{slug} must be a non-negative integer")

    advanced = cfg["advanced_phases"]
    if not isinstance(advanced, list):
        raise ConfigError("classification.advanced_phases must be a list")
    unknown_phases = [slug for slug in advanced if slug not in phases]
    if unknown_phases:
        raise ConfigError(f"Unknown advanced phases: {', '.join(unknown_phases)}")

    if not isinstance(cfg["advanced_bucket"], str) or not cfg["advanced_bucket"]:
        raise ConfigError("classification.advanced_bucket must be a non-empty string")

    _assert_mapping(cfg["substance_icons"], "classification.substance_icons")

    filters = cfg["highlight_filters"]
    _assert_mapping(filters, "classification.highlight_filters")
    for key, allowed in filters.items():
        if not isinstance(allowed, list):
            raise ConfigError(f"classification.highlight_filters.{key} must be a list")
    return cfg
