import zipfile

from precompile.common.models import StageStatus
from precompile.pipeline.unpack import unpack_archive


def test_unpack_extracts_markup_and_replaces_stale_files(settings, logger, sample_kml, make_kmz):
    make_kmz(settings.archive_path, sample_kml)
    settings.kml_path.write_text("stale", encoding="utf-8")

    result = unpack_archive(settings, logger)

    assert result.status is StageStatus.RECOMPUTED
    assert result.value == settings.kml_path
    assert settings.kml_path.read_text(encoding="utf-8") == sample_kml
    assert (settings.input_dir / "legend0.png").exists()
    assert settings.archive_path.exists()


def test_unpack_returns_markup_with_unexpected_name(settings, logger, sample_kml, make_kmz):
    make_kmz(settings.archive_path, sample_kml, kml_name="RS.kml")

    result = unpack_archive(settings, logger)

    assert result.value == settings.input_dir / "RS.kml"


def test_unpack_missing_archive_fails(settings, logger):
    result = unpack_archive(settings, logger)
    assert result.status is StageStatus.FAILED
    assert result.error_code == "ARCHIVE_MISSING"


def test_unpack_corrupt_archive_fails(settings, logger):
    settings.archive_path.parent.mkdir(parents=True)
    settings.archive_path.write_bytes(b"not a zip")

    result = unpack_archive(settings, logger)

    assert result.error_code == "ARCHIVE_INVALID"


def test_unpack_rejects_archive_without_markup(settings, logger):
    settings.archive_path.parent.mkdir(parents=True)
    with zipfile.ZipFile(settings.archive_path, "w") as archive:
        archive.writestr("legend0.png", b"png")

    assert unpack_archive(settings, logger).error_code == "ARCHIVE_INVALID"


def test_unpack_rejects_member_outside_target(settings, logger):
    settings.archive_path.parent.mkdir(parents=True)
    with zipfile.ZipFile(settings.archive_path, "w") as archive:
        archive.writestr("doc.kml", "<kml/>")
        archive.writestr("../escape.kml", "<kml/>")

    assert unpack_archive(settings, logger).error_code == "ARCHIVE_INVALID"
    assert not (settings.input_dir.parent / "escape.kml").exists()
