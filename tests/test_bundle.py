"""Tests for archive extraction and bundle reading."""

import io
import zipfile

import pytest

from bot_migration.bundle import (
    ARCHIVED_BOT_VERSION,
    ResourceLoader,
    create_workdir,
    deserialize,
    extract_archive,
    old_bot_reference,
    remove_workdir,
)
from bot_migration.client.exceptions import (
    ArchiveExtractionError,
    DeserializationError,
    ResourceReadError,
)
from bot_migration.references import Reference
from bot_migration.resources import BehaviorConfiguration, BotConfiguration, PackageConfiguration


@pytest.fixture
def loader():
    return ResourceLoader()


class TestWorkdir:
    def test_create_workdir_is_unique(self, tmp_path):
        first = create_workdir(tmp_path / "imports")
        second = create_workdir(tmp_path / "imports")

        assert first.is_dir()
        assert second.is_dir()
        assert first != second
        assert first.parent == second.parent == tmp_path / "imports"

    def test_remove_workdir(self, tmp_path):
        workdir = create_workdir(tmp_path)
        (workdir / "file.json").write_text("{}")

        remove_workdir(workdir)

        assert not workdir.exists()

    def test_remove_missing_workdir_does_not_raise(self, tmp_path):
        remove_workdir(tmp_path / "never-created")


class TestExtractArchive:
    def test_extracts_bundle(self, simple_bundle, tmp_path):
        archive = simple_bundle.zip(tmp_path / "bot.zip")
        target = tmp_path / "out"
        target.mkdir()

        root = extract_archive(archive, target)

        assert (root / "bot1.bot.json").is_file()
        assert (root / "pkg1" / "1" / "dict1.regulardictionary.json").is_file()

    def test_extracts_from_stream(self, simple_bundle, tmp_path):
        archive = simple_bundle.zip(tmp_path / "bot.zip")
        target = tmp_path / "out"
        target.mkdir()

        root = extract_archive(io.BytesIO(archive.read_bytes()), target)

        assert (root / "bot1.descriptor.json").is_file()

    def test_not_a_zip(self, tmp_path):
        archive = tmp_path / "bot.zip"
        archive.write_text("definitely not a zip")

        with pytest.raises(ArchiveExtractionError, match="Not a valid zip archive"):
            extract_archive(archive, tmp_path)

    def test_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveExtractionError):
            extract_archive(tmp_path / "missing.zip", tmp_path)

    def test_member_outside_root_is_rejected(self, tmp_path):
        archive = tmp_path / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("../escaped.bot.json", "{}")
        target = tmp_path / "out"
        target.mkdir()

        with pytest.raises(ArchiveExtractionError, match="escapes bundle root"):
            extract_archive(archive, target)

        assert not (tmp_path / "escaped.bot.json").exists()


class TestResourceLoader:
    def test_load_and_load_model(self, simple_bundle, loader):
        directory = simple_bundle.package_dir("pkg1")
        ref = Reference("behavior", "beh1", 1)

        text = loader.load(directory, ref)
        model = loader.load_model(directory, ref, BehaviorConfiguration)

        assert '"behaviorGroups"' in text
        assert model.behavior_groups[0]["name"] == "beh1"

    def test_missing_file(self, simple_bundle, loader):
        directory = simple_bundle.package_dir("pkg1")

        with pytest.raises(ResourceReadError) as exc_info:
            loader.load(directory, Reference("output", "nope", 1))

        assert exc_info.value.path.endswith("nope.output.json")

    def test_invalid_json(self, simple_bundle, loader):
        directory = simple_bundle.package_dir("pkg1")
        (directory / "broken.output.json").write_text("{not json")

        with pytest.raises(DeserializationError, match="Invalid JSON"):
            loader.load_model(directory, Reference("output", "broken", 1), BehaviorConfiguration)

    def test_read_descriptor(self, simple_bundle, loader):
        descriptor = loader.read_descriptor(simple_bundle.package_dir("pkg1"), "dict1")

        assert descriptor.name == "dict1 name"
        assert descriptor.description == "dict1 description"

    def test_find_bot_files_sorted(self, bundle, loader):
        bundle.add_bot("zeta", [])
        bundle.add_bot("alpha", [])

        files = loader.find_bot_files(bundle.root)

        assert [path.name for path in files] == ["alpha.bot.json", "zeta.bot.json"]

    def test_find_package_file(self, simple_bundle, loader):
        path = loader.find_package_file(simple_bundle.root, Reference("package", "pkg1", 1))
        assert path == simple_bundle.root / "pkg1" / "1" / "pkg1.package.json"

    def test_find_package_file_wrong_version(self, simple_bundle, loader):
        with pytest.raises(ResourceReadError, match="Package file not found"):
            loader.find_package_file(simple_bundle.root, Reference("package", "pkg1", 2))


class TestHelpers:
    def test_old_bot_reference_from_file_name(self, tmp_path):
        ref = old_bot_reference(tmp_path / "5f3a.bot.json")
        assert ref == Reference("bot", "5f3a", ARCHIVED_BOT_VERSION)

    def test_old_bot_reference_rejects_other_files(self, tmp_path):
        with pytest.raises(ResourceReadError):
            old_bot_reference(tmp_path / "5f3a.package.json")

    def test_deserialize_keeps_unknown_fields(self):
        package = deserialize(
            '{"packageExtensions": [], "comment": "kept"}', PackageConfiguration
        )
        assert package.model_dump(by_alias=True, exclude_unset=True) == {
            "packageExtensions": [],
            "comment": "kept",
        }

    def test_deserialize_schema_mismatch(self):
        with pytest.raises(DeserializationError, match="not a valid BotConfiguration"):
            deserialize('{"packages": "not-a-list"}', BotConfiguration)
