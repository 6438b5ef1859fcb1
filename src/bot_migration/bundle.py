"""Archived bundle access: extraction and read-only resource loading.

Layout of an extracted bundle::

    <root>/<bot-id>.bot.json
    <root>/<bot-id>.descriptor.json
    <root>/<package-id>/<version>/<package-id>.package.json
    <root>/<package-id>/<version>/<package-id>.descriptor.json
    <root>/<package-id>/<version>/<leaf-id>.<leaf-ext>.json
    <root>/<package-id>/<version>/<leaf-id>.descriptor.json

Nothing in this module writes into an extracted bundle.
"""

import json
import shutil
import uuid
import zipfile
from pathlib import Path
from typing import IO, TypeVar

from pydantic import BaseModel, ValidationError

from bot_migration.client.exceptions import (
    ArchiveExtractionError,
    DeserializationError,
    ResourceReadError,
)
from bot_migration.references import Reference
from bot_migration.resources import (
    BOT,
    DESCRIPTOR_EXTENSION,
    FILE_SUFFIX,
    PACKAGE,
    DocumentDescriptor,
    get_resource_type,
)
from bot_migration.utils.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Version assumed for the bot itself, whose own reference is not stored in the archive
ARCHIVED_BOT_VERSION = 1


def create_workdir(import_dir: str | Path) -> Path:
    """Create a fresh, uniquely named directory for one import."""
    workdir = Path(import_dir) / str(uuid.uuid4())
    workdir.mkdir(parents=True, exist_ok=False)
    return workdir


def extract_archive(archive: str | Path | IO[bytes], target_dir: Path) -> Path:
    """Unzip ``archive`` into ``target_dir``.

    Members that would land outside ``target_dir`` are rejected.

    Args:
        archive: Path to a zip file or a binary stream
        target_dir: Existing, empty directory

    Returns:
        The bundle root (``target_dir``)

    Raises:
        ArchiveExtractionError: If the archive is unreadable or unsafe
    """
    root = target_dir.resolve()
    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                destination = (root / member).resolve()
                if not destination.is_relative_to(root):
                    raise ArchiveExtractionError(f"Archive member escapes bundle root: {member}")
            zf.extractall(root)
    except zipfile.BadZipFile as e:
        raise ArchiveExtractionError(f"Not a valid zip archive: {e}") from e
    except OSError as e:
        raise ArchiveExtractionError(f"Failed to extract archive: {e}") from e

    logger.info("archive_extracted", bundle_root=str(root))
    return root


def remove_workdir(workdir: Path) -> None:
    """Delete an import working directory, logging instead of failing."""
    try:
        shutil.rmtree(workdir)
    except OSError as e:
        logger.warning("workdir_cleanup_failed", workdir=str(workdir), error=str(e))


def old_bot_reference(bot_file: Path) -> Reference:
    """Derive the archived bot's own reference from ``<id>.bot.json``."""
    suffix = f".{get_resource_type(BOT).extension}{FILE_SUFFIX}"
    if not bot_file.name.endswith(suffix):
        raise ResourceReadError(f"Not a bot file: {bot_file.name}", path=str(bot_file))
    return Reference(BOT, bot_file.name[: -len(suffix)], ARCHIVED_BOT_VERSION)


class ResourceLoader:
    """Locates and reads resource and descriptor files of an extracted bundle."""

    def resource_path(self, directory: Path, reference: Reference) -> Path:
        info = get_resource_type(reference.resource_type)
        return directory / info.file_name(reference.id)

    def descriptor_path(self, directory: Path, resource_id: str) -> Path:
        return directory / f"{resource_id}.{DESCRIPTOR_EXTENSION}{FILE_SUFFIX}"

    def load(self, directory: Path, reference: Reference) -> str:
        """Read the raw text of ``reference`` from ``directory``.

        Raises:
            ResourceReadError: If the file is missing or unreadable
        """
        return self._read(self.resource_path(directory, reference))

    def load_model(self, directory: Path, reference: Reference, model: type[ModelT]) -> ModelT:
        """Read and deserialize ``reference`` into ``model``.

        Raises:
            ResourceReadError: If the file is missing or unreadable
            DeserializationError: If the content does not fit ``model``
        """
        path = self.resource_path(directory, reference)
        return deserialize(self._read(path), model, source=str(path))

    def read_descriptor(self, directory: Path, resource_id: str) -> DocumentDescriptor:
        """Read the archived descriptor of ``resource_id``.

        Raises:
            ResourceReadError: If the file is missing or unreadable
            DeserializationError: If the content is not a descriptor
        """
        path = self.descriptor_path(directory, resource_id)
        return deserialize(self._read(path), DocumentDescriptor, source=str(path))

    def find_bot_files(self, root: Path) -> list[Path]:
        """Bot files directly under the bundle root, sorted by name."""
        pattern = f"*.{get_resource_type(BOT).extension}{FILE_SUFFIX}"
        return sorted(path for path in root.glob(pattern) if path.is_file())

    def find_package_file(self, root: Path, reference: Reference) -> Path:
        """Locate the package file for ``reference`` under ``<id>/<version>/``.

        Raises:
            ResourceReadError: If the package directory or file is missing
        """
        path = root / reference.id / str(reference.version) / get_resource_type(
            PACKAGE
        ).file_name(reference.id)
        if not path.is_file():
            raise ResourceReadError(f"Package file not found for {reference}", path=str(path))
        return path

    def _read(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ResourceReadError(f"Resource file not found: {path}", path=str(path)) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ResourceReadError(f"Cannot read {path}: {e}", path=str(path)) from e


def deserialize(text: str, model: type[ModelT], source: str = "<text>") -> ModelT:
    """Parse JSON ``text`` into ``model``.

    Raises:
        DeserializationError: On invalid JSON or a schema mismatch
    """
    try:
        return model.model_validate(json.loads(text))
    except json.JSONDecodeError as e:
        raise DeserializationError(f"Invalid JSON in {source}: {e}") from e
    except ValidationError as e:
        raise DeserializationError(f"{source} is not a valid {model.__name__}: {e}") from e
