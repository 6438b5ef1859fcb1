"""Shared fixtures: an in-memory resource store and an archived bundle builder."""

import asyncio
import itertools
import json
import zipfile
from pathlib import Path
from typing import Any

import httpx
import pytest

from bot_migration.client.exceptions import ServerError
from bot_migration.resources import RESOURCE_REGISTRY


def uri(resource_type: str, resource_id: str, version: int = 1) -> str:
    """Canonical reference token for a resource."""
    return f"{RESOURCE_REGISTRY[resource_type].uri_prefix}{resource_id}?version={version}"


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def package_body(
    dictionaries: tuple[str, ...] = (),
    behaviors: tuple[str, ...] = (),
    outputs: tuple[str, ...] = (),
    extra_uris: tuple[str, ...] = (),
) -> dict[str, Any]:
    """A package body wiring the given leaf ids into its extensions."""
    extensions: list[dict[str, Any]] = [
        {
            "type": "eddi://ai.labs.parser",
            "extensions": {
                "dictionaries": [
                    {
                        "type": "eddi://ai.labs.parser.dictionaries.regular",
                        "config": {"uri": uri("regulardictionary", d)},
                    }
                    for d in dictionaries
                ]
            },
        }
    ]
    extensions += [
        {"type": "eddi://ai.labs.behavior", "config": {"uri": uri("behavior", b)}} for b in behaviors
    ]
    extensions += [
        {"type": "eddi://ai.labs.output", "config": {"uri": uri("output", o)}} for o in outputs
    ]
    extensions += [{"type": "eddi://ai.labs.custom", "config": {"uri": u}} for u in extra_uris]
    return {"packageExtensions": extensions}


class BundleBuilder:
    """Writes an extracted-archive layout under ``root``."""

    def __init__(self, root: Path):
        self.root = root

    def descriptor(self, directory: Path, resource_id: str, name: str | None = None) -> None:
        write_json(
            directory / f"{resource_id}.descriptor.json",
            {"name": name or f"{resource_id} name", "description": f"{resource_id} description"},
        )

    def package_dir(self, package_id: str, version: int = 1) -> Path:
        return self.root / package_id / str(version)

    def add_leaf(self, package_id: str, resource_type: str, leaf_id: str, version: int = 1) -> None:
        directory = self.package_dir(package_id, version)
        bodies = {
            "regulardictionary": {"lang": "en", "words": [{"word": leaf_id, "expressions": "x"}]},
            "behavior": {"behaviorGroups": [{"name": leaf_id, "behaviorRules": []}]},
            "output": {"outputSet": [{"action": leaf_id, "outputs": []}]},
        }
        extension = RESOURCE_REGISTRY[resource_type].extension
        write_json(directory / f"{leaf_id}.{extension}.json", bodies[resource_type])
        self.descriptor(directory, leaf_id)

    def add_package(
        self,
        package_id: str,
        version: int = 1,
        dictionaries: tuple[str, ...] = (),
        behaviors: tuple[str, ...] = (),
        outputs: tuple[str, ...] = (),
        extra_uris: tuple[str, ...] = (),
        with_leaves: bool = True,
    ) -> None:
        directory = self.package_dir(package_id, version)
        write_json(
            directory / f"{package_id}.package.json",
            package_body(dictionaries, behaviors, outputs, extra_uris),
        )
        self.descriptor(directory, package_id)
        if with_leaves:
            for d in dictionaries:
                self.add_leaf(package_id, "regulardictionary", d, version)
            for b in behaviors:
                self.add_leaf(package_id, "behavior", b, version)
            for o in outputs:
                self.add_leaf(package_id, "output", o, version)

    def add_bot(self, bot_id: str, packages: list[tuple[str, int]]) -> None:
        write_json(
            self.root / f"{bot_id}.bot.json",
            {
                "packages": [uri("package", package_id, version) for package_id, version in packages],
                "channels": [],
            },
        )
        self.descriptor(self.root, bot_id, name=f"{bot_id} bot")

    def zip(self, archive_path: Path) -> Path:
        with zipfile.ZipFile(archive_path, "w") as zf:
            for path in sorted(self.root.rglob("*")):
                if path.is_file():
                    zf.write(path, path.relative_to(self.root).as_posix())
        return archive_path


class FakeStore:
    """In-memory destination store that assigns ids in creation order.

    Attributes:
        attempts: ``(resource_type, payload)`` per create call, failed ones included
        created: ``(resource_type, payload, new_uri)`` per create call, in order
        patches: ``(resource_id, version, instruction)`` per descriptor patch
    """

    def __init__(
        self,
        fail_types: tuple[str, ...] = (),
        fail_patches: bool = False,
        fail_payloads: tuple[str, ...] = (),
        fail_first: tuple[str, ...] = (),
    ):
        self.fail_types = set(fail_types)
        self.fail_patches = fail_patches
        self.fail_payloads = fail_payloads
        self.fail_first = set(fail_first)
        self.attempts: list[tuple[str, dict[str, Any]]] = []
        self.created: list[tuple[str, dict[str, Any], str]] = []
        self.patches: list[tuple[str, int, dict[str, Any]]] = []
        self._ids = itertools.count(1)

    async def create_resource(self, resource_type: str, data: dict[str, Any]) -> httpx.Response:
        await asyncio.sleep(0)
        self.attempts.append((resource_type, data))
        if resource_type in self.fail_types:
            raise ServerError("Server error: boom", status_code=500)
        if resource_type in self.fail_first:
            self.fail_first.discard(resource_type)
            raise ServerError("Server error: first call fails", status_code=500)
        if any(marker in json.dumps(data) for marker in self.fail_payloads):
            raise ServerError("Server error: rejected payload", status_code=500)
        new_uri = uri(resource_type, f"new-{resource_type}-{next(self._ids)}")
        self.created.append((resource_type, data, new_uri))
        return httpx.Response(201, headers={"Location": new_uri})

    async def patch_descriptor(
        self, resource_id: str, version: int, instruction: dict[str, Any]
    ) -> None:
        if self.fail_patches:
            raise ServerError("Server error: descriptor store down", status_code=503)
        self.patches.append((resource_id, version, instruction))

    def created_types(self) -> list[str]:
        return [resource_type for resource_type, _, _ in self.created]

    def payloads(self, resource_type: str) -> list[dict[str, Any]]:
        return [data for t, data, _ in self.created if t == resource_type]

    def new_uris(self, resource_type: str) -> list[str]:
        return [new_uri for t, _, new_uri in self.created if t == resource_type]


@pytest.fixture
def bundle(tmp_path):
    """Builder for an extracted bundle rooted in a temp directory."""
    root = tmp_path / "bundle"
    root.mkdir()
    return BundleBuilder(root)


@pytest.fixture
def simple_bundle(bundle):
    """One bot -> one package -> one dictionary, one behavior set, one output set."""
    bundle.add_package("pkg1", dictionaries=("dict1",), behaviors=("beh1",), outputs=("out1",))
    bundle.add_bot("bot1", [("pkg1", 1)])
    return bundle


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_store():
    """Factory for stores that fail on chosen resource types or on descriptor patches."""
    return FakeStore
