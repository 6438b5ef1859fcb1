"""Central resource type definitions - single source of truth.

Every module that needs to know how a resource type is addressed, where its
file lives inside an archived bundle, or which store endpoint creates it
imports from here.

A reference token has the shape::

    eddi://ai.labs.<type>/<store>/<collection>/<id>?version=<n>

where ``<store>/<collection>`` is also the REST endpoint of that type.
"""

import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

URI_SCHEME = "eddi"
URI_AUTHORITY_PREFIX = "ai.labs."
VERSION_QUERY_PARAM = "version"

DESCRIPTOR_EXTENSION = "descriptor"
FILE_SUFFIX = ".json"


# ============================================
# Typed bodies
# ============================================


class _StoredResource(BaseModel):
    """Base model for archived resource bodies.

    Only the fields the import pipeline touches are declared. Everything else
    is carried through to the destination unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class BotConfiguration(_StoredResource):
    """Top-level entity: a bot and its ordered package references."""

    packages: list[str] = Field(default_factory=list)
    channels: list[dict[str, Any]] = Field(default_factory=list)


class PackageConfiguration(_StoredResource):
    """Mid-level entity: a package wiring leaf resources into extensions."""

    package_extensions: list[dict[str, Any]] = Field(
        default_factory=list, alias="packageExtensions"
    )


class RegularDictionaryConfiguration(_StoredResource):
    lang: str | None = None
    words: list[dict[str, Any]] = Field(default_factory=list)
    phrases: list[dict[str, Any]] = Field(default_factory=list)


class BehaviorConfiguration(_StoredResource):
    behavior_groups: list[dict[str, Any]] = Field(default_factory=list, alias="behaviorGroups")


class OutputConfigurationSet(_StoredResource):
    output_set: list[dict[str, Any]] = Field(default_factory=list, alias="outputSet")


class DocumentDescriptor(_StoredResource):
    """Human-authored metadata kept separately from resource content."""

    name: str | None = None
    description: str | None = None


# ============================================
# Registry
# ============================================


@dataclass(frozen=True)
class ResourceTypeInfo:
    """Metadata for a resource type."""

    name: str
    endpoint: str  # "<store>/<collection>", relative to the store base URL
    extension: str  # file name part between id and ".json"
    model: type[_StoredResource]
    is_leaf: bool = False
    leaf_order: int = 0  # processing order among leaf categories

    @property
    def uri_prefix(self) -> str:
        """Scheme-qualified prefix that precedes the id in a reference token."""
        return f"{URI_SCHEME}://{URI_AUTHORITY_PREFIX}{self.name}/{self.endpoint}/"

    def file_name(self, resource_id: str) -> str:
        """Name of this type's file for ``resource_id`` inside a bundle."""
        return f"{resource_id}.{self.extension}{FILE_SUFFIX}"


RESOURCE_REGISTRY: dict[str, ResourceTypeInfo] = {
    "bot": ResourceTypeInfo(
        name="bot",
        endpoint="botstore/bots",
        extension="bot",
        model=BotConfiguration,
    ),
    "package": ResourceTypeInfo(
        name="package",
        endpoint="packagestore/packages",
        extension="package",
        model=PackageConfiguration,
    ),
    "regulardictionary": ResourceTypeInfo(
        name="regulardictionary",
        endpoint="regulardictionarystore/regulardictionaries",
        extension="regulardictionary",
        model=RegularDictionaryConfiguration,
        is_leaf=True,
        leaf_order=10,
    ),
    "behavior": ResourceTypeInfo(
        name="behavior",
        endpoint="behaviorstore/behaviorsets",
        extension="behavior",
        model=BehaviorConfiguration,
        is_leaf=True,
        leaf_order=20,
    ),
    "output": ResourceTypeInfo(
        name="output",
        endpoint="outputstore/outputsets",
        extension="output",
        model=OutputConfigurationSet,
        is_leaf=True,
        leaf_order=30,
    ),
}

DESCRIPTOR_ENDPOINT = "descriptorstore/descriptors"

# Top-level entity type
BOT = "bot"
# Mid-level entity type
PACKAGE = "package"


def get_resource_type(name: str) -> ResourceTypeInfo:
    """Look up a resource type by name.

    Raises:
        KeyError: If the type is not registered
    """
    try:
        return RESOURCE_REGISTRY[name]
    except KeyError:
        raise KeyError(f"Unknown resource type: {name}") from None


def get_leaf_types() -> list[ResourceTypeInfo]:
    """Leaf categories in processing order (dictionary, behavior, output)."""
    leaves = [info for info in RESOURCE_REGISTRY.values() if info.is_leaf]
    return sorted(leaves, key=lambda info: info.leaf_order)


def category_pattern(resource_type: str) -> re.Pattern[str]:
    """Compiled token pattern matching references of one resource type.

    Groups: ``id`` and ``version``.
    """
    info = get_resource_type(resource_type)
    return re.compile(
        re.escape(info.uri_prefix)
        + r"(?P<id>[^\s\"'?/]+)\?"
        + VERSION_QUERY_PARAM
        + r"=(?P<version>\d+)"
    )
