"""Reference tokens: parsing, extraction, remapping and rewriting.

Resources point at each other only through ``eddi://`` tokens embedded in
their serialized bodies. Bodies are scanned as text, never walked as JSON,
so the rewriting works without knowing the schema of the body around the
token.
"""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

from bot_migration.client.exceptions import MappingConflictError, ReferenceRewriteError
from bot_migration.resources import (
    RESOURCE_REGISTRY,
    URI_AUTHORITY_PREFIX,
    URI_SCHEME,
    VERSION_QUERY_PARAM,
    get_resource_type,
)

# Any quoted scheme token, quotes included. Lazy so adjacent tokens stay separate.
TOKEN_PATTERN = re.compile(r'"' + re.escape(f"{URI_SCHEME}://{URI_AUTHORITY_PREFIX}") + r'.*?"')

_REFERENCE_PATTERN = re.compile(
    re.escape(f"{URI_SCHEME}://{URI_AUTHORITY_PREFIX}")
    + r"(?P<type>[a-z]+)/(?P<endpoint>[^\s\"'?]+)/(?P<id>[^\s\"'?/]+)\?"
    + VERSION_QUERY_PARAM
    + r"=(?P<version>\d+)$"
)


@dataclass(frozen=True)
class Reference:
    """One resource instance at one version."""

    resource_type: str
    id: str
    version: int

    @property
    def uri(self) -> str:
        """Canonical string form, as embedded in resource bodies."""
        info = get_resource_type(self.resource_type)
        return f"{info.uri_prefix}{self.id}?{VERSION_QUERY_PARAM}={self.version}"

    def __str__(self) -> str:
        return self.uri

    @classmethod
    def parse(cls, token: str) -> "Reference":
        """Parse a canonical ``eddi://`` token (surrounding quotes allowed).

        Raises:
            ValueError: If the token is not a reference to a known type
        """
        match = _REFERENCE_PATTERN.match(token.strip('"'))
        if match is None:
            raise ValueError(f"Not a resource reference: {token!r}")

        resource_type = match.group("type")
        info = RESOURCE_REGISTRY.get(resource_type)
        if info is None or info.endpoint != match.group("endpoint"):
            raise ValueError(f"Unknown resource type in reference: {token!r}")

        return cls(resource_type, match.group("id"), int(match.group("version")))

    @classmethod
    def from_location(cls, resource_type: str, location: str) -> "Reference":
        """Build a reference from a ``Location`` header returned on creation.

        The store may answer with an ``eddi://`` URI or with an ``http(s)://``
        URL whose last path segment is the id. Either way the version comes
        from the ``version`` query parameter.

        Raises:
            ValueError: If no id or version can be found
        """
        if location.startswith(f"{URI_SCHEME}://"):
            reference = cls.parse(location)
            if reference.resource_type != resource_type:
                raise ValueError(
                    f"Location {location!r} does not point at a {resource_type} resource"
                )
            return reference

        parts = urlsplit(location)
        segments = [segment for segment in parts.path.split("/") if segment]
        if not segments:
            raise ValueError(f"Location has no resource id: {location!r}")

        versions = parse_qs(parts.query).get(VERSION_QUERY_PARAM)
        if not versions or not versions[0].isdigit():
            raise ValueError(f"Location has no version: {location!r}")

        return cls(resource_type, segments[-1], int(versions[0]))


class ReferenceMapping:
    """Old to new reference table for one archive import.

    Insertion order is kept. An old reference is mapped at most once; a
    second ``add`` for the same old reference raises instead of overwriting.
    Old and new references never chain: a new reference is never also the
    old side of another entry, so ``rewrite`` gives the same text however
    often it is applied.
    """

    def __init__(self) -> None:
        self._old: dict[str, Reference] = {}
        self._new: dict[str, Reference] = {}
        self._new_uris: set[str] = set()

    def add(self, old: Reference, new: Reference) -> None:
        """Record that ``old`` was recreated as ``new``.

        Raises:
            MappingConflictError: If ``old`` is already mapped, or the entry
                would chain with an existing one
        """
        key = old.uri
        if key in self._new:
            raise MappingConflictError(
                f"{key} is already mapped to {self._new[key].uri}, refusing to remap to {new.uri}"
            )
        if new.uri != key and (new.uri in self._new or key in self._new_uris):
            raise MappingConflictError(
                f"Mapping {key} to {new.uri} would chain with an existing entry"
            )
        self._old[key] = old
        self._new[key] = new
        self._new_uris.add(new.uri)

    def get(self, old: Reference | str) -> Reference | None:
        key = old if isinstance(old, str) else old.uri
        return self._new.get(key)

    def resolve(self, old: str) -> str:
        """Return the new canonical string for ``old``, or ``old`` when unmapped."""
        new = self._new.get(old)
        return new.uri if new is not None else old

    def new_uris(self) -> set[str]:
        return set(self._new_uris)

    def items(self) -> Iterator[tuple[Reference, Reference]]:
        for key, new in self._new.items():
            yield self._old[key], new

    def __contains__(self, old: object) -> bool:
        if isinstance(old, Reference):
            old = old.uri
        return old in self._new

    def __len__(self) -> int:
        return len(self._new)

    def __repr__(self) -> str:
        return f"ReferenceMapping({len(self)} entries)"


def extract(text: str, pattern: re.Pattern[str] | str) -> list[Reference]:
    """Find every reference matching ``pattern`` in ``text``.

    Document order is preserved and duplicates are kept. The pattern must
    match the full canonical token; see ``resources.category_pattern``.

    Raises:
        ReferenceRewriteError: If ``pattern`` is a string that does not compile
    """
    if isinstance(pattern, str):
        try:
            pattern = re.compile(pattern)
        except re.error as e:
            raise ReferenceRewriteError(f"Malformed reference pattern {pattern!r}: {e}") from e

    references = []
    for match in pattern.finditer(text):
        try:
            references.append(Reference.parse(match.group(0)))
        except ValueError as e:
            raise ReferenceRewriteError(str(e)) from e
    return references


def rewrite(
    text: str, mapping: ReferenceMapping, only: Iterable[Reference] | None = None
) -> str:
    """Replace every mapped reference token in ``text`` with its new form.

    Tokens without a mapping entry are left exactly as they are, quotes
    included. With ``only``, just those old references are replaced even
    if the mapping holds more.
    """
    allowed = None if only is None else {ref.uri for ref in only}

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        key = token[1:-1]
        if allowed is not None and key not in allowed:
            return token
        new = mapping.get(key)
        return f'"{new.uri}"' if new is not None else token

    return TOKEN_PATTERN.sub(_replace, text)


def stale_references(text: str, mapping: ReferenceMapping) -> list[str]:
    """Old references that still occur as tokens in ``text``.

    Empty after a successful ``rewrite`` with the same mapping.
    """
    tokens = {match.group(0)[1:-1] for match in TOKEN_PATTERN.finditer(text)}
    new_uris = mapping.new_uris()
    return [old.uri for old, _ in mapping.items() if old.uri in tokens and old.uri not in new_uris]


def unresolved_references(text: str, mapping: ReferenceMapping) -> list[str]:
    """Reference tokens in ``text`` that do not point at a resource created by this import.

    These pass through ``rewrite`` untouched: they name resources outside
    the processed subtree. Scheme tokens without an id and version (such as
    extension type names) are not references and are ignored.
    """
    new_uris = mapping.new_uris()
    tokens = (match.group(0)[1:-1] for match in TOKEN_PATTERN.finditer(text))
    return [
        token
        for token in tokens
        if _REFERENCE_PATTERN.match(token) is not None and token not in new_uris
    ]
