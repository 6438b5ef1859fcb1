"""Tests for reference parsing, extraction and rewriting."""

import json

import pytest

from bot_migration.client.exceptions import MappingConflictError, ReferenceRewriteError
from bot_migration.references import (
    Reference,
    ReferenceMapping,
    extract,
    rewrite,
    stale_references,
    unresolved_references,
)
from bot_migration.resources import category_pattern

DICT_URI = "eddi://ai.labs.regulardictionary/regulardictionarystore/regulardictionaries/abc?version=2"


class TestReference:
    def test_uri_is_canonical(self):
        ref = Reference("regulardictionary", "abc", 2)
        assert ref.uri == DICT_URI
        assert str(ref) == DICT_URI

    def test_parse_round_trips_canonical_form(self):
        assert Reference.parse(DICT_URI) == Reference("regulardictionary", "abc", 2)

    def test_parse_accepts_quoted_token(self):
        assert Reference.parse(f'"{DICT_URI}"').id == "abc"

    @pytest.mark.parametrize(
        "token",
        [
            "eddi://ai.labs.parser",
            "eddi://ai.labs.regulardictionary/regulardictionarystore/regulardictionaries/abc",
            "eddi://ai.labs.unknown/somestore/things/abc?version=1",
            "eddi://ai.labs.behavior/outputstore/outputsets/abc?version=1",
            "http://localhost/botstore/bots/abc?version=1",
        ],
    )
    def test_parse_rejects_non_references(self, token):
        with pytest.raises(ValueError):
            Reference.parse(token)

    def test_from_location_with_eddi_uri(self):
        location = "eddi://ai.labs.package/packagestore/packages/p-77?version=1"
        assert Reference.from_location("package", location) == Reference("package", "p-77", 1)

    def test_from_location_with_http_url(self):
        location = "http://store.example:7070/behaviorstore/behaviorsets/5f1e?version=3"
        assert Reference.from_location("behavior", location) == Reference("behavior", "5f1e", 3)

    def test_from_location_type_mismatch(self):
        location = "eddi://ai.labs.package/packagestore/packages/p-77?version=1"
        with pytest.raises(ValueError, match="does not point at a bot"):
            Reference.from_location("bot", location)

    @pytest.mark.parametrize(
        "location",
        [
            "http://store.example/botstore/bots/abc",
            "http://store.example/botstore/bots/abc?version=latest",
            "http://store.example/?version=1",
        ],
    )
    def test_from_location_requires_id_and_version(self, location):
        with pytest.raises(ValueError):
            Reference.from_location("bot", location)


class TestReferenceMapping:
    def test_add_and_lookup(self):
        mapping = ReferenceMapping()
        old = Reference("output", "o1", 1)
        new = Reference("output", "n1", 1)

        mapping.add(old, new)

        assert old in mapping
        assert old.uri in mapping
        assert mapping.get(old) == new
        assert mapping.resolve(old.uri) == new.uri
        assert len(mapping) == 1
        assert list(mapping.items()) == [(old, new)]

    def test_resolve_unmapped_returns_input(self):
        assert ReferenceMapping().resolve("anything") == "anything"

    def test_second_add_for_same_old_reference_is_rejected(self):
        mapping = ReferenceMapping()
        old = Reference("output", "o1", 1)
        mapping.add(old, Reference("output", "n1", 1))

        with pytest.raises(MappingConflictError):
            mapping.add(old, Reference("output", "n2", 1))

        assert mapping.get(old) == Reference("output", "n1", 1)

    def test_new_reference_may_not_be_an_old_one(self):
        a, b, c = (Reference("output", resource_id, 1) for resource_id in "abc")
        forward = ReferenceMapping()
        forward.add(a, b)
        backward = ReferenceMapping()
        backward.add(b, c)

        with pytest.raises(MappingConflictError, match="chain"):
            forward.add(b, c)
        with pytest.raises(MappingConflictError, match="chain"):
            backward.add(a, b)

    def test_resource_kept_under_its_own_reference(self):
        mapping = ReferenceMapping()
        same = Reference("output", "o1", 1)

        mapping.add(same, same)

        assert mapping.resolve(same.uri) == same.uri


class TestExtract:
    def test_document_order_with_duplicates(self):
        text = json.dumps(
            {
                "a": "eddi://ai.labs.behavior/behaviorstore/behaviorsets/b2?version=1",
                "b": "eddi://ai.labs.behavior/behaviorstore/behaviorsets/b1?version=4",
                "c": ["eddi://ai.labs.behavior/behaviorstore/behaviorsets/b2?version=1"],
            }
        )

        refs = extract(text, category_pattern("behavior"))

        assert [(r.id, r.version) for r in refs] == [("b2", 1), ("b1", 4), ("b2", 1)]

    def test_only_matches_requested_category(self):
        text = json.dumps(
            {
                "dictionary": DICT_URI,
                "output": "eddi://ai.labs.output/outputstore/outputsets/o1?version=1",
            }
        )

        refs = extract(text, category_pattern("output"))

        assert refs == [Reference("output", "o1", 1)]

    def test_no_matches(self):
        assert extract('{"packageExtensions": []}', category_pattern("output")) == []

    def test_string_pattern_is_compiled(self):
        refs = extract(f'"{DICT_URI}"', category_pattern("regulardictionary").pattern)
        assert refs == [Reference("regulardictionary", "abc", 2)]

    def test_malformed_pattern(self):
        with pytest.raises(ReferenceRewriteError, match="Malformed reference pattern"):
            extract("{}", "eddi://(unclosed")


class TestRewrite:
    def _mapping(self):
        mapping = ReferenceMapping()
        mapping.add(Reference("regulardictionary", "abc", 2), Reference("regulardictionary", "xyz", 1))
        return mapping

    def test_mapped_tokens_are_replaced(self):
        new_uri = "eddi://ai.labs.regulardictionary/regulardictionarystore/regulardictionaries/xyz?version=1"
        text = json.dumps({"first": DICT_URI, "second": [DICT_URI]})

        rewritten = rewrite(text, self._mapping())

        assert DICT_URI not in rewritten
        assert rewritten.count(new_uri) == 2
        assert json.loads(rewritten) == {"first": new_uri, "second": [new_uri]}

    def test_unmapped_tokens_are_untouched(self):
        text = json.dumps(
            {
                "type": "eddi://ai.labs.parser",
                "dangling": "eddi://ai.labs.output/outputstore/outputsets/gone?version=1",
                "mapped": DICT_URI,
            }
        )

        rewritten = rewrite(text, self._mapping())

        assert '"eddi://ai.labs.parser"' in rewritten
        assert '"eddi://ai.labs.output/outputstore/outputsets/gone?version=1"' in rewritten

    def test_text_without_tokens_is_unchanged(self):
        text = '{"name": "eddi", "value": 1}'
        assert rewrite(text, self._mapping()) == text

    def test_rewrite_is_idempotent(self):
        mapping = self._mapping()
        text = json.dumps({"a": DICT_URI, "b": "eddi://ai.labs.parser"})

        once = rewrite(text, mapping)

        assert rewrite(once, mapping) == once

    def test_version_is_part_of_the_key(self):
        other_version = DICT_URI.replace("version=2", "version=3")
        text = json.dumps({"a": other_version})

        assert rewrite(text, self._mapping()) == text

    def test_only_given_references_are_replaced(self):
        mapping = self._mapping()
        output_old = Reference("output", "o1", 1)
        output_new = Reference("output", "n1", 1)
        mapping.add(output_old, output_new)
        text = json.dumps({"dictionary": DICT_URI, "output": output_old.uri})

        rewritten = json.loads(rewrite(text, mapping, only=[output_old]))

        assert rewritten == {"dictionary": DICT_URI, "output": output_new.uri}

    def test_rewrite_is_idempotent_across_entries(self):
        mapping = ReferenceMapping()
        a, b, c = (Reference("output", resource_id, 1) for resource_id in "abc")
        mapping.add(a, b)
        with pytest.raises(MappingConflictError):
            mapping.add(b, c)
        text = json.dumps([a.uri, b.uri])

        once = rewrite(text, mapping)

        assert json.loads(once) == [b.uri, b.uri]
        assert rewrite(once, mapping) == once


class TestReferenceChecks:
    def test_stale_references_before_and_after_rewrite(self):
        mapping = ReferenceMapping()
        mapping.add(Reference("regulardictionary", "abc", 2), Reference("regulardictionary", "xyz", 1))
        text = json.dumps({"uri": DICT_URI})

        assert stale_references(text, mapping) == [DICT_URI]
        assert stale_references(rewrite(text, mapping), mapping) == []

    def test_unresolved_references_ignore_type_names_and_new_references(self):
        mapping = ReferenceMapping()
        new = Reference("regulardictionary", "xyz", 1)
        mapping.add(Reference("regulardictionary", "abc", 2), new)
        dangling = "eddi://ai.labs.output/outputstore/outputsets/gone?version=1"
        text = json.dumps(
            {
                "type": "eddi://ai.labs.parser.dictionaries.regular",
                "uri": new.uri,
                "other": dangling,
            }
        )

        assert unresolved_references(text, mapping) == [dangling]
