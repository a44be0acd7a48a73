"""Tests for the Operation Classifier."""

import pytest

from query_shaper.shaping.classifier import (
    QueryParseError,
    detect_operation_key,
    operation_key_of,
    parse_document,
)


class TestDetectOperationKey:
    def test_shorthand_query(self):
        assert detect_operation_key("{ user { name } }") == "user"

    def test_named_query_with_variables(self):
        query = "query GetUser($id: ID!) { user(id: $id) { name } }"
        assert detect_operation_key(query) == "user"

    def test_aliased_field_uses_field_name(self):
        assert detect_operation_key("{ me: user { name } }") == "user"

    def test_first_root_field_only(self):
        assert detect_operation_key("{ user { name } posts { title } }") == "user"

    def test_skips_leading_fragment_spread(self):
        query = """
            query { ...RootBits user { name } }
            fragment RootBits on Query { viewer { id } }
        """
        assert detect_operation_key(query) == "user"

    def test_only_fragments_at_root(self):
        query = """
            query { ... on Query { user { name } } }
        """
        assert detect_operation_key(query) is None

    def test_mutation_is_not_classified(self):
        assert detect_operation_key('mutation { createUser(name: "x") { id } }') is None

    def test_subscription_is_not_classified(self):
        assert detect_operation_key("subscription { userAdded { id } }") is None

    def test_fragment_first_is_not_classified(self):
        query = """
            fragment UserBits on User { name }
            query { user { ...UserBits } }
        """
        assert detect_operation_key(query) is None

    def test_malformed_query_is_not_classified(self):
        assert detect_operation_key("{ user { name ") is None

    def test_empty_query_is_not_classified(self):
        assert detect_operation_key("") is None


class TestParseDocument:
    def test_parse_error(self):
        with pytest.raises(QueryParseError):
            parse_document("{ user {")

    def test_non_string_query(self):
        with pytest.raises(QueryParseError):
            parse_document(None)

    def test_operation_key_of_parsed_document(self):
        assert operation_key_of(parse_document("{ users { id } }")) == "users"

    def test_deeply_nested_query(self):
        query = "{ " + "a { " * 1000 + "b" + " }" * 1000 + " }"
        with pytest.raises(QueryParseError):
            parse_document(query)
        assert detect_operation_key(query) is None
