"""
Operation Classifier — finds the operation key a request is learned under.

The operation key is the name of the first root field of a query, e.g.
``user`` for ``{ user { name } }``. Only that first field is considered;
additional root fields in the same document are invisible to learning and
pruning.
"""

import logging
from typing import Optional

from graphql import (
    DocumentNode,
    FieldNode,
    GraphQLSyntaxError,
    OperationDefinitionNode,
    OperationType,
    parse,
)

logger = logging.getLogger(__name__)


class QueryParseError(Exception):
    """Raised when a query document is not valid GraphQL syntax."""
    pass


def parse_document(query: str) -> DocumentNode:
    """Parse a GraphQL document, raising QueryParseError on malformed input."""
    if not isinstance(query, str):
        raise QueryParseError(f"Query must be a string, got {type(query).__name__}")
    try:
        return parse(query)
    except GraphQLSyntaxError as e:
        raise QueryParseError(e.message) from e
    except RecursionError as e:
        raise QueryParseError("Query is nested too deeply to parse") from e


def operation_key_of(document: DocumentNode) -> Optional[str]:
    """Operation key of an already parsed document."""
    if not document.definitions:
        return None

    first = document.definitions[0]
    if not isinstance(first, OperationDefinitionNode):
        return None
    if first.operation != OperationType.QUERY:
        return None
    if first.selection_set is None:
        return None

    for selection in first.selection_set.selections:
        if isinstance(selection, FieldNode):
            return selection.name.value
    return None


def detect_operation_key(query: str) -> Optional[str]:
    """
    Classify a raw query. Returns None for anything that cannot be learned:
    syntax errors, mutations, subscriptions, fragment-only documents.
    """
    try:
        document = parse_document(query)
    except QueryParseError as e:
        logger.warning("Cannot classify query: %s", e)
        return None
    return operation_key_of(document)
