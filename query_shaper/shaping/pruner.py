"""
Selection Pruner — rewrites a query so it only asks for admitted fields.

Rules, applied to every query operation in the document:
- Fragment spreads and inline fragments are always kept untouched.
- ``__typename`` is always kept.
- Any other field is kept when its path is allowed, or when it is an
  ancestor of an allowed path (so the scaffold down to it survives).
- Kept fields with sub-selections are pruned recursively, unless that
  would leave them with no selections at all.

Mutations, subscriptions and fragment definitions pass through unchanged.
The parsed tree is never mutated; changed nodes are rebuilt bottom-up.
"""

from copy import copy
from typing import AbstractSet, List, Optional, Tuple

from graphql import (
    DocumentNode,
    FieldNode,
    OperationDefinitionNode,
    OperationType,
    SelectionNode,
    SelectionSetNode,
    print_ast,
)

from query_shaper.learning.paths import join_path
from query_shaper.shaping.classifier import QueryParseError, parse_document

TYPENAME_FIELD = "__typename"


def is_path_required(path: str, allow_list: AbstractSet[str]) -> bool:
    """True if ``path`` is allowed itself or leads to an allowed descendant."""
    if path in allow_list:
        return True
    scaffold = path + "."
    return any(allowed.startswith(scaffold) for allowed in allow_list)


def _prune_selection_set(
    selection_set: SelectionSetNode, parent_path: str, allow_list: AbstractSet[str]
) -> Tuple[SelectionSetNode, bool]:
    """Return a pruned copy of ``selection_set`` and whether anything was dropped."""
    kept: List[SelectionNode] = []
    changed = False

    for selection in selection_set.selections:
        if not isinstance(selection, FieldNode):
            kept.append(selection)
            continue

        name = selection.name.value
        if name == TYPENAME_FIELD:
            kept.append(selection)
            continue

        path = join_path(parent_path, name)
        if not is_path_required(path, allow_list):
            changed = True
            continue

        if selection.selection_set is None:
            kept.append(selection)
            continue

        children, children_changed = _prune_selection_set(
            selection.selection_set, path, allow_list
        )
        # An empty selection set is not valid GraphQL; leave the subtree as asked.
        if children_changed and children.selections:
            changed = True
            selection = copy(selection)
            selection.selection_set = children
        kept.append(selection)

    if not changed:
        return selection_set, False

    rebuilt = copy(selection_set)
    rebuilt.selections = tuple(kept)
    return rebuilt, True


def prune_document(
    document: DocumentNode, allow_list: Optional[AbstractSet[str]]
) -> Tuple[DocumentNode, bool]:
    """Prune every query operation in an already parsed document."""
    if not allow_list:
        return document, False

    definitions = []
    changed = False
    for definition in document.definitions:
        if (
            isinstance(definition, OperationDefinitionNode)
            and definition.operation == OperationType.QUERY
            and definition.selection_set is not None
        ):
            selection_set, op_changed = _prune_selection_set(
                definition.selection_set, "", allow_list
            )
            if op_changed and selection_set.selections:
                changed = True
                definition = copy(definition)
                definition.selection_set = selection_set
        definitions.append(definition)

    if not changed:
        return document, False

    rebuilt = copy(document)
    rebuilt.definitions = tuple(definitions)
    return rebuilt, True


def prune_query(query: str, allow_list: Optional[AbstractSet[str]]) -> Tuple[str, bool]:
    """
    Prune a query string.

    Returns the original text untouched unless something was dropped, so
    unchanged queries keep their formatting. Raises QueryParseError on
    malformed input when there is an allow-list to apply.
    """
    if not allow_list:
        return query, False

    document = parse_document(query)
    try:
        pruned, changed = prune_document(document, allow_list)
        if not changed:
            return query, False
        return print_ast(pruned), True
    except RecursionError as e:
        raise QueryParseError("Query is nested too deeply to prune") from e
