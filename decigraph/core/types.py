"""
Types — Closed vocabularies for the decision graph

Node kinds, statuses, edge relations and record operations are closed
enums. Parsing helpers turn user input into enum members and raise
ValidationError for anything outside the vocabulary.

Edge relations are the one open set: the four well-known relations are
enum members, and any other lower-case slug is accepted as a custom
relation and carried as a plain string.
"""

import re
from enum import Enum
from typing import Union

from .errors import ValidationError


class NodeKind(Enum):
    GOAL = "goal"
    DECISION = "decision"
    OPTION = "option"
    OBSERVATION = "observation"
    ACTION = "action"
    OUTCOME = "outcome"
    REVISIT = "revisit"


class NodeStatus(Enum):
    ACTIVE = "active"
    REJECTED = "rejected"
    COMPLETED = "completed"
    SUPERSEDED = "superseded"


class EdgeType(Enum):
    LEADS_TO = "leads_to"
    CHOSEN = "chosen"
    REJECTED = "rejected"
    POSSIBLE_APPROACH = "possible_approach"


class Operation(Enum):
    CREATE_NODE = "create_node"
    CREATE_EDGE = "create_edge"
    SET_STATUS = "set_status"
    DELETE_NODE = "delete_node"
    DELETE_EDGE = "delete_edge"


# Custom relations: lower-case slug, bounded length
RELATION_PATTERN = re.compile(r'^[a-z][a-z0-9_-]{0,63}$')

# Kinds a pivot may create for the new approach
PIVOT_TARGET_KINDS = (NodeKind.DECISION, NodeKind.OPTION)


def parse_kind(value: Union[str, NodeKind]) -> NodeKind:
    """Parse a node kind, raising ValidationError for unknown kinds."""
    if isinstance(value, NodeKind):
        return value
    try:
        return NodeKind((value or "").strip().lower())
    except ValueError:
        valid = ", ".join(k.value for k in NodeKind)
        raise ValidationError(
            f"Unknown node kind '{value}'. Valid: {valid}",
            context={"field": "kind", "value": value}
        )


def parse_status(value: Union[str, NodeStatus]) -> NodeStatus:
    """Parse a node status, raising ValidationError for unknown statuses."""
    if isinstance(value, NodeStatus):
        return value
    try:
        return NodeStatus((value or "").strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in NodeStatus)
        raise ValidationError(
            f"Unknown status '{value}'. Valid: {valid}",
            context={"field": "status", "value": value}
        )


def parse_edge_type(value: Union[str, EdgeType]) -> str:
    """
    Normalize an edge relation to its stored string form.

    Well-known relations come back as their enum value. Anything else must
    be a lower-case slug (letters, digits, '_' or '-', max 64 chars).
    """
    if isinstance(value, EdgeType):
        return value.value
    relation = (value or "").strip().lower()
    if not RELATION_PATTERN.match(relation):
        known = ", ".join(e.value for e in EdgeType)
        raise ValidationError(
            f"Invalid edge type '{value}'. Use one of {known} or a lower-case slug",
            context={"field": "edge_type", "value": value}
        )
    return relation


def is_known_relation(edge_type: str) -> bool:
    """True for the four built-in relations."""
    return edge_type in {e.value for e in EdgeType}


def parse_operation(value: str) -> Operation:
    """Parse a record operation. Raises ValueError for unknown operations."""
    return Operation(value)
