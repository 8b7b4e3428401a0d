"""
Delivery criteria grammar.

A criteria document is stored as an opaque JSON value and is one of:

- a leaf mapping of criterion type to one or more values, several keys in one
  leaf meaning AND: {"siret": ["13002526500013"], "organization_id": "..."}
- an operator node whose value is a non-empty list of sub-documents:
  {"_or": [...]} or {"_and": [...]}

Documents are parsed once into an immutable Leaf / AllOf / AnyOf tree, which
both write-time validation and recipient resolution consume. Parsing is pure
and fails fast on the first violation.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from streamdrop.core.config import Settings, get_settings
from streamdrop_shared.schemas.common import CriterionType

OPERATOR_PREFIX = "_"
OR_OPERATOR = "_or"
AND_OPERATOR = "_and"

DEFAULT_MAX_DEPTH = 2
DEFAULT_MAX_COUNT = 20


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class CriteriaError(ValueError):
    """A delivery criteria document does not follow the grammar."""

    code = "invalid_criteria"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotAHashError(CriteriaError):
    code = "not_a_hash"


class ExceedsMaxDepthError(CriteriaError):
    code = "exceeds_max_depth"

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        super().__init__(f"exceeds maximum nesting depth of {max_depth}")


# Name used on the resolution path; same error kind.
ExpressionTooDeepError = ExceedsMaxDepthError


class OperatorMustBeArrayError(CriteriaError):
    code = "operator_must_be_array"


class OperatorMustNotBeEmptyError(CriteriaError):
    code = "operator_must_not_be_empty"


class MixedOperatorNodeError(CriteriaError):
    code = "mixed_operator_node"


class UnknownOperatorError(CriteriaError):
    code = "unknown_operator"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"unknown operator: {key}")


class UnsupportedCriterionError(CriteriaError):
    code = "unsupported_criterion"

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(f"unsupported criterion: {key}")


class ImplicitAndDisabledError(CriteriaError):
    code = "implicit_and_disabled"


class TooManyCriteriaError(CriteriaError):
    code = "too_many_criteria"

    def __init__(self, max_count: int) -> None:
        self.max_count = max_count
        super().__init__(f"exceeds maximum of {max_count} criteria")


class InvalidCriterionValueError(CriteriaError):
    code = "invalid_criterion_value"


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CriteriaCapabilities:
    """Which criterion types are active and how large a document may be."""

    supported: frozenset = frozenset(CriterionType)
    implicit_and: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    max_count: int = DEFAULT_MAX_COUNT

    @classmethod
    def v1(cls) -> "CriteriaCapabilities":
        """First generation: SIRET lists only, one criterion per leaf."""
        return cls(supported=frozenset({CriterionType.SIRET}), implicit_and=False)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CriteriaCapabilities":
        settings = settings or get_settings()
        try:
            supported = frozenset(CriterionType(name) for name in settings.criteria_supported)
        except ValueError as exc:
            raise ValueError(f"Invalid criteria_supported setting: {exc}") from exc
        return cls(
            supported=supported,
            implicit_and=settings.criteria_implicit_and,
            max_depth=settings.criteria_max_depth,
            max_count=settings.criteria_max_count,
        )


# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Leaf:
    criteria: tuple[tuple[CriterionType, tuple[str, ...]], ...]


@dataclass(frozen=True)
class AllOf:
    operands: tuple["Expression", ...]


@dataclass(frozen=True)
class AnyOf:
    operands: tuple["Expression", ...]


Expression = Union[Leaf, AllOf, AnyOf]


def _is_empty(raw: Any) -> bool:
    if raw is None:
        return True
    return isinstance(raw, (Mapping, list, tuple, str)) and len(raw) == 0


def _normalize_values(key: str, raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    items = raw if isinstance(raw, (list, tuple)) else [raw]
    values = []
    for item in items:
        # bool is an int subclass but never a meaningful identifier
        if isinstance(item, bool) or not isinstance(item, (str, int, uuid.UUID)):
            raise InvalidCriterionValueError(
                f"{key} values must be strings or a list of strings"
            )
        values.append(str(item))
    return tuple(values)


class _Parser:
    def __init__(self, capabilities: CriteriaCapabilities) -> None:
        self.capabilities = capabilities
        self.count = 0

    def parse(self, node: Mapping, depth: int) -> Expression:
        if depth > self.capabilities.max_depth:
            raise ExceedsMaxDepthError(self.capabilities.max_depth)

        for operator, node_type in ((OR_OPERATOR, AnyOf), (AND_OPERATOR, AllOf)):
            if operator in node:
                if len(node) > 1:
                    raise MixedOperatorNodeError(
                        f"{operator} cannot be combined with other keys"
                    )
                return node_type(self._operands(operator, node[operator], depth))

        return self._leaf(node)

    def _operands(self, operator: str, conditions: Any, depth: int) -> tuple:
        if not isinstance(conditions, list):
            raise OperatorMustBeArrayError(f"{operator} must contain an array")
        if not conditions:
            raise OperatorMustNotBeEmptyError(f"{operator} must not be empty")

        operands = []
        for index, condition in enumerate(conditions):
            if not isinstance(condition, Mapping):
                raise NotAHashError(f"{operator}[{index}] must be a hash")
            operands.append(self.parse(condition, depth + 1))
        return tuple(operands)

    def _leaf(self, node: Mapping) -> Leaf:
        self.count += len(node)
        if self.count > self.capabilities.max_count:
            raise TooManyCriteriaError(self.capabilities.max_count)

        if len(node) > 1 and not self.capabilities.implicit_and:
            raise ImplicitAndDisabledError(
                "only one criterion per condition is allowed; combine them with _and"
            )

        criteria = []
        for key, raw_values in node.items():
            if isinstance(key, str) and key.startswith(OPERATOR_PREFIX):
                raise UnknownOperatorError(key)
            try:
                criterion = CriterionType(key)
            except ValueError:
                raise UnsupportedCriterionError(key) from None
            if criterion not in self.capabilities.supported:
                raise UnsupportedCriterionError(key)
            criteria.append((criterion, _normalize_values(key, raw_values)))
        return Leaf(tuple(criteria))


def parse_criteria(
    raw: Any, capabilities: Optional[CriteriaCapabilities] = None
) -> Optional[Expression]:
    """Parse a stored criteria document. Returns None when there is nothing to match."""
    if _is_empty(raw):
        return None
    if not isinstance(raw, Mapping):
        raise NotAHashError("must be a hash")

    capabilities = capabilities or CriteriaCapabilities.from_settings()
    return _Parser(capabilities).parse(raw, depth=0)


def validate_criteria(
    raw: Any, capabilities: Optional[CriteriaCapabilities] = None
) -> list[CriteriaError]:
    """Check a document before it is persisted. Empty list means valid."""
    try:
        parse_criteria(raw, capabilities)
    except CriteriaError as exc:
        return [exc]
    return []


def count_criteria(expression: Optional[Expression]) -> int:
    """Number of leaf key/value pairs in an expression."""
    if expression is None:
        return 0
    if isinstance(expression, Leaf):
        return len(expression.criteria)
    return sum(count_criteria(operand) for operand in expression.operands)
