"""
Violations recorded by the move checker, and the reporter that collects them.

A Violation is the checker's diagnostic: a kind, the binding it concerns, the
offending instruction span and (for use-after-move) the span of the
instruction that invalidated the binding. Violations are recoverable; the only
fatal condition is malformed input, which is a separate channel
(`MalformedInputError` while the pass runs, `MalformedInput` in the result).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .span import Span


class ViolationKind(Enum):
	"""Kinds of ownership rule breaches. Values are the serialized names."""

	USE_AFTER_MOVE = "UseAfterMove"
	DOUBLE_BINDING_NAME = "DoubleBindingName"
	COPY_OF_MOVE_ONLY_WITHOUT_CLONE = "CopyOfMoveOnlyWithoutClone"
	MOVE_ONLY_WITH_DROP_ANNOTATED_AS_COPY = "MoveOnlyWithDropAnnotatedAsCopy"
	UNKNOWN_IDENTIFIER = "UnknownIdentifier"


@dataclass
class Violation:
	"""A detected rule breach at one instruction."""

	kind: ViolationKind
	binding_name: str
	location: Span = field(default_factory=Span)
	caused_by: Optional[Span] = None
	message: str = ""
	notes: list[str] = field(default_factory=list)
	severity: str = "error"
	# 1-based argument index when the violation concerns one call argument.
	position: Optional[int] = None

	def __post_init__(self) -> None:
		if self.location is None:  # type: ignore[unreachable]
			self.location = Span()
		if not self.message:
			self.message = f"{self.kind.value}: `{self.binding_name}`"

	def to_json(self) -> dict:
		out = {
			"kind": self.kind.value,
			"binding_name": self.binding_name,
			"location": self.location.to_json(),
			"message": self.message,
		}
		if self.caused_by is not None:
			out["caused_by_location"] = self.caused_by.to_json()
		if self.position is not None:
			out["position"] = self.position
		if self.notes:
			out["notes"] = list(self.notes)
		return out


class DiagnosticReporter:
	"""
	Ordered, append-only sink for violations.

	Report order is detection order, which is instruction order because the
	checker walks the IR once left to right. There is no deduplication: two
	violations on the same binding at different instructions are both kept.
	"""

	def __init__(self) -> None:
		self._violations: List[Violation] = []

	def report(self, violation: Violation) -> None:
		self._violations.append(violation)

	def all(self) -> Tuple[Violation, ...]:
		return tuple(self._violations)

	def has_errors(self) -> bool:
		return any(v.severity == "error" for v in self._violations)

	def __len__(self) -> int:
		return len(self._violations)

	def __iter__(self) -> Iterator[Violation]:
		return iter(list(self._violations))


@dataclass(frozen=True)
class MalformedInput:
	"""Fatal structural problem with the instruction sequence."""

	message: str
	location: Span = field(default_factory=Span)

	def to_json(self) -> dict:
		return {"kind": "MalformedInput", "message": self.message, "location": self.location.to_json()}


class MalformedInputError(Exception):
	"""Raised inside a pass when scope structure can no longer be trusted."""

	def __init__(self, message: str, location: Optional[Span] = None) -> None:
		super().__init__(message)
		self.message = message
		self.location = location if location is not None else Span()

	def to_failure(self) -> MalformedInput:
		return MalformedInput(message=self.message, location=self.location)


__all__ = [
	"ViolationKind",
	"Violation",
	"DiagnosticReporter",
	"MalformedInput",
	"MalformedInputError",
]
