# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Value model: which types move and which types copy.

Type expressions are tiny and purely structural (`TypeName`, `TupleType`).
User structs are registered in a per-unit `TypeTable`, which answers the only
question the move checker asks about a type: is it Copyable or MoveOnly?

Rules:
  - scalars (integers, floats, bool, char), static text `str` and the unit
    type `()` are Copyable;
  - heap-backed growable text (`String`) is MoveOnly;
  - a struct declaring a release action (`drop`) is MoveOnly;
  - tuples and structs are Copyable iff every field is Copyable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from movecheck.core.diagnostics import MalformedInputError
from movecheck.core.span import Span


class ValueKind(Enum):
	"""Ownership classification of a value."""

	COPYABLE = "Copyable"
	MOVE_ONLY = "MoveOnly"
	# Not a classification result: marks values read through unresolved names so
	# the checker neither moves nor releases them.
	UNKNOWN = "Unknown"


@dataclass(frozen=True)
class TypeName:
	"""Named type: a builtin scalar, `String`, or a user struct."""

	name: str


@dataclass(frozen=True)
class TupleType:
	"""Anonymous product type; `TupleType(())` is the unit type."""

	items: Tuple["TypeExpr", ...] = ()


TypeExpr = TypeName | TupleType

UNIT = TupleType(())

COPY_SCALARS = frozenset(
	{
		"i8", "i16", "i32", "i64", "i128", "isize",
		"u8", "u16", "u32", "u64", "u128", "usize",
		"f32", "f64",
		"bool", "char",
		"str",
	}
)
HEAP_TYPES = frozenset({"String"})


def render_type(ty: Optional[TypeExpr]) -> str:
	"""Render a type expression the way the listing spells it."""
	if ty is None:
		return "?"
	if isinstance(ty, TypeName):
		return ty.name
	return "(" + ", ".join(render_type(t) for t in ty.items) + ")"


def combine_kinds(kinds: Iterable[ValueKind]) -> ValueKind:
	"""
	Composite rule: MoveOnly if any component is MoveOnly, otherwise Unknown if
	any component is Unknown, otherwise Copyable (this includes no components).
	"""
	seen = set(kinds)
	if ValueKind.MOVE_ONLY in seen:
		return ValueKind.MOVE_ONLY
	if ValueKind.UNKNOWN in seen:
		return ValueKind.UNKNOWN
	return ValueKind.COPYABLE


@dataclass(frozen=True)
class StructField:
	name: str
	type: TypeExpr


@dataclass(frozen=True)
class StructDef:
	"""
	User struct declaration.

	`has_drop` marks a type with an explicit release action. `copy_annotated`
	records a `copy` annotation; it never makes a type Copyable on its own, it
	only asks the table to verify the type may be copied.
	"""

	name: str
	fields: Tuple[StructField, ...] = ()
	has_drop: bool = False
	copy_annotated: bool = False
	loc: Span = field(default_factory=Span)


class TypeTable:
	"""
	Struct registry plus memoized classification.

	All structs are declared before analysis starts; classification results are
	cached per type expression, so kind stays a pure function of type for the
	whole pass.
	"""

	def __init__(self, structs: Iterable[StructDef] = ()) -> None:
		self._structs: Dict[str, StructDef] = {}
		self._kinds: Dict[TypeExpr, ValueKind] = {}
		for sd in structs:
			self.declare_struct(sd)

	def declare_struct(self, sd: StructDef) -> None:
		if sd.name in COPY_SCALARS or sd.name in HEAP_TYPES:
			raise MalformedInputError(f"struct `{sd.name}` redefines a builtin type", sd.loc)
		if sd.name in self._structs:
			raise MalformedInputError(f"duplicate struct `{sd.name}`", sd.loc)
		names = [f.name for f in sd.fields]
		if len(set(names)) != len(names):
			raise MalformedInputError(f"struct `{sd.name}` has duplicate field names", sd.loc)
		self._structs[sd.name] = sd
		self._kinds.clear()

	def struct(self, name: str) -> Optional[StructDef]:
		return self._structs.get(name)

	def structs(self) -> List[StructDef]:
		return list(self._structs.values())

	def classify(self, ty: TypeExpr, *, loc: Optional[Span] = None) -> ValueKind:
		"""Return Copyable or MoveOnly for `ty`; unknown names are malformed input."""
		cached = self._kinds.get(ty)
		if cached is not None:
			return cached
		kind = self._classify(ty, set(), loc or Span())
		self._kinds[ty] = kind
		return kind

	def _classify(self, ty: TypeExpr, active: Set[str], loc: Span) -> ValueKind:
		if isinstance(ty, TupleType):
			return combine_kinds(self._classify(t, active, loc) for t in ty.items)
		name = ty.name
		if name in COPY_SCALARS:
			return ValueKind.COPYABLE
		if name in HEAP_TYPES:
			return ValueKind.MOVE_ONLY
		sd = self._structs.get(name)
		if sd is None:
			raise MalformedInputError(f"unknown type `{name}`", loc)
		if name in active:
			raise MalformedInputError(f"struct `{name}` contains itself by value", sd.loc)
		if sd.has_drop:
			return ValueKind.MOVE_ONLY
		active.add(name)
		try:
			return combine_kinds(self._classify(f.type, active, loc) for f in sd.fields)
		finally:
			active.discard(name)

	def copy_annotation_problems(self) -> List[Tuple[StructDef, str]]:
		"""
		Structs annotated `copy` that cannot be copied, with the reason.

		A type that needs a release action cannot be duplicated bit-for-bit, and
		neither can a type with a MoveOnly part.
		"""
		problems: List[Tuple[StructDef, str]] = []
		for sd in self._structs.values():
			if not sd.copy_annotated:
				continue
			if sd.has_drop:
				problems.append((sd, f"struct `{sd.name}` declares a release action and cannot be `copy`"))
				continue
			for f in sd.fields:
				if self.classify(f.type, loc=sd.loc) is ValueKind.MOVE_ONLY:
					problems.append(
						(sd, f"struct `{sd.name}` cannot be `copy`: field `{f.name}` has move-only type `{render_type(f.type)}`")
					)
					break
		return problems


_EMPTY_TABLE = TypeTable()


def classify(ty: TypeExpr, table: Optional[TypeTable] = None) -> ValueKind:
	"""Classify `ty` against `table` (builtins only when no table is given)."""
	return (table or _EMPTY_TABLE).classify(ty)


__all__ = [
	"ValueKind",
	"TypeName",
	"TupleType",
	"TypeExpr",
	"UNIT",
	"COPY_SCALARS",
	"HEAP_TYPES",
	"render_type",
	"combine_kinds",
	"StructField",
	"StructDef",
	"TypeTable",
	"classify",
]
