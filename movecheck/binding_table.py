# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Binding table: the stack of lexical scopes visible at the current point of the
walk, each an ordered list of bindings with their ownership state.

This models the "who owns what" side of the analysis and stays free of policy:
it does not decide when something moves and it reports nothing. Failures are
raised as exceptions and turned into violations by the checker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from movecheck.core.span import Span
from movecheck.value_model import TypeExpr, ValueKind


class BindingState(Enum):
	"""Validity state of a binding: Live, or invalidated by a move or a drop."""

	LIVE = "Live"
	MOVED = "Moved"
	DROPPED = "Dropped"


@dataclass(frozen=True)
class DeclSite:
	"""Where a binding was declared: scope depth, index in its scope, span."""

	depth: int
	position: int
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Binding:
	"""
	One variable in one scope.

	`state` only ever goes Live -> Moved or Live -> Dropped. The single way back
	is `revive`, which the checker uses to recover after reporting a
	use-after-move so that later, unrelated errors still surface.
	"""

	name: str
	kind: ValueKind
	declared_at: DeclSite
	type: Optional[TypeExpr] = None
	state: BindingState = BindingState.LIVE
	invalidated_at: Optional[Span] = None
	is_param: bool = False
	# Name as written when the binding was given a synthetic name.
	source_name: Optional[str] = None

	@property
	def is_live(self) -> bool:
		return self.state is BindingState.LIVE

	@property
	def display_name(self) -> str:
		return self.source_name or self.name

	def move(self, loc: Span) -> None:
		if self.state is not BindingState.LIVE:
			raise AssertionError(f"move of non-live binding `{self.name}` ({self.state.value}) (checker bug)")
		self.state = BindingState.MOVED
		self.invalidated_at = loc

	def drop(self, loc: Span) -> None:
		if self.state is not BindingState.LIVE:
			raise AssertionError(f"drop of non-live binding `{self.name}` ({self.state.value}) (checker bug)")
		self.state = BindingState.DROPPED
		self.invalidated_at = loc

	def revive(self) -> None:
		self.state = BindingState.LIVE
		self.invalidated_at = None


class DoubleBindingError(Exception):
	"""`declare` of a name that is already live in the current scope."""

	def __init__(self, existing: Binding) -> None:
		super().__init__(f"`{existing.name}` is already bound in this scope")
		self.existing = existing


class UnknownIdentifierError(Exception):
	"""`lookup` of a name bound in no active scope."""

	def __init__(self, name: str) -> None:
		super().__init__(f"`{name}` is not bound in any enclosing scope")
		self.name = name


@dataclass
class Scope:
	"""Bindings of one lexical block, in declaration order."""

	depth: int
	bindings: List[Binding] = field(default_factory=list)
	function: Optional[str] = None
	loc: Span = field(default_factory=Span)

	def find(self, name: str) -> Optional[Binding]:
		# Latest declaration wins: a moved binding may be re-declared in place.
		for binding in reversed(self.bindings):
			if binding.name == name:
				return binding
		return None


class BindingTable:
	"""Stack of Scope frames; the innermost scope is on top."""

	def __init__(self) -> None:
		self._scopes: List[Scope] = []

	@property
	def depth(self) -> int:
		return len(self._scopes)

	@property
	def current(self) -> Scope:
		if not self._scopes:
			raise IndexError("no active scope")
		return self._scopes[-1]

	def scopes(self) -> Iterator[Scope]:
		"""Active scopes, innermost first."""
		return reversed(list(self._scopes))

	def enter_scope(self, *, function: Optional[str] = None, loc: Optional[Span] = None) -> Scope:
		scope = Scope(depth=len(self._scopes), function=function, loc=loc or Span())
		self._scopes.append(scope)
		return scope

	def exit_scope(self) -> List[Binding]:
		"""Pop the top scope; return its live bindings in reverse declaration order."""
		if not self._scopes:
			raise IndexError("exit_scope with no active scope")
		scope = self._scopes.pop()
		return [b for b in reversed(scope.bindings) if b.is_live]

	def declare(
		self,
		name: str,
		kind: ValueKind,
		*,
		type: Optional[TypeExpr] = None,
		loc: Optional[Span] = None,
		is_param: bool = False,
		source_name: Optional[str] = None,
	) -> Binding:
		scope = self.current
		existing = scope.find(name)
		if existing is not None and existing.is_live:
			raise DoubleBindingError(existing)
		binding = Binding(
			name=name,
			kind=kind,
			declared_at=DeclSite(scope.depth, len(scope.bindings), loc or Span()),
			type=type,
			is_param=is_param,
			source_name=source_name,
		)
		scope.bindings.append(binding)
		return binding

	def lookup(self, name: str) -> Binding:
		"""
		Innermost to outermost, stopping at the nearest function body: a body
		sees its parameters and its own locals, never the caller's bindings.
		"""
		for scope in reversed(self._scopes):
			binding = scope.find(name)
			if binding is not None:
				return binding
			if scope.function is not None:
				break
		raise UnknownIdentifierError(name)

	def is_declared_here(self, name: str) -> bool:
		return self.current.find(name) is not None


__all__ = [
	"BindingState",
	"DeclSite",
	"Binding",
	"DoubleBindingError",
	"UnknownIdentifierError",
	"Scope",
	"BindingTable",
]
