# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scope/drop planning: which owned values are released when a scope closes.

No deallocation happens here. The planner emits abstract release actions that
an embedding can map onto its own mechanism (arena free, refcount decrement,
handle close). A binding is released at most once because releasing moves it
to the absorbing Dropped state, and moved bindings are never handed to the
planner in the first place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from movecheck.binding_table import Binding
from movecheck.core.span import Span
from movecheck.value_model import ValueKind


@dataclass(frozen=True)
class ReleaseAction:
	"""Release of the value owned by one binding at one scope exit."""

	binding_name: str
	declared_at: Span
	scope_exit: Span = field(default_factory=Span)
	depth: int = 0

	def to_json(self) -> dict:
		return {
			"binding_name": self.binding_name,
			"declared_at": self.declared_at.to_json(),
			"scope_exit": self.scope_exit.to_json(),
			"depth": self.depth,
		}


class DropPlanner:
	"""Turns the live bindings of an exiting scope into release actions."""

	def __init__(self) -> None:
		self._released: set[Binding] = set()

	def plan(self, bindings: Iterable[Binding], scope_exit: Span) -> List[ReleaseAction]:
		"""
		`bindings` must come from `BindingTable.exit_scope` (live, reverse
		declaration order). Copyable and Unknown values own nothing to release.
		"""
		actions: List[ReleaseAction] = []
		for binding in bindings:
			if not binding.is_live or binding.kind is not ValueKind.MOVE_ONLY:
				continue
			if binding in self._released:
				raise AssertionError(f"second release planned for `{binding.name}` (checker bug)")
			binding.drop(scope_exit)
			self._released.add(binding)
			actions.append(
				ReleaseAction(
					binding_name=binding.display_name,
					declared_at=binding.declared_at.loc,
					scope_exit=scope_exit,
					depth=binding.declared_at.depth,
				)
			)
		return actions


__all__ = ["ReleaseAction", "DropPlanner"]
