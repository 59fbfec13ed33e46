# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Move-check pass: track ownership per binding and flag use-after-move.

Scope:
- Single forward walk over a Unit's instruction sequence; no CFG, because the
  IR only has straight-line code and nested blocks.
- MoveOnly values used by value (initializers, call arguments, return values,
  tuple elements) are moved; Copyable values are copied.
- `clone` duplicates without moving.
- Every scope exit hands its live bindings to the DropPlanner.

Violations never stop the walk. After a use-after-move is reported the binding
is revived, so each independent mistake is reported once, at the place where
it happens. Malformed structure (unbalanced blocks, unknown types, undeclared
function bodies, arity mismatches) raises MalformedInputError and ends the
pass; `check()` turns it into `CheckResult.failure`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from movecheck import ir as I
from movecheck.binding_table import (
	Binding,
	BindingState,
	BindingTable,
	DoubleBindingError,
	UnknownIdentifierError,
)
from movecheck.core.diagnostics import (
	DiagnosticReporter,
	MalformedInput,
	MalformedInputError,
	Violation,
	ViolationKind,
)
from movecheck.core.span import Span
from movecheck.drop_planner import DropPlanner, ReleaseAction
from movecheck.value_model import (
	UNIT,
	TupleType,
	TypeExpr,
	TypeTable,
	ValueKind,
	combine_kinds,
	render_type,
)

logger = logging.getLogger(__name__)


@dataclass
class CheckOptions:
	"""Per-pass switches; defaults give the full analysis."""

	check_copy_annotations: bool = True
	# Release planning always runs (it drives the Dropped state); this only
	# controls whether the plan is kept on the result.
	record_releases: bool = True


@dataclass
class CheckResult:
	"""Outcome of one pass over one unit."""

	violations: Tuple[Violation, ...] = ()
	releases: Tuple[ReleaseAction, ...] = ()
	failure: Optional[MalformedInput] = None
	unit_name: str = "<unit>"

	@property
	def ok(self) -> bool:
		return self.failure is None and not self.violations

	def to_json(self) -> dict:
		out: dict = {
			"unit": self.unit_name,
			"ok": self.ok,
			"violations": [v.to_json() for v in self.violations],
			"releases": [r.to_json() for r in self.releases],
		}
		if self.failure is not None:
			out["failure"] = self.failure.to_json()
		return out


@dataclass
class _Value:
	"""What an expression produced: its ownership kind and, when known, its type."""

	kind: ValueKind
	type: Optional[TypeExpr] = None


_UNKNOWN = _Value(ValueKind.UNKNOWN)


@dataclass
class MoveChecker:
	"""
	One analysis pass over one Unit.

	Instances are single-use: the binding table, reporter and planner belong to
	this pass only, so independent units can be checked on separate threads.
	"""

	unit: I.Unit
	options: CheckOptions = field(default_factory=CheckOptions)
	table: BindingTable = field(init=False, default_factory=BindingTable)
	reporter: DiagnosticReporter = field(init=False, default_factory=DiagnosticReporter)
	planner: DropPlanner = field(init=False, default_factory=DropPlanner)
	releases: List[ReleaseAction] = field(init=False, default_factory=list)
	types: TypeTable = field(init=False, default_factory=TypeTable)
	_done: bool = field(init=False, default=False, repr=False)

	def check(self) -> CheckResult:
		if self._done:
			raise RuntimeError("MoveChecker instances are single-use")
		self._done = True
		failure: Optional[MalformedInput] = None
		try:
			self._run()
		except MalformedInputError as err:
			logger.debug("%s: malformed input at %s: %s", self.unit.name, err.location.short(), err.message)
			failure = err.to_failure()
		return CheckResult(
			violations=self.reporter.all(),
			releases=tuple(self.releases) if self.options.record_releases else (),
			failure=failure,
			unit_name=self.unit.name,
		)

	# Pass structure

	def _run(self) -> None:
		self.types = TypeTable(self.unit.structs)
		self._check_signatures()
		if self.options.check_copy_annotations:
			for sd, msg in self.types.copy_annotation_problems():
				self.reporter.report(
					Violation(
						kind=ViolationKind.MOVE_ONLY_WITH_DROP_ANNOTATED_AS_COPY,
						binding_name=sd.name,
						location=sd.loc,
						message=msg,
					)
				)

		self.table.enter_scope()
		for instr in self.unit.instructions:
			self._check_instr(instr)
		if self.table.depth != 1:
			unclosed = self.table.current
			raise MalformedInputError(
				f"{self.table.depth - 1} scope(s) still open at end of input",
				unclosed.loc,
			)
		end = self.unit.instructions[-1].loc if self.unit.instructions else Span()
		self._close_scope(end)

	def _check_signatures(self) -> None:
		for sig in self.unit.functions.values():
			names = [p.name for p in sig.params]
			if len(set(names)) != len(names):
				raise MalformedInputError(f"function `{sig.name}` has duplicate parameter names", sig.loc)
			for param in sig.params:
				self.types.classify(param.type, loc=sig.loc)
			if sig.returns is not None:
				self.types.classify(sig.returns, loc=sig.loc)

	def _check_instr(self, instr: I.Instr) -> None:
		loc = instr.loc
		if isinstance(instr, I.BlockEnter):
			self.table.enter_scope(loc=loc)
			logger.debug("enter scope depth=%d at %s", self.table.depth - 1, loc.short())
			return
		if isinstance(instr, I.FnEnter):
			self._enter_function(instr)
			return
		if isinstance(instr, I.BlockExit):
			if self.table.depth <= 1:
				raise MalformedInputError("block exit without a matching block enter", loc)
			self._close_scope(loc)
			return
		if isinstance(instr, I.Declare):
			self._declare(instr)
			return
		if isinstance(instr, I.DeclareTuple):
			self._declare_tuple(instr)
			return
		if isinstance(instr, I.Read):
			binding = self._resolve(instr.name, loc)
			if binding is not None:
				self._ensure_live(binding, loc)
			return
		if isinstance(instr, I.CallStmt):
			self._eval(instr.call, loc)
			return
		if isinstance(instr, I.Return):
			if instr.value is not None:
				self._eval(instr.value, loc, slot=self._current_return_type())
			return
		raise MalformedInputError(f"unsupported instruction {type(instr).__name__}", getattr(instr, "loc", None))

	# Scopes

	def _enter_function(self, instr: I.FnEnter) -> None:
		sig = self.unit.functions.get(instr.name)
		if sig is None:
			raise MalformedInputError(f"body for undeclared function `{instr.name}`", instr.loc)
		self.table.enter_scope(function=instr.name, loc=instr.loc)
		logger.debug("enter fn %s depth=%d", instr.name, self.table.depth - 1)
		for param in sig.params:
			self.table.declare(
				param.name,
				self.types.classify(param.type, loc=sig.loc),
				type=param.type,
				loc=instr.loc,
				is_param=True,
			)

	def _close_scope(self, loc: Span) -> None:
		live = self.table.exit_scope()
		actions = self.planner.plan(live, loc)
		if actions:
			logger.debug("release at %s: %s", loc.short(), ", ".join(a.binding_name for a in actions))
		self.releases.extend(actions)

	def _current_return_type(self) -> Optional[TypeExpr]:
		for scope in self.table.scopes():
			if scope.function is not None:
				return self.unit.functions[scope.function].returns
		return None

	# Declarations

	def _declare(self, instr: I.Declare) -> None:
		if instr.type is None and instr.init is None:
			raise MalformedInputError(f"declaration of `{instr.name}` has neither a type nor an initializer", instr.loc)
		value = self._eval(instr.init, instr.loc, slot=instr.type) if instr.init is not None else None
		if instr.type is not None:
			kind = self.types.classify(instr.type, loc=instr.loc)
			ty: Optional[TypeExpr] = instr.type
		else:
			assert value is not None
			kind, ty = value.kind, value.type
		self._bind(instr.name, kind, ty, instr.loc)

	def _declare_tuple(self, instr: I.DeclareTuple) -> None:
		value = self._eval(instr.init, instr.loc, slot=instr.type)
		ty = instr.type if instr.type is not None else value.type
		if isinstance(ty, TupleType):
			if len(ty.items) != len(instr.names):
				raise MalformedInputError(
					f"cannot destructure `{render_type(ty)}` into {len(instr.names)} bindings",
					instr.loc,
				)
			parts = [(self.types.classify(t, loc=instr.loc), t) for t in ty.items]
		elif ty is None and value.kind is ValueKind.UNKNOWN:
			parts = [(ValueKind.UNKNOWN, None)] * len(instr.names)
		else:
			raise MalformedInputError(f"cannot destructure non-tuple value of type `{render_type(ty)}`", instr.loc)
		for name, (kind, item_ty) in zip(instr.names, parts):
			self._bind(name, kind, item_ty, instr.loc)

	def _bind(self, name: str, kind: ValueKind, ty: Optional[TypeExpr], loc: Span) -> Binding:
		try:
			return self.table.declare(name, kind, type=ty, loc=loc)
		except DoubleBindingError as err:
			existing = err.existing
			self.reporter.report(
				Violation(
					kind=ViolationKind.DOUBLE_BINDING_NAME,
					binding_name=name,
					location=loc,
					caused_by=existing.declared_at.loc,
					message=f"`{name}` is already bound in this scope",
					notes=[f"previous binding of `{name}` declared at {existing.declared_at.loc.short()}"],
				)
			)
			return self.table.declare(self._synthetic_name(name), kind, type=ty, loc=loc, source_name=name)

	def _synthetic_name(self, name: str) -> str:
		n = 1
		while self.table.is_declared_here(f"{name}'{n}"):
			n += 1
		return f"{name}'{n}"

	# Expressions

	def _resolve(self, name: str, loc: Span) -> Optional[Binding]:
		try:
			return self.table.lookup(name)
		except UnknownIdentifierError:
			self.reporter.report(
				Violation(
					kind=ViolationKind.UNKNOWN_IDENTIFIER,
					binding_name=name,
					location=loc,
					message=f"`{name}` is not bound in any enclosing scope",
				)
			)
			return None

	def _ensure_live(self, binding: Binding, loc: Span, position: Optional[int] = None) -> None:
		if binding.is_live:
			return
		name = binding.display_name
		verb = "moved" if binding.state is BindingState.MOVED else "dropped"
		where = f" (argument {position})" if position is not None else ""
		caused_by = binding.invalidated_at
		notes = [f"`{name}` declared at {binding.declared_at.loc.short()}"]
		if caused_by is not None:
			notes.append(f"value {verb} at {caused_by.short()}")
		self.reporter.report(
			Violation(
				kind=ViolationKind.USE_AFTER_MOVE,
				binding_name=name,
				location=loc,
				caused_by=caused_by,
				message=f"use of {verb} value `{name}`{where}",
				position=position,
				notes=notes,
			)
		)
		binding.revive()

	def _eval(
		self,
		expr: I.Expr,
		loc: Span,
		*,
		slot: Optional[TypeExpr] = None,
		position: Optional[int] = None,
	) -> _Value:
		"""
		Evaluate `expr` in a by-value position.

		`slot` is the type of whatever receives the value (declared binding type,
		formal parameter, function return type), when known. A MoveOnly binding
		flowing into a Copyable slot is reported instead of moved.
		"""
		if isinstance(expr, I.Var):
			binding = self._resolve(expr.name, loc)
			if binding is None:
				return _UNKNOWN
			self._ensure_live(binding, loc, position)
			if binding.kind is ValueKind.MOVE_ONLY:
				slot_kind = self.types.classify(slot, loc=loc) if slot is not None else None
				if slot_kind is ValueKind.COPYABLE:
					self._report_implicit_copy(binding, slot, loc, position)
					return _Value(ValueKind.COPYABLE, slot)
				binding.move(loc)
				logger.debug("move %s at %s", binding.display_name, loc.short())
			return _Value(binding.kind, binding.type)
		if isinstance(expr, I.Clone):
			binding = self._resolve(expr.name, loc)
			if binding is None:
				return _UNKNOWN
			self._ensure_live(binding, loc, position)
			return _Value(binding.kind, binding.type)
		if isinstance(expr, (I.Literal, I.New)):
			return _Value(self.types.classify(expr.type, loc=loc), expr.type)
		if isinstance(expr, I.Call):
			return self._eval_call(expr, loc)
		if isinstance(expr, I.TupleExpr):
			slots: List[Optional[TypeExpr]] = [None] * len(expr.items)
			if isinstance(slot, TupleType) and len(slot.items) == len(expr.items):
				slots = list(slot.items)
			values = [
				self._eval(item, loc, slot=item_slot, position=position)
				for item, item_slot in zip(expr.items, slots)
			]
			kind = combine_kinds(v.kind for v in values)
			if all(v.type is not None for v in values):
				return _Value(kind, TupleType(tuple(v.type for v in values)))  # type: ignore[misc]
			return _Value(kind)
		raise MalformedInputError(f"unsupported expression {type(expr).__name__}", loc)

	def _eval_call(self, call: I.Call, loc: Span) -> _Value:
		sig = self.unit.functions.get(call.func)
		if sig is None:
			self.reporter.report(
				Violation(
					kind=ViolationKind.UNKNOWN_IDENTIFIER,
					binding_name=call.func,
					location=loc,
					message=f"call to unknown function `{call.func}`",
				)
			)
			for idx, arg in enumerate(call.args, start=1):
				self._eval(arg, loc, position=idx)
			return _UNKNOWN
		if len(call.args) != len(sig.params):
			raise MalformedInputError(
				f"call to `{call.func}` passes {len(call.args)} argument(s), expected {len(sig.params)}",
				loc,
			)
		# Left to right: the first argument position that consumes a binding owns it.
		for idx, (arg, param) in enumerate(zip(call.args, sig.params), start=1):
			self._eval(arg, loc, slot=param.type, position=idx)
		ret = sig.returns if sig.returns is not None else UNIT
		return _Value(self.types.classify(ret, loc=loc), ret)

	def _report_implicit_copy(self, binding: Binding, slot: TypeExpr, loc: Span, position: Optional[int]) -> None:
		name = binding.display_name
		where = f" (argument {position})" if position is not None else ""
		self.reporter.report(
			Violation(
				kind=ViolationKind.COPY_OF_MOVE_ONLY_WITHOUT_CLONE,
				binding_name=name,
				location=loc,
				message=(
					f"move-only value `{name}` of type `{render_type(binding.type)}` used where "
					f"copyable `{render_type(slot)}` is expected{where}; clone it explicitly"
				),
				position=position,
			)
		)


def check(unit: I.Unit, options: Optional[CheckOptions] = None) -> CheckResult:
	"""Run one move-check pass over `unit`."""
	return MoveChecker(unit, options or CheckOptions()).check()


__all__ = ["CheckOptions", "CheckResult", "MoveChecker", "check"]
