# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Intermediate representation consumed by the move checker.

A `Unit` is one independently-checked program: struct declarations, function
signatures and a flat instruction sequence. Block structure is expressed only
through markers (`BlockEnter`/`FnEnter` ... `BlockExit`); the IR producer is
trusted to emit them balanced, and the checker treats an imbalance as
malformed input.

Guiding rules:
- Nodes are purely syntactic; kinds and binding states live in the checker.
- Every instruction carries a `loc` span (`Span()` when unknown).
- Expressions only appear as initializers, call arguments and return values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from movecheck.core.span import Span
from movecheck.value_model import StructDef, TypeExpr


# Expressions

class Expr:
	"""Base class for IR expressions."""
	pass


@dataclass
class Var(Expr):
	"""By-value use of a binding: moves MoveOnly values, copies Copyable ones."""
	name: str


@dataclass
class Clone(Expr):
	"""Explicit duplication: a fresh owned value, the source stays valid."""
	name: str


@dataclass
class Literal(Expr):
	"""
	Literal value. `type` is the literal's natural type (`i64`, `f64`, `bool`,
	`char`, `str`); a declared type on the receiving binding wins over it.
	"""
	value: object
	type: TypeExpr


@dataclass
class New(Expr):
	"""Fresh owned value of `type` (e.g. `String::from("...")`)."""
	type: TypeExpr


@dataclass
class Call(Expr):
	"""Call of a declared function; arguments are passed by value."""
	func: str
	args: List[Expr] = field(default_factory=list)


@dataclass
class TupleExpr(Expr):
	items: List[Expr] = field(default_factory=list)


# Instructions

class Instr:
	"""Base class for IR instructions."""
	loc: Span


@dataclass
class BlockEnter(Instr):
	loc: Span = field(default_factory=Span)


@dataclass
class FnEnter(Instr):
	"""Open the body scope of `name`; its parameters become live bindings."""
	name: str
	loc: Span = field(default_factory=Span)


@dataclass
class BlockExit(Instr):
	"""Close the innermost scope (plain block or function body)."""
	loc: Span = field(default_factory=Span)


@dataclass
class Declare(Instr):
	"""`let name[: type] [= init]`; at least one of `type`/`init` is required."""
	name: str
	type: Optional[TypeExpr] = None
	init: Optional[Expr] = None
	loc: Span = field(default_factory=Span)


@dataclass
class DeclareTuple(Instr):
	"""`let (a, b, ...)[: type] = init`: destructure a tuple into bindings."""
	names: List[str]
	init: Expr
	type: Optional[TypeExpr] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Read(Instr):
	"""Non-consuming read of a binding (printing, inspecting)."""
	name: str
	loc: Span = field(default_factory=Span)


@dataclass
class CallStmt(Instr):
	"""Call evaluated for its effects; the result is discarded."""
	call: Call
	loc: Span = field(default_factory=Span)


@dataclass
class Return(Instr):
	value: Optional[Expr] = None
	loc: Span = field(default_factory=Span)


Instruction = Union[BlockEnter, FnEnter, BlockExit, Declare, DeclareTuple, Read, CallStmt, Return]


# Signatures and units

@dataclass(frozen=True)
class Param:
	name: str
	type: TypeExpr


@dataclass
class FnSig:
	"""Function signature; `returns=None` means the unit type."""
	name: str
	params: Tuple[Param, ...] = ()
	returns: Optional[TypeExpr] = None
	loc: Span = field(default_factory=Span)


@dataclass
class Unit:
	"""One analysis unit: the checker's whole input."""
	instructions: List[Instr] = field(default_factory=list)
	structs: List[StructDef] = field(default_factory=list)
	functions: Dict[str, FnSig] = field(default_factory=dict)
	name: str = "<unit>"

	def add_function(self, sig: FnSig) -> None:
		self.functions[sig.name] = sig


__all__ = [
	"Expr",
	"Var",
	"Clone",
	"Literal",
	"New",
	"Call",
	"TupleExpr",
	"Instr",
	"BlockEnter",
	"FnEnter",
	"BlockExit",
	"Declare",
	"DeclareTuple",
	"Read",
	"CallStmt",
	"Return",
	"Instruction",
	"Param",
	"FnSig",
	"Unit",
]
