# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
IR listing loader: text -> `ir.Unit`.

The listing is a line-per-instruction serialization of the IR (see
`grammar.lark`). Every instruction's span is its position in the listing, so
diagnostics point back at listing lines.
"""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from movecheck import ir as I
from movecheck.core.span import Span
from movecheck.value_model import StructDef, StructField, TupleType, TypeExpr, TypeName, UNIT

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="start",
	propagate_positions=True,
	maybe_placeholders=True,
)


class ListingError(Exception):
	"""Listing text that cannot be turned into a Unit."""

	def __init__(self, message: str, span: Optional[Span] = None) -> None:
		super().__init__(message)
		self.message = message
		self.span = span if span is not None else Span()


class ListingSyntaxError(ListingError):
	"""The listing does not match the grammar."""


def parse_listing(source: str, *, file: Optional[str] = None, name: Optional[str] = None) -> I.Unit:
	"""Parse listing text into a Unit. `file` is recorded on every span."""
	if not source.endswith("\n"):
		source += "\n"
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		span = Span(file=file, line=getattr(err, "line", None), column=getattr(err, "column", None))
		raise ListingSyntaxError(_describe_unexpected(err), span) from err
	return _Builder(file).build_unit(tree, name or file or "<listing>")


def load_listing(path: Path) -> I.Unit:
	"""Read and parse a listing file; the unit is named after the path."""
	return parse_listing(path.read_text(encoding="utf-8"), file=str(path), name=str(path))


def _describe_unexpected(err: UnexpectedInput) -> str:
	token = getattr(err, "token", None)
	if token is not None:
		if token.type == "$END":
			return "unexpected end of listing"
		return f"unexpected token {token.value!r}"
	char = getattr(err, "char", None)
	if char is not None:
		return f"unexpected character {char!r}"
	return "syntax error"


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


def _decode_quoted(tok: Token) -> str:
	"""
	Strip the quotes and interpret Python-style escapes. `unicode_escape` sees
	the listing's UTF-8 bytes one code point per byte; the latin-1 round trip
	folds them back into the text as written.
	"""
	unescaped = codecs.decode(tok.value[1:-1], "unicode_escape")
	return unescaped.encode("latin-1").decode("utf-8")


class _Builder:
	"""Walks the lark tree, producing IR nodes with spans bound to `file`."""

	def __init__(self, file: Optional[str]) -> None:
		self.file = file

	def _loc(self, tree: Tree) -> Span:
		meta = tree.meta
		if getattr(meta, "empty", True):
			return Span(file=self.file)
		return Span.from_loc(meta, file=self.file)

	def build_unit(self, tree: Tree, name: str) -> I.Unit:
		unit = I.Unit(name=name)
		for child in tree.children:
			if not isinstance(child, Tree):
				continue
			kind = _name(child)
			if kind == "struct_def":
				unit.structs.append(self._build_struct(child))
			elif kind == "fn_sig":
				sig = self._build_fn_sig(child)
				if sig.name in unit.functions:
					raise ListingError(f"duplicate function `{sig.name}`", sig.loc)
				unit.add_function(sig)
			else:
				unit.instructions.append(self._build_instr(child))
		return unit

	def _build_struct(self, tree: Tree) -> StructDef:
		tokens = [c for c in tree.children if isinstance(c, Token)]
		name_tok = next(t for t in tokens if t.type == "NAME")
		field_list = next((c for c in tree.children if isinstance(c, Tree) and _name(c) == "field_list"), None)
		fields: List[StructField] = []
		if field_list is not None:
			for field_node in field_list.children:
				fname, ftype = field_node.children
				fields.append(StructField(name=str(fname), type=self._build_type(ftype)))
		return StructDef(
			name=str(name_tok),
			fields=tuple(fields),
			has_drop=any(t.type == "DROP" for t in tokens),
			copy_annotated=any(t.type == "COPY" for t in tokens),
			loc=self._loc(tree),
		)

	def _build_fn_sig(self, tree: Tree) -> I.FnSig:
		name_tok, params_node, ret_node = tree.children
		params: List[I.Param] = []
		if params_node is not None:
			for p in params_node.children:
				pname, ptype = p.children
				params.append(I.Param(name=str(pname), type=self._build_type(ptype)))
		return I.FnSig(
			name=str(name_tok),
			params=tuple(params),
			returns=self._build_type(ret_node) if ret_node is not None else None,
			loc=self._loc(tree),
		)

	def _build_instr(self, tree: Tree) -> I.Instr:
		kind = _name(tree)
		loc = self._loc(tree)
		children = tree.children
		if kind == "let_stmt":
			name_tok, type_node, expr_node = children
			return I.Declare(
				name=str(name_tok),
				type=self._build_type(type_node) if type_node is not None else None,
				init=self._build_expr(expr_node) if expr_node is not None else None,
				loc=loc,
			)
		if kind == "let_tuple":
			names = [str(c) for c in children if isinstance(c, Token) and c.type == "NAME"]
			type_node, expr_node = children[-2], children[-1]
			return I.DeclareTuple(
				names=names,
				init=self._build_expr(expr_node),
				type=self._build_type(type_node) if type_node is not None else None,
				loc=loc,
			)
		if kind == "read_stmt":
			return I.Read(name=str(children[0]), loc=loc)
		if kind == "call_stmt":
			call = self._build_expr(children[0])
			assert isinstance(call, I.Call)
			return I.CallStmt(call=call, loc=loc)
		if kind == "return_stmt":
			value = children[0] if children else None
			return I.Return(value=self._build_expr(value) if value is not None else None, loc=loc)
		if kind == "enter_fn":
			return I.FnEnter(name=str(children[0]), loc=loc)
		if kind == "enter_stmt":
			return I.BlockEnter(loc=loc)
		if kind == "exit_stmt":
			return I.BlockExit(loc=loc)
		raise ListingError(f"unsupported listing item `{kind}`", loc)

	def _build_expr(self, node: Tree) -> I.Expr:
		kind = _name(node)
		children = node.children
		if kind == "var":
			return I.Var(name=str(children[0]))
		if kind == "clone":
			return I.Clone(name=str(children[0]))
		if kind == "new":
			return I.New(type=self._build_type(children[0]))
		if kind == "call":
			func_tok, args_node = children
			args = [self._build_expr(a) for a in args_node.children] if args_node is not None else []
			return I.Call(func=str(func_tok), args=args)
		if kind == "tuple":
			return I.TupleExpr(items=[self._build_expr(c) for c in children])
		if kind == "number_lit":
			text = str(children[0])
			if "." in text:
				return I.Literal(value=float(text), type=TypeName("f64"))
			return I.Literal(value=int(text), type=TypeName("i64"))
		if kind == "str_lit":
			return I.Literal(value=_decode_quoted(children[0]), type=TypeName("str"))
		if kind == "char_lit":
			return I.Literal(value=_decode_quoted(children[0]), type=TypeName("char"))
		if kind == "true_lit":
			return I.Literal(value=True, type=TypeName("bool"))
		if kind == "false_lit":
			return I.Literal(value=False, type=TypeName("bool"))
		raise ListingError(f"unsupported expression `{kind}`", self._loc(node))

	def _build_type(self, node: Tree) -> TypeExpr:
		kind = _name(node)
		if kind == "type_name":
			return TypeName(str(node.children[0]))
		if kind == "unit_type":
			return UNIT
		if kind == "tuple_type":
			return TupleType(tuple(self._build_type(c) for c in node.children))
		raise ListingError(f"unsupported type `{kind}`", self._loc(node))


__all__ = ["ListingError", "ListingSyntaxError", "parse_listing", "load_listing"]
