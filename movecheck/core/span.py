# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Where an instruction came from: a listing line and column, or nothing.

Violations and release actions carry the Span of the instruction that caused
them. Instructions built by hand (tests, other IR producers) may leave it
empty; `Span()` then stands for "location not known" and renders as `?:?`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Listing position of one instruction; `raw` keeps the lark meta it came from."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None
	raw: Any = field(default=None, compare=False, repr=False)

	@classmethod
	def from_loc(cls, loc: Any, *, file: Optional[str] = None) -> "Span":
		"""
		Span for a lark `Meta`/`Token` (or anything with line/column attributes).
		A Span passes through unchanged and None gives the unknown span for `file`.
		"""
		if loc is None:
			return cls(file=file)
		if isinstance(loc, cls):
			return loc
		return cls(
			file=file or getattr(loc, "filename", None),
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
			end_line=getattr(loc, "end_line", None),
			end_column=getattr(loc, "end_column", None),
			raw=loc,
		)

	@property
	def is_known(self) -> bool:
		return self.line is not None

	def short(self) -> str:
		"""Render as `line:column`, with `?` for unknown parts."""
		line = self.line if self.line is not None else "?"
		column = self.column if self.column is not None else "?"
		return f"{line}:{column}"

	def to_json(self) -> dict:
		return {"file": self.file, "line": self.line, "column": self.column}


__all__ = ["Span"]
