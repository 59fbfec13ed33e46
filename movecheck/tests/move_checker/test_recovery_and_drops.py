# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Best-effort recovery after violations, malformed input handling, and the
release plan produced at scope exits.
"""

from movecheck import ir as I
from movecheck.core.diagnostics import ViolationKind
from movecheck.core.span import Span
from movecheck.move_checker import CheckOptions, MoveChecker, check
from movecheck.value_model import StructDef, StructField, TypeName

STRING = TypeName("String")
I32 = TypeName("i32")


def _at(line: int) -> Span:
	return Span(line=line, column=1)


def _kinds(result):
	return [v.kind for v in result.violations]


def test_use_after_move_revives_binding_so_next_read_is_clean():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("s", STRING, loc=_at(1)),
				I.Declare("t", init=I.Var("s"), loc=_at(2)),
				I.Read("s", loc=_at(3)),
				I.Read("s", loc=_at(4)),
			]
		)
	)
	assert [v.location for v in result.violations] == [_at(3)]


def test_repeated_moves_are_each_reported():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("s", STRING, loc=_at(1)),
				I.Declare("a", init=I.Var("s"), loc=_at(2)),
				I.Declare("b", init=I.Var("s"), loc=_at(3)),
				I.Declare("c", init=I.Var("s"), loc=_at(4)),
			]
		)
	)
	assert [(v.location, v.caused_by) for v in result.violations] == [(_at(3), _at(2)), (_at(4), _at(3))]


def test_unrelated_errors_are_all_found_in_one_pass():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("a", STRING, loc=_at(1)),
				I.Declare("b", STRING, loc=_at(2)),
				I.Declare("a2", init=I.Var("a"), loc=_at(3)),
				I.Declare("b2", init=I.Var("b"), loc=_at(4)),
				I.Read("a", loc=_at(5)),
				I.Read("ghost", loc=_at(6)),
				I.Read("b", loc=_at(7)),
			]
		)
	)
	assert [(v.kind, v.binding_name) for v in result.violations] == [
		(ViolationKind.USE_AFTER_MOVE, "a"),
		(ViolationKind.UNKNOWN_IDENTIFIER, "ghost"),
		(ViolationKind.USE_AFTER_MOVE, "b"),
	]


def test_double_binding_is_reported_and_disambiguated():
	checker = MoveChecker(
		I.Unit(
			instructions=[
				I.Declare("x", STRING, loc=_at(1)),
				I.Declare("x", STRING, loc=_at(2)),
				I.Declare("y", init=I.Var("x"), loc=_at(3)),
			]
		)
	)
	result = checker.check()
	(v,) = result.violations
	assert v.kind is ViolationKind.DOUBLE_BINDING_NAME
	assert v.location == _at(2)
	assert v.caused_by == _at(1)
	# Both the original and the synthetic binding own a value; the original
	# was moved into `y`, so `y` and the synthetic one are released.
	assert [r.binding_name for r in result.releases] == ["y", "x"]
	assert [r.declared_at for r in result.releases] == [_at(3), _at(2)]


def test_shadowing_in_inner_scope_is_allowed():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("x", STRING, loc=_at(1)),
				I.BlockEnter(loc=_at(2)),
				I.Declare("x", I32, loc=_at(3)),
				I.BlockExit(loc=_at(4)),
				I.Read("x", loc=_at(5)),
			]
		)
	)
	assert result.ok


def test_redeclaring_a_moved_name_is_allowed():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("s", STRING, loc=_at(1)),
				I.Declare("t", init=I.Var("s"), loc=_at(2)),
				I.Declare("s", STRING, loc=_at(3)),
				I.Read("s", loc=_at(4)),
			]
		)
	)
	assert result.ok


def test_unknown_identifier_produces_opaque_value():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("a", init=I.Var("ghost"), loc=_at(1)),
				I.Declare("b", init=I.Var("a"), loc=_at(2)),
				I.Read("a", loc=_at(3)),
			]
		)
	)
	assert _kinds(result) == [ViolationKind.UNKNOWN_IDENTIFIER]
	assert result.releases == ()


def test_call_to_unknown_function_still_moves_arguments():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("s", STRING, loc=_at(1)),
				I.CallStmt(I.Call("mystery", [I.Var("s")]), loc=_at(2)),
				I.Read("s", loc=_at(3)),
			]
		)
	)
	assert _kinds(result) == [ViolationKind.UNKNOWN_IDENTIFIER, ViolationKind.USE_AFTER_MOVE]
	assert result.violations[0].binding_name == "mystery"


def test_unmatched_block_exit_is_fatal():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("s", STRING, loc=_at(1)),
				I.BlockExit(loc=_at(2)),
				I.Read("ghost", loc=_at(3)),
			]
		)
	)
	assert not result.ok
	assert result.failure is not None
	assert result.failure.location == _at(2)
	# The walk stopped at the malformed instruction.
	assert result.violations == ()


def test_unclosed_block_is_fatal():
	result = check(I.Unit(instructions=[I.BlockEnter(loc=_at(1)), I.Declare("x", I32, loc=_at(2))]))
	assert result.failure is not None
	assert "still open" in result.failure.message
	assert result.failure.location == _at(1)


def test_violations_before_failure_are_kept():
	result = check(
		I.Unit(
			instructions=[
				I.Read("ghost", loc=_at(1)),
				I.Declare("x", TypeName("Nope"), loc=_at(2)),
			]
		)
	)
	assert _kinds(result) == [ViolationKind.UNKNOWN_IDENTIFIER]
	assert "unknown type" in result.failure.message


def test_declaration_without_type_or_initializer_is_fatal():
	result = check(I.Unit(instructions=[I.Declare("x", loc=_at(1))]))
	assert result.failure is not None


def test_drop_order_is_reverse_declaration():
	result = check(
		I.Unit(
			instructions=[
				I.BlockEnter(loc=_at(1)),
				I.Declare("a", STRING, loc=_at(2)),
				I.Declare("b", STRING, loc=_at(3)),
				I.Declare("c", STRING, loc=_at(4)),
				I.BlockExit(loc=_at(5)),
			]
		)
	)
	assert [r.binding_name for r in result.releases] == ["c", "b", "a"]
	assert all(r.scope_exit == _at(5) for r in result.releases)


def test_every_live_move_only_binding_is_released_exactly_once():
	result = check(
		I.Unit(
			instructions=[
				I.Declare("s1", init=I.New(STRING), loc=_at(1)),
				I.Declare("x", I32, loc=_at(2)),
				I.BlockEnter(loc=_at(3)),
				I.Declare("s2", init=I.Var("s1"), loc=_at(4)),
				I.Declare("s3", init=I.Clone("s2"), loc=_at(5)),
				I.BlockExit(loc=_at(6)),
				I.Declare("s4", init=I.New(STRING), loc=_at(7)),
			]
		)
	)
	assert result.ok
	names = [r.binding_name for r in result.releases]
	assert names == ["s3", "s2", "s4"]
	assert len(names) == len(set(names))


def test_root_scope_bindings_end_dropped():
	checker = MoveChecker(I.Unit(instructions=[I.Declare("s", STRING, loc=_at(1))]))
	checker.check()
	# The binding table is empty after the pass; the released binding is Dropped.
	assert checker.table.depth == 0
	assert len(checker.releases) == 1


def test_copy_annotation_on_drop_type_is_reported():
	result = check(
		I.Unit(
			structs=[
				StructDef("Handle", (StructField("fd", I32),), has_drop=True, copy_annotated=True, loc=_at(1)),
			],
			instructions=[I.Declare("h", TypeName("Handle"), loc=_at(2))],
		)
	)
	(v,) = result.violations
	assert v.kind is ViolationKind.MOVE_ONLY_WITH_DROP_ANNOTATED_AS_COPY
	assert v.binding_name == "Handle"
	assert v.location == _at(1)
	assert [r.binding_name for r in result.releases] == ["h"]


def test_copy_annotation_check_can_be_disabled():
	unit = I.Unit(structs=[StructDef("Bad", (StructField("s", STRING),), copy_annotated=True)])
	assert not check(unit).ok
	assert check(unit, CheckOptions(check_copy_annotations=False)).ok


def test_release_plan_can_be_left_off_the_result():
	unit = I.Unit(instructions=[I.Declare("s", STRING, loc=_at(1))])
	assert check(unit, CheckOptions(record_releases=False)).releases == ()
