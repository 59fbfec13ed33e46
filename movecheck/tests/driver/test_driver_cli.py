# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""CLI and library entrypoints of the driver."""

import json
from pathlib import Path

from movecheck import ir as I
from movecheck.driver import EXIT_MALFORMED, EXIT_OK, EXIT_VIOLATIONS, check_unit, check_units, main
from movecheck.listing import load_listing
from movecheck.value_model import TypeName

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"


def test_tour_is_clean(capsys):
	assert main([str(FIXTURES / "ownership_tour.mir"), "--drops"]) == EXIT_OK
	out = capsys.readouterr()
	assert out.err == ""
	released = [line.split("`")[1] for line in out.out.splitlines()]
	assert released == ["some_string", "s5", "s3", "s1"]


def test_use_after_move_human_output(capsys):
	path = FIXTURES / "use_after_move.mir"
	assert main([str(path)]) == EXIT_VIOLATIONS
	err = capsys.readouterr().err.splitlines()
	assert err[0] == f"{path}:3:1: error: use of moved value `s1` [UseAfterMove]"
	assert any("value moved at 2:1" in line for line in err[1:])


def test_use_after_move_json_output(capsys):
	path = FIXTURES / "use_after_move.mir"
	assert main([str(path), "--json"]) == EXIT_VIOLATIONS
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == EXIT_VIOLATIONS
	(unit,) = payload["units"]
	assert unit["ok"] is False
	assert "releases" not in unit
	(v,) = unit["violations"]
	assert v["kind"] == "UseAfterMove"
	assert v["binding_name"] == "s1"
	assert v["location"] == {"file": str(path), "line": 3, "column": 1}
	assert v["caused_by_location"] == {"file": str(path), "line": 2, "column": 1}


def test_malformed_input_exit_code(capsys):
	assert main([str(FIXTURES / "unbalanced.mir")]) == EXIT_MALFORMED
	assert "malformed input: block exit without a matching block enter" in capsys.readouterr().err


def test_malformed_wins_over_violations(capsys):
	paths = [str(FIXTURES / "use_after_move.mir"), str(FIXTURES / "unbalanced.mir")]
	assert main(paths + ["--json", "--jobs", "2"]) == EXIT_MALFORMED
	payload = json.loads(capsys.readouterr().out)
	assert [u["unit"] for u in payload["units"]] == paths
	assert payload["units"][1]["failure"]["kind"] == "MalformedInput"


def test_syntax_error_is_reported_with_parser_phase(tmp_path, capsys):
	bad = tmp_path / "bad.mir"
	bad.write_text("let = 1\n")
	assert main([str(bad), "--json"]) == EXIT_MALFORMED
	(unit,) = json.loads(capsys.readouterr().out)["units"]
	assert unit["phase"] == "parser"
	assert unit["location"]["line"] == 1


def test_missing_file_is_reported(tmp_path, capsys):
	assert main([str(tmp_path / "missing.mir")]) == EXIT_MALFORMED
	assert "cannot read listing" in capsys.readouterr().err


def test_no_copy_check_flag(tmp_path, capsys):
	src = tmp_path / "copy.mir"
	src.write_text("copy struct Bad { s: String }\n")
	assert main([str(src)]) == EXIT_VIOLATIONS
	assert "[MoveOnlyWithDropAnnotatedAsCopy]" in capsys.readouterr().err
	assert main([str(src), "--no-copy-check"]) == EXIT_OK


def test_check_units_keeps_order_and_isolates_passes():
	moved = load_listing(FIXTURES / "use_after_move.mir")
	clean = I.Unit(instructions=[I.Declare("x", TypeName("i32"))], name="clean")
	results = check_units([moved, clean, moved], jobs=3)
	assert [r.ok for r in results] == [False, True, False]
	assert [len(r.violations) for r in results] == [1, 0, 1]
	assert results[1].unit_name == "clean"


def test_check_unit_result_json():
	result = check_unit(load_listing(FIXTURES / "use_after_move.mir"))
	payload = result.to_json()
	assert payload["ok"] is False
	assert [r["binding_name"] for r in payload["releases"]] == ["s2", "s1"]
