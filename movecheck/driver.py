# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
movecheck driver: run the move checker over units and listing files.

Library entrypoints:
  - check_unit(unit)         one pass, one CheckResult
  - check_units(units, jobs) independent passes in parallel, results in order

CLI (`movecheck` / `python -m movecheck`): loads each listing file, checks it,
and prints diagnostics either human-readable on stderr or as JSON on stdout.
Exit code is 0 when every unit is clean, 1 when any unit has violations and 2
when any listing fails to parse or is structurally malformed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from movecheck.core.diagnostics import Violation
from movecheck.core.span import Span
from movecheck.ir import Unit
from movecheck.listing import ListingError, load_listing
from movecheck.move_checker import CheckOptions, CheckResult, MoveChecker

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_MALFORMED = 2


def check_unit(unit: Unit, options: Optional[CheckOptions] = None) -> CheckResult:
	"""Check one unit with a fresh checker (own binding table and reporter)."""
	return MoveChecker(unit, options or CheckOptions()).check()


def check_units(
	units: Iterable[Unit],
	*,
	jobs: int = 1,
	options: Optional[CheckOptions] = None,
) -> List[CheckResult]:
	"""
	Check independent units, optionally in parallel.

	Parallelism is per unit: every pass owns its own state, nothing is shared
	between workers. Results are returned in input order.
	"""
	unit_list = list(units)
	opts = options or CheckOptions()
	if jobs <= 1 or len(unit_list) <= 1:
		return [check_unit(u, opts) for u in unit_list]
	logger.debug("checking %d units with %d workers", len(unit_list), jobs)
	with ThreadPoolExecutor(max_workers=jobs) as executor:
		return list(executor.map(lambda u: check_unit(u, opts), unit_list))


def _location_text(span: Span, source: Path) -> str:
	file = span.file or str(source)
	return f"{file}:{span.short()}"


def _violation_to_json(v: Violation, source: Path) -> dict:
	"""Render a Violation to a JSON-friendly dict, filling in the file when unknown."""
	out = v.to_json()
	if out["location"]["file"] is None:
		out["location"]["file"] = str(source)
	if "caused_by_location" in out and out["caused_by_location"]["file"] is None:
		out["caused_by_location"]["file"] = str(source)
	return out


def _print_human(result: CheckResult, source: Path, *, show_drops: bool) -> None:
	for v in result.violations:
		print(f"{_location_text(v.location, source)}: {v.severity}: {v.message} [{v.kind.value}]", file=sys.stderr)
		for note in v.notes:
			print(f"{_location_text(v.location, source)}: note: {note}", file=sys.stderr)
	if result.failure is not None:
		loc = _location_text(result.failure.location, source)
		print(f"{loc}: error: malformed input: {result.failure.message}", file=sys.stderr)
	if show_drops:
		for r in result.releases:
			print(f"{_location_text(r.scope_exit, source)}: release `{r.binding_name}` (declared at {r.declared_at.short()})")


def main(argv: Sequence[str] | None = None) -> int:
	"""
	Minimal CLI: loads listing files, move-checks each one, reports.

	With --json, prints `{"exit_code": N, "units": [...]}` where each unit
	carries its violations, release plan and (for malformed input) a failure;
	otherwise prints `file:line:col: error: message` lines to stderr.
	"""
	parser = argparse.ArgumentParser(prog="movecheck", description="Static ownership and move checker for IR listings")
	parser.add_argument("source", type=Path, nargs="+", help="Path(s) to IR listing file(s)")
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit results as JSON (violations/releases/failure per unit)",
	)
	parser.add_argument(
		"--drops",
		action="store_true",
		help="Also print the release plan (one line per released binding)",
	)
	parser.add_argument(
		"-j",
		"--jobs",
		type=int,
		default=1,
		help="Number of units to check in parallel (default: 1)",
	)
	parser.add_argument(
		"--no-copy-check",
		dest="check_copy_annotations",
		action="store_false",
		help="Do not validate `copy` annotations on struct declarations",
	)
	parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v info, -vv debug)")
	args = parser.parse_args(argv)

	level = logging.WARNING
	if args.verbose == 1:
		level = logging.INFO
	elif args.verbose >= 2:
		level = logging.DEBUG
	logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

	options = CheckOptions(check_copy_annotations=args.check_copy_annotations)
	exit_code = EXIT_OK
	payload_units: list[dict] = []
	loaded: list[tuple[Path, Unit]] = []

	for source_path in args.source:
		try:
			unit = load_listing(source_path)
		except OSError as err:
			msg = f"cannot read listing: {err.strerror or err}"
			exit_code = EXIT_MALFORMED
			if args.json:
				payload_units.append({"unit": str(source_path), "ok": False, "phase": "io", "error": msg})
			else:
				print(f"{source_path}:?:?: error: {msg}", file=sys.stderr)
			continue
		except ListingError as err:
			exit_code = EXIT_MALFORMED
			if args.json:
				payload_units.append(
					{
						"unit": str(source_path),
						"ok": False,
						"phase": "parser",
						"error": err.message,
						"location": {"file": str(source_path), "line": err.span.line, "column": err.span.column},
					}
				)
			else:
				print(f"{_location_text(err.span, source_path)}: error: {err.message}", file=sys.stderr)
			continue
		logger.info("loaded %s: %d instruction(s)", source_path, len(unit.instructions))
		loaded.append((source_path, unit))

	results = check_units([u for _, u in loaded], jobs=args.jobs, options=options)
	for (source_path, _unit), result in zip(loaded, results):
		if result.failure is not None:
			exit_code = EXIT_MALFORMED
		elif result.violations and exit_code == EXIT_OK:
			exit_code = EXIT_VIOLATIONS
		if args.json:
			entry = result.to_json()
			entry["violations"] = [_violation_to_json(v, source_path) for v in result.violations]
			if not args.drops:
				entry.pop("releases", None)
			payload_units.append(entry)
		else:
			_print_human(result, source_path, show_drops=args.drops)
		logger.info("%s: %d violation(s), %d release(s)", source_path, len(result.violations), len(result.releases))

	if args.json:
		print(json.dumps({"exit_code": exit_code, "units": payload_units}))
	return exit_code


if __name__ == "__main__":
	sys.exit(main())
