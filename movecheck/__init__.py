# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
movecheck: static ownership-and-move checker.

Pipeline:
  listing text (listing/) -> IR Unit (ir.py)
    -> MoveChecker (move_checker.py), consulting the value model and binding
       table, planning releases at every scope exit (drop_planner.py)
    -> CheckResult (violations + release plan)

The CLI entrypoint is `movecheck.driver:main`.
"""

__all__ = ["core", "ir", "listing", "value_model", "binding_table", "drop_planner", "move_checker", "driver"]
