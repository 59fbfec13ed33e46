"""
movecheck.core: shared spans and diagnostics used by every pass.

Modules:
  - span: best-effort source locations
  - diagnostics: Violation records, the DiagnosticReporter and MalformedInput
"""
