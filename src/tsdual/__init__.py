"""
tsdual - dual ESM/CommonJS publishing for TypeScript packages.

Splits type-only bindings out of value imports, normalizes directory
imports, compiles each output format and patches the emitted files so
that every relative reference carries its output extension.
"""

__version__ = "0.1.0"
