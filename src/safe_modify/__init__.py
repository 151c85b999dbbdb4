"""safe-modify - Validated, backed-up and version-controlled source modifications."""

__version__ = "0.1.0"
