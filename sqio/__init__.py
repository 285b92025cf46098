"""SQL reading, safety checks, linting, formatting, result output, history and schema metadata tools."""

__version__ = "0.1.0"