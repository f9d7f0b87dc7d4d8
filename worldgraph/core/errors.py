# WorldGraph translator errors
#
# The transforms are total: malformed input is defaulted, never rejected.
# These exceptions cover the two places that do raise:
# - the recursion depth cap (input outside the acyclic, editor-sized contract)
# - the opt-in export gate (assert_clean_export)

from __future__ import annotations


class TranslationError(Exception):
    """Base class for translator failures."""
    pass


class TranslationDepthError(TranslationError):
    """Raised when a tree nests deeper than the configured max_depth."""

    def __init__(self, depth: int, limit: int, path: str = "$") -> None:
        self.depth = depth
        self.limit = limit
        self.path = path
        super().__init__(f"{path}: tree depth {depth} exceeds max_depth={limit}")


class ExportLintError(TranslationError):
    """Raised by assert_clean_export when the lint pass reports problems."""
    pass


__all__ = ["TranslationError", "TranslationDepthError", "ExportLintError"]
