# WorldGraph Core module: categories, mapping tables, identity and errors

from .categories import Category, NodeTag, parse_tag, resolve_category
from .errors import ExportLintError, TranslationDepthError, TranslationError
from .identity import ImportMetadata, MetadataFragment, NodeIdGenerator

__all__ = [
    "Category",
    "NodeTag",
    "parse_tag",
    "resolve_category",
    "TranslationError",
    "TranslationDepthError",
    "ExportLintError",
    "ImportMetadata",
    "MetadataFragment",
    "NodeIdGenerator",
]
