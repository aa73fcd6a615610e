"""sqlforge template layer: placeholder templates prepared once, rendered many times."""
from sqlforge.template.context import PlaceholderContext
from sqlforge.template.handlers import PlaceholderRegistry
from sqlforge.template.template import SqlTemplate, prepare

__all__ = [
    "PlaceholderContext",
    "PlaceholderRegistry",
    "SqlTemplate",
    "prepare",
]
