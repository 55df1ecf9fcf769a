"""
Exception presentation registry.

Exports
-------
- ExceptionTemplate: Title / message / help text for one exception type
- EXCEPTION_TEMPLATES: Registry mapping exception types to templates
- get_exception_template: MRO-aware template lookup
"""

from .registry import EXCEPTION_TEMPLATES, ExceptionTemplate, get_exception_template

__all__ = [
    "EXCEPTION_TEMPLATES",
    "ExceptionTemplate",
    "get_exception_template",
]
