"""Minimal text-template compiler.

Compiles ``{{var}}`` placeholders, ``<if.key>`` and ``<loop.key>`` blocks,
and ``{{$name}}`` expressions resolved against an injected scope.
"""
from tpl.config import TemplateConfig
from tpl.errors import BlockError, ExpressionError, ScratchFileError, TemplateError
from tpl.sanitizer import sanitize
from tpl.template import Template

__version__ = '1.0.0'

__all__ = [
    'Template',
    'TemplateConfig',
    'TemplateError',
    'BlockError',
    'ExpressionError',
    'ScratchFileError',
    'sanitize',
]
