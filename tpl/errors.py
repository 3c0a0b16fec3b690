"""Exceptions raised by the template compiler."""


class TemplateError(Exception):
    """Base exception for template compilation errors"""
    pass


class BlockError(TemplateError):
    """Raised when directive blocks cannot be resolved unambiguously"""
    pass


class ExpressionError(TemplateError):
    """Raised when a dynamic expression is rejected or cannot be resolved"""
    pass


class ScratchFileError(TemplateError):
    """Raised when a stale scratch file is in the way and cannot be removed"""
    pass
