"""Static placeholder substitution."""
import re
from typing import Any

from tpl.sanitizer import sanitize, to_text

_OPEN_SPACE = re.compile(r'\{\{[ \t]+')
_CLOSE_SPACE = re.compile(r'[ \t]+\}\}')


def normalize_placeholders(text: str) -> str:
    """Strip spaces and tabs just inside ``{{ }}`` so ``{{ x }}`` reads as ``{{x}}``.

    Line breaks are kept, so multi-line brace blocks (scripts, styles) are
    not mistaken for placeholders.
    """
    text = _OPEN_SPACE.sub('{{', text)
    return _CLOSE_SPACE.sub('}}', text)


def apply_var(text: str, key: str, value: Any) -> str:
    """Replace every ``{{key}}`` with the sanitized value."""
    return text.replace(f'{{{{{key}}}}}', sanitize(to_text(value)))
