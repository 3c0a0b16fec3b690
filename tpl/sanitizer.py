"""Input sanitization for template content and static values."""
import re

# Backtick and code open/close markers, matched case-insensitively.
# The tagged opening marker must be tried before the bare one.
_CODE_MARKERS = re.compile(r'`|<\?php|<\?|\?>', re.IGNORECASE)


def sanitize(text: str) -> str:
    """Remove code-injection markers from ``text``.

    Removal repeats until nothing matches, so markers split by other
    markers (``<`?``, ``<<??``) cannot reassemble in the output.
    """
    text = str(text)
    while True:
        cleaned = _CODE_MARKERS.sub('', text)
        if cleaned == text:
            return cleaned
        text = cleaned


def to_text(value) -> str:
    """Render a value the way the output primitive prints it.

    None and False print as an empty string, True as "1".
    """
    if value is None or value is False:
        return ''
    if value is True:
        return '1'
    return str(value)
