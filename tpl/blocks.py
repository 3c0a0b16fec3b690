"""Conditional and loop directive resolution.

Directive spans are paired tags embedded in the working text:

    <if.KEY>...</if.KEY>
    <loop.KEY>...</loop.KEY>

Spans are matched non-greedily and never nest. A loop key may appear in
only one span per template.
"""
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from tpl.errors import BlockError
from tpl.sanitizer import to_text

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r'[A-Za-z0-9_\-]+')

# Leftover spans of any key, removed after all rules were applied
_ANY_IF_SPAN = re.compile(r'<if\.[A-Za-z0-9_\-]+>.*?</if\.[A-Za-z0-9_\-]+>', re.DOTALL)
_ANY_LOOP_SPAN = re.compile(r'<loop\.[A-Za-z0-9_\-]+>.*?</loop\.[A-Za-z0-9_\-]+>', re.DOTALL)


def is_valid_key(key: Any) -> bool:
    """Check that a rule key is an identifier-like token (integers allowed)."""
    return isinstance(key, (str, int)) and bool(KEY_PATTERN.fullmatch(str(key)))


def _span_pattern(kind: str, key: str) -> re.Pattern:
    key = re.escape(key)
    return re.compile(rf'<{kind}\.{key}>(.*?)</{kind}\.{key}>', re.DOTALL)


def _strip_tags(text: str, kind: str, key: str) -> str:
    text = text.replace(f'<{kind}.{key}>', '')
    return text.replace(f'</{kind}.{key}>', '')


def apply_if(text: str, key: str, value: Any) -> str:
    """Resolve ``<if.key>`` spans.

    A falsy value removes each span together with its body; a truthy value
    keeps the body and drops the tags.
    """
    if not is_valid_key(key):
        logger.debug(f"Skipping if rule with invalid key: {key!r}")
        return text
    key = str(key)

    if not value:
        text = _span_pattern('if', key).sub('', text)

    return _strip_tags(text, 'if', key)


def expand_rows(body: str, key: str, rows: Iterable[Any]) -> str:
    """Instantiate a loop body once per row.

    Each ``{{key.field}}`` token is replaced by the row's raw value for
    ``field``. Rows that are not mappings are skipped.
    """
    parts = []
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        instance = body
        for field, value in row.items():
            instance = instance.replace(f'{{{{{key}.{field}}}}}', to_text(value))
        parts.append(instance)
    return ''.join(parts)


def apply_loop(text: str, key: str, rows: Any) -> str:
    """Resolve the ``<loop.key>`` span by expanding it for every row.

    Raises:
        BlockError: If the template holds more than one span for ``key``
    """
    if not is_valid_key(key):
        logger.debug(f"Skipping loop rule with invalid key: {key!r}")
        return text
    key = str(key)

    if isinstance(rows, (str, bytes, Mapping)) or not isinstance(rows, Iterable):
        rows = []

    pattern = _span_pattern('loop', key)
    spans = pattern.findall(text)
    if len(spans) > 1:
        raise BlockError(f"Duplicate loop block '{key}': found {len(spans)} spans")

    if spans:
        expansion = expand_rows(spans[0], key, rows)
        # A callable replacement is inserted literally, no escape processing
        text = pattern.sub(lambda _match: expansion, text, count=1)

    return _strip_tags(text, 'loop', key)


def strip_unresolved_blocks(text: str) -> str:
    """Remove any ``if``/``loop`` spans left after rule resolution."""
    text = _ANY_IF_SPAN.sub('', text)
    return _ANY_LOOP_SPAN.sub('', text)
