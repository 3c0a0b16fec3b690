"""Dynamic expression evaluation.

Placeholders left after static substitution are treated as dynamic
expressions when they follow a strict variable-reference grammar:

    $name
    $name[0]
    $name['key']  /  $name["key"]
    $name->field

Accessors may be chained (``$rows[0]->title``). Anything else is dropped
from the output. Accepted expressions are embedded as executable fragments
``<?MARKER FUNCTION(EXPR)?>`` and later rendered against the injected scope.
"""
import html
import json
import logging
import re
import secrets
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from tpl.errors import ExpressionError
from tpl.sanitizer import to_text

logger = logging.getLogger(__name__)

_IDENT = r'[^\W\d]\w*'
_ACCESSOR = (
    r"\[-?\d+\]"
    r"|\['[A-Za-z0-9_\-]*'\]"
    r'|\["[A-Za-z0-9_\-]*"\]'
    rf"|->{_IDENT}"
)
EXPRESSION_PATTERN = re.compile(rf'\$({_IDENT})((?:{_ACCESSOR})*)')
_ACCESSOR_TOKEN = re.compile(
    r"\[(?P<index>-?\d+)\]"
    r"|\['(?P<squoted>[A-Za-z0-9_\-]*)'\]"
    r'|\["(?P<dquoted>[A-Za-z0-9_\-]*)"\]'
    rf"|->(?P<attr>{_IDENT})"
)

PLACEHOLDER_PATTERN = re.compile(r'\{\{(.*?)\}\}')

# Output primitives available to fragments
OUTPUT_FUNCTIONS: dict[str, Callable[[Any], str]] = {
    'echo': to_text,
    'print': to_text,
    'escape': lambda value: html.escape(to_text(value)),
    'json': lambda value: json.dumps(value, ensure_ascii=False, default=str),
}
DEFAULT_OUTPUT_FUNCTION = 'echo'


def new_marker() -> str:
    """Generate the token that tags fragments produced by one compile."""
    return f'tpl-{secrets.token_hex(4)}'


def get_output_function(name: str) -> str:
    """Return ``name`` if it is a known output primitive, else the default."""
    if name in OUTPUT_FUNCTIONS:
        return name
    logger.warning(f"Unknown evaluation function '{name}', using '{DEFAULT_OUTPUT_FUNCTION}'")
    return DEFAULT_OUTPUT_FUNCTION


def is_dynamic_expression(expr: str) -> bool:
    """Check ``expr`` against the variable-reference grammar."""
    return bool(EXPRESSION_PATTERN.fullmatch(expr))


def parse_expression(expr: str) -> tuple[str, list[tuple[str, Any]]]:
    """Split an expression into its variable name and accessor chain.

    Returns:
        (name, accessors) where each accessor is ('index', int),
        ('key', str) or ('attr', str)

    Raises:
        ExpressionError: If ``expr`` does not follow the grammar
    """
    match = EXPRESSION_PATTERN.fullmatch(expr)
    if not match:
        raise ExpressionError(f"Invalid expression: {expr!r}")

    name, chain = match.groups()
    accessors = []
    for token in _ACCESSOR_TOKEN.finditer(chain):
        if token.group('index') is not None:
            accessors.append(('index', int(token.group('index'))))
        elif token.group('squoted') is not None:
            accessors.append(('key', token.group('squoted')))
        elif token.group('dquoted') is not None:
            accessors.append(('key', token.group('dquoted')))
        else:
            accessors.append(('attr', token.group('attr')))
    return name, accessors


def _access(value: Any, kind: str, operand: Any) -> Any:
    if kind == 'index':
        if isinstance(value, Mapping):
            if operand in value:
                return value[operand]
            return value[str(operand)]
        if isinstance(value, Sequence):
            return value[operand]
        raise TypeError(f"{type(value).__name__} is not indexable")

    if kind == 'key':
        if isinstance(value, Mapping):
            return value[operand]
        raise TypeError(f"{type(value).__name__} has no keys")

    # Property access: mapping entries first, then public attributes
    if isinstance(value, Mapping) and operand in value:
        return value[operand]
    if operand.startswith('_'):
        raise AttributeError(f"private attribute '{operand}'")
    return getattr(value, operand)


def resolve_expression(expr: str, scope: Mapping[str, Any]) -> Any:
    """Look up an expression's value in ``scope``.

    Raises:
        ExpressionError: If the expression is invalid or does not resolve
    """
    name, accessors = parse_expression(expr)
    if name not in scope:
        raise ExpressionError(f"Undefined variable '${name}'")

    value = scope[name]
    for kind, operand in accessors:
        try:
            value = _access(value, kind, operand)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ExpressionError(f"Cannot resolve {expr!r}: {e}") from e
    return value


def embed_expressions(text: str, function: str, marker: str, strict: bool = False) -> str:
    """Turn placeholders into executable fragments.

    Placeholders that are not valid expressions are removed, or rejected
    with ``ExpressionError`` when ``strict`` is set.
    """
    def replace(match: re.Match) -> str:
        expr = match.group(1).strip()
        if is_dynamic_expression(expr):
            return f'<?{marker} {function}({expr})?>'
        if strict:
            raise ExpressionError(f"Unresolved placeholder: {match.group(0)}")
        return ''

    return PLACEHOLDER_PATTERN.sub(replace, text)


def render_fragments(text: str, scope: Mapping[str, Any], marker: str, strict: bool = False) -> str:
    """Evaluate every fragment tagged with ``marker`` and print its value.

    Expressions that do not resolve print nothing, or raise
    ``ExpressionError`` when ``strict`` is set.
    """
    fragment = re.compile(rf'<\?{re.escape(marker)} (\w+)\((.*?)\)\?>')

    def evaluate(match: re.Match) -> str:
        function, expr = match.groups()
        output = OUTPUT_FUNCTIONS.get(function, OUTPUT_FUNCTIONS[DEFAULT_OUTPUT_FUNCTION])
        try:
            value = resolve_expression(expr, scope)
        except ExpressionError as e:
            if strict:
                raise
            logger.debug(f"Dropping unresolved expression: {e}")
            return ''
        return output(value)

    return fragment.sub(evaluate, text)


def strip_placeholders(text: str) -> str:
    """Remove any ``{{...}}`` placeholder still present in ``text``."""
    return PLACEHOLDER_PATTERN.sub('', text)
