"""Template object: rule accumulation and the compilation pipeline."""
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

from tpl.blocks import apply_if, apply_loop, strip_unresolved_blocks
from tpl.cache import scratch_file
from tpl.config import TemplateConfig
from tpl.errors import ScratchFileError
from tpl.expressions import (
    embed_expressions,
    get_output_function,
    new_marker,
    render_fragments,
    strip_placeholders,
)
from tpl.sanitizer import sanitize
from tpl.variables import apply_var, normalize_placeholders

logger = logging.getLogger(__name__)


def _as_string(value: Any) -> str:
    """Coerce a scalar setter argument; containers become an empty string."""
    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return ''
    return str(value)


class Template:
    """A template and the rules used to compile it.

    Rules are set through chainable setters and consumed by ``compile()``:
    ``ifs``, ``loops`` and ``vars`` are emptied once applied, so a second
    compile does not reapply them unless they are set again. ``injects``
    names the variables pulled from the scope passed to ``compile()``.

    Example:
        >>> tpl = Template().set_content('Hello {{name}}').set_vars({'name': 'Ann'})
        >>> tpl.compile().get_compiled()
        'Hello Ann'
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        self.config = TemplateConfig.from_env().resolve(config)

        # Template rules
        self.name = ''
        self.vars: dict[str, Any] = {}
        self.ifs: dict[str, Any] = {}
        self.loops: dict[str, Any] = {}
        self.injects: list[str] = []

        self._file_path = ''
        self._content = ''
        self._result = ''
        self._compiled = ''

    # Configuration

    def set_config(self, config) -> 'Template':
        """Merge configuration overrides; falsy values fall back to defaults."""
        if isinstance(config, TemplateConfig):
            config = config.as_dict()
        self.config = self.config.resolve(config if isinstance(config, Mapping) else None)
        return self

    def get_config(self) -> TemplateConfig:
        return self.config

    # Rules

    def set_name(self, name) -> 'Template':
        self.name = _as_string(name)
        return self

    def get_name(self) -> str:
        return self.name

    def set_vars(self, values) -> 'Template':
        """Set static variables (key -> value)."""
        if isinstance(values, Mapping):
            self.vars = dict(values)
        return self

    def set_ifs(self, ifs) -> 'Template':
        """Set conditional flags (key -> bool)."""
        if isinstance(ifs, Mapping):
            self.ifs = dict(ifs)
        return self

    def set_loops(self, loops) -> 'Template':
        """Set loop data (key -> list of row mappings)."""
        if isinstance(loops, Mapping):
            self.loops = dict(loops)
        return self

    def set_injects(self, injects) -> 'Template':
        """Set the names of variables to pull from the compile scope."""
        if isinstance(injects, Iterable) and not isinstance(injects, (str, bytes, Mapping)):
            self.injects = [str(name) for name in injects]
        return self

    # Source

    def set_file_path(self, file_path) -> 'Template':
        """Set the full path of the template file."""
        self._file_path = _as_string(file_path)
        return self

    def get_file_path(self) -> str:
        return self._file_path

    def set_content(self, content) -> 'Template':
        """Set the original template content (sanitized on the way in)."""
        self._content = sanitize(_as_string(content))
        return self

    def get_content(self) -> str:
        """Original template content."""
        return self._content

    def get_result(self) -> str:
        """Working text after block, variable and expression preparation."""
        return self._result

    def get_compiled(self) -> str:
        """Final compiled output."""
        return self._compiled

    def default_file_path(self) -> str:
        """Conventional location: ``{template_dir}/{name}{extension}``."""
        return str(Path(self.config.template_dir) / f'{self.name}{self.config.extension}')

    def _load_content(self) -> None:
        self.set_content('')

        path = Path(self._file_path)
        if not path.is_file():
            logger.warning(f"Template file not found: {path}")
            return

        try:
            content = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read template file {path}: {e}")
            return

        self.set_content(content.strip())
        logger.debug(f"Loaded {len(self._content)} chars from {path}")

    # Compilation

    def compile(self, scope: Optional[Mapping[str, Any]] = None) -> 'Template':
        """Compile the template.

        Content is loaded from the template file when none was set. Names
        listed in ``injects`` are looked up in ``scope``.

        Raises:
            BlockError: If a loop key has more than one block
            ExpressionError: In strict mode, for rejected or unresolved placeholders
        """
        if not self._content:
            if not self._file_path:
                self.set_file_path(self.default_file_path())
            self._load_content()

        self._compile(scope if isinstance(scope, Mapping) else {})
        return self

    def _injected_scope(self, scope: Mapping[str, Any]) -> dict[str, Any]:
        bound = {}
        for name in self.injects:
            if name in scope:
                bound[name] = scope[name]
            else:
                logger.debug(f"Injected variable '{name}' not found in scope")
        return bound

    def _compile(self, scope: Mapping[str, Any]) -> None:
        strict = self.config.strict

        self._result = normalize_placeholders(self._content)

        for key, value in self.ifs.items():
            self._result = apply_if(self._result, key, value)
        self.ifs = {}

        for key, rows in self.loops.items():
            self._result = apply_loop(self._result, key, rows)
        self.loops = {}

        for key, value in self.vars.items():
            self._result = apply_var(self._result, key, value)
        self.vars = {}

        self._result = strip_unresolved_blocks(self._result)

        # At this point only dynamic expressions remain
        marker = new_marker()
        function = get_output_function(self.config.evaluation_function)
        self._result = embed_expressions(self._result, function, marker, strict=strict)

        self._compiled = self._evaluate(self._result, self._injected_scope(scope), marker)

    def _evaluate(self, text: str, scope: Mapping[str, Any], marker: str) -> str:
        strict = self.config.strict
        try:
            with scratch_file(text, self.config.cache_dir) as path:
                staged = text
                if path is None:
                    logger.debug("No writable scratch location, rendering in-process")
                else:
                    try:
                        staged = path.read_text(encoding='utf-8')
                    except OSError as e:
                        logger.warning(f"Cannot read scratch file {path}: {e}")
                output = render_fragments(staged, scope, marker, strict=strict)
        except ScratchFileError as e:
            logger.warning(f"{e}; compiled output is empty")
            return ''

        return strip_placeholders(output)
