"""Compiler configuration.

Built-in defaults can be overridden process-wide through environment
variables, and per template through ``TemplateConfig.resolve()``:

- TPL_EVALUATION_FUNCTION: output primitive for dynamic expressions
- TPL_TEMPLATE_DIR: template files path
- TPL_CACHE_DIR: scratch files path
- TPL_FILE_EXTENSION: template file extension
- TPL_STRICT: "1"/"true" to raise on rejected or unresolved placeholders
"""
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

# Built-in defaults
DEFAULT_EVALUATION_FUNCTION = 'echo'
DEFAULT_TEMPLATE_DIR = './templates'
DEFAULT_CACHE_DIR = './cache'
DEFAULT_EXTENSION = '.html'

# Option names accepted from older configuration dicts
OPTION_ALIASES = {
    'echo': 'evaluation_function',
    'dir_template': 'template_dir',
    'dir_cache': 'cache_dir',
}

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def env_defaults() -> dict[str, Any]:
    """Read defaults from the environment; empty values fall back to the built-ins."""
    return {
        'evaluation_function': os.getenv('TPL_EVALUATION_FUNCTION', '') or DEFAULT_EVALUATION_FUNCTION,
        'template_dir': os.getenv('TPL_TEMPLATE_DIR', '') or DEFAULT_TEMPLATE_DIR,
        'cache_dir': os.getenv('TPL_CACHE_DIR', '') or DEFAULT_CACHE_DIR,
        'extension': os.getenv('TPL_FILE_EXTENSION', '') or DEFAULT_EXTENSION,
        'strict': os.getenv('TPL_STRICT', '').strip().lower() in _TRUE_VALUES,
    }


@dataclass(frozen=True)
class TemplateConfig:
    """Resolved settings for a template.

    - evaluation_function: output primitive for dynamic expressions (default: echo)
    - template_dir: template files path (default: ./templates)
    - cache_dir: scratch files path (default: ./cache)
    - extension: template file extension (default: .html)
    - strict: raise on rejected or unresolved placeholders (default: False)
    """

    evaluation_function: str = DEFAULT_EVALUATION_FUNCTION
    template_dir: str = DEFAULT_TEMPLATE_DIR
    cache_dir: str = DEFAULT_CACHE_DIR
    extension: str = DEFAULT_EXTENSION
    strict: bool = False

    @classmethod
    def from_env(cls) -> 'TemplateConfig':
        return cls(**env_defaults())

    def resolve(self, overrides: Optional[Mapping[str, Any]] = None) -> 'TemplateConfig':
        """Return a new config with ``overrides`` merged in.

        Falsy string overrides fall back to the defaults, so
        ``{'cache_dir': ''}`` means "use the default cache directory".
        A ``strict`` override of None keeps the default. Unknown option
        names are ignored.
        """
        values = asdict(self)
        if isinstance(overrides, Mapping):
            for key, value in overrides.items():
                name = OPTION_ALIASES.get(key, key)
                if name not in values:
                    logger.debug(f"Ignoring unknown config option: {key}")
                    continue
                values[name] = value

        defaults = env_defaults()
        return TemplateConfig(
            evaluation_function=str(values['evaluation_function'] or defaults['evaluation_function']),
            template_dir=str(values['template_dir'] or defaults['template_dir']),
            cache_dir=str(values['cache_dir'] or defaults['cache_dir']),
            extension=str(values['extension'] or defaults['extension']),
            strict=defaults['strict'] if values['strict'] is None else bool(values['strict']),
        )

    def as_dict(self) -> dict:
        return asdict(self)
