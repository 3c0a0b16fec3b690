#!/usr/bin/env python3
"""CLI for compiling templates"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, Optional

from dotenv import load_dotenv

from tpl.errors import TemplateError
from tpl.template import Template

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Compile a template with variables, conditionals and loops'
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        '--name',
        help='Template name, resolved to {template-dir}/{name}{extension}'
    )
    source.add_argument(
        '--file',
        help='Full path of the template file'
    )
    source.add_argument(
        '--content',
        help='Inline template content'
    )
    parser.add_argument(
        '--vars',
        help='JSON file with static variables (object of key -> value)'
    )
    parser.add_argument(
        '--set',
        action='append',
        default=[],
        metavar='KEY=VALUE',
        help='Static variable, may be repeated'
    )
    parser.add_argument(
        '--ifs',
        help='JSON file with conditional flags (object of key -> bool)'
    )
    parser.add_argument(
        '--if',
        dest='if_true',
        action='append',
        default=[],
        metavar='KEY',
        help='Enable a conditional block, may be repeated'
    )
    parser.add_argument(
        '--unless',
        dest='if_false',
        action='append',
        default=[],
        metavar='KEY',
        help='Disable a conditional block, may be repeated'
    )
    parser.add_argument(
        '--loops',
        help='JSON file with loop data (object of key -> list of row objects)'
    )
    parser.add_argument(
        '--scope',
        help='JSON file with variables available to {{$name}} expressions'
    )
    parser.add_argument(
        '--inject',
        action='append',
        default=None,
        metavar='NAME',
        help='Scope variable to inject, may be repeated (default: every scope key)'
    )
    parser.add_argument(
        '--template-dir',
        help='Template files directory (default: ./templates)'
    )
    parser.add_argument(
        '--cache-dir',
        help='Scratch files directory (default: ./cache)'
    )
    parser.add_argument(
        '--extension',
        help='Template file extension (default: .html)'
    )
    parser.add_argument(
        '--echo',
        help='Output function for expressions: echo, print, escape, json (default: echo)'
    )
    parser.add_argument(
        '--strict',
        action='store_true',
        default=None,
        help='Fail on rejected or unresolved placeholders instead of dropping them'
    )
    parser.add_argument(
        '--show-stages',
        action='store_true',
        help='Print original, manipulated and compiled content'
    )
    parser.add_argument(
        '--output',
        help='Write compiled output to this file instead of stdout'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args(argv)

    if not (args.name or args.file or args.content is not None):
        parser.error("One of --name, --file or --content is required")
    for item in args.set:
        if '=' not in item:
            parser.error(f"--set expects KEY=VALUE, got '{item}'")

    return args


def load_json_object(path: str, label: str) -> dict[str, Any]:
    """Load a JSON file that must contain an object.

    Raises:
        ValueError: If the file is not valid JSON or not an object
        OSError: If the file cannot be read
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{label} file must contain an object: {path}")
    return data


def build_template(args: argparse.Namespace) -> tuple[Template, dict[str, Any]]:
    """Create a Template from parsed arguments, returning it with its scope."""
    template = Template({
        'template_dir': args.template_dir,
        'cache_dir': args.cache_dir,
        'extension': args.extension,
        'evaluation_function': args.echo,
        'strict': args.strict,
    })

    if args.name:
        template.set_name(args.name)
    elif args.file:
        template.set_file_path(args.file)
    else:
        template.set_content(args.content)

    variables = load_json_object(args.vars, 'vars') if args.vars else {}
    for item in args.set:
        key, value = item.split('=', 1)
        variables[key] = value
    template.set_vars(variables)

    ifs = load_json_object(args.ifs, 'ifs') if args.ifs else {}
    ifs.update({key: True for key in args.if_true})
    ifs.update({key: False for key in args.if_false})
    template.set_ifs(ifs)

    if args.loops:
        template.set_loops(load_json_object(args.loops, 'loops'))

    scope = load_json_object(args.scope, 'scope') if args.scope else {}
    template.set_injects(args.inject if args.inject is not None else list(scope))

    return template, scope


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Main CLI entry point"""
    load_dotenv()
    args = parse_arguments(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    try:
        template, scope = build_template(args)
        template.compile(scope)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot load input: {e}")
        return 1
    except TemplateError as e:
        logger.error(f"Compilation failed: {e}")
        return 1

    if args.show_stages:
        compiled = (
            "Original content:\n"
            f"{template.get_content()}\n\n"
            "Manipulated content:\n"
            f"{template.get_result()}\n\n"
            "Compiled content:\n"
            f"{template.get_compiled()}\n"
        )
    else:
        compiled = template.get_compiled()

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(compiled, encoding='utf-8')
        logger.info(f"Saved {output_path}")
    else:
        sys.stdout.write(compiled)

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
