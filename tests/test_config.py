"""Tests for configuration resolution"""
import pytest

from tpl import config
from tpl.config import TemplateConfig, env_defaults


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Run every test without TPL_* overrides unless set explicitly."""
    for name in ('TPL_EVALUATION_FUNCTION', 'TPL_TEMPLATE_DIR', 'TPL_CACHE_DIR',
                 'TPL_FILE_EXTENSION', 'TPL_STRICT'):
        monkeypatch.delenv(name, raising=False)
    yield


def test_builtin_defaults():
    assert TemplateConfig.from_env() == TemplateConfig(
        evaluation_function='echo',
        template_dir='./templates',
        cache_dir='./cache',
        extension='.html',
        strict=False,
    )


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('TPL_CACHE_DIR', '/var/cache/tpl')
    monkeypatch.setenv('TPL_FILE_EXTENSION', '.txt')
    monkeypatch.setenv('TPL_STRICT', 'true')

    resolved = TemplateConfig.from_env()

    assert resolved.cache_dir == '/var/cache/tpl'
    assert resolved.extension == '.txt'
    assert resolved.strict is True
    assert resolved.template_dir == config.DEFAULT_TEMPLATE_DIR


def test_empty_environment_values_use_builtins(monkeypatch):
    monkeypatch.setenv('TPL_TEMPLATE_DIR', '')

    assert env_defaults()['template_dir'] == config.DEFAULT_TEMPLATE_DIR


def test_overrides_applied():
    resolved = TemplateConfig().resolve({
        'evaluation_function': 'escape',
        'template_dir': 'views',
        'cache_dir': '/var/cache/tpl',
        'extension': '.txt',
        'strict': True,
    })

    assert resolved == TemplateConfig(
        evaluation_function='escape',
        template_dir='views',
        cache_dir='/var/cache/tpl',
        extension='.txt',
        strict=True,
    )


def test_falsy_overrides_fall_back_to_defaults():
    base = TemplateConfig().resolve({'cache_dir': '/custom', 'extension': '.txt'})
    resolved = base.resolve({'cache_dir': '', 'extension': None, 'template_dir': 0})

    assert resolved.cache_dir == config.DEFAULT_CACHE_DIR
    assert resolved.extension == config.DEFAULT_EXTENSION
    assert resolved.template_dir == config.DEFAULT_TEMPLATE_DIR


def test_legacy_option_names_accepted():
    resolved = TemplateConfig().resolve({
        'echo': 'json',
        'dir_template': 'views',
        'dir_cache': 'tmp',
    })

    assert resolved.evaluation_function == 'json'
    assert resolved.template_dir == 'views'
    assert resolved.cache_dir == 'tmp'


def test_unknown_options_and_non_mappings_ignored():
    base = TemplateConfig()

    assert base.resolve({'colour': 'blue'}) == base
    assert base.resolve(['cache_dir']) == base


def test_strict_none_keeps_default(monkeypatch):
    monkeypatch.setenv('TPL_STRICT', '1')

    assert TemplateConfig().resolve({'strict': None}).strict is True
    assert TemplateConfig().resolve({'strict': False}).strict is False
