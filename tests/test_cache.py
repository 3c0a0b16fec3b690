"""Unit tests for scratch file staging."""
from pathlib import Path

import pytest

from tpl import cache
from tpl.cache import new_scratch_name, scratch_file
from tpl.errors import ScratchFileError


def test_scratch_name_is_unique():
    names = {new_scratch_name() for _ in range(200)}

    assert len(names) == 200
    for name in names:
        assert name.startswith('tpl_')
        assert name.endswith('.compiled')


def test_scratch_file_written_and_removed(tmp_path):
    with scratch_file("staged text", str(tmp_path)) as path:
        assert path.parent == tmp_path
        assert path.read_text(encoding='utf-8') == "staged text"

    assert not path.exists()
    assert list(tmp_path.iterdir()) == []


def test_scratch_file_removed_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with scratch_file("staged text", str(tmp_path)) as path:
            raise RuntimeError("boom")

    assert not path.exists()


def test_scratch_file_falls_back_when_cache_unwritable(tmp_path, monkeypatch):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding='utf-8')
    fallback = tmp_path / "fallback"
    fallback.mkdir()
    monkeypatch.setattr(cache, 'fallback_dir', lambda: fallback)

    with scratch_file("staged text", str(blocker)) as path:
        assert path.parent == fallback
        assert path.read_text(encoding='utf-8') == "staged text"

    assert list(fallback.iterdir()) == []


def test_scratch_file_yields_none_when_nothing_writable(tmp_path, monkeypatch):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding='utf-8')
    monkeypatch.setattr(cache, 'fallback_dir', lambda: tmp_path / "also-missing")

    with scratch_file("staged text", str(blocker)) as path:
        assert path is None


def test_stale_scratch_file_replaced(tmp_path, monkeypatch):
    monkeypatch.setattr(cache, 'new_scratch_name', lambda: 'tpl_fixed.compiled')
    (tmp_path / 'tpl_fixed.compiled').write_text("stale", encoding='utf-8')

    with scratch_file("fresh", str(tmp_path)) as path:
        assert path.read_text(encoding='utf-8') == "fresh"

    assert not path.exists()


def test_stale_scratch_file_that_cannot_be_removed(tmp_path, monkeypatch):
    monkeypatch.setattr(cache, 'new_scratch_name', lambda: 'tpl_fixed.compiled')
    (tmp_path / 'tpl_fixed.compiled').write_text("stale", encoding='utf-8')

    def failing_unlink(self, *args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(Path, 'unlink', failing_unlink)

    with pytest.raises(ScratchFileError, match="cannot be removed"):
        with scratch_file("fresh", str(tmp_path)):
            pass


def test_missing_cache_dir_created(tmp_path):
    cache_dir = tmp_path / "nested" / "cache"

    with scratch_file("staged text", str(cache_dir)) as path:
        assert path.parent == cache_dir

    assert cache_dir.is_dir()
    assert list(cache_dir.iterdir()) == []


def test_unencodable_text_leaves_no_scratch_file(tmp_path, monkeypatch):
    """A failed write must not leave a partial file in either location"""
    fallback = tmp_path / "fallback"
    fallback.mkdir()
    monkeypatch.setattr(cache, 'fallback_dir', lambda: fallback)
    cache_dir = tmp_path / "cache"

    with scratch_file("a\udcffb", str(cache_dir)) as path:
        assert path is None
        assert list(cache_dir.iterdir()) == []
        assert list(fallback.iterdir()) == []
