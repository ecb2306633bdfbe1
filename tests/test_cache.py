"""Tests for export_gen.cache module."""

import json
import os

import pytest

from export_gen.cache import (
    CACHE_FORMAT_VERSION, IncrementalCache, UnitCacheRecord, fingerprint, normalize_source,
)
from export_gen.diagnostics import Diagnostic, DiagnosticCode, DiagnosticLog, Severity
from export_gen.exceptions import CacheError
from export_gen.ir import UnitSource
from export_gen.items import ClassVariant, ExportItem, ExportKind

from factories import class_item


@pytest.fixture
def store(tmp_path):
    return tmp_path / 'cache' / 'store.json'


@pytest.fixture
def source():
    return UnitSource('units/player.json', '{"declarations": []}\n')


@pytest.fixture
def items():
    return [
        class_item('Player', 'demo', base_types=['Entity']),
        ExportItem(kind=ExportKind.ENUM, name='Color', qualified_path='demo::Color',
                   namespace_path='demo', enum_values=[('Red', 0), ('Mask', 'A | B')]),
    ]


def dicts(items):
    return [i.to_dict() for i in items]


class TestFingerprint:
    """Test source normalization and fingerprints."""

    def test_line_endings_and_trailing_whitespace_ignored(self):
        assert normalize_source('a  \r\nb\t\n') == normalize_source('a\nb')
        assert fingerprint('a  \r\nb\n') == fingerprint('a\nb')

    def test_content_and_salt_matter(self):
        assert fingerprint('a') != fingerprint('b')
        assert fingerprint('a', salt='ns=demo') != fingerprint('a', salt='ns=core')


class TestIncrementalCache:
    """Test the unit-keyed store."""

    def test_cold_store_extracts(self, store, source):
        cache = IncrementalCache(store)
        assert cache.should_extract(source)
        assert cache.lookup(source) is None
        assert len(cache.diagnostics) == 0

    def test_commit_flush_reuse(self, store, source, items):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        assert cache.pending == 1
        cache.flush()
        assert cache.pending == 0

        warm = IncrementalCache(store)
        assert not warm.should_extract(source)
        assert dicts(warm.cached_items(source)) == dicts(items)
        assert warm.cached_items(source)[0].class_variant == ClassVariant.REGULAR

    def test_diagnostics_replayed(self, store, source, items):
        diag = Diagnostic(Severity.WARNING, DiagnosticCode.INVALID_ITEM, 'dropped', 'a.h:1:1')
        cache = IncrementalCache(store)
        cache.commit(source, items, [diag])
        cache.flush()
        record = IncrementalCache(store).lookup(source)
        assert record.diagnostics == [diag]

    def test_idempotent_for_unchanged_unit(self, store, source, items):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        first = store.read_text(encoding='utf-8')

        again = IncrementalCache(store)
        again.commit(source, again.cached_items(source))
        again.flush()
        assert store.read_text(encoding='utf-8') == first

    def test_changed_unit_extracts(self, store, source, items):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        changed = UnitSource(source.path, source.text + '\n{"x": 1}')
        assert IncrementalCache(store).should_extract(changed)

    def test_whitespace_only_change_is_clean(self, store, source, items):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        crlf = UnitSource(source.path, source.text.replace('\n', '  \r\n'))
        assert not IncrementalCache(store).should_extract(crlf)

    def test_force_rebuild(self, store, source, items):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        assert IncrementalCache(store, force_rebuild=True).should_extract(source)

    def test_salt_change_invalidates(self, store, source, items):
        cache = IncrementalCache(store, salt='ns=')
        cache.commit(source, items)
        cache.flush()
        assert IncrementalCache(store, salt='ns=engine').should_extract(source)

    def test_records_of_unseen_units_kept(self, store, items):
        a = UnitSource('a.json', 'a')
        b = UnitSource('b.json', 'b')
        first = IncrementalCache(store)
        first.commit(a, items)
        first.flush()
        second = IncrementalCache(store)
        second.commit(b, items[:1])
        second.flush()

        third = IncrementalCache(store)
        assert not third.should_extract(a)
        assert not third.should_extract(b)

    def test_discard_leaves_store_untouched(self, store, source, items):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        before = store.read_text(encoding='utf-8')

        aborted = IncrementalCache(store)
        aborted.commit(UnitSource('other.json', 'x'), items)
        aborted.discard()
        aborted.flush()
        assert store.read_text(encoding='utf-8') == before

    def test_cached_items_without_record_raises(self, store, source):
        with pytest.raises(CacheError):
            IncrementalCache(store).cached_items(source)

    def test_store_format(self, store, source, items):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        data = json.loads(store.read_text(encoding='utf-8'))
        assert data['cache_version'] == CACHE_FORMAT_VERSION
        record = data['units'][source.identity]
        assert record['fingerprint'] == fingerprint(source.text)
        assert UnitCacheRecord.from_dict(source.identity, record).items[1].enum_values == [
            ('Red', 0), ('Mask', 'A | B'),
        ]


class TestUnreadableStore:
    """Test that a bad store means a cold start, never a failure."""

    @pytest.mark.parametrize('content', [
        '{not json',
        '[]',
        '{"cache_version": 1}',
        json.dumps({'cache_version': CACHE_FORMAT_VERSION + 1, 'units': {}}),
    ])
    def test_cold_with_info(self, store, source, content):
        store.parent.mkdir(parents=True)
        store.write_text(content, encoding='utf-8')
        log = DiagnosticLog()
        cache = IncrementalCache(store, diagnostics=log)
        assert cache.should_extract(source)
        [diag] = log.by_code(DiagnosticCode.UNREADABLE_CACHE_RECORD)
        assert diag.severity == Severity.INFO

    def test_bad_record_is_cold(self, store, source):
        store.parent.mkdir(parents=True)
        store.write_text(json.dumps({
            'cache_version': CACHE_FORMAT_VERSION,
            'units': {source.identity: {'fingerprint': fingerprint(source.text),
                                        'items': [{'kind': 'nonsense'}]}},
        }), encoding='utf-8')
        log = DiagnosticLog()
        cache = IncrementalCache(store, diagnostics=log)
        assert cache.should_extract(source)
        assert log.by_code(DiagnosticCode.UNREADABLE_CACHE_RECORD)

    def test_unreadable_store_is_replaced_on_flush(self, store, source, items):
        store.parent.mkdir(parents=True)
        store.write_text('garbage', encoding='utf-8')
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        assert not IncrementalCache(store).should_extract(source)


class TestAtomicFlush:
    """Test that a failed write keeps the previous store."""

    def test_failed_replace_keeps_store_and_cleans_up(self, store, source, items, monkeypatch):
        cache = IncrementalCache(store)
        cache.commit(source, items)
        cache.flush()
        before = store.read_text(encoding='utf-8')

        def broken_replace(src, dst):
            raise OSError('disk full')

        monkeypatch.setattr(os, 'replace', broken_replace)
        failing = IncrementalCache(store)
        failing.commit(UnitSource('other.json', 'x'), items)
        with pytest.raises(CacheError):
            failing.flush()

        assert store.read_text(encoding='utf-8') == before
        assert sorted(p.name for p in store.parent.iterdir()) == ['store.json']
