"""
Incremental extraction cache.

Keeps, per unit, the fingerprint of the unit's normalized text together with
the items (and diagnostics) its last extraction produced. A unit whose
fingerprint is unchanged is not re-extracted; its stored items are reused.

The store is a single JSON document:

    {
      "cache_version": 1,
      "units": {
        "<unit identity>": {
          "fingerprint": "<sha256>",
          "items": [...],
          "diagnostics": [...]
        }
      }
    }

Commits are staged in memory and only written by flush() once the run has
completed, through a temp file replaced into place, so an aborted run leaves
the previous store untouched.

Records of units that a run did not see are kept, so runs over different
subsets of units share one store. The store therefore grows when unit
documents are renamed or deleted; removing the file starts a cold store.
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .diagnostics import Diagnostic, DiagnosticCode, DiagnosticLog
from .exceptions import CacheError
from .ir import UnitSource
from .items import ExportItem

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1

DEFAULT_CACHE_FILE = '.export_gen_cache.json'


def normalize_source(text: str) -> str:
    """Unify line endings and drop trailing whitespace"""
    return '\n'.join(line.rstrip() for line in text.splitlines())


def fingerprint(text: str, salt: str = '') -> str:
    """Content fingerprint of a unit's text"""
    h = hashlib.sha256()
    h.update(f'{CACHE_FORMAT_VERSION}:{salt}'.encode('utf-8'))
    h.update(b'\0')
    h.update(normalize_source(text).encode('utf-8'))
    return h.hexdigest()


@dataclass
class UnitCacheRecord:
    """Stored extraction result of one unit"""
    unit: str
    fingerprint: str
    items: list[ExportItem] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'fingerprint': self.fingerprint,
            'items': [item.to_dict() for item in self.items],
            'diagnostics': [d.to_dict() for d in self.diagnostics],
        }

    @classmethod
    def from_dict(cls, unit: str, data: dict) -> 'UnitCacheRecord':
        return cls(
            unit=unit,
            fingerprint=data['fingerprint'],
            items=[ExportItem.from_dict(d) for d in data['items']],
            diagnostics=[Diagnostic.from_dict(d) for d in data.get('diagnostics', [])],
        )


class IncrementalCache:
    """Unit-keyed store of fingerprints and extracted items"""

    def __init__(self, path, salt: str = '', force_rebuild: bool = False,
                 diagnostics: Optional[DiagnosticLog] = None):
        self.path = Path(path)
        self.salt = salt
        self.force_rebuild = force_rebuild
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self._lock = threading.Lock()
        self._staged: dict[str, dict] = {}
        self._fingerprints: dict[str, str] = {}
        self._records = self._load()

    def _load(self) -> dict[str, dict]:
        """Read the store; anything unusable means a cold start"""
        if not self.path.exists():
            logger.debug('no cache store at %s', self.path)
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            self._unreadable(f'cache store {self.path} unreadable ({e}); rebuilding')
            return {}

        if not isinstance(data, dict) or not isinstance(data.get('units'), dict):
            self._unreadable(f'cache store {self.path} has no unit table; rebuilding')
            return {}
        if data.get('cache_version') != CACHE_FORMAT_VERSION:
            self._unreadable(f'cache store {self.path} has format '
                             f'{data.get("cache_version")!r}, expected {CACHE_FORMAT_VERSION}; rebuilding')
            return {}
        logger.debug('loaded %d cache records from %s', len(data['units']), self.path)
        return data['units']

    def _unreadable(self, message: str):
        self.diagnostics.info(DiagnosticCode.UNREADABLE_CACHE_RECORD, message)

    def fingerprint(self, source: UnitSource) -> str:
        fp = self._fingerprints.get(source.identity)
        if fp is None:
            fp = fingerprint(source.text, self.salt)
            self._fingerprints[source.identity] = fp
        return fp

    def lookup(self, source: UnitSource) -> Optional[UnitCacheRecord]:
        """Stored record for an unchanged unit, else None"""
        raw = self._records.get(source.identity)
        if raw is None:
            return None
        if not isinstance(raw, dict) or raw.get('fingerprint') != self.fingerprint(source):
            return None
        try:
            return UnitCacheRecord.from_dict(source.identity, raw)
        except (KeyError, TypeError, ValueError) as e:
            self._unreadable(f'cache record for {source.identity} unreadable ({e!r}); re-extracting')
            return None

    def should_extract(self, source: UnitSource) -> bool:
        """True unless an up-to-date record exists and force-rebuild is off"""
        if self.force_rebuild:
            return True
        return self.lookup(source) is None

    def cached_items(self, source: UnitSource) -> list[ExportItem]:
        record = self.lookup(source)
        if record is None:
            raise CacheError(f'no usable cache record for {source.identity}')
        return record.items

    def commit(self, source: UnitSource, items: list[ExportItem],
               diagnostics: Optional[list[Diagnostic]] = None):
        """Stage the extraction result of a unit for the next flush()"""
        record = UnitCacheRecord(
            unit=source.identity,
            fingerprint=self.fingerprint(source),
            items=list(items),
            diagnostics=list(diagnostics or []),
        )
        data = record.to_dict()
        with self._lock:
            self._staged[source.identity] = data

    @property
    def pending(self) -> int:
        return len(self._staged)

    def flush(self):
        """Write staged commits atomically"""
        with self._lock:
            if not self._staged and self.path.exists():
                return
            merged = dict(self._records)
            merged.update(self._staged)
            document = {'cache_version': CACHE_FORMAT_VERSION, 'units': merged}
            try:
                _atomic_write_json(self.path, document)
            except OSError as e:
                raise CacheError(f'cannot write cache store {self.path}: {e}') from e
            logger.info('saved %d cache records to %s', len(merged), self.path)
            self._records = merged
            self._staged.clear()

    def discard(self):
        """Drop staged commits, leaving the stored records as they were"""
        with self._lock:
            self._staged.clear()


def _atomic_write_json(path: Path, document: dict):
    """Write JSON via a temp file in the same directory and os.replace()"""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(document, indent=2, sort_keys=True)
    fd, tmp_path = tempfile.mkstemp(suffix='.tmp', prefix=path.stem + '_', dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
