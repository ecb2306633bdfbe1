"""
Namespace resolution module

Decides which script namespace each exported item lands in, and materializes
one handle per distinct namespace path for the binding plan.
"""

import logging
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .codegen import sanitize_identifier

if TYPE_CHECKING:
    from .ir import ScopeEntry

logger = logging.getLogger(__name__)

ROOT_PATH = ''
ROOT_VAR = 'lua'

# explicit namespace values meaning "the global table"
_ROOT_SPELLINGS = {'', 'global', '::', '.'}


def normalize_path(path: Optional[str]) -> str:
    """Normalize `a::b`, `a.b` or `::a::b` to dotted form

    Examples:
        demo::ui -> demo.ui
        global   -> ''
    """
    if path is None:
        return ROOT_PATH
    path = path.strip()
    if path in _ROOT_SPELLINGS:
        return ROOT_PATH
    parts = [p.strip() for p in path.replace('::', '.').split('.')]
    return '.'.join(p for p in parts if p)


def lexical_namespace(scope: list['ScopeEntry']) -> tuple[str, str]:
    """Return (dotted path, innermost segment) of the enclosing named namespaces"""
    names = [s.name for s in scope if s.kind == 'namespace' and not s.is_anonymous]
    if not names:
        return ROOT_PATH, ''
    return '.'.join(names), names[-1]


def resolve_namespace(explicit: Optional[str], scope: list['ScopeEntry'], own_name: str,
                      owner_name: str = '', unit_default: str = '',
                      global_default: str = '') -> str:
    """Resolve an item's namespace path

    Precedence: explicit attribute, then the enclosing named namespace unless
    it reads as the item or its owner, then the unit default, then the run's
    global default.
    """
    if explicit is not None:
        return normalize_path(explicit)

    path, innermost = lexical_namespace(scope)
    if innermost and innermost != own_name and innermost != owner_name:
        return path

    if unit_default:
        return normalize_path(unit_default)
    return normalize_path(global_default)


@dataclass(frozen=True)
class NamespaceHandle:
    """Materialized reference to one namespace path"""
    path: str
    segment: str
    parent: str
    var: str

    @property
    def is_root(self) -> bool:
        return self.path == ROOT_PATH


ROOT_HANDLE = NamespaceHandle(path=ROOT_PATH, segment='', parent=ROOT_PATH, var=ROOT_VAR)


class NamespaceTable:
    """Per-build registry of namespace handles

    Each distinct path gets one handle, created in first-request order and
    chained to its parent's handle.
    """

    def __init__(self):
        self._handles: dict[str, NamespaceHandle] = {ROOT_PATH: ROOT_HANDLE}
        self._created: list[NamespaceHandle] = []
        self._vars: set[str] = {ROOT_VAR}

    def handle_for(self, path: str) -> NamespaceHandle:
        """Return the handle for `path`, creating missing segments"""
        path = normalize_path(path)
        if path in self._handles:
            return self._handles[path]

        parent = ROOT_HANDLE
        prefix = ''
        for segment in path.split('.'):
            prefix = f'{prefix}.{segment}' if prefix else segment
            handle = self._handles.get(prefix)
            if handle is None:
                handle = NamespaceHandle(
                    path=prefix,
                    segment=segment,
                    parent=parent.path,
                    var=self._unique_var(prefix),
                )
                self._handles[prefix] = handle
                self._created.append(handle)
                logger.debug('namespace handle %s -> %s', prefix, handle.var)
            parent = handle
        return parent

    def parent_of(self, handle: NamespaceHandle) -> NamespaceHandle:
        return self._handles[handle.parent]

    @property
    def created(self) -> list[NamespaceHandle]:
        """Handles in creation order, root excluded"""
        return list(self._created)

    def _unique_var(self, path: str) -> str:
        base = sanitize_identifier(path.replace('.', '_')) + '_ns'
        var = base
        n = 2
        while var in self._vars:
            var = f'{base}{n}'
            n += 1
        self._vars.add(var)
        return var
