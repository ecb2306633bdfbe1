"""
IR (Intermediate Representation) module

Reads and represents the declaration tree JSON produced by the C++ front end,
one document per translation unit.
"""

from dataclasses import dataclass, field
from typing import Optional, Union
import json
import os

from .exceptions import FrontEndError


@dataclass
class ScopeEntry:
    """One enclosing lexical scope"""
    kind: str  # 'namespace' or 'class'
    name: str = ''

    @property
    def is_anonymous(self) -> bool:
        return not self.name


@dataclass
class ParamInfo:
    """Function parameter information"""
    name: str
    type: str


@dataclass
class EnumeratorInfo:
    """Enumerator with optional explicit value"""
    name: str
    value: Optional[Union[int, str]] = None


@dataclass
class Location:
    file: str = ''
    line: int = 0
    column: int = 0


@dataclass
class Decl:
    """Declaration node"""
    kind: str
    name: str
    scope: list[ScopeEntry] = field(default_factory=list)
    annotations: list[str] = field(default_factory=list)
    access: str = 'public'
    location: Location = field(default_factory=Location)
    is_system: bool = False
    bases: list[str] = field(default_factory=list)
    members: list['Decl'] = field(default_factory=list)
    return_type: str = ''
    params: list[ParamInfo] = field(default_factory=list)
    type: str = ''
    is_static: bool = False
    is_const: bool = False
    is_virtual: bool = False
    is_deleted: bool = False
    is_copy_constructor: bool = False
    is_move_constructor: bool = False
    is_template: bool = False
    enumerators: list[EnumeratorInfo] = field(default_factory=list)

    @property
    def is_public(self) -> bool:
        return self.access == 'public'

    @property
    def is_class(self) -> bool:
        return self.kind in ('class', 'struct')

    @property
    def qualified_name(self) -> str:
        """C++ qualified name, anonymous scopes skipped"""
        parts = [s.name for s in self.scope if not s.is_anonymous]
        parts.append(self.name)
        return '::'.join(parts)

    @property
    def location_str(self) -> str:
        if not self.location.file:
            return ''
        return f'{self.location.file}:{self.location.line}:{self.location.column}'


@dataclass
class UnitSource:
    """Raw text of one unit document, read before any parsing"""
    path: str
    text: str

    @property
    def identity(self) -> str:
        return os.path.normpath(self.path).replace(os.sep, '/')


@dataclass
class TranslationUnit:
    """Declarations of one translation unit"""
    identity: str
    source: str
    default_namespace: str
    decls: list[Decl]

    @classmethod
    def load(cls, json_path: str) -> 'TranslationUnit':
        """Load a unit from a JSON file"""
        return cls.parse(read_unit_source(json_path))

    @classmethod
    def parse(cls, source: UnitSource) -> 'TranslationUnit':
        """Parse the text of a unit document"""
        try:
            data = json.loads(source.text)
        except json.JSONDecodeError as e:
            raise FrontEndError(source.identity, f'invalid JSON: {e}') from e
        return cls.from_dict(data, identity=source.identity)

    @classmethod
    def from_dict(cls, data: dict, identity: str = '') -> 'TranslationUnit':
        """Create a unit from a dictionary"""
        if not isinstance(data, dict):
            raise FrontEndError(identity or '<unit>', 'document is not an object')
        identity = identity or data.get('unit', '')
        decls_data = data.get('declarations', [])
        if not isinstance(decls_data, list):
            raise FrontEndError(identity or '<unit>', "'declarations' is not a list")

        decls = []
        try:
            for decl in decls_data:
                decls.extend(cls._parse_decl(decl, [], identity))
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise FrontEndError(identity or '<unit>', f'malformed declaration tree: {e!r}') from e

        return cls(
            identity=identity,
            source=data.get('source', ''),
            default_namespace=data.get('default_namespace', ''),
            decls=decls,
        )

    @classmethod
    def _parse_decl(cls, decl: dict, outer: list[ScopeEntry], identity: str) -> list[Decl]:
        """Parse one node; namespace nodes flatten into their children"""
        if not isinstance(decl, dict) or 'kind' not in decl:
            raise FrontEndError(identity or '<unit>', f'malformed declaration node: {decl!r}')

        if 'scope' in decl:
            scope = [cls._parse_scope_entry(s) for s in decl['scope']]
        else:
            scope = list(outer)

        kind = decl['kind']
        name = decl.get('name', '')

        if kind == 'namespace' and not decl.get('annotations'):
            inner = scope + [ScopeEntry('namespace', name)]
            result = []
            for child in decl.get('members', []):
                result.extend(cls._parse_decl(child, inner, identity))
            return result

        members = []
        if kind in ('class', 'struct', 'namespace'):
            inner = scope + [ScopeEntry('namespace' if kind == 'namespace' else 'class', name)]
            for child in decl.get('members', []):
                members.extend(cls._parse_decl(child, inner, identity))

        loc = decl.get('location') or {}
        node = Decl(
            kind=kind,
            name=name,
            scope=scope,
            annotations=list(decl.get('annotations', [])),
            access=decl.get('access', 'public'),
            location=Location(
                file=loc.get('file', ''),
                line=loc.get('line', 0),
                column=loc.get('column', 0),
            ),
            is_system=decl.get('system', False),
            bases=list(decl.get('bases', [])),
            members=members if kind != 'namespace' else [],
            return_type=decl.get('return_type', ''),
            params=[cls._parse_param(p) for p in decl.get('parameters', [])],
            type=decl.get('type', ''),
            is_static=decl.get('is_static', False),
            is_const=decl.get('is_const', False),
            is_virtual=decl.get('is_virtual', False),
            is_deleted=decl.get('is_deleted', False),
            is_copy_constructor=decl.get('is_copy_constructor', False),
            is_move_constructor=decl.get('is_move_constructor', False),
            is_template=decl.get('is_template', False),
            enumerators=[cls._parse_enumerator(e) for e in decl.get('enumerators', [])],
        )
        if kind == 'namespace':
            # annotated namespace: keep the node and hoist its children
            return [node] + members
        return [node]

    @staticmethod
    def _parse_scope_entry(entry) -> ScopeEntry:
        if isinstance(entry, str):
            return ScopeEntry('namespace', entry)
        return ScopeEntry(entry.get('kind', 'namespace'), entry.get('name', ''))

    @staticmethod
    def _parse_param(param: dict) -> ParamInfo:
        """Parse function parameter"""
        return ParamInfo(name=param.get('name', ''), type=param.get('type', ''))

    @staticmethod
    def _parse_enumerator(item: dict) -> EnumeratorInfo:
        """Parse enumerator"""
        return EnumeratorInfo(name=item['name'], value=item.get('value'))

    def iter_decls(self):
        """Yield every declaration, members included, depth first"""
        stack = list(reversed(self.decls))
        while stack:
            decl = stack.pop()
            yield decl
            stack.extend(reversed(decl.members))

    def find_class(self, name: str, scope: Optional[list[ScopeEntry]] = None) -> Optional[Decl]:
        """Find a class declared in this unit by plain or qualified name

        A plain name is looked up from the innermost enclosing scope outwards.
        """
        candidates = [d for d in self.iter_decls() if d.is_class and not d.is_template]
        name = name.strip()
        for prefix in ('class ', 'struct '):
            if name.startswith(prefix):
                name = name[len(prefix):]
        name = name.lstrip(':')

        if '::' in name:
            for decl in candidates:
                if decl.qualified_name == name:
                    return decl
            name = name.rsplit('::', 1)[1]

        matches = [d for d in candidates if d.name == name]
        if not matches:
            return None
        if scope:
            scope_names = [s.name for s in scope if not s.is_anonymous]
            matches.sort(key=lambda d: -_common_prefix(scope_names,
                                                         [s.name for s in d.scope if not s.is_anonymous]))
        return matches[0]


def read_unit_source(path: str) -> UnitSource:
    """Read a unit document without parsing it"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return UnitSource(path=path, text=f.read())
    except (OSError, UnicodeDecodeError) as e:
        raise FrontEndError(path, f'cannot read unit: {e}') from e


def _common_prefix(a: list[str], b: list[str]) -> int:
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n
