"""
Export item module

ExportItem is the unit of binding metadata produced by extraction and
consumed by plan building. Kinds are a closed set; class variants and
container shapes are payloads of their kind rather than separate strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class ExportKind(Enum):
    """Export kinds; declaration order is the plan's output order"""
    MODULE = 'module'
    NAMESPACE = 'namespace'
    CLASS = 'class'
    CONSTRUCTOR = 'constructor'
    METHOD = 'method'
    STATIC_METHOD = 'static_method'
    PROPERTY = 'property'
    OPERATOR = 'operator'
    TEMPLATE_INSTANCE = 'template_instance'
    ENUM = 'enum'
    CONSTANT = 'constant'
    VARIABLE = 'variable'
    FUNCTION = 'function'
    CONTAINER = 'container'

    @property
    def order(self) -> int:
        return _KIND_ORDER[self]

    @property
    def is_member(self) -> bool:
        return self in MEMBER_KINDS


_KIND_ORDER = {kind: i for i, kind in enumerate(ExportKind)}

MEMBER_KINDS = frozenset({
    ExportKind.CONSTRUCTOR,
    ExportKind.METHOD,
    ExportKind.STATIC_METHOD,
    ExportKind.PROPERTY,
    ExportKind.OPERATOR,
})

CALLABLE_KINDS = frozenset({
    ExportKind.METHOD,
    ExportKind.STATIC_METHOD,
    ExportKind.FUNCTION,
})


class ClassVariant(Enum):
    REGULAR = 'regular'
    STATIC = 'static'
    SINGLETON = 'singleton'
    ABSTRACT = 'abstract'


class ContainerShape(Enum):
    VECTOR = 'vector'
    MAP = 'map'
    UNORDERED_MAP = 'unordered_map'
    SET = 'set'
    LIST = 'list'

    @property
    def suffix(self) -> str:
        return _SHAPE_SUFFIXES[self]

    @property
    def std_template(self) -> str:
        return f'std::{self.value}'


_SHAPE_SUFFIXES = {
    ContainerShape.VECTOR: 'Vector',
    ContainerShape.MAP: 'Map',
    ContainerShape.UNORDERED_MAP: 'UnorderedMap',
    ContainerShape.SET: 'Set',
    ContainerShape.LIST: 'List',
}


class Access(Enum):
    NONE = 'none'
    READ_ONLY = 'readonly'
    READ_WRITE = 'readwrite'
    WRITE_ONLY = 'writeonly'


CLASS_VARIANTS = {
    'class': ClassVariant.REGULAR,
    'static_class': ClassVariant.STATIC,
    'singleton': ClassVariant.SINGLETON,
    'abstract_class': ClassVariant.ABSTRACT,
}

CONTAINER_SHAPES = {shape.value: shape for shape in ContainerShape}

EnumValue = Union[int, str]


@dataclass
class SourceLocation:
    file: str = ''
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if not self.file:
            return ''
        return f'{self.file}:{self.line}:{self.column}'


@dataclass
class ExportItem:
    """Binding metadata for one exported declaration"""
    kind: ExportKind
    name: str
    target_name: str = ''
    qualified_path: str = ''
    namespace_path: str = ''
    owner: str = ''
    parameter_types: list[str] = field(default_factory=list)
    return_type: str = ''
    access: Access = Access.NONE
    base_types: list[str] = field(default_factory=list)
    is_static: bool = False
    is_const: bool = False
    is_virtual: bool = False
    enum_values: list[tuple[str, EnumValue]] = field(default_factory=list)
    raw_attributes: dict[str, str] = field(default_factory=dict)
    source_location: SourceLocation = field(default_factory=SourceLocation)
    class_variant: Optional[ClassVariant] = None
    container_shape: Optional[ContainerShape] = None
    category: str = ''
    getter: str = ''
    setter: str = ''

    @property
    def signature(self) -> tuple[str, str, str, str]:
        """Dedup key shared by extraction, promotion and plan building"""
        return (self.kind.value, self.name, self.qualified_path, self.owner)

    @property
    def lua_name(self) -> str:
        return self.target_name or self.name

    def to_dict(self) -> dict:
        return {
            'kind': self.kind.value,
            'name': self.name,
            'target_name': self.target_name,
            'qualified_path': self.qualified_path,
            'namespace_path': self.namespace_path,
            'owner': self.owner,
            'parameter_types': list(self.parameter_types),
            'return_type': self.return_type,
            'access': self.access.value,
            'base_types': list(self.base_types),
            'is_static': self.is_static,
            'is_const': self.is_const,
            'is_virtual': self.is_virtual,
            'enum_values': [[label, value] for label, value in self.enum_values],
            'raw_attributes': dict(self.raw_attributes),
            'source_location': {
                'file': self.source_location.file,
                'line': self.source_location.line,
                'column': self.source_location.column,
            },
            'class_variant': self.class_variant.value if self.class_variant else None,
            'container_shape': self.container_shape.value if self.container_shape else None,
            'category': self.category,
            'getter': self.getter,
            'setter': self.setter,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ExportItem':
        loc = data.get('source_location') or {}
        variant = data.get('class_variant')
        shape = data.get('container_shape')
        return cls(
            kind=ExportKind(data['kind']),
            name=data['name'],
            target_name=data.get('target_name', ''),
            qualified_path=data.get('qualified_path', ''),
            namespace_path=data.get('namespace_path', ''),
            owner=data.get('owner', ''),
            parameter_types=list(data.get('parameter_types', [])),
            return_type=data.get('return_type', ''),
            access=Access(data.get('access', Access.NONE.value)),
            base_types=list(data.get('base_types', [])),
            is_static=data.get('is_static', False),
            is_const=data.get('is_const', False),
            is_virtual=data.get('is_virtual', False),
            enum_values=[(label, value) for label, value in data.get('enum_values', [])],
            raw_attributes=dict(data.get('raw_attributes', {})),
            source_location=SourceLocation(
                file=loc.get('file', ''),
                line=loc.get('line', 0),
                column=loc.get('column', 0),
            ),
            class_variant=ClassVariant(variant) if variant else None,
            container_shape=ContainerShape(shape) if shape else None,
            category=data.get('category', ''),
            getter=data.get('getter', ''),
            setter=data.get('setter', ''),
        )
