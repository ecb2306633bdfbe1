"""
Binding plan module

The plan is the ordered, emitter-neutral list of registration statements
produced by the PlanBuilder. Statements reference namespace handles, never
raw namespace paths.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Union

from .items import ClassVariant, ContainerShape, EnumValue
from .namespaces import NamespaceHandle


class RefKind(Enum):
    FUNCTION = 'function'
    OVERLOAD = 'overload'
    PROPERTY = 'property'
    READONLY_PROPERTY = 'readonly_property'
    WRITEONLY_PROPERTY = 'writeonly_property'
    FIELD = 'field'
    READONLY_FIELD = 'readonly_field'
    VALUE = 'value'
    VARIABLE = 'variable'


@dataclass(frozen=True)
class Reference:
    """What a registered name is bound to"""
    kind: RefKind
    targets: tuple[str, ...]


@dataclass(frozen=True)
class CreateNamespaceHandle:
    handle: NamespaceHandle
    parent: NamespaceHandle

    @property
    def segment(self) -> str:
        return self.handle.segment


@dataclass(frozen=True)
class RegisterType:
    """Usertype registration; inline_members is None in batched form"""
    owner: str
    ns_handle: NamespaceHandle
    type_name: str
    lua_name: str
    variant: ClassVariant
    constructor_signatures: tuple[tuple[str, ...], ...]
    inline_members: Optional[tuple[tuple[str, Reference], ...]]
    inline_operators: tuple[tuple[str, Reference], ...] = ()
    owner_handle: str = ''
    bases: tuple[str, ...] = ()

    @property
    def is_inline(self) -> bool:
        return self.inline_members is not None


@dataclass(frozen=True)
class AssignMember:
    owner_handle: str
    name: str
    reference: Reference


@dataclass(frozen=True)
class AssignOperator:
    owner_handle: str
    metamethod_id: str
    reference: Reference


@dataclass(frozen=True)
class RegisterFunction:
    ns_handle: NamespaceHandle
    name: str
    reference: Reference


@dataclass(frozen=True)
class RegisterConstant:
    """Constant value, or a variable bound by reference when mutable"""
    ns_handle: NamespaceHandle
    name: str
    reference: Reference
    mutable: bool = False


@dataclass(frozen=True)
class RegisterEnum:
    ns_handle: NamespaceHandle
    name: str
    values: tuple[tuple[str, EnumValue], ...]
    type_name: str = ''


@dataclass(frozen=True)
class RegisterContainer:
    display_name: str
    shape: ContainerShape
    types: tuple[str, ...]
    type_name: str = ''


Statement = Union[
    CreateNamespaceHandle, RegisterType, AssignMember, AssignOperator,
    RegisterFunction, RegisterConstant, RegisterEnum, RegisterContainer,
]


class SegmentShape(Enum):
    INLINE = 'inline'
    BATCHED = 'batched'


@dataclass
class PlanSegment:
    shape: SegmentShape
    statements: list[Statement]
    owner: str = ''
    namespace_path: str = ''


@dataclass
class BindingPlan:
    """Ordered segments of one run"""
    module_name: str
    segments: list[PlanSegment] = field(default_factory=list)
    includes: list[str] = field(default_factory=list)

    def statements(self) -> Iterator[Statement]:
        for segment in self.segments:
            yield from segment.statements

    def namespace_handles(self) -> list[CreateNamespaceHandle]:
        return [s for s in self.statements() if isinstance(s, CreateNamespaceHandle)]

    def type_segments(self, owner: str, namespace_path: Optional[str] = None) -> list[PlanSegment]:
        return [seg for seg in self.segments
                if seg.owner == owner
                and (namespace_path is None or seg.namespace_path == namespace_path)]

    def member_mapping(self, owner: str, namespace_path: Optional[str] = None) -> dict[str, Reference]:
        """Registered name -> reference for one owner, in either shape

        Operators are keyed as `__<metamethod>`.
        """
        mapping: dict[str, Reference] = {}
        for segment in self.type_segments(owner, namespace_path):
            for stmt in segment.statements:
                if isinstance(stmt, RegisterType) and stmt.is_inline:
                    mapping.update(stmt.inline_members)
                    mapping.update((f'__{meta}', ref) for meta, ref in stmt.inline_operators)
                elif isinstance(stmt, AssignMember):
                    mapping[stmt.name] = stmt.reference
                elif isinstance(stmt, AssignOperator):
                    mapping[f'__{stmt.metamethod_id}'] = stmt.reference
        return mapping
