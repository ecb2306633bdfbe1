"""
Plan building module

Turns the merged, validated item set of a run into one BindingPlan:
constructors assembled per class, members batched when an inline
registration would exceed the registration API's argument limit, operators
mapped to metamethods and namespace handles created once per path.
"""

import logging
import os
from typing import Iterable, Optional

from .codegen import collapse_whitespace, sanitize_identifier
from .diagnostics import DiagnosticCode, DiagnosticLog
from .exceptions import PlanBuildError
from .items import Access, ClassVariant, ExportItem, ExportKind
from .namespaces import NamespaceHandle, NamespaceTable
from .plan import (
    AssignMember, AssignOperator, BindingPlan, CreateNamespaceHandle, PlanSegment,
    Reference, RefKind, RegisterConstant, RegisterContainer, RegisterEnum,
    RegisterFunction, RegisterType, SegmentShape,
)

logger = logging.getLogger(__name__)

# sol2 accepts at most this many arguments in one new_usertype call
DEFAULT_THRESHOLD = 20

DEFAULT_MODULE_NAME = 'bindings'

OPERATOR_METAMETHODS = {
    '+': 'addition',
    '-': 'subtraction',
    '*': 'multiplication',
    '/': 'division',
    '==': 'equal_to',
    '<': 'less_than',
    '<=': 'less_or_equal',
    '>': 'greater_than',
    '>=': 'greater_or_equal',
    '[]': 'index',
    '()': 'call',
}

# mapped only in their binary (one-parameter member) form
_BINARY_OPERATORS = {'+', '-', '*', '/', '==', '<', '<=', '>', '>='}


def operator_symbol(name: str) -> str:
    """operator== -> ==, operator () -> ()"""
    if name.startswith('operator'):
        name = name[len('operator'):]
    return name.replace(' ', '') if not name.strip()[:1].isalpha() else name.strip()


def metamethod_for(item: ExportItem) -> Optional[str]:
    """Metamethod id for an operator item, None if it has no mapping"""
    symbol = operator_symbol(item.name)
    meta = OPERATOR_METAMETHODS.get(symbol)
    if meta is None:
        return None
    if symbol in _BINARY_OPERATORS and len(item.parameter_types) != 1:
        return None
    return meta


def dedup_items(items: Iterable[ExportItem]) -> list[ExportItem]:
    """First occurrence of each signature, in order"""
    seen = set()
    result = []
    for item in items:
        if item.signature in seen:
            continue
        seen.add(item.signature)
        result.append(item)
    return result


def registration_weight(members: Iterable[ExportItem]) -> int:
    """Arguments an inline usertype registration of these members needs

    One for the constructor list, two (name and reference) per method,
    static method, property and distinct mapped metamethod.
    """
    weight = 1
    metamethods = set()
    for item in members:
        if item.kind in (ExportKind.METHOD, ExportKind.STATIC_METHOD, ExportKind.PROPERTY):
            weight += 2
        elif item.kind == ExportKind.OPERATOR:
            meta = metamethod_for(item)
            if meta is not None and meta not in metamethods:
                metamethods.add(meta)
                weight += 2
    return weight


class PlanBuilder:
    """Builds the whole-run binding plan"""

    def __init__(self, diagnostics: Optional[DiagnosticLog] = None,
                 threshold: int = DEFAULT_THRESHOLD):
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.threshold = threshold
        self._exported: dict[str, str] = {}
        self._type_vars: set[str] = set()

    def build(self, items: list[ExportItem], module_name: str = '') -> BindingPlan:
        """Build the plan for the merged item set"""
        items = dedup_items(items)
        table = NamespaceTable()

        first_seen = {id(item): n for n, item in enumerate(items)}
        members: dict[tuple[str, str], list[ExportItem]] = {}
        toplevel: list[ExportItem] = []
        for item in items:
            if item.kind.is_member:
                members.setdefault((item.namespace_path, item.owner), []).append(item)
            else:
                toplevel.append(item)
        toplevel.sort(key=lambda i: (i.kind.order, i.namespace_path, first_seen[id(i)]))

        self._exported = {}
        self._type_vars = set()
        for item in toplevel:
            if item.kind == ExportKind.CLASS:
                self._exported.setdefault(item.qualified_path, item.qualified_path)
                self._exported.setdefault(item.name, item.qualified_path)

        body: list[PlanSegment] = []
        owners = set()
        for item in toplevel:
            if item.kind == ExportKind.MODULE:
                module_name = module_name or item.name
            elif item.kind == ExportKind.NAMESPACE:
                table.handle_for(item.namespace_path)
            elif item.kind == ExportKind.CLASS:
                key = (item.namespace_path, item.name)
                owners.add(key)
                try:
                    body.append(self._class_segment(item, members.get(key, []), table))
                except PlanBuildError as e:
                    self.diagnostics.error(DiagnosticCode.PLAN_BUILDER_FAILURE,
                                           f'class {item.qualified_path} skipped: {e.reason}',
                                           str(item.source_location))
            else:
                body.append(self._item_segment(item, table))

        for (ns, owner), group in members.items():
            if (ns, owner) not in owners:
                self.diagnostics.info(DiagnosticCode.NOTE,
                                      f'{len(group)} member(s) of {owner} dropped: '
                                      'owning class is not exported',
                                      str(group[0].source_location))

        handles = [
            PlanSegment(SegmentShape.INLINE,
                        [CreateNamespaceHandle(handle, table.parent_of(handle))],
                        namespace_path=handle.path)
            for handle in table.created
        ]
        plan = BindingPlan(
            module_name=module_name or DEFAULT_MODULE_NAME,
            segments=handles + body,
            includes=self._includes(items),
        )
        logger.info('plan: %d segments, %d namespace handles', len(plan.segments), len(handles))
        return plan

    @staticmethod
    def _includes(items: list[ExportItem]) -> list[str]:
        files = {os.path.basename(i.source_location.file) for i in items if i.source_location.file}
        return sorted(f for f in files if f)

    # --- classes ---

    def _class_segment(self, cls: ExportItem, members: list[ExportItem],
                       table: NamespaceTable) -> PlanSegment:
        ns = table.handle_for(cls.namespace_path)
        ctors = self.constructor_signatures(cls, members)

        named: dict[str, Reference] = {}
        operators: list[tuple[str, Reference]] = []
        for item in members:
            if item.kind == ExportKind.CONSTRUCTOR:
                continue
            if item.kind == ExportKind.OPERATOR:
                meta = metamethod_for(item)
                if meta is None:
                    self.diagnostics.info(DiagnosticCode.UNSUPPORTED_OPERATOR,
                                          f'{cls.name}::{item.name} has no metamethod; omitted',
                                          str(item.source_location))
                    continue
                if any(m == meta for m, _ in operators):
                    self.diagnostics.info(DiagnosticCode.UNSUPPORTED_OPERATOR,
                                          f'{cls.name}::{item.name} maps to {meta}, which is '
                                          'already bound; omitted',
                                          str(item.source_location))
                    continue
                operators.append((meta, self._reference(item, cls)))
                continue
            self._bind(named, item.lua_name, self._reference(item, cls), cls)

        weight = registration_weight(members)
        handle_var = self._type_handle_var(ns, cls.name)
        common = dict(
            owner=cls.name,
            ns_handle=ns,
            type_name=cls.qualified_path,
            lua_name=cls.lua_name,
            variant=cls.class_variant or ClassVariant.REGULAR,
            constructor_signatures=ctors,
            owner_handle=handle_var,
            bases=self._exported_bases(cls),
        )
        if weight <= self.threshold:
            stmt = RegisterType(inline_members=tuple(named.items()),
                                inline_operators=tuple(operators), **common)
            return PlanSegment(SegmentShape.INLINE, [stmt], owner=cls.name,
                               namespace_path=cls.namespace_path)

        logger.debug('%s: weight %d > %d, batching', cls.name, weight, self.threshold)
        statements = [RegisterType(inline_members=None, **common)]
        statements.extend(AssignMember(handle_var, name, ref) for name, ref in named.items())
        statements.extend(AssignOperator(handle_var, meta, ref) for meta, ref in operators)
        return PlanSegment(SegmentShape.BATCHED, statements, owner=cls.name,
                           namespace_path=cls.namespace_path)

    @staticmethod
    def constructor_signatures(cls: ExportItem,
                               members: list[ExportItem]) -> tuple[tuple[str, ...], ...]:
        """Distinct normalized parameter lists; a default one if none"""
        if cls.class_variant not in (None, ClassVariant.REGULAR):
            return ()
        result: list[tuple[str, ...]] = []
        for item in members:
            if item.kind != ExportKind.CONSTRUCTOR:
                continue
            params = tuple(collapse_whitespace(p) for p in item.parameter_types)
            if params not in result:
                result.append(params)
        return tuple(result) or ((),)

    def _bind(self, named: dict[str, Reference], name: str, ref: Reference, cls: ExportItem):
        existing = named.get(name)
        if existing is None:
            named[name] = ref
            return
        callables = (RefKind.FUNCTION, RefKind.OVERLOAD)
        if existing.kind in callables and ref.kind in callables:
            targets = existing.targets + tuple(t for t in ref.targets if t not in existing.targets)
            named[name] = Reference(RefKind.OVERLOAD, targets)
            return
        raise PlanBuildError(cls.qualified_path, f"'{name}' is bound to both "
                                                 f"{existing.kind.value} and {ref.kind.value}")

    @staticmethod
    def _reference(item: ExportItem, cls: ExportItem) -> Reference:
        if not item.qualified_path:
            raise PlanBuildError(cls.qualified_path, f'{item.name} has no qualified path')

        if item.kind != ExportKind.PROPERTY:
            return Reference(RefKind.FUNCTION, (item.qualified_path,))

        if not item.getter and not item.setter:
            if item.access == Access.READ_ONLY:
                return Reference(RefKind.READONLY_FIELD, (item.qualified_path,))
            return Reference(RefKind.FIELD, (item.qualified_path,))
        if item.access == Access.READ_WRITE and item.getter and item.setter:
            return Reference(RefKind.PROPERTY, (item.getter, item.setter))
        if item.access == Access.READ_ONLY and item.getter:
            return Reference(RefKind.READONLY_PROPERTY, (item.getter,))
        if item.access == Access.WRITE_ONLY and item.setter:
            return Reference(RefKind.WRITEONLY_PROPERTY, (item.setter,))
        raise PlanBuildError(cls.qualified_path,
                             f'property {item.name} is {item.access.value} '
                             f'but has getter={item.getter!r} setter={item.setter!r}')

    def _exported_bases(self, cls: ExportItem) -> tuple[str, ...]:
        """Qualified names of the bases that get their own registration"""
        bases = []
        for base in cls.base_types:
            name = base.strip().lstrip(':')
            qualified = self._exported.get(name) or self._exported.get(name.rsplit('::', 1)[-1])
            if qualified and qualified not in bases:
                bases.append(qualified)
        return tuple(bases)

    def _type_handle_var(self, ns: NamespaceHandle, name: str) -> str:
        """C++ variable holding a usertype, unique within one plan"""
        prefix = '' if ns.is_root else ns.path.replace('.', '_') + '_'
        base = sanitize_identifier(f'{prefix}{name}') + '_type'
        var = base
        n = 2
        while var in self._type_vars:
            var = f'{base}{n}'
            n += 1
        self._type_vars.add(var)
        return var

    # --- everything else ---

    def _item_segment(self, item: ExportItem, table: NamespaceTable) -> PlanSegment:
        if item.kind == ExportKind.CONTAINER:
            stmt = RegisterContainer(
                display_name=item.name,
                shape=item.container_shape,
                types=tuple(item.parameter_types),
                type_name=item.qualified_path,
            )
            return PlanSegment(SegmentShape.INLINE, [stmt], namespace_path=item.namespace_path)

        ns = table.handle_for(item.namespace_path)
        if item.kind == ExportKind.TEMPLATE_INSTANCE:
            stmt = RegisterType(
                owner=item.name,
                ns_handle=ns,
                type_name=item.qualified_path,
                lua_name=item.lua_name,
                variant=ClassVariant.REGULAR,
                constructor_signatures=((),),
                inline_members=(),
                owner_handle=self._type_handle_var(ns, item.name),
            )
            return PlanSegment(SegmentShape.INLINE, [stmt], owner=item.name,
                               namespace_path=item.namespace_path)
        if item.kind == ExportKind.ENUM:
            stmt = RegisterEnum(ns, item.lua_name, tuple(item.enum_values), item.qualified_path)
        elif item.kind == ExportKind.CONSTANT:
            stmt = RegisterConstant(ns, item.lua_name,
                                    Reference(RefKind.VALUE, (item.qualified_path,)))
        elif item.kind == ExportKind.VARIABLE:
            stmt = RegisterConstant(ns, item.lua_name,
                                    Reference(RefKind.VARIABLE, (item.qualified_path,)),
                                    mutable=True)
        else:
            stmt = RegisterFunction(ns, item.lua_name,
                                    Reference(RefKind.FUNCTION, (item.qualified_path,)))
        return PlanSegment(SegmentShape.INLINE, [stmt], namespace_path=item.namespace_path)
