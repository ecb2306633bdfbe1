"""
Metadata extraction module

Walks one unit's declaration tree and produces ExportItems: classes with
their auto-extracted and promoted members, paired properties, enums with
filled-in values, functions, constants, variables and container markers.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .annotation import (
    Annotation, parse_annotation, CLASS_CATEGORIES, CONTAINER_CATEGORIES,
)
from .codegen import (
    base_type_name, collapse_whitespace, friendly_type_name, is_builtin_type,
    lower_first, normalize_type, split_template_args,
)
from .diagnostics import Diagnostic, DiagnosticCode, DiagnosticLog
from .ir import Decl, ScopeEntry, TranslationUnit
from .items import (
    Access, ClassVariant, ExportItem, ExportKind, SourceLocation,
    CLASS_VARIANTS, CONTAINER_SHAPES,
)
from .namespaces import ROOT_PATH, lexical_namespace, normalize_path, resolve_namespace

logger = logging.getLogger(__name__)

MODULE_MARKER_PREFIX = '__lua_module_marker_'

_GETTER_RE = re.compile(r'^(?:get|is)([A-Z0-9_]\w*)$')
_SETTER_RE = re.compile(r'^set([A-Z0-9_]\w*)$')
_OPERATOR_RE = re.compile(r'^operator\s*(\S.*)$')

_ACCESS_VALUES = {
    'readonly': Access.READ_ONLY,
    'readwrite': Access.READ_WRITE,
    'writeonly': Access.WRITE_ONLY,
}

# categories accepted on each declaration kind
_METHOD_CATEGORIES = {'method', 'static_method', 'operator', 'property', 'callback', 'function'}
_FIELD_CATEGORIES = {'property', 'callback', 'variable', 'constant'}
_VARIABLE_CATEGORIES = ({'constant', 'variable', 'template_instance', 'module'}
                        | CONTAINER_CATEGORIES)


@dataclass
class _Owner:
    """The class that member items are attached to"""
    name: str
    qualified: str
    namespace_path: str
    variant: ClassVariant = ClassVariant.REGULAR


class UnitContext:
    """Per-unit extraction state"""

    def __init__(self, unit: TranslationUnit, global_namespace: str):
        self.unit = unit
        self.global_namespace = global_namespace
        self.unit_default = unit.default_namespace
        self.diagnostics = DiagnosticLog()
        self.items: list[ExportItem] = []
        self.signatures: set[tuple] = set()

    def add(self, item: ExportItem) -> bool:
        """Append an item unless its signature is already present"""
        if item.signature in self.signatures:
            logger.debug('duplicate %s %s skipped', item.kind.value, item.qualified_path)
            return False
        self.signatures.add(item.signature)
        self.items.append(item)
        return True

    def namespace(self, explicit: Optional[str], scope: list[ScopeEntry], own_name: str,
                  owner_name: str = '') -> str:
        return resolve_namespace(explicit, scope, own_name, owner_name,
                                 self.unit_default, self.global_namespace)


class MetadataExtractor:
    """Extracts export items from one translation unit"""

    def __init__(self, global_namespace: str = ''):
        self.global_namespace = global_namespace

    def extract(self, unit: TranslationUnit) -> tuple[list[ExportItem], list[Diagnostic]]:
        """Extract all export items of a unit"""
        ctx = UnitContext(unit, self.global_namespace)
        ctx.unit_default = self._unit_default(unit)
        for decl in unit.decls:
            self._visit(decl, ctx)
        logger.debug('%s: %d items extracted', unit.identity, len(ctx.items))
        return ctx.items, list(ctx.diagnostics)

    # --- annotations ---

    def _annotations(self, decl: Decl, ctx: UnitContext) -> list[Annotation]:
        result = []
        for raw in decl.annotations:
            ann = parse_annotation(raw)
            if ann.malformed:
                ctx.diagnostics.info(DiagnosticCode.MALFORMED_ANNOTATION,
                                     f"unrecognized annotation '{raw}' on {decl.name}",
                                     decl.location_str)
            result.append(ann)
        return result

    def _export_annotation(self, decl: Decl, ctx: UnitContext) -> tuple[Optional[Annotation], bool]:
        """Return (first export annotation, ignored)"""
        anns = self._annotations(decl, ctx)
        if any(a.is_ignore for a in anns):
            return None, True
        for ann in anns:
            if ann.is_export:
                return ann, False
        return None, False

    @staticmethod
    def _is_exported_class(decl: Decl) -> bool:
        for raw in decl.annotations:
            ann = parse_annotation(raw)
            if ann.is_export and ann.category in CLASS_CATEGORIES:
                return True
        return False

    def _unit_default(self, unit: TranslationUnit) -> str:
        if unit.default_namespace:
            return unit.default_namespace
        for decl in unit.decls:
            for raw in decl.annotations:
                ann = parse_annotation(raw)
                if not ann.malformed and ann.category == 'module' and 'namespace' in ann.attributes:
                    return ann.attributes['namespace']
        return ''

    # --- declarations ---

    def _visit(self, decl: Decl, ctx: UnitContext):
        if decl.is_system:
            return
        ann, ignored = self._export_annotation(decl, ctx)
        if ignored:
            return

        if decl.is_class:
            if ann is None:
                self._visit_unexported_class(decl, ctx)
            elif ann.category == 'template' or decl.is_template:
                ctx.diagnostics.info(DiagnosticCode.NOTE,
                                     f'class template {decl.name} needs template_instance markers',
                                     decl.location_str)
            elif ann.category in CLASS_CATEGORIES:
                self._extract_class(decl, ann, ctx)
            else:
                self._mismatch(decl, ann, ctx)
            return

        if ann is None:
            return

        if decl.kind == 'namespace':
            self._extract_namespace(decl, ann, ctx)
        elif decl.kind == 'function':
            self._extract_function(decl, ann, ctx)
        elif decl.kind == 'enum':
            self._extract_enum(decl, ann, ctx)
        elif decl.kind == 'variable':
            self._extract_variable(decl, ann, ctx)
        elif decl.kind in ('method', 'constructor', 'field'):
            # member declared outside its class node
            owner = self._lexical_owner(decl, ctx)
            if owner is None:
                self._mismatch(decl, ann, ctx)
            else:
                self._extract_member(decl, ann, owner, ctx)
        else:
            self._mismatch(decl, ann, ctx)

    def _mismatch(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        ctx.diagnostics.info(DiagnosticCode.MALFORMED_ANNOTATION,
                             f"'{ann.category}' annotation does not apply to {decl.kind} {decl.name}",
                             decl.location_str)

    def _location(self, decl: Decl) -> SourceLocation:
        return SourceLocation(decl.location.file, decl.location.line, decl.location.column)

    def _enclosing_class(self, decl: Decl) -> str:
        for entry in reversed(decl.scope):
            if entry.kind == 'class':
                return entry.name
        return ''

    def _lexical_owner(self, decl: Decl, ctx: UnitContext) -> Optional[_Owner]:
        class_scope = [i for i, s in enumerate(decl.scope) if s.kind == 'class']
        if not class_scope:
            return None
        idx = class_scope[-1]
        entry = decl.scope[idx]
        outer = decl.scope[:idx]
        parts = [s.name for s in outer if not s.is_anonymous] + [entry.name]
        return _Owner(
            name=entry.name,
            qualified='::'.join(parts),
            namespace_path=ctx.namespace(None, outer, entry.name),
        )

    # --- classes ---

    def _extract_class(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        """Register a class, then its members"""
        variant = CLASS_VARIANTS[ann.category]
        item = ExportItem(
            kind=ExportKind.CLASS,
            name=decl.name,
            target_name=ann.attributes.get('alias', ''),
            qualified_path=decl.qualified_name,
            namespace_path=ctx.namespace(ann.attributes.get('namespace'), decl.scope,
                                         decl.name, self._enclosing_class(decl)),
            base_types=[collapse_whitespace(b) for b in decl.bases],
            raw_attributes=dict(ann.attributes),
            source_location=self._location(decl),
            class_variant=variant,
            category=ann.category,
        )
        if not ctx.add(item):
            return
        owner = _Owner(item.name, item.qualified_path, item.namespace_path, variant)

        # explicitly annotated members first
        handled: set[int] = set()
        for member in decl.members:
            if member.is_class:
                self._visit(member, ctx)
                handled.add(id(member))
                continue
            m_ann, m_ignored = self._export_annotation(member, ctx)
            if m_ignored:
                handled.add(id(member))
            elif m_ann is not None:
                self._extract_member(member, m_ann, owner, ctx)
                handled.add(id(member))

        # then everything public that was not annotated
        has_constructor = False
        for member in decl.members:
            if member.kind == 'constructor':
                has_constructor = True
            if id(member) in handled or member.is_system:
                continue
            if not member.is_public or member.is_deleted:
                continue
            self._auto_member(member, owner, ctx)

        if variant == ClassVariant.REGULAR and not has_constructor:
            ctx.add(self._constructor_item(owner, [], self._location(decl), {}))

        self._promote(decl, owner, ctx, {decl.qualified_name})
        self._pair_properties(owner, ctx, ann.flag('properties'))

    def _visit_unexported_class(self, decl: Decl, ctx: UnitContext):
        """Annotated members and nested classes of a class that is not exported"""
        owner = None
        for member in decl.members:
            if member.is_class:
                self._visit(member, ctx)
                continue
            m_ann, m_ignored = self._export_annotation(member, ctx)
            if m_ann is None or m_ignored:
                continue
            if owner is None:
                owner = _Owner(decl.name, decl.qualified_name,
                               ctx.namespace(None, decl.scope, decl.name,
                                             self._enclosing_class(decl)))
            self._extract_member(member, m_ann, owner, ctx)

    def _auto_member(self, member: Decl, owner: _Owner, ctx: UnitContext):
        if member.kind == 'constructor':
            if member.is_copy_constructor or member.is_move_constructor:
                return
            if owner.variant != ClassVariant.REGULAR:
                return
            ctx.add(self._constructor_item(owner, [p.type for p in member.params],
                                           self._location(member), {}))
        elif member.kind == 'method':
            if owner.variant == ClassVariant.STATIC and not member.is_static:
                return
            ctx.add(self._method_item(member, None, owner))
        elif member.kind == 'field':
            if member.is_static or owner.variant == ClassVariant.STATIC:
                return
            ctx.add(self._field_item(member, None, owner))

    def _extract_member(self, member: Decl, ann: Annotation, owner: _Owner, ctx: UnitContext):
        """Member carrying its own export annotation"""
        if member.kind == 'constructor':
            if owner.variant != ClassVariant.REGULAR:
                ctx.diagnostics.info(DiagnosticCode.NOTE,
                                     f'constructor of {owner.variant.value} class {owner.name} not exported',
                                     member.location_str)
                return
            ctx.add(self._constructor_item(owner, [p.type for p in member.params],
                                           self._location(member), ann.attributes))
        elif member.kind == 'method' and ann.category in _METHOD_CATEGORIES:
            ctx.add(self._method_item(member, ann, owner))
        elif member.kind == 'field' and ann.category in _FIELD_CATEGORIES:
            ctx.add(self._field_item(member, ann, owner))
        elif member.kind == 'destructor':
            return
        else:
            self._mismatch(member, ann, ctx)

    def _constructor_item(self, owner: _Owner, params: list[str], loc: SourceLocation,
                          attrs: dict[str, str]) -> ExportItem:
        params = [normalize_type(p) for p in params]
        return ExportItem(
            kind=ExportKind.CONSTRUCTOR,
            name=owner.name,
            qualified_path=f"{owner.qualified}::{owner.name}({', '.join(params)})",
            namespace_path=owner.namespace_path,
            owner=owner.name,
            parameter_types=params,
            return_type=owner.qualified,
            raw_attributes=dict(attrs),
            source_location=loc,
        )

    def _method_item(self, member: Decl, ann: Optional[Annotation], owner: _Owner) -> ExportItem:
        category = ann.category if ann else ''
        attrs = dict(ann.attributes) if ann else {}
        name = member.name
        op = _OPERATOR_RE.match(name)
        if category == 'operator' or op:
            kind = ExportKind.OPERATOR
            if op:
                symbol = op.group(1)
                # conversion operators keep their space: operator bool
                name = f'operator {symbol}' if symbol[0].isalpha() else 'operator' + symbol.replace(' ', '')
        elif category == 'static_method' or member.is_static:
            kind = ExportKind.STATIC_METHOD
        else:
            kind = ExportKind.METHOD

        return ExportItem(
            kind=kind,
            name=name,
            target_name=attrs.get('alias', ''),
            qualified_path=f'{owner.qualified}::{name}',
            namespace_path=owner.namespace_path,
            owner=owner.name,
            parameter_types=[normalize_type(p.type) for p in member.params],
            return_type=normalize_type(member.return_type),
            is_static=member.is_static,
            is_const=member.is_const,
            is_virtual=member.is_virtual,
            raw_attributes=attrs,
            source_location=self._location(member),
            category=category,
        )

    def _field_item(self, member: Decl, ann: Optional[Annotation], owner: _Owner) -> ExportItem:
        attrs = dict(ann.attributes) if ann else {}
        default = Access.READ_ONLY if member.is_const else Access.READ_WRITE
        return ExportItem(
            kind=ExportKind.PROPERTY,
            name=member.name,
            target_name=attrs.get('alias', ''),
            qualified_path=f'{owner.qualified}::{member.name}',
            namespace_path=owner.namespace_path,
            owner=owner.name,
            return_type=normalize_type(member.type),
            access=_access_from(attrs, default),
            is_static=member.is_static,
            is_const=member.is_const,
            raw_attributes=attrs,
            source_location=self._location(member),
            category=ann.category if ann else '',
        )

    # --- promotion ---

    def _promote(self, decl: Decl, owner: _Owner, ctx: UnitContext, visited: set[str]):
        """Re-home public methods of unexported bases onto the exported class"""
        if owner.variant == ClassVariant.STATIC:
            # only non-static methods are promoted, and a static class has no instance
            logger.debug('%s is a static class; base methods not promoted', owner.name)
            return
        for base_name in decl.bases:
            base = ctx.unit.find_class(base_name, decl.scope)
            if base is None:
                ctx.diagnostics.info(DiagnosticCode.NOTE,
                                     f"base '{base_name}' of {owner.name} is not declared in "
                                     f"{ctx.unit.identity}; inherited methods not promoted",
                                     decl.location_str)
                continue
            if base.qualified_name in visited:
                continue
            visited.add(base.qualified_name)
            if self._is_exported_class(base):
                continue

            for member in base.members:
                if member.kind != 'method' or member.is_system:
                    continue
                if not member.is_public or member.is_static or member.is_deleted:
                    continue
                m_ann, m_ignored = self._export_annotation(member, ctx)
                if m_ignored:
                    continue
                if m_ann is not None and m_ann.category not in _METHOD_CATEGORIES:
                    m_ann = None
                if ctx.add(self._method_item(member, m_ann, owner)):
                    logger.debug('promoted %s::%s onto %s', base.name, member.name, owner.name)

            self._promote(base, owner, ctx, visited)

    # --- property pairing ---

    def _pair_properties(self, owner: _Owner, ctx: UnitContext, all_accessors: bool = False):
        """Collapse property-annotated accessor methods into Property items

        With `all_accessors` (class annotated `properties`) every getX/isX/setX
        method is a candidate.
        """
        methods = [i for i in ctx.items
                   if i.kind == ExportKind.METHOD and i.owner == owner.name
                   and i.namespace_path == owner.namespace_path]
        candidates = [m for m in methods if m.category == 'property'
                      or (all_accessors and (_GETTER_RE.match(m.name) or _SETTER_RE.match(m.name)))]
        if not candidates:
            return

        consumed: set[int] = set()
        anchors: dict[int, ExportItem] = {}
        for cand in candidates:
            if id(cand) in consumed:
                continue
            getter, setter, stem = self._accessor_pair(cand, methods, consumed)
            if getter is None and setter is None:
                ctx.diagnostics.info(DiagnosticCode.NOTE,
                                     f'property annotation on {owner.name}::{cand.name} '
                                     'which is not an accessor; kept as method',
                                     str(cand.source_location))
                continue

            prop = self._property_item(owner, stem, getter, setter, ctx)
            if prop.signature in ctx.signatures:
                ctx.diagnostics.info(DiagnosticCode.NOTE,
                                     f'property {owner.name}.{prop.name} already exported',
                                     str(prop.source_location))
                continue
            pair = [m for m in (getter, setter) if m is not None]
            for m in pair:
                consumed.add(id(m))
            anchors[id(pair[0])] = prop

        if not consumed:
            return
        items = []
        for item in ctx.items:
            if id(item) not in consumed:
                items.append(item)
                continue
            ctx.signatures.discard(item.signature)
            prop = anchors.get(id(item))
            if prop is not None:
                items.append(prop)
                ctx.signatures.add(prop.signature)
        ctx.items[:] = items

    def _accessor_pair(self, cand: ExportItem, methods: list[ExportItem], consumed: set[int]):
        """Return (getter, setter, stem) for a property candidate"""
        def find(names, arity):
            for m in methods:
                if m is not cand and id(m) not in consumed and m.name in names \
                        and len(m.parameter_types) == arity:
                    return m
            return None

        explicit = _access_from(cand.raw_attributes, Access.NONE)
        match = _GETTER_RE.match(cand.name)
        if match and not cand.parameter_types and cand.return_type != 'void':
            stem = match.group(1)
            setter = None
            if explicit != Access.READ_ONLY:
                setter = find({cand.raw_attributes.get('setter') or f'set{stem}'}, 1)
            return cand, setter, lower_first(stem)

        match = _SETTER_RE.match(cand.name)
        if match and len(cand.parameter_types) == 1:
            stem = match.group(1)
            getter = None
            if explicit != Access.WRITE_ONLY:
                getter_name = cand.raw_attributes.get('getter')
                getter = find({getter_name} if getter_name else {f'get{stem}', f'is{stem}'}, 0)
            return getter, cand, lower_first(stem)

        if not cand.parameter_types and cand.return_type not in ('', 'void'):
            setter = find({cand.raw_attributes['setter']}, 1) if 'setter' in cand.raw_attributes else None
            return cand, setter, cand.name
        return None, None, ''

    def _property_item(self, owner: _Owner, stem: str, getter: Optional[ExportItem],
                       setter: Optional[ExportItem], ctx: UnitContext) -> ExportItem:
        if getter is not None and setter is not None:
            access = Access.READ_WRITE
        elif getter is not None:
            access = Access.READ_ONLY
        else:
            access = Access.WRITE_ONLY

        attrs: dict[str, str] = {}
        for source in (setter, getter):
            if source is not None:
                attrs.update(source.raw_attributes)
        requested = _access_from(attrs, access)
        if requested != access:
            ctx.diagnostics.info(DiagnosticCode.NOTE,
                                 f'{owner.name}.{stem}: requested {requested.value} access, '
                                 f'accessors allow {access.value}')

        anchor = getter or setter
        return ExportItem(
            kind=ExportKind.PROPERTY,
            name=stem,
            target_name=attrs.get('alias', ''),
            qualified_path=f'{owner.qualified}::{stem}',
            namespace_path=owner.namespace_path,
            owner=owner.name,
            return_type=getter.return_type if getter else setter.parameter_types[0],
            access=access,
            is_const=getter.is_const if getter else False,
            raw_attributes=attrs,
            source_location=anchor.source_location,
            category='property',
            getter=getter.qualified_path if getter else '',
            setter=setter.qualified_path if setter else '',
        )

    # --- namespace-level declarations ---

    def _extract_namespace(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        own_path = normalize_path('.'.join(
            [s.name for s in decl.scope if s.kind == 'namespace' and not s.is_anonymous]
            + [decl.name]))
        if ann.category == 'module':
            ctx.add(ExportItem(
                kind=ExportKind.MODULE,
                name=ann.attributes.get('name') or decl.name,
                qualified_path=decl.qualified_name,
                namespace_path=normalize_path(ann.attributes.get('namespace', own_path)),
                raw_attributes=dict(ann.attributes),
                source_location=self._location(decl),
                category=ann.category,
            ))
        elif ann.category == 'namespace':
            ctx.add(ExportItem(
                kind=ExportKind.NAMESPACE,
                name=decl.name or ann.attributes.get('name', ''),
                target_name=ann.attributes.get('alias', ''),
                qualified_path=decl.qualified_name,
                namespace_path=normalize_path(ann.attributes.get('namespace', own_path)),
                raw_attributes=dict(ann.attributes),
                source_location=self._location(decl),
                category=ann.category,
            ))
        else:
            self._mismatch(decl, ann, ctx)

    def _extract_function(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        if ann.category not in ('function', 'method', 'static_method', 'operator'):
            self._mismatch(decl, ann, ctx)
            return
        ctx.add(ExportItem(
            kind=ExportKind.FUNCTION,
            name=decl.name,
            target_name=ann.attributes.get('alias', ''),
            qualified_path=decl.qualified_name,
            namespace_path=ctx.namespace(ann.attributes.get('namespace'), decl.scope, decl.name),
            parameter_types=[normalize_type(p.type) for p in decl.params],
            return_type=normalize_type(decl.return_type),
            raw_attributes=dict(ann.attributes),
            source_location=self._location(decl),
            category=ann.category,
        ))

    def _extract_enum(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        if ann.category != 'enum':
            self._mismatch(decl, ann, ctx)
            return
        ctx.add(ExportItem(
            kind=ExportKind.ENUM,
            name=decl.name,
            target_name=ann.attributes.get('alias', ''),
            qualified_path=decl.qualified_name,
            namespace_path=ctx.namespace(ann.attributes.get('namespace'), decl.scope,
                                         decl.name, self._enclosing_class(decl)),
            enum_values=enum_values(decl),
            raw_attributes=dict(ann.attributes),
            source_location=self._location(decl),
            category=ann.category,
        ))

    def _extract_variable(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        if decl.name.startswith(MODULE_MARKER_PREFIX):
            if ann.category == 'module':
                ctx.add(ExportItem(
                    kind=ExportKind.MODULE,
                    name=ann.attributes.get('name') or ann.type_params
                    or decl.name[len(MODULE_MARKER_PREFIX):],
                    qualified_path=decl.qualified_name,
                    namespace_path=normalize_path(ann.attributes.get('namespace', ctx.unit_default)),
                    raw_attributes=dict(ann.attributes),
                    source_location=self._location(decl),
                    category=ann.category,
                ))
            return

        if ann.category not in _VARIABLE_CATEGORIES:
            self._mismatch(decl, ann, ctx)
        elif ann.category in CONTAINER_CATEGORIES:
            self._extract_container(decl, ann, ctx)
        elif ann.category == 'template_instance':
            self._extract_template_instance(decl, ann, ctx)
        elif ann.category == 'module':
            ctx.add(ExportItem(
                kind=ExportKind.MODULE,
                name=ann.attributes.get('name') or ann.type_params or decl.name,
                qualified_path=decl.qualified_name,
                namespace_path=normalize_path(ann.attributes.get('namespace', ctx.unit_default)),
                raw_attributes=dict(ann.attributes),
                source_location=self._location(decl),
                category=ann.category,
            ))
        else:
            kind = ExportKind.CONSTANT if ann.category == 'constant' else ExportKind.VARIABLE
            ctx.add(ExportItem(
                kind=kind,
                name=decl.name,
                target_name=ann.attributes.get('alias', ''),
                qualified_path=decl.qualified_name,
                namespace_path=ctx.namespace(ann.attributes.get('namespace'), decl.scope,
                                             decl.name, self._enclosing_class(decl)),
                return_type=normalize_type(decl.type),
                is_static=decl.is_static,
                is_const=decl.is_const or kind == ExportKind.CONSTANT,
                raw_attributes=dict(ann.attributes),
                source_location=self._location(decl),
                category=ann.category,
            ))

    def _extract_container(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        shape = CONTAINER_SHAPES[ann.category]
        args = split_template_args(ann.type_params)
        ns_prefix = lexical_namespace(decl.scope)[0].replace('.', '::')
        qualified = [qualify_type(a, ns_prefix) for a in args]
        display = ann.attributes.get('alias') or container_display_name(shape, args)
        full_type = f"{shape.std_template}<{', '.join(qualified)}>"
        ctx.add(ExportItem(
            kind=ExportKind.CONTAINER,
            name=display,
            qualified_path=full_type,
            namespace_path=ROOT_PATH,
            parameter_types=qualified,
            return_type=full_type,
            raw_attributes=dict(ann.attributes),
            source_location=self._location(decl),
            container_shape=shape,
            category=ann.category,
        ))

    def _extract_template_instance(self, decl: Decl, ann: Annotation, ctx: UnitContext):
        instance = normalize_type(ann.type_params or decl.type)
        if not instance:
            ctx.diagnostics.info(DiagnosticCode.MALFORMED_ANNOTATION,
                                 f'template_instance marker {decl.name} names no type',
                                 decl.location_str)
            return
        ns_prefix = lexical_namespace(decl.scope)[0].replace('.', '::')
        ctx.add(ExportItem(
            kind=ExportKind.TEMPLATE_INSTANCE,
            name=ann.attributes.get('alias') or friendly_type_name(instance),
            qualified_path=qualify_type(instance, ns_prefix),
            namespace_path=ctx.namespace(ann.attributes.get('namespace'), decl.scope, decl.name),
            raw_attributes=dict(ann.attributes),
            source_location=self._location(decl),
            category=ann.category,
        ))


def _access_from(attrs: dict[str, str], default: Access) -> Access:
    """Property access requested by `access=` or a bare readonly/readwrite/writeonly flag"""
    value = attrs.get('access', '').strip().lower()
    if value in _ACCESS_VALUES:
        return _ACCESS_VALUES[value]
    for flag, access in _ACCESS_VALUES.items():
        if attrs.get(flag) == 'true':
            return access
    return default


def enum_values(decl: Decl) -> list[tuple[str, object]]:
    """Enumerator values; unset ones continue from the previous value"""
    values = []
    prev = None
    for item in decl.enumerators:
        if item.value is not None:
            value = _enum_literal(item.value)
        elif prev is None:
            value = 0
        elif isinstance(prev, int):
            value = prev + 1
        else:
            value = f'({prev}) + 1'
        values.append((item.name, value))
        prev = value
    return values


def _enum_literal(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text, 0)
    except ValueError:
        return text


def qualify_type(type_str: str, ns_prefix: str) -> str:
    """Prefix a namespace onto unqualified, non-builtin type components

    Examples (ns_prefix "demo"):
        Player                  -> demo::Player
        std::string             -> std::string
        std::shared_ptr<Item>   -> std::shared_ptr<demo::Item>
    """
    type_str = normalize_type(type_str)
    if '<' in type_str:
        head, rest = type_str.split('<', 1)
        inner, tail = rest.rsplit('>', 1)
        args = ', '.join(qualify_type(a, ns_prefix) for a in split_template_args(inner))
        return f'{qualify_type(head, ns_prefix)}<{args}>{tail}'
    base = base_type_name(type_str)
    if not ns_prefix or not base or '::' in base or is_builtin_type(base):
        return type_str
    return type_str.replace(base, f'{ns_prefix}::{base}', 1)


def container_display_name(shape, args: list[str]) -> str:
    """IntVector, IntStdStringMap, PlayerList ..."""
    return ''.join(friendly_type_name(a) for a in args) + shape.suffix
