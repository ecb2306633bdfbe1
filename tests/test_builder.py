"""Tests for export_gen.builder module."""

import pytest

from export_gen.builder import (
    PlanBuilder, dedup_items, metamethod_for, operator_symbol, registration_weight,
)
from export_gen.diagnostics import DiagnosticCode, DiagnosticLog, Severity
from export_gen.items import (
    Access, ClassVariant, ContainerShape, ExportItem, ExportKind, SourceLocation,
)
from export_gen.plan import (
    AssignMember, AssignOperator, CreateNamespaceHandle, Reference, RefKind,
    RegisterConstant, RegisterContainer, RegisterEnum, RegisterFunction, RegisterType,
    SegmentShape,
)

from factories import class_item, member_item


@pytest.fixture
def log():
    return DiagnosticLog()


def methods(owner, count, namespace=''):
    return [member_item(ExportKind.METHOD, f'm{i}', owner, namespace) for i in range(count)]


def operator(owner, name, params, namespace=''):
    return member_item(ExportKind.OPERATOR, name, owner, namespace,
                       parameter_types=list(params), return_type=owner)


class TestOperators:
    """Test operator to metamethod mapping."""

    @pytest.mark.parametrize('name, expected', [
        ('operator+', '+'),
        ('operator ==', '=='),
        ('operator[]', '[]'),
        ('operator ()', '()'),
        ('operator bool', 'bool'),
    ])
    def test_operator_symbol(self, name, expected):
        assert operator_symbol(name) == expected

    @pytest.mark.parametrize('name, params, meta', [
        ('operator+', ['const Vec2 &'], 'addition'),
        ('operator-', ['const Vec2 &'], 'subtraction'),
        ('operator*', ['float'], 'multiplication'),
        ('operator/', ['float'], 'division'),
        ('operator==', ['const Vec2 &'], 'equal_to'),
        ('operator<', ['const Vec2 &'], 'less_than'),
        ('operator<=', ['const Vec2 &'], 'less_or_equal'),
        ('operator>', ['const Vec2 &'], 'greater_than'),
        ('operator>=', ['const Vec2 &'], 'greater_or_equal'),
        ('operator[]', ['int'], 'index'),
        ('operator()', [], 'call'),
        ('operator-', [], None),
        ('operator!=', ['const Vec2 &'], None),
        ('operator bool', [], None),
    ])
    def test_metamethod_for(self, name, params, meta):
        assert metamethod_for(operator('Vec2', name, params)) == meta

    def test_unmapped_operators_omitted_with_info(self, log):
        items = [
            class_item('Vec2'),
            operator('Vec2', 'operator+', ['const Vec2 &']),
            operator('Vec2', 'operator!=', ['const Vec2 &']),
            operator('Vec2', 'operator-', []),
        ]
        plan = PlanBuilder(log).build(items)
        assert plan.member_mapping('Vec2') == {
            '__addition': Reference(RefKind.FUNCTION, ('Vec2::operator+',)),
        }
        unsupported = log.by_code(DiagnosticCode.UNSUPPORTED_OPERATOR)
        assert len(unsupported) == 2
        assert all(d.severity == Severity.INFO for d in unsupported)
        assert 'operator!=' in unsupported[0].message

    def test_second_operator_for_bound_metamethod_reported(self, log):
        items = [
            class_item('Vec2'),
            operator('Vec2', 'operator==', ['const Vec2 &']),
            ExportItem(kind=ExportKind.OPERATOR, name='operator==',
                       qualified_path='Vec2::operator==(float)', owner='Vec2',
                       parameter_types=['float'], return_type='bool'),
        ]
        plan = PlanBuilder(log).build(items)
        assert plan.member_mapping('Vec2') == {
            '__equal_to': Reference(RefKind.FUNCTION, ('Vec2::operator==',)),
        }
        [diag] = log.by_code(DiagnosticCode.UNSUPPORTED_OPERATOR)
        assert diag.severity == Severity.INFO
        assert 'already bound' in diag.message
        assert registration_weight(items[1:]) == 1 + 2


class TestBatching:
    """Test inline versus batched registration."""

    def test_registration_weight(self):
        members = methods('A', 3) + [
            member_item(ExportKind.PROPERTY, 'hp', 'A', return_type='int'),
            member_item(ExportKind.CONSTRUCTOR, 'A', 'A'),
            operator('A', 'operator+', ['const A &']),
            operator('A', 'operator!=', ['const A &']),
        ]
        assert registration_weight(members) == 1 + 2 * 3 + 2 + 2

    def test_threshold_boundary(self, log):
        inline = PlanBuilder(log).build([class_item('A')] + methods('A', 9))
        batched = PlanBuilder(log).build([class_item('B')] + methods('B', 10))
        assert inline.type_segments('A')[0].shape == SegmentShape.INLINE
        assert batched.type_segments('B')[0].shape == SegmentShape.BATCHED

    def test_inline_and_batched_expose_same_mapping(self, log):
        items = [class_item('Big', 'demo')] + methods('Big', 12, 'demo') + [
            member_item(ExportKind.PROPERTY, 'hp', 'Big', 'demo', return_type='int',
                        access=Access.READ_WRITE),
            member_item(ExportKind.STATIC_METHOD, 'create', 'Big', 'demo', return_type='Big'),
            operator('Big', 'operator==', ['const Big &'], 'demo'),
        ]
        batched = PlanBuilder(log, threshold=20).build(items)
        inline = PlanBuilder(log, threshold=1000).build(items)

        [b_seg] = batched.type_segments('Big', 'demo')
        [i_seg] = inline.type_segments('Big', 'demo')
        assert b_seg.shape == SegmentShape.BATCHED
        assert i_seg.shape == SegmentShape.INLINE
        assert batched.member_mapping('Big') == inline.member_mapping('Big')
        assert len(inline.member_mapping('Big')) == 15

    def test_batched_statements(self, log):
        items = [class_item('Big', 'demo')] + methods('Big', 10, 'demo') + [
            operator('Big', 'operator<', ['const Big &'], 'demo'),
        ]
        [segment] = PlanBuilder(log).build(items).type_segments('Big')
        head, *rest = segment.statements
        assert isinstance(head, RegisterType)
        assert head.inline_members is None
        assert head.owner_handle == 'demo_Big_type'
        assert [type(s) for s in rest] == [AssignMember] * 10 + [AssignOperator]
        assert rest[0] == AssignMember('demo_Big_type', 'm0',
                                       Reference(RefKind.FUNCTION, ('demo::Big::m0',)))
        assert rest[-1].metamethod_id == 'less_than'


class TestConstructors:
    """Test constructor assembly."""

    def test_distinct_normalized_signatures(self):
        cls = class_item('P')
        members = [
            member_item(ExportKind.CONSTRUCTOR, 'P', 'P', parameter_types=['int']),
            member_item(ExportKind.CONSTRUCTOR, 'P', 'P', parameter_types=['  int ']),
            member_item(ExportKind.CONSTRUCTOR, 'P', 'P',
                        parameter_types=['const std::string &', 'int']),
        ]
        assert PlanBuilder.constructor_signatures(cls, members) == (
            ('int',), ('const std::string &', 'int'),
        )

    def test_default_when_none_declared(self):
        assert PlanBuilder.constructor_signatures(class_item('P'), []) == ((),)

    @pytest.mark.parametrize('variant', [
        ClassVariant.STATIC, ClassVariant.SINGLETON, ClassVariant.ABSTRACT,
    ])
    def test_non_regular_classes_have_none(self, variant):
        cls = class_item('S', variant=variant)
        members = [member_item(ExportKind.CONSTRUCTOR, 'S', 'S')]
        assert PlanBuilder.constructor_signatures(cls, members) == ()


class TestReferences:
    """Test member references."""

    def test_property_kinds(self, log):
        items = [
            class_item('U'),
            member_item(ExportKind.PROPERTY, 'hp', 'U', access=Access.READ_WRITE,
                        getter='U::getHp', setter='U::setHp'),
            member_item(ExportKind.PROPERTY, 'id', 'U', access=Access.READ_ONLY,
                        getter='U::getId'),
            member_item(ExportKind.PROPERTY, 'sink', 'U', access=Access.WRITE_ONLY,
                        setter='U::setSink'),
            member_item(ExportKind.PROPERTY, 'x', 'U', access=Access.READ_WRITE),
            member_item(ExportKind.PROPERTY, 'version', 'U', access=Access.READ_ONLY),
        ]
        mapping = PlanBuilder(log).build(items).member_mapping('U')
        assert mapping == {
            'hp': Reference(RefKind.PROPERTY, ('U::getHp', 'U::setHp')),
            'id': Reference(RefKind.READONLY_PROPERTY, ('U::getId',)),
            'sink': Reference(RefKind.WRITEONLY_PROPERTY, ('U::setSink',)),
            'x': Reference(RefKind.FIELD, ('U::x',)),
            'version': Reference(RefKind.READONLY_FIELD, ('U::version',)),
        }

    def test_alias_is_registered_name(self, log):
        items = [class_item('U'),
                 member_item(ExportKind.METHOD, 'doJump', 'U', target_name='jump')]
        assert list(PlanBuilder(log).build(items).member_mapping('U')) == ['jump']


class TestFailureScoping:
    """Test that a failing owner group does not stop the build."""

    def test_name_collision_skips_only_that_class(self, log):
        items = [
            class_item('Bad'),
            member_item(ExportKind.METHOD, 'x', 'Bad'),
            member_item(ExportKind.PROPERTY, 'x', 'Bad', return_type='int',
                        access=Access.READ_WRITE),
            class_item('Good'),
            member_item(ExportKind.METHOD, 'y', 'Good'),
        ]
        plan = PlanBuilder(log).build(items)
        assert plan.type_segments('Bad') == []
        assert list(plan.member_mapping('Good')) == ['y']
        [failure] = log.by_code(DiagnosticCode.PLAN_BUILDER_FAILURE)
        assert failure.severity == Severity.ERROR
        assert 'Bad' in failure.message

    def test_inconsistent_property_skips_class(self, log):
        items = [
            class_item('Odd'),
            member_item(ExportKind.PROPERTY, 'hp', 'Odd', access=Access.READ_WRITE,
                        getter='Odd::getHp'),
        ]
        plan = PlanBuilder(log).build(items)
        assert plan.type_segments('Odd') == []
        assert log.has_errors


class TestPlanShape:
    """Test plan ordering, namespaces and top-level statements."""

    def test_namespace_handles_first_and_once(self, log):
        items = [
            ExportItem(kind=ExportKind.FUNCTION, name='f', qualified_path='a::b::f',
                       namespace_path='a.b', return_type='void'),
            class_item('C', 'a.b.c'),
            ExportItem(kind=ExportKind.ENUM, name='E', qualified_path='a::E',
                       namespace_path='a', enum_values=[('X', 0)]),
        ]
        plan = PlanBuilder(log).build(items)
        handles = plan.namespace_handles()
        assert [h.handle.path for h in handles] == ['a', 'a.b', 'a.b.c']
        assert [h.parent.path for h in handles] == ['', 'a', 'a.b']
        n = len(handles)
        assert all(isinstance(s.statements[0], CreateNamespaceHandle) for s in plan.segments[:n])

    def test_kind_then_namespace_then_first_seen(self, log):
        items = [
            ExportItem(kind=ExportKind.FUNCTION, name='f2', qualified_path='f2', return_type='void'),
            ExportItem(kind=ExportKind.FUNCTION, name='f1', qualified_path='z::f1',
                       namespace_path='z', return_type='void'),
            ExportItem(kind=ExportKind.FUNCTION, name='f0', qualified_path='f0', return_type='void'),
            ExportItem(kind=ExportKind.ENUM, name='E', qualified_path='E', enum_values=[('A', 0)]),
            class_item('C'),
        ]
        plan = PlanBuilder(log).build(items)
        body = [s for s in plan.statements() if not isinstance(s, CreateNamespaceHandle)]
        assert [type(s).__name__ for s in body] == [
            'RegisterType', 'RegisterEnum', 'RegisterFunction', 'RegisterFunction',
            'RegisterFunction',
        ]
        assert [s.name for s in body if isinstance(s, RegisterFunction)] == ['f2', 'f0', 'f1']

    def test_values_enums_containers(self, log):
        items = [
            ExportItem(kind=ExportKind.CONSTANT, name='MAX', qualified_path='cfg::MAX',
                       namespace_path='cfg', return_type='int'),
            ExportItem(kind=ExportKind.VARIABLE, name='gravity', qualified_path='cfg::gravity',
                       namespace_path='cfg', return_type='float'),
            ExportItem(kind=ExportKind.ENUM, name='Color', qualified_path='Color',
                       enum_values=[('Red', 0), ('Mask', 'A | B')]),
            ExportItem(kind=ExportKind.CONTAINER, name='IntVector',
                       qualified_path='std::vector<int>', parameter_types=['int'],
                       container_shape=ContainerShape.VECTOR),
        ]
        stmts = list(PlanBuilder(log).build(items).statements())
        constants = [s for s in stmts if isinstance(s, RegisterConstant)]
        assert [(c.name, c.reference.kind, c.mutable) for c in constants] == [
            ('MAX', RefKind.VALUE, False), ('gravity', RefKind.VARIABLE, True),
        ]
        [enum] = [s for s in stmts if isinstance(s, RegisterEnum)]
        assert enum.values == (('Red', 0), ('Mask', 'A | B'))
        [container] = [s for s in stmts if isinstance(s, RegisterContainer)]
        assert container.display_name == 'IntVector'
        assert container.types == ('int',)
        assert container.type_name == 'std::vector<int>'

    def test_orphan_members_dropped_with_info(self, log):
        items = [member_item(ExportKind.METHOD, 'spook', 'Ghost')]
        plan = PlanBuilder(log).build(items)
        assert plan.type_segments('Ghost') == []
        [note] = log.by_code(DiagnosticCode.NOTE)
        assert 'Ghost' in note.message

    def test_dedup_first_seen_wins(self, log):
        first = ExportItem(kind=ExportKind.FUNCTION, name='f', qualified_path='f',
                           return_type='int', target_name='first')
        second = ExportItem(kind=ExportKind.FUNCTION, name='f', qualified_path='f',
                            return_type='int', target_name='second')
        assert dedup_items([first, second]) == [first]
        [fn] = [s for s in PlanBuilder(log).build([first, second]).statements()]
        assert fn.name == 'first'

    def test_module_name_and_includes(self, log):
        loc = SourceLocation('include/demo/player.h', 3, 1)
        items = [
            ExportItem(kind=ExportKind.MODULE, name='game', qualified_path='game'),
            class_item('Player', source_location=loc),
        ]
        plan = PlanBuilder(log).build(items)
        assert plan.module_name == 'game'
        assert plan.includes == ['player.h']
        assert PlanBuilder(log).build(items, 'explicit').module_name == 'explicit'
        assert PlanBuilder(log).build([class_item('X')]).module_name == 'bindings'

    def test_type_handles_unique(self, log):
        items = [
            class_item('demo_Player'),
            class_item('Player', 'demo'),
            class_item('Player', 'demo.ui'),
            class_item('demo_ui_Player'),
        ]
        items += methods('demo_Player', 10) + methods('Player', 10, 'demo')
        plan = PlanBuilder(log).build(items)
        handles = [s.owner_handle for s in plan.statements() if isinstance(s, RegisterType)]
        assert handles == ['demo_Player_type', 'demo_ui_Player_type', 'demo_Player_type2',
                           'demo_ui_Player_type2']
        batched = [s for s in plan.statements()
                   if isinstance(s, RegisterType) and not s.is_inline]
        assert len({s.owner_handle for s in batched}) == 2

        rebuilt = PlanBuilder(log)
        rebuilt.build(items)
        again = [s.owner_handle for s in rebuilt.build(items).statements()
                 if isinstance(s, RegisterType)]
        assert again == handles

    def test_exported_bases_linked(self, log):
        items = [
            class_item('Entity', 'demo'),
            class_item('Player', 'demo', base_types=['Entity', 'Hidden']),
        ]
        plan = PlanBuilder(log).build(items)
        [stmt] = plan.type_segments('Player')[0].statements
        assert stmt.bases == ('demo::Entity',)
