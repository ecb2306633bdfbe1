"""Tests for LuaCATS stub generation and type mapping."""

import pytest

from export_gen.items import Access, ClassVariant, ContainerShape, ExportItem, ExportKind
from export_gen.luacats import LuaCATSGenerator, lua_key
from export_gen.types import NamedType, TypeConverter, lua_path_of

from factories import class_item, member_item


@pytest.fixture
def converter():
    return TypeConverter([
        class_item('Player', 'demo'),
        ExportItem(kind=ExportKind.ENUM, name='Color', qualified_path='demo::Color',
                   namespace_path='demo', enum_values=[('Red', 0)]),
        ExportItem(kind=ExportKind.CONTAINER, name='IntVector', qualified_path='std::vector<int>',
                   container_shape=ContainerShape.VECTOR, parameter_types=['int']),
    ])


class TestTypeConverter:
    """Test C++ to LuaCATS type mapping."""

    @pytest.mark.parametrize('cpp, lua', [
        ('void', 'nil'),
        ('bool', 'boolean'),
        ('const std::string &', 'string'),
        ('const char *', 'string'),
        ('unsigned int', 'integer'),
        ('uint32_t', 'integer'),
        ('double', 'number'),
        ('std::vector<float>', 'number[]'),
        ('std::map<std::string, int>', 'table<string, integer>'),
        ('std::optional<int>', 'integer?'),
        ('std::function<void(int)>', 'function'),
        ('SomethingElse', 'any'),
    ])
    def test_defaults(self, cpp, lua):
        assert TypeConverter().luacats_type(cpp) == lua

    def test_exported_types(self, converter):
        assert converter.luacats_type('const demo::Player &') == 'demo.Player'
        assert converter.luacats_type('Player *') == 'demo.Player'
        assert converter.luacats_type('::demo::Color') == 'demo.Color'
        assert converter.luacats_type('std::vector< int >') == 'IntVector'
        assert converter.luacats_type('std::vector<demo::Player>') == 'demo.Player[]'

    def test_custom_handler(self):
        conv = TypeConverter()
        conv.register('glm::vec3', NamedType('Vec3'))
        assert conv.has_handler('glm::vec3')
        assert conv.luacats_type('const glm::vec3 &') == 'Vec3'

    def test_lua_path_of(self):
        assert lua_path_of(class_item('Player', 'game.ui')) == 'game.ui.Player'
        assert lua_path_of(class_item('Player', target_name='Hero')) == 'Hero'


def test_lua_key():
    assert lua_key('name') == '.name'
    assert lua_key('end') == '["end"]'
    assert lua_key('2d') == '["2d"]'


class TestLuaCATSGenerator:
    """Test generated stub text."""

    def test_header_and_namespaces(self):
        items = [
            class_item('Button', 'game.ui'),
            ExportItem(kind=ExportKind.FUNCTION, name='tick', qualified_path='game::tick',
                       namespace_path='game', return_type='void'),
        ]
        lines = LuaCATSGenerator(items, module_name='game').generate().splitlines()
        assert lines[:3] == ['---@meta', '-- LuaCATS type definitions for game',
                             '-- Auto-generated, do not edit']
        assert lines.index('game = game or {}') < lines.index('game.ui = game.ui or {}')

    def test_class(self):
        items = [
            class_item('Entity', 'demo'),
            class_item('Player', 'demo', base_types=['Entity']),
            member_item(ExportKind.CONSTRUCTOR, 'Player', 'Player', 'demo'),
            member_item(ExportKind.CONSTRUCTOR, 'Player', 'Player', 'demo',
                        parameter_types=['const std::string &']),
            member_item(ExportKind.PROPERTY, 'health', 'Player', 'demo', return_type='int',
                        access=Access.READ_WRITE),
            member_item(ExportKind.METHOD, 'getName', 'Player', 'demo',
                        return_type='std::string'),
            member_item(ExportKind.STATIC_METHOD, 'spawn', 'Player', 'demo', is_static=True,
                        parameter_types=['float', 'float'], return_type='demo::Player *'),
        ]
        text = LuaCATSGenerator(items).generate()
        assert ('---@class demo.Player: demo.Entity\n'
                '---@field health integer\n'
                '---@overload fun(): demo.Player\n'
                '---@overload fun(arg1: string): demo.Player\n'
                'demo.Player = {}\n') in text
        assert ('---@return string\n'
                'function demo.Player:getName() end\n') in text
        assert ('---@param arg1 number\n'
                '---@param arg2 number\n'
                '---@return demo.Player\n'
                'function demo.Player.spawn(arg1, arg2) end\n') in text

    def test_static_class_has_no_constructor(self):
        items = [class_item('Time', variant=ClassVariant.STATIC)]
        text = LuaCATSGenerator(items).generate()
        assert '---@class Time\nTime = {}\n' in text
        assert '@overload' not in text

    def test_enum(self):
        items = [ExportItem(kind=ExportKind.ENUM, name='Color', qualified_path='demo::Color',
                            namespace_path='demo',
                            enum_values=[('Red', 0), ('end', 1), ('Mask', 'Red | end')])]
        text = LuaCATSGenerator(items).generate()
        assert ('---@enum demo.Color\n'
                'demo.Color = {\n'
                '    Red = 0,\n'
                '    ["end"] = 1,\n'
                '    Mask = 0,\n'
                '}\n') in text

    def test_values_and_functions(self):
        items = [
            ExportItem(kind=ExportKind.CONSTANT, name='MAX_HP', qualified_path='MAX_HP',
                       return_type='int'),
            ExportItem(kind=ExportKind.VARIABLE, name='speed', qualified_path='demo::speed',
                       namespace_path='demo', return_type='float'),
            ExportItem(kind=ExportKind.FUNCTION, name='add', qualified_path='demo::add',
                       namespace_path='demo', return_type='int', parameter_types=['int', 'int']),
            ExportItem(kind=ExportKind.FUNCTION, name='end', qualified_path='finish',
                       return_type='void'),
        ]
        text = LuaCATSGenerator(items).generate()
        assert '---@readonly\n---@type integer\nMAX_HP = nil\n' in text
        assert '---@type number\ndemo.speed = nil\n' in text
        assert ('---@param arg1 integer\n'
                '---@param arg2 integer\n'
                '---@return integer\n'
                'function demo.add(arg1, arg2) end\n') in text
        assert '_G["end"] = function() end\n' in text

    def test_opaque_types(self):
        items = [
            ExportItem(kind=ExportKind.TEMPLATE_INSTANCE, name='IntBox',
                       qualified_path='demo::Box<int>', namespace_path='demo'),
            ExportItem(kind=ExportKind.CONTAINER, name='IntVector',
                       qualified_path='std::vector<int>', container_shape=ContainerShape.VECTOR,
                       parameter_types=['int']),
        ]
        text = LuaCATSGenerator(items).generate()
        assert '---@class demo.IntBox\n' in text
        assert '---@class IntVector\n' in text
        assert text.endswith('\n') and not text.endswith('\n\n')
