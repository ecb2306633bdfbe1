"""
Type mapping module

Maps C++ type spellings to LuaCATS annotations for the generated stubs.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .codegen import (
    base_type_name, is_float_type, is_int_type, is_string_type,
    normalize_type, split_template_args,
)
from .items import ExportItem, ExportKind

_SEQUENCE_TEMPLATES = ('std::vector', 'std::list', 'std::set', 'std::unordered_set', 'std::array')
_MAP_TEMPLATES = ('std::map', 'std::unordered_map')


class TypeHandler(ABC):
    """Base class for custom type handlers"""

    @abstractmethod
    def luacats_type(self) -> str:
        """Return LuaCATS type annotation"""
        pass


class NamedType(TypeHandler):
    """Maps a C++ type to a fixed LuaCATS name"""

    def __init__(self, name: str):
        self.name = name

    def luacats_type(self) -> str:
        return self.name


class TypeConverter:
    """Resolves LuaCATS names for the C++ types of exported items

    Exported classes, template instances and enums resolve to their dotted
    Lua path; registered containers resolve to their display name.
    """

    def __init__(self, items: Optional[list[ExportItem]] = None):
        self._handlers: dict[str, TypeHandler] = {}
        for item in items or []:
            self._register_item(item)

    def _register_item(self, item: ExportItem):
        if item.kind in (ExportKind.CLASS, ExportKind.TEMPLATE_INSTANCE, ExportKind.ENUM):
            lua_path = lua_path_of(item)
            self.register(item.qualified_path, NamedType(lua_path))
            # unqualified spelling as written inside the owning namespace
            if item.name not in self._handlers:
                self.register(item.name, NamedType(lua_path))
        elif item.kind == ExportKind.CONTAINER:
            self.register(normalize_type(item.qualified_path), NamedType(item.name))

    def register(self, type_name: str, handler: TypeHandler):
        """Register a custom type handler"""
        self._handlers[type_name] = handler

    def has_handler(self, type_name: str) -> bool:
        return type_name in self._handlers

    def luacats_type(self, type_str: str) -> str:
        """LuaCATS annotation for a C++ type"""
        base = normalize_type(base_type_name(type_str)).lstrip(':')
        if base in self._handlers:
            return self._handlers[base].luacats_type()
        return self._default_luacats_type(base)

    def _default_luacats_type(self, base: str) -> str:
        if base == 'void' or not base:
            return 'nil'
        if base == 'bool':
            return 'boolean'
        if is_string_type(base) or base == 'char':
            return 'string'
        if is_int_type(base):
            return 'integer'
        if is_float_type(base):
            return 'number'
        if '<' in base:
            head, rest = base.split('<', 1)
            args = split_template_args(rest.rsplit('>', 1)[0])
            if head in _SEQUENCE_TEMPLATES and args:
                return f'{self.luacats_type(args[0])}[]'
            if head in _MAP_TEMPLATES and len(args) == 2:
                return f'table<{self.luacats_type(args[0])}, {self.luacats_type(args[1])}>'
            if head == 'std::optional' and args:
                return f'{self.luacats_type(args[0])}?'
            if head == 'std::function':
                return 'function'
        return 'any'


def lua_path_of(item: ExportItem) -> str:
    """Dotted path an item is reachable under from the Lua state"""
    if item.namespace_path:
        return f'{item.namespace_path}.{item.lua_name}'
    return item.lua_name
