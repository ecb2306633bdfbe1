"""
LuaCATS type definition generation module

Generates a .lua stub with type annotations for IDE autocompletion of the
registered bindings.
"""

from typing import Optional

from .items import Access, ClassVariant, ExportItem, ExportKind
from .types import TypeConverter, lua_path_of

# Lua reserved keywords
LUA_KEYWORDS = {
    'and', 'break', 'do', 'else', 'elseif', 'end', 'false', 'for',
    'function', 'goto', 'if', 'in', 'local', 'nil', 'not', 'or',
    'repeat', 'return', 'then', 'true', 'until', 'while'
}


def lua_key(name: str) -> str:
    """Table key syntax for a name: `.name` or `["name"]`"""
    if name in LUA_KEYWORDS or not name.isidentifier():
        return f'["{name}"]'
    return f'.{name}'


def _assign_target(item: ExportItem) -> str:
    if item.namespace_path:
        return item.namespace_path + lua_key(item.lua_name)
    if item.lua_name.isidentifier() and item.lua_name not in LUA_KEYWORDS:
        return item.lua_name
    return f'_G["{item.lua_name}"]'


class LuaCATSGenerator:
    """Generates LuaCATS type definition files"""

    def __init__(self, items: list[ExportItem], type_conv: Optional['TypeConverter'] = None,
                 module_name: str = 'bindings'):
        self.items = items
        self.type_conv = type_conv if type_conv is not None else TypeConverter(items)
        self.module_name = module_name

    def generate(self) -> str:
        """Generate complete LuaCATS type definition file"""
        lines = []
        lines.append('---@meta')
        lines.append(f'-- LuaCATS type definitions for {self.module_name}')
        lines.append('-- Auto-generated, do not edit')
        lines.append('')

        toplevel = sorted((i for i in self.items if not i.kind.is_member),
                          key=lambda i: (i.kind.order, i.namespace_path))
        members: dict[tuple[str, str], list[ExportItem]] = {}
        for item in self.items:
            if item.kind.is_member:
                members.setdefault((item.namespace_path, item.owner), []).append(item)

        # Namespace tables first so later assignments have a parent
        for path in self._namespace_paths(toplevel):
            lines.append(f'{path} = {path} or {{}}')
        lines.append('')

        for item in toplevel:
            if item.kind == ExportKind.CLASS:
                lines.extend(self._gen_class(item, members.get((item.namespace_path, item.name), [])))
            elif item.kind in (ExportKind.TEMPLATE_INSTANCE, ExportKind.CONTAINER):
                lines.extend(self._gen_opaque(item))
            elif item.kind == ExportKind.ENUM:
                lines.extend(self._gen_enum(item))
            elif item.kind in (ExportKind.CONSTANT, ExportKind.VARIABLE):
                lines.extend(self._gen_value(item))
            elif item.kind == ExportKind.FUNCTION:
                lines.extend(self._gen_func(item))
            else:
                continue
            lines.append('')

        return '\n'.join(lines).rstrip('\n') + '\n'

    @staticmethod
    def _namespace_paths(items: list[ExportItem]) -> list[str]:
        paths = set()
        for item in items:
            if item.kind in (ExportKind.MODULE, ExportKind.CONTAINER) or not item.namespace_path:
                continue
            segments = item.namespace_path.split('.')
            for n in range(1, len(segments) + 1):
                paths.add('.'.join(segments[:n]))
        return sorted(paths, key=lambda p: (p.count('.'), p))

    def _gen_class(self, cls: ExportItem, members: list[ExportItem]) -> list[str]:
        """Generate class type definition"""
        lines = []
        path = lua_path_of(cls)
        bases = [self.type_conv.luacats_type(b) for b in cls.base_types]
        bases = [b for b in bases if b not in ('any', path)]
        header = f'---@class {path}'
        if bases:
            header += ': ' + ', '.join(bases)
        lines.append(header)

        for item in members:
            if item.kind == ExportKind.PROPERTY:
                lua_type = self.type_conv.luacats_type(item.return_type or 'void')
                lines.append(f'---@field {item.lua_name} {lua_type}')

        if cls.class_variant in (None, ClassVariant.REGULAR):
            ctors = [m for m in members if m.kind == ExportKind.CONSTRUCTOR] or [None]
            for ctor in ctors:
                params = ctor.parameter_types if ctor else []
                lines.append(f'---@overload fun({self._params(params)}): {path}')
        lines.append(f'{path} = {{}}')

        for item in members:
            if item.kind in (ExportKind.METHOD, ExportKind.STATIC_METHOD):
                lines.append('')
                lines.extend(self._gen_method(path, item))
        return lines

    def _gen_method(self, path: str, item: ExportItem) -> list[str]:
        lines = self._signature_lines(item)
        names = self._param_names(item.parameter_types)
        if item.kind == ExportKind.STATIC_METHOD:
            lines.append(f'function {path}.{item.lua_name}({", ".join(names)}) end')
        else:
            lines.append(f'function {path}:{item.lua_name}({", ".join(names)}) end')
        return lines

    def _gen_opaque(self, item: ExportItem) -> list[str]:
        return [f'---@class {lua_path_of(item) if item.kind != ExportKind.CONTAINER else item.name}']

    def _gen_enum(self, enum: ExportItem) -> list[str]:
        """Generate enum type definition"""
        path = lua_path_of(enum)
        lines = [f'---@enum {path}', f'{path} = {{']
        for label, value in enum.enum_values:
            rendered = value if isinstance(value, int) else 0
            if label[0].isdigit() or label in LUA_KEYWORDS:
                lines.append(f'    ["{label}"] = {rendered},')
            else:
                lines.append(f'    {label} = {rendered},')
        lines.append('}')
        return lines

    def _gen_value(self, item: ExportItem) -> list[str]:
        lua_type = self.type_conv.luacats_type(item.return_type or 'void')
        lines = []
        if item.kind == ExportKind.CONSTANT or item.access == Access.READ_ONLY:
            lines.append('---@readonly')
        lines.append(f'---@type {lua_type}')
        lines.append(f'{_assign_target(item)} = nil')
        return lines

    def _gen_func(self, func: ExportItem) -> list[str]:
        """Generate function type definition"""
        lines = self._signature_lines(func)
        names = self._param_names(func.parameter_types)
        target = _assign_target(func)
        if func.lua_name.isidentifier() and func.lua_name not in LUA_KEYWORDS:
            lines.append(f'function {target}({", ".join(names)}) end')
        else:
            lines.append(f'{target} = function({", ".join(names)}) end')
        return lines

    def _signature_lines(self, item: ExportItem) -> list[str]:
        lines = []
        for name, cpp_type in zip(self._param_names(item.parameter_types), item.parameter_types):
            lines.append(f'---@param {name} {self.type_conv.luacats_type(cpp_type)}')
        ret = self.type_conv.luacats_type(item.return_type or 'void')
        if ret != 'nil':
            lines.append(f'---@return {ret}')
        return lines

    def _params(self, params: list[str]) -> str:
        names = self._param_names(params)
        return ', '.join(f'{n}: {self.type_conv.luacats_type(t)}' for n, t in zip(names, params))

    @staticmethod
    def _param_names(params: list[str]) -> list[str]:
        return [f'arg{n}' for n in range(1, len(params) + 1)]
