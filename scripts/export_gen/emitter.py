"""
sol2 emitter module

Serializes a BindingPlan to C++ source registering everything with a
sol::state. Output depends only on the plan, so an unchanged plan gives
byte-identical text.
"""

from .codegen import CodeGen, sanitize_identifier
from .items import ClassVariant, ContainerShape
from .plan import (
    AssignMember, AssignOperator, BindingPlan, CreateNamespaceHandle, Reference,
    RefKind, RegisterConstant, RegisterContainer, RegisterEnum, RegisterFunction,
    RegisterType,
)

# Lua has no __gt/__ge; sol2 has no enum entry for them, so they go in as raw keys
META_FUNCTIONS = {
    'addition': 'sol::meta_function::addition',
    'subtraction': 'sol::meta_function::subtraction',
    'multiplication': 'sol::meta_function::multiplication',
    'division': 'sol::meta_function::division',
    'equal_to': 'sol::meta_function::equal_to',
    'less_than': 'sol::meta_function::less_than',
    'less_or_equal': 'sol::meta_function::less_than_or_equal_to',
    'greater_than': '"__gt"',
    'greater_or_equal': '"__ge"',
    'index': 'sol::meta_function::index',
    'call': 'sol::meta_function::call',
}

# helper methods per container shape; C is the container, K/V its key and value
_VECTOR_HELPERS = [
    ('size', '[](const C& c) { return c.size(); }'),
    ('empty', '[](const C& c) { return c.empty(); }'),
    ('clear', '[](C& c) { c.clear(); }'),
    ('push_back', '[](C& c, const V& v) { c.push_back(v); }'),
    ('pop_back', '[](C& c) { if (!c.empty()) c.pop_back(); }'),
    ('get', '[](const C& c, std::size_t i) { return c.at(i - 1); }'),
    ('set', '[](C& c, std::size_t i, const V& v) { c.at(i - 1) = v; }'),
    ('front', '[](const C& c) { return c.front(); }'),
    ('back', '[](const C& c) { return c.back(); }'),
    ('resize', '[](C& c, std::size_t n) { c.resize(n); }'),
    ('reserve', '[](C& c, std::size_t n) { c.reserve(n); }'),
]

_MAP_HELPERS = [
    ('size', '[](const C& c) { return c.size(); }'),
    ('empty', '[](const C& c) { return c.empty(); }'),
    ('clear', '[](C& c) { c.clear(); }'),
    ('get', '[](const C& c, const K& k) -> sol::optional<V> { auto it = c.find(k); '
            'if (it == c.end()) return sol::nullopt; return it->second; }'),
    ('set', '[](C& c, const K& k, const V& v) { c[k] = v; }'),
    ('has', '[](const C& c, const K& k) { return c.find(k) != c.end(); }'),
    ('erase', '[](C& c, const K& k) { return c.erase(k) > 0; }'),
    ('keys', '[](const C& c) { std::vector<K> r; for (const auto& kv : c) r.push_back(kv.first); return r; }'),
    ('values', '[](const C& c) { std::vector<V> r; for (const auto& kv : c) r.push_back(kv.second); return r; }'),
]

_SET_HELPERS = [
    ('size', '[](const C& c) { return c.size(); }'),
    ('empty', '[](const C& c) { return c.empty(); }'),
    ('clear', '[](C& c) { c.clear(); }'),
    ('insert', '[](C& c, const V& v) { return c.insert(v).second; }'),
    ('erase', '[](C& c, const V& v) { return c.erase(v) > 0; }'),
    ('has', '[](const C& c, const V& v) { return c.find(v) != c.end(); }'),
    ('to_vector', '[](const C& c) { return std::vector<V>(c.begin(), c.end()); }'),
]

_LIST_HELPERS = [
    ('size', '[](const C& c) { return c.size(); }'),
    ('empty', '[](const C& c) { return c.empty(); }'),
    ('clear', '[](C& c) { c.clear(); }'),
    ('push_back', '[](C& c, const V& v) { c.push_back(v); }'),
    ('pop_back', '[](C& c) { if (!c.empty()) c.pop_back(); }'),
    ('push_front', '[](C& c, const V& v) { c.push_front(v); }'),
    ('pop_front', '[](C& c) { if (!c.empty()) c.pop_front(); }'),
    ('front', '[](const C& c) { return c.front(); }'),
    ('back', '[](const C& c) { return c.back(); }'),
]

CONTAINER_HELPERS = {
    ContainerShape.VECTOR: _VECTOR_HELPERS,
    ContainerShape.MAP: _MAP_HELPERS,
    ContainerShape.UNORDERED_MAP: _MAP_HELPERS,
    ContainerShape.SET: _SET_HELPERS,
    ContainerShape.LIST: _LIST_HELPERS,
}


def register_function_name(module_name: str) -> str:
    return f'register_{sanitize_identifier(module_name)}_bindings'


def render_reference(ref: Reference) -> str:
    """C++ expression a name is bound to"""
    ptrs = [f'&{t}' for t in ref.targets]
    if ref.kind == RefKind.FUNCTION or ref.kind == RefKind.FIELD:
        return ptrs[0]
    if ref.kind == RefKind.OVERLOAD:
        return f"sol::overload({', '.join(ptrs)})"
    if ref.kind == RefKind.PROPERTY:
        return f"sol::property({', '.join(ptrs)})"
    if ref.kind == RefKind.READONLY_PROPERTY:
        return f'sol::readonly_property({ptrs[0]})'
    if ref.kind == RefKind.WRITEONLY_PROPERTY:
        return f'sol::writeonly_property({ptrs[0]})'
    if ref.kind == RefKind.READONLY_FIELD:
        return f'sol::readonly({ptrs[0]})'
    if ref.kind == RefKind.VARIABLE:
        return f'sol::var(std::ref({ref.targets[0]}))'
    return ref.targets[0]


def render_constructors(type_name: str, signatures) -> str:
    if not signatures:
        return 'sol::no_constructor'
    ctors = ', '.join(f"{type_name}({', '.join(params)})" for params in signatures)
    return f'sol::constructors<{ctors}>()'


class Emitter:
    """Generates the sol2 registration source for a plan"""

    def emit(self, plan: BindingPlan) -> str:
        gen = CodeGen()
        gen.line('// machine generated by export_gen, do not edit')
        gen.line(f'// module: {plan.module_name}')
        gen.line('#include <sol/sol.hpp>')
        for include in plan.includes:
            gen.line(f'#include "{include}"')
        gen.line()

        with gen.block(f'void {register_function_name(plan.module_name)}(sol::state& lua) {{'):
            for segment in plan.segments:
                for stmt in segment.statements:
                    self._statement(stmt, gen)
        return gen.output()

    def _statement(self, stmt, gen: CodeGen):
        if isinstance(stmt, CreateNamespaceHandle):
            gen.line(f'auto {stmt.handle.var} = '
                     f'{stmt.parent.var}["{stmt.segment}"].get_or_create<sol::table>();')
        elif isinstance(stmt, RegisterType):
            self._register_type(stmt, gen)
        elif isinstance(stmt, AssignMember):
            gen.line(f'{stmt.owner_handle}["{stmt.name}"] = {render_reference(stmt.reference)};')
        elif isinstance(stmt, AssignOperator):
            meta = META_FUNCTIONS[stmt.metamethod_id]
            gen.line(f'{stmt.owner_handle}[{meta}] = {render_reference(stmt.reference)};')
        elif isinstance(stmt, RegisterFunction):
            gen.line(f'{stmt.ns_handle.var}.set_function("{stmt.name}", '
                     f'{render_reference(stmt.reference)});')
        elif isinstance(stmt, RegisterConstant):
            gen.line(f'{stmt.ns_handle.var}["{stmt.name}"] = {render_reference(stmt.reference)};')
        elif isinstance(stmt, RegisterEnum):
            self._register_enum(stmt, gen)
        elif isinstance(stmt, RegisterContainer):
            self._register_container(stmt, gen)
        else:
            raise TypeError(f'unknown plan statement {stmt!r}')

    def _register_type(self, stmt: RegisterType, gen: CodeGen):
        ns = stmt.ns_handle.var
        if stmt.variant == ClassVariant.STATIC:
            self._register_static_class(stmt, gen)
            return

        head = f'{ns}.new_usertype<{stmt.type_name}>("{stmt.lua_name}"'
        ctors = render_constructors(stmt.type_name, stmt.constructor_signatures)
        if stmt.bases:
            ctors += f", sol::base_classes, sol::bases<{', '.join(stmt.bases)}>()"
        if not stmt.is_inline:
            gen.line(f'auto {stmt.owner_handle} = {head}, {ctors});')
            return

        args = [ctors]
        args.extend(f'"{name}", {render_reference(ref)}' for name, ref in stmt.inline_members)
        args.extend(f'{META_FUNCTIONS[meta]}, {render_reference(ref)}'
                    for meta, ref in stmt.inline_operators)
        gen.line(f'{head},')
        gen.indent()
        for i, arg in enumerate(args):
            gen.line(arg + (',' if i < len(args) - 1 else ''))
        gen.dedent()
        gen.line(');')

    def _register_static_class(self, stmt: RegisterType, gen: CodeGen):
        ns = stmt.ns_handle.var
        if stmt.is_inline and stmt.inline_members:
            gen.line(f'{ns}.create_named("{stmt.lua_name}",')
            gen.indent()
            members = list(stmt.inline_members)
            for i, (name, ref) in enumerate(members):
                sep = ',' if i < len(members) - 1 else ''
                gen.line(f'"{name}", {render_reference(ref)}{sep}')
            gen.dedent()
            gen.line(');')
        else:
            gen.line(f'auto {stmt.owner_handle} = '
                     f'{ns}["{stmt.lua_name}"].get_or_create<sol::table>();')

    def _register_enum(self, stmt: RegisterEnum, gen: CodeGen):
        args = []
        for label, value in stmt.values:
            if isinstance(value, int):
                rendered = str(value)
            else:
                rendered = f'static_cast<int>({stmt.type_name}::{label})'
            args.append(f'"{label}", {rendered}')
        gen.line(f'{stmt.ns_handle.var}.new_enum("{stmt.name}"'
                 + ''.join(f', {a}' for a in args) + ');')

    def _register_container(self, stmt: RegisterContainer, gen: CodeGen):
        with gen.block('{'):
            gen.line(f'using C = {stmt.type_name};')
            if stmt.shape in (ContainerShape.MAP, ContainerShape.UNORDERED_MAP):
                gen.line('using K = C::key_type;')
                gen.line('using V = C::mapped_type;')
            else:
                gen.line('using V = C::value_type;')
            helpers = CONTAINER_HELPERS[stmt.shape]
            gen.line(f'lua.new_usertype<C>("{stmt.display_name}",')
            gen.indent()
            gen.line('sol::constructors<C()>(),')
            for i, (name, body) in enumerate(helpers):
                sep = ',' if i < len(helpers) - 1 else ''
                gen.line(f'"{name}", {body}{sep}')
            gen.dedent()
            gen.line(');')
