"""
Annotation parsing module

Parses the export annotation payloads attached to declarations, e.g.

    lua_export_class::namespace=demo,alias=Hero
    lua_export_vector:int:alias=IntList
    lua_export_map:int,std::string:
    lua_export_ignore
"""

from dataclasses import dataclass, field


ANNOTATION_PREFIX = 'lua_export_'

CATEGORIES = frozenset({
    'module', 'namespace',
    'class', 'static_class', 'singleton', 'abstract_class',
    'method', 'static_method', 'operator', 'property',
    'function', 'variable', 'constant', 'enum',
    'vector', 'map', 'unordered_map', 'set', 'list',
    'template', 'template_instance',
    'ignore', 'callback',
})

CLASS_CATEGORIES = frozenset({'class', 'static_class', 'singleton', 'abstract_class'})

CONTAINER_CATEGORIES = frozenset({'vector', 'map', 'unordered_map', 'set', 'list'})


@dataclass(frozen=True)
class Annotation:
    """Parsed annotation payload"""
    category: str
    type_params: str = ''
    attributes: dict[str, str] = field(default_factory=dict)
    raw: str = ''
    malformed: bool = False

    @property
    def is_export(self) -> bool:
        return not self.malformed and self.category != 'ignore'

    @property
    def is_ignore(self) -> bool:
        return not self.malformed and self.category == 'ignore'

    def flag(self, key: str) -> bool:
        """True if a bare or `key=true` attribute is present"""
        return self.attributes.get(key, '').lower() in ('true', '1', 'yes')


def parse_annotation(raw: str) -> Annotation:
    """Parse `category[:type_params]:attrs`

    Never raises. Input that does not fit the grammar comes back with the
    whole payload as category, no attributes and `malformed` set.
    """
    text = (raw or '').strip()
    body = text[len(ANNOTATION_PREFIX):] if text.startswith(ANNOTATION_PREFIX) else text

    first = body.find(':')
    last = body.rfind(':')
    if first < 0:
        category, type_params, attrs_text = body, '', ''
    elif first == last:
        # a single colon carries type parameters only
        category, type_params, attrs_text = body[:first], body[first + 1:], ''
    else:
        category = body[:first]
        type_params = body[first + 1:last]
        attrs_text = body[last + 1:]

    category = category.strip()
    type_params = type_params.strip()
    if category not in CATEGORIES or not _balanced(type_params):
        return Annotation(category=raw, raw=raw, malformed=True)

    return Annotation(
        category=category,
        type_params=type_params,
        attributes=parse_attributes(attrs_text),
        raw=raw,
    )


def parse_attributes(text: str) -> dict[str, str]:
    """Parse `key=value,flag,key2=value2` into a dict; bare keys map to 'true'"""
    attrs: dict[str, str] = {}
    for part in text.split(','):
        part = part.strip()
        if not part:
            continue
        if '=' in part:
            key, value = part.split('=', 1)
            key = key.strip()
            if key:
                attrs[key] = value.strip()
        else:
            attrs[part] = 'true'
    return attrs


def _balanced(type_params: str) -> bool:
    depth = 0
    for ch in type_params:
        if ch == '<':
            depth += 1
        elif ch == '>':
            depth -= 1
            if depth < 0:
                return False
    return depth == 0
