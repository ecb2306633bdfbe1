"""
Code generation utilities

Provides the indented text writer used by the emitters, plus the C++ type
and naming helpers shared by extraction and emission.
"""

import re


class CodeGen:
    """Code generation helper with indentation support"""

    def __init__(self, indent_str: str = '    '):
        self._lines: list[str] = []
        self._indent: int = 0
        self._indent_str: str = indent_str

    def line(self, text: str = ''):
        """Add a line with current indentation"""
        if text:
            self._lines.append(self._indent_str * self._indent + text)
        else:
            self._lines.append('')

    def lines(self, *texts: str):
        """Add multiple lines"""
        for text in texts:
            self.line(text)

    def indent(self):
        self._indent += 1

    def dedent(self):
        if self._indent > 0:
            self._indent -= 1

    def block(self, header: str, footer: str = '}'):
        """Context manager for code blocks"""
        return _BlockContext(self, header, footer)

    def output(self) -> str:
        """Get generated code as string, newline terminated"""
        return '\n'.join(self._lines) + '\n'


class _BlockContext:
    """Context manager for indented code blocks"""

    def __init__(self, gen: CodeGen, header: str, footer: str):
        self._gen = gen
        self._header = header
        self._footer = footer

    def __enter__(self):
        self._gen.line(self._header)
        self._gen.indent()
        return self

    def __exit__(self, *args):
        self._gen.dedent()
        self._gen.line(self._footer)


# Spellings that are never prefixed with a namespace
BUILTIN_TYPES = {
    'void', 'bool', 'char', 'short', 'int', 'long', 'float', 'double',
    'unsigned', 'signed', 'wchar_t', 'char16_t', 'char32_t',
    'int8_t', 'uint8_t', 'int16_t', 'uint16_t',
    'int32_t', 'uint32_t', 'int64_t', 'uint64_t',
    'size_t', 'ptrdiff_t', 'intptr_t', 'uintptr_t',
}

# Friendly names used when building container display names
FRIENDLY_NAMES = {
    'int': 'Int',
    'double': 'Double',
    'float': 'Float',
    'char': 'Char',
    'bool': 'Bool',
    'size_t': 'SizeT',
    'uint32_t': 'Uint32',
    'int32_t': 'Int32',
    'uint64_t': 'Uint64',
    'int64_t': 'Int64',
    'string': 'String',
}

_INT_WORDS = BUILTIN_TYPES - {'void', 'bool', 'float', 'double'}

_TYPE_QUALIFIERS = ('const', 'volatile', 'struct', 'class', 'enum')


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace and trim"""
    return ' '.join(text.split())


def normalize_type(type_str: str) -> str:
    """Normalize type spelling: whitespace collapsed, no spaces inside brackets

    Examples:
        "const  std::string &" -> "const std::string &"
        "std::vector< int >"   -> "std::vector<int>"
    """
    text = collapse_whitespace(type_str)
    text = re.sub(r'\s*([<>,])\s*', r'\1', text)
    return text.replace(',', ', ')


def split_template_args(text: str) -> list[str]:
    """Split a template argument list on top-level commas

    Examples:
        "int, std::string"             -> ["int", "std::string"]
        "std::pair<int, int>, Player"  -> ["std::pair<int, int>", "Player"]
    """
    args = []
    depth = 0
    current = ''
    for ch in text:
        if ch in '<([':
            depth += 1
        elif ch in '>)]':
            depth -= 1
        if ch == ',' and depth == 0:
            args.append(current.strip())
            current = ''
        else:
            current += ch
    if current.strip():
        args.append(current.strip())
    return args


def base_type_name(type_str: str) -> str:
    """Strip qualifiers, references and pointers

    Examples:
        "const demo::Player &" -> "demo::Player"
        "Item *"               -> "Item"
    """
    tokens = type_str.replace('&', ' ').replace('*', ' ').split()
    tokens = [t for t in tokens if t not in _TYPE_QUALIFIERS]
    return ' '.join(tokens)


def is_builtin_type(type_str: str) -> bool:
    """Check if type is a builtin or standard-library spelling"""
    name = base_type_name(type_str)
    if not name:
        return True
    if name.startswith('std') or name.startswith('::std'):
        return True
    return all(word in BUILTIN_TYPES for word in name.split())


def is_int_type(type_str: str) -> bool:
    """Check if type is an integer type"""
    words = base_type_name(type_str).split()
    return bool(words) and all(w in _INT_WORDS for w in words)


def is_float_type(type_str: str) -> bool:
    """Check if type is a float type"""
    return base_type_name(type_str) in ('float', 'double', 'long double')


def is_string_type(type_str: str) -> bool:
    """Check if type is a string type"""
    return base_type_name(type_str) in ('std::string', 'std::string_view', 'char *', 'string')


def capitalize(word: str) -> str:
    """Uppercase the first character, leave the rest untouched"""
    return word[:1].upper() + word[1:]


def lower_first(word: str) -> str:
    """Lowercase the first character: Health -> health"""
    return word[:1].lower() + word[1:]


def friendly_type_name(type_str: str) -> str:
    """Convert a C++ type spelling to a script-friendly name

    Examples:
        int               -> Int
        std::string       -> StdString
        demo::Player      -> DemoPlayer
        unsigned int      -> UnsignedInt
    """
    name = base_type_name(type_str)
    if name in FRIENDLY_NAMES:
        return FRIENDLY_NAMES[name]
    result = ''
    for segment in name.split('::'):
        segment = segment.strip()
        if not segment:
            continue
        if '<' in segment:
            head, rest = segment.split('<', 1)
            inner = rest.rsplit('>', 1)[0]
            result += friendly_type_name(head)
            result += ''.join(friendly_type_name(arg) for arg in split_template_args(inner))
            continue
        for word in segment.split():
            result += FRIENDLY_NAMES.get(word, capitalize(word))
    return result


def sanitize_identifier(text: str) -> str:
    """Turn arbitrary text into a valid C++ identifier fragment"""
    ident = re.sub(r'[^0-9A-Za-z_]', '_', text)
    if ident and ident[0].isdigit():
        ident = '_' + ident
    return ident
