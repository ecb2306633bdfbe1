"""Pytest configuration and fixtures for export_gen tests."""

import json

import pytest

from factories import method, node, unit_doc


@pytest.fixture
def write_unit(tmp_path):
    """Write a unit document under tmp_path and return its path."""
    def _write(filename, *declarations, **extra):
        path = tmp_path / 'units' / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(unit_doc(*declarations, unit=filename, **extra), indent=2),
                        encoding='utf-8')
        return str(path)
    return _write


@pytest.fixture
def demo_declarations():
    """A small game API: a namespace with a class hierarchy, an enum and a function."""
    return [
        node('namespace', 'demo', members=[
            node('class', 'Entity', members=[
                method('update', 'void', ['float']),
                method('getId', 'int', is_const=True),
            ]),
            node('class', 'Player', 'lua_export_class', bases=['Entity'],
                 location={'file': 'include/demo/player.h', 'line': 12, 'column': 7},
                 members=[
                     node('constructor', 'Player',
                          parameters=[{'name': 'name', 'type': 'const std::string &'}]),
                     method('getName', 'std::string', is_const=True),
                     method('getHealth', 'int', (), 'lua_export_property'),
                     method('setHealth', 'void', ['int']),
                     node('field', 'score', type='int'),
                     method('secret', 'void', access='private'),
                 ]),
            node('enum', 'Color', 'lua_export_enum', enumerators=[
                {'name': 'Red'}, {'name': 'Green'}, {'name': 'Blue', 'value': 10},
            ]),
            node('function', 'add', 'lua_export_function', return_type='int',
                 parameters=[{'name': 'a', 'type': 'int'}, {'name': 'b', 'type': 'int'}]),
        ]),
    ]
