"""
Item validation module

Drops export items that cannot produce a binding, with a warning each.
"""

from .diagnostics import DiagnosticCode, DiagnosticLog
from .items import CALLABLE_KINDS, ExportItem, ExportKind


class Validator:
    """Checks extracted items before they are cached and merged"""

    def __init__(self, diagnostics: DiagnosticLog):
        self.diagnostics = diagnostics

    def validate(self, item: ExportItem) -> bool:
        problem = self._problem(item)
        if problem is None:
            return True
        label = item.qualified_path or item.name or f'<unnamed {item.kind.value}>'
        self.diagnostics.warning(DiagnosticCode.INVALID_ITEM,
                                 f'{item.kind.value} {label} dropped: {problem}',
                                 str(item.source_location))
        return False

    def validate_all(self, items: list[ExportItem]) -> list[ExportItem]:
        return [item for item in items if self.validate(item)]

    @staticmethod
    def _problem(item: ExportItem):
        if not item.name.strip():
            return 'empty name'
        if item.kind in CALLABLE_KINDS and not item.return_type.strip():
            return 'unresolved return type'
        if item.kind.is_member and not item.owner:
            return 'member without owning class'
        if item.kind == ExportKind.CLASS and item.class_variant is None:
            return 'class without variant'
        if item.kind == ExportKind.ENUM and not item.enum_values:
            return 'enum without enumerators'
        if item.kind == ExportKind.CONTAINER:
            if item.container_shape is None:
                return 'container without shape'
            if not item.parameter_types:
                return 'container without type parameters'
            expected = 2 if item.container_shape.value in ('map', 'unordered_map') else 1
            if len(item.parameter_types) != expected:
                return f'{item.container_shape.value} needs {expected} type parameter(s)'
        if item.kind == ExportKind.PROPERTY and item.getter == '' and item.setter == '' \
                and not item.qualified_path:
            return 'property without accessor or field'
        return None
