"""
export_gen - sol2 Lua binding generator for annotated C++ declarations

Reads declaration-tree JSON documents (one per translation unit), collects
the declarations marked with `lua_export_*` annotations and emits C++ code
registering them with a sol::state. Unchanged units are served from an
incremental cache.
"""

from .annotation import Annotation, parse_annotation
from .items import ExportItem, ExportKind, ClassVariant, ContainerShape, Access, SourceLocation
from .ir import TranslationUnit, UnitSource, Decl
from .diagnostics import Diagnostic, DiagnosticCode, DiagnosticLog, Severity
from .exceptions import (
    ExportGenError, FrontEndError, PlanBuildError, CacheError,
    GenerationCancelled, NoProcessableUnits,
)
from .extractor import MetadataExtractor
from .validator import Validator
from .namespaces import NamespaceHandle, NamespaceTable, resolve_namespace
from .plan import BindingPlan
from .builder import PlanBuilder
from .cache import IncrementalCache
from .emitter import Emitter
from .types import TypeConverter, TypeHandler
from .luacats import LuaCATSGenerator
from .config import GeneratorConfig
from .generator import Generator, RunResult

__all__ = [
    'Annotation', 'parse_annotation',
    'ExportItem', 'ExportKind', 'ClassVariant', 'ContainerShape', 'Access', 'SourceLocation',
    'TranslationUnit', 'UnitSource', 'Decl',
    'Diagnostic', 'DiagnosticCode', 'DiagnosticLog', 'Severity',
    'ExportGenError', 'FrontEndError', 'PlanBuildError', 'CacheError',
    'GenerationCancelled', 'NoProcessableUnits',
    'MetadataExtractor',
    'Validator',
    'NamespaceHandle', 'NamespaceTable', 'resolve_namespace',
    'BindingPlan',
    'PlanBuilder',
    'IncrementalCache',
    'Emitter',
    'TypeConverter', 'TypeHandler',
    'LuaCATSGenerator',
    'GeneratorConfig',
    'Generator', 'RunResult',
]
