"""
Main generator module

Orchestrates one run: reads the unit documents, extracts and validates the
dirty ones (reusing cached items for the rest), merges everything after the
join, builds the binding plan and writes the sol2 source (plus optional
LuaCATS stubs).
"""

import logging
import os
import threading
from collections import Counter
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Optional

from .builder import PlanBuilder, dedup_items
from .cache import IncrementalCache
from .config import GeneratorConfig
from .diagnostics import Diagnostic, DiagnosticCode, DiagnosticLog, Severity
from .emitter import Emitter
from .exceptions import FrontEndError, GenerationCancelled, NoProcessableUnits
from .extractor import MetadataExtractor
from .ir import TranslationUnit, UnitSource, read_unit_source
from .items import ExportItem, ExportKind
from .luacats import LuaCATSGenerator
from .plan import BindingPlan
from .types import TypeConverter
from .validator import Validator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_EXPORTS = 1
EXIT_NO_UNITS = 2
EXIT_CANCELLED = 130


@dataclass
class UnitResult:
    """Outcome of one unit; returned from worker processes"""
    unit: str
    items: list[ExportItem] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    failed: bool = False
    from_cache: bool = False


def extract_unit(source: UnitSource, global_namespace: str = '') -> UnitResult:
    """Parse, extract and validate one unit"""
    log = DiagnosticLog()
    try:
        unit = TranslationUnit.parse(source)
    except FrontEndError as e:
        log.error(DiagnosticCode.FRONT_END_FAILURE, e.reason, e.unit)
        return UnitResult(source.identity, diagnostics=list(log), failed=True)

    items, diagnostics = MetadataExtractor(global_namespace).extract(unit)
    log.extend(diagnostics)
    items = Validator(log).validate_all(items)
    return UnitResult(source.identity, items=items, diagnostics=list(log))


def discover_units(inputs: list[str], input_dir: Optional[str] = None,
                   excludes: Optional[set[str]] = None) -> list[str]:
    """Unit document paths: explicit inputs first, then *.json under input_dir"""
    excludes = excludes or set()
    paths = list(inputs)
    if input_dir:
        found = []
        for root, dirs, files in os.walk(input_dir):
            dirs[:] = sorted(d for d in dirs if d not in excludes)
            for name in files:
                if name.endswith('.json') and name not in excludes:
                    found.append(os.path.join(root, name))
        paths.extend(sorted(found))

    result = []
    seen = set()
    for path in paths:
        if os.path.basename(path) in excludes:
            continue
        key = os.path.normpath(path)
        if key in seen:
            continue
        seen.add(key)
        result.append(path)
    return result


@dataclass
class RunStats:
    """Counts reported with --show-stats"""
    units: int = 0
    extracted: int = 0
    cached: int = 0
    failed: int = 0
    items_by_kind: Counter = field(default_factory=Counter)
    classes: list[str] = field(default_factory=list)
    namespaces: list[str] = field(default_factory=list)

    @classmethod
    def collect(cls, results: list[UnitResult], items: list[ExportItem]) -> 'RunStats':
        stats = cls(units=len(results))
        for result in results:
            if result.failed:
                stats.failed += 1
            elif result.from_cache:
                stats.cached += 1
            else:
                stats.extracted += 1
        stats.items_by_kind = Counter(item.kind.value for item in items)
        stats.classes = sorted({i.qualified_path for i in items if i.kind == ExportKind.CLASS})
        stats.namespaces = sorted({i.namespace_path for i in items
                                   if i.namespace_path and i.kind != ExportKind.CONTAINER})
        return stats

    def report(self) -> list[str]:
        lines = [
            f'  units: {self.units} ({self.extracted} extracted, '
            f'{self.cached} cached, {self.failed} failed)',
            f'  items: {sum(self.items_by_kind.values())}',
        ]
        for kind in ExportKind:
            count = self.items_by_kind.get(kind.value, 0)
            if count:
                lines.append(f'    {kind.value}: {count}')
        lines.append(f'  classes: {len(self.classes)}')
        for name in self.classes:
            lines.append(f'    {name}')
        lines.append(f"  namespaces: {', '.join(self.namespaces) or '(root only)'}")
        return lines


@dataclass
class RunResult:
    exit_code: int
    items: list[ExportItem] = field(default_factory=list)
    plan: Optional[BindingPlan] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)
    outputs: list[str] = field(default_factory=list)


class Generator:
    """Main binding generator"""

    def __init__(self, config: Optional[GeneratorConfig] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.config = config or GeneratorConfig()
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self):
        """Request cancellation; honored between units and before plan building"""
        self.cancel_event.set()

    def _check_cancelled(self, where: str):
        if self.cancel_event.is_set():
            raise GenerationCancelled(f'cancelled {where}')

    def generate(self, paths: list[str]) -> RunResult:
        """Run the whole pipeline over the given unit documents"""
        config = self.config
        print('=== Generating Lua bindings:')
        diagnostics = DiagnosticLog()
        cache = None
        if config.incremental:
            cache = IncrementalCache(config.cache_file, salt=config.cache_salt(),
                                     force_rebuild=config.force_rebuild,
                                     diagnostics=diagnostics)

        try:
            results = self._collect(paths, cache)
            self._check_cancelled('before plan building')
        except GenerationCancelled:
            if cache is not None:
                cache.discard()
            raise

        for result in results:
            diagnostics.extend(result.diagnostics)

        if all(r.failed for r in results):
            self._report(diagnostics)
            raise NoProcessableUnits(f'none of {len(results)} unit(s) could be processed')

        items = dedup_items(item for r in results for item in r.items)
        stats = RunStats.collect(results, items)
        run = RunResult(EXIT_OK, items=items, stats=stats)

        if not items:
            print('  >> warning: no annotated declarations found')
            run.exit_code = EXIT_NO_EXPORTS
        else:
            builder = PlanBuilder(diagnostics, threshold=config.threshold)
            run.plan = builder.build(items, config.module_name)
            run.outputs = self._write_outputs(run.plan, items)

        if cache is not None:
            cache.flush()

        if config.show_stats:
            print('=== Statistics:')
            for line in stats.report():
                print(line)
        self._report(diagnostics)
        run.diagnostics = list(diagnostics)
        return run

    # --- extraction ---

    def _collect(self, paths: list[str], cache: Optional[IncrementalCache]) -> list[UnitResult]:
        """Per-unit results in input order"""
        results: list[Optional[UnitResult]] = [None] * len(paths)
        dirty: list[tuple[int, UnitSource]] = []

        for idx, path in enumerate(paths):
            try:
                source = read_unit_source(path)
            except FrontEndError as e:
                print(f'  {path} => failed')
                diag = Diagnostic(Severity.ERROR, DiagnosticCode.FRONT_END_FAILURE, e.reason, e.unit)
                results[idx] = UnitResult(os.path.normpath(path), diagnostics=[diag], failed=True)
                continue

            if cache is not None and not cache.should_extract(source):
                record = cache.lookup(source)
                print(f'  {source.identity} => cached')
                results[idx] = UnitResult(source.identity, items=record.items,
                                          diagnostics=record.diagnostics, from_cache=True)
            else:
                dirty.append((idx, source))

        sources = dict(dirty)
        for idx, result in self._extract(dirty):
            print(f'  {result.unit} => {"failed" if result.failed else len(result.items)}'
                  + ('' if result.failed else ' items'))
            if cache is not None and not result.failed:
                cache.commit(sources[idx], result.items, result.diagnostics)
            results[idx] = result

        return [r for r in results if r is not None]

    def _extract(self, dirty: list[tuple[int, UnitSource]]):
        """Yield (index, result) for each dirty unit"""
        global_ns = self.config.default_namespace
        if self.config.jobs <= 1 or len(dirty) <= 1:
            for idx, source in dirty:
                self._check_cancelled('between units')
                yield idx, extract_unit(source, global_ns)
            return

        logger.debug('extracting %d units with %d jobs', len(dirty), self.config.jobs)
        with ProcessPoolExecutor(max_workers=self.config.jobs) as executor:
            futures = {executor.submit(extract_unit, source, global_ns): idx
                       for idx, source in dirty}
            try:
                for future in as_completed(futures):
                    self._check_cancelled('between units')
                    yield futures[future], future.result()
            except GenerationCancelled:
                for future in futures:
                    future.cancel()
                raise

    # --- output ---

    def _write_outputs(self, plan: BindingPlan, items: list[ExportItem]) -> list[str]:
        config = self.config
        os.makedirs(config.output_dir, exist_ok=True)
        outputs = []

        cpp_output = os.path.join(config.output_dir, f'{plan.module_name}_bindings.cpp')
        with open(cpp_output, 'w', newline='\n') as f:
            f.write(Emitter().emit(plan))
        print(f'  => {cpp_output}')
        outputs.append(cpp_output)

        if config.stubs:
            stub_gen = LuaCATSGenerator(items, TypeConverter(items), plan.module_name)
            types_output = os.path.join(config.output_dir, f'{plan.module_name}.lua')
            with open(types_output, 'w', newline='\n') as f:
                f.write(stub_gen.generate())
            print(f'  => {types_output}')
            outputs.append(types_output)
        return outputs

    def _report(self, diagnostics: DiagnosticLog):
        shown = [d for d in diagnostics
                 if d.severity != Severity.INFO or self.config.verbose]
        if shown:
            print('=== Diagnostics:')
            for diag in shown:
                print(f'  {diag.format()}')
        counts = Counter(d.severity for d in diagnostics)
        print(f'{counts[Severity.ERROR]} error(s), {counts[Severity.WARNING]} warning(s), '
              f'{counts[Severity.INFO]} note(s)')

