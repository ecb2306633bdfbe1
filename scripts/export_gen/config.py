"""
Run configuration
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .builder import DEFAULT_MODULE_NAME, DEFAULT_THRESHOLD
from .cache import DEFAULT_CACHE_FILE

DEFAULT_OUTPUT_DIR = 'generated_bindings'


@dataclass
class GeneratorConfig:
    """Settings for one generation run"""
    module_name: str = ''
    default_namespace: str = ''
    threshold: int = DEFAULT_THRESHOLD
    incremental: bool = True
    force_rebuild: bool = False
    cache_path: Optional[str] = None
    output_dir: str = DEFAULT_OUTPUT_DIR
    jobs: int = 1
    stubs: bool = False
    show_stats: bool = False
    verbose: bool = False
    excludes: set[str] = field(default_factory=set)

    def __post_init__(self):
        if self.threshold < 1:
            raise ValueError(f'threshold must be positive, got {self.threshold}')
        if self.jobs < 1:
            raise ValueError(f'jobs must be positive, got {self.jobs}')

    @property
    def effective_module_name(self) -> str:
        return self.module_name or DEFAULT_MODULE_NAME

    @property
    def cache_file(self) -> str:
        """Cache store path; defaults to a file inside the output directory"""
        if self.cache_path:
            return self.cache_path
        return os.path.join(self.output_dir, DEFAULT_CACHE_FILE)

    def cache_salt(self) -> str:
        """Settings that change extraction output invalidate cached records"""
        return f'ns={self.default_namespace}'
