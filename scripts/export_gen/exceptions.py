"""
Exceptions raised by export_gen.

Failures scoped to one unit or one owner group are caught by the generator
and turned into diagnostics; only whole-run conditions reach the caller.
"""


class ExportGenError(Exception):
    """Base exception for binding generation errors."""
    pass


class FrontEndError(ExportGenError):
    """A declaration-tree document could not be read or is malformed."""

    def __init__(self, unit: str, reason: str):
        self.unit = unit
        self.reason = reason
        super().__init__(f"{unit}: {reason}")


class PlanBuildError(ExportGenError):
    """Plan assembly failed for one owner group."""

    def __init__(self, owner: str, reason: str):
        self.owner = owner
        self.reason = reason
        super().__init__(f"{owner}: {reason}")


class CacheError(ExportGenError):
    """The incremental cache store could not be written."""
    pass


class GenerationCancelled(ExportGenError):
    """The run was cancelled between units or before plan building."""
    pass


class NoProcessableUnits(ExportGenError):
    """Every input unit failed in the front end."""
    pass
