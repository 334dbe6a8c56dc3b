"""
Exception hierarchy for the submission image pipeline.

Per-slot and reconciliation failures are caught by the orchestrator and
recorded on the SubmissionResult. Only BatchError and ConfigError are
expected to reach the caller.
"""


class PipelineError(Exception):
    """Base class for every pipeline failure."""


class ConfigError(PipelineError):
    """Invalid runtime configuration."""


class BatchError(PipelineError):
    """The input source could not be read at all."""


class ValidationError(PipelineError):
    """A submission is missing what it needs to be processed."""


class AssetError(PipelineError):
    """A single image slot failed."""


class DownloadError(AssetError):
    """Source image unreachable, timed out or returned a non-2xx status."""


class DecodeError(AssetError):
    """Source bytes are not a supported image."""


class PublishError(AssetError):
    """The destination store rejected the encoded asset."""


class ReconciliationError(PipelineError):
    """Writing results back to the record store failed."""


class NotConfigured(ReconciliationError):
    """No record store credentials are available."""


class SearchError(ReconciliationError):
    """The record store was unreachable or rejected a query."""


class NoMatch(ReconciliationError):
    """No external record matched any of the lookup keys."""


class UpdateError(ReconciliationError):
    """A matched record could not be patched."""
