"""Exceptions raised by the fingerspelling core."""


class FingerspellError(Exception):
    """Base class for every error the core raises."""


class NoHandDetected(FingerspellError):
    """The frame held no usable hand observation."""


class InsufficientDataError(FingerspellError):
    """Training was requested with too few samples."""


class MalformedMetadataError(FingerspellError):
    """Persisted metadata is missing fields or is corrupt."""


class MissingArtifactError(FingerspellError):
    """A model load was attempted without all three artifacts."""


class TrainingFailure(FingerspellError):
    """Fitting failed; the previously installed model is kept."""


class TrainingInProgressError(FingerspellError):
    """A training run is already in flight."""


class TrainingDiscarded(FingerspellError):
    """The data a run was fitted on was cleared or replaced before it finished."""
