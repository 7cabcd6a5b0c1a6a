"""Typed errors raised by the media transforms and their collaborators."""

from __future__ import annotations


class SmashcutError(Exception):
    """Base class for all Smashcut errors."""


class InvalidAsset(SmashcutError):
    """The input is missing, unreadable, or has no video track."""


class ReaderSetupFailed(SmashcutError):
    """The decoder for the input could not be started."""


class WriterSetupFailed(SmashcutError):
    """The encoder for the output could not be started."""


class InferenceFailure(SmashcutError):
    """Segmentation failed for a single frame. Never aborts a job."""


class WriterFinalizeFailed(SmashcutError):
    """The output container could not be finalized."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


WriterFailure = WriterFinalizeFailed


class ExportFailed(SmashcutError):
    """Caption burn-in export failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Export failed: {message}")
        self.message = message


class TransformCancelled(SmashcutError):
    """The transform was cancelled before it finished; no output was kept."""


class TransformBusy(SmashcutError):
    """Another transform is already writing to the same output path."""


class MissingAPIKey(SmashcutError):
    """No API key is configured for script refinement."""


class RefinementFailed(SmashcutError):
    """The script refinement call failed."""


class SectionNotFound(SmashcutError):
    """No stored project section matches the given identifiers."""
