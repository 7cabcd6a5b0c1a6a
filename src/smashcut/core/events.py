"""Pipeline event system for streaming progress to external consumers.

Provides a lightweight callback mechanism that the transforms emit events through.
Consumers (CLI progress bars, a UI layer) register a callback to receive
progress updates without modifying pipeline logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable


@dataclass
class PipelineEvent:
    """A progress event emitted during a transform.

    Attributes:
        stage: Pipeline stage name (segment, captions, audio, finalize, done).
        progress: Overall progress of the transform, 0.0 to 1.0.
        message: Human-readable status message.
        data: Optional payload (e.g. the output path once done).
    """

    stage: str
    progress: float
    message: str
    data: dict | None = field(default=None)


EventCallback = Callable[[PipelineEvent], None]
