"""Error kinds raised by voice loading and synthesis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(eq=False)
class VoiceError(Exception):
    """Base class for every error returned by this package."""

    message: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }

    def __str__(self) -> str:
        return self.message


class ResourceNotFoundError(VoiceError):
    """A referenced model or config file does not exist."""


class ConfigParseError(VoiceError):
    """The model descriptor is malformed or misses required fields."""


class InferenceError(VoiceError):
    """The inference backend rejected the inputs or failed internally."""


class OperationError(VoiceError):
    """A caller-side precondition was violated."""


class PhonemizationError(VoiceError):
    """The external phonemizer failed."""
