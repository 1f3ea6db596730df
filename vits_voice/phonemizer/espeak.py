"""Boundary to the external espeak-ng phonemizer and the Arabic diacritizer."""

from __future__ import annotations

import threading
from typing import Optional, Protocol

from phonemizer.backend import EspeakBackend

from vits_voice.errors import OperationError, PhonemizationError
from vits_voice.logging_utils import get_logger

logger = get_logger(__name__)

ARABIC_VOICE = "ar"

# espeak-ng keeps the selected voice in process-global state, shared by every instance
_ESPEAK_LOCK = threading.Lock()


class Diacritizer(Protocol):
    """Restores vowel and gemination marks in unvocalized Arabic text."""

    def diacritize(self, text: str) -> str:
        ...


class EspeakPhonemizer:
    """Convert raw text to an IPA phoneme string with espeak-ng."""

    def __init__(self, voice: str, diacritizer: Optional[Diacritizer] = None) -> None:
        self.voice = voice
        self.diacritizer = diacritizer
        self._backend: Optional[EspeakBackend] = None

    def phonemize(self, text: str) -> str:
        if self.voice == ARABIC_VOICE:
            text = self.diacritize(text)
        with _ESPEAK_LOCK:
            backend = self._get_backend()
            try:
                phonemes = backend.phonemize([text], strip=True)
            except Exception as exc:
                raise PhonemizationError(
                    f"Failed to phonemize given text using espeak-ng. Error: {exc}"
                ) from exc
        result = " ".join(p for p in phonemes if p)
        logger.debug("phonemized voice=%s chars=%d phonemes=%d", self.voice, len(text), len(result))
        return result

    def diacritize(self, text: str) -> str:
        if self.diacritizer is None:
            raise OperationError(
                f"Voice `{self.voice}` requires a diacritizer but none was configured."
            )
        try:
            return self.diacritizer.diacritize(text)
        except Exception as exc:
            raise OperationError(f"Failed to diacritize text. {exc}") from exc

    def _get_backend(self) -> EspeakBackend:
        """Create the backend on first use; callers hold ``_ESPEAK_LOCK``."""
        if self._backend is None:
            try:
                self._backend = EspeakBackend(
                    language=self.voice,
                    preserve_punctuation=True,
                    with_stress=True,
                )
            except Exception as exc:
                raise PhonemizationError(
                    f"Failed to initialize espeak-ng for voice `{self.voice}`. Error: {exc}"
                ) from exc
        return self._backend
