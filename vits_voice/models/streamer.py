"""Incremental emission of one decoded utterance as bounded-size chunks."""

from __future__ import annotations

import enum
import time
import weakref
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from vits_voice.errors import OperationError
from vits_voice.logging_utils import get_logger
from vits_voice.synthesis.audio import WaveSamples

if TYPE_CHECKING:
    from vits_voice.models.vits import EncoderOutput

logger = get_logger(__name__)


class StreamState(enum.Enum):
    READY = "ready"
    EMITTING = "emitting"
    EXHAUSTED = "exhausted"


def check_chunk_geometry(chunk_size: int, chunk_padding: int) -> None:
    if chunk_size <= 0:
        raise OperationError(f"chunk_size must be positive, got {chunk_size}.")
    if chunk_padding < 0:
        raise OperationError(f"chunk_padding must not be negative, got {chunk_padding}.")


class ChunkStreamer:
    """
    Finite, non-restartable iterator of WaveSamples chunks.

    The first pull runs the decoder once over the whole encoder output and
    renders it; later pulls slice the rendered samples. Chunk ``i`` covers
    ``[i * chunk_size, (i + 1) * chunk_size)`` and is prefixed with up to
    ``chunk_padding`` samples of the previous chunk.

    The streamer owns the EncoderOutput. Its buffers are released exactly once:
    after decoding, on ``close()``, on context exit, or when the streamer is
    garbage collected.
    """

    def __init__(
        self,
        encoder_output: "EncoderOutput",
        decode: Callable[["EncoderOutput"], np.ndarray],
        *,
        chunk_size: int,
        chunk_padding: int,
        sample_rate: int,
    ) -> None:
        try:
            check_chunk_geometry(chunk_size, chunk_padding)
        except OperationError:
            encoder_output.release()
            raise
        self.chunk_size = chunk_size
        self.chunk_padding = chunk_padding
        self.sample_rate = sample_rate
        self._decode = decode
        self._encoder_output: Optional["EncoderOutput"] = encoder_output
        self._release = weakref.finalize(self, encoder_output.release)
        self._samples: Optional[np.ndarray] = None
        self._total: Optional[int] = None
        self._cursor = 0
        self._inference_ms: Optional[float] = None
        self.state = StreamState.READY

    @property
    def exhausted(self) -> bool:
        return self.state is StreamState.EXHAUSTED

    @property
    def total_samples(self) -> Optional[int]:
        """Length of the decoded utterance, known after the first pull."""
        return self._total

    def __iter__(self) -> "ChunkStreamer":
        return self

    def __next__(self) -> WaveSamples:
        if self.state is StreamState.EXHAUSTED:
            raise StopIteration
        if self.state is StreamState.READY:
            self._decode_all()

        total = self._total
        if self._cursor >= total:
            self.close()
            raise StopIteration

        start = max(0, self._cursor - self.chunk_padding)
        end = min(self._cursor + self.chunk_size, total)
        chunk = WaveSamples(
            samples=self._samples[start:end].copy(),
            sample_rate=self.sample_rate,
            inference_ms=self._inference_ms if self._cursor == 0 else None,
        )
        self._cursor = end
        if self._cursor >= total:
            self.close()
        return chunk

    def _decode_all(self) -> None:
        timer = time.monotonic()
        try:
            self._samples = self._decode(self._encoder_output)
        except Exception:
            self.close()
            raise
        self._release()
        self._encoder_output = None
        self._inference_ms = (time.monotonic() - timer) * 1000.0
        self._total = int(self._samples.shape[0])
        self.state = StreamState.EMITTING
        logger.debug(
            "stream_decoded samples=%d chunk_size=%d chunk_padding=%d elapsed_ms=%.2f",
            self._total,
            self.chunk_size,
            self.chunk_padding,
            self._inference_ms,
        )

    def close(self) -> None:
        """Stop the stream and release the encoder buffers if still held."""
        self._release()
        self._encoder_output = None
        self._samples = None
        self.state = StreamState.EXHAUSTED

    def __enter__(self) -> "ChunkStreamer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
