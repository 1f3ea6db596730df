"""
Audio rendering and output.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import numpy as np
import soundfile as sf

from vits_voice.errors import OperationError
from vits_voice.logging_utils import get_logger, summarize_payload

logger = get_logger(__name__)

MAX_WAV_VALUE = 32767.0
MIN_PEAK = 0.01


@dataclass(frozen=True)
class WaveInfo:
    """Format facts a caller needs to write a PCM container."""
    sample_rate: int
    num_channels: int = 1
    sample_width: int = 2


@dataclass(frozen=True)
class WaveSamples:
    """16-bit mono samples from one synthesis call or one streamed chunk."""
    samples: np.ndarray
    sample_rate: int
    inference_ms: Optional[float] = None

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_seconds(self) -> float:
        if not self.sample_rate:
            return 0.0
        return len(self) / self.sample_rate

    def to_bytes(self) -> bytes:
        """Little-endian PCM16 bytes."""
        return self.samples.astype("<i2").tobytes()


def render_to_pcm16(audio: Any) -> np.ndarray:
    """
    Peak-normalize float model output into int16 samples.

    The loudest sample is scaled to full range; the peak is floored at 0.01
    so near-silent output is not blown up. Values are clipped to the int16
    range and truncated toward zero.

    Args:
        audio: Float waveform of any shape (flattened)

    Returns:
        1-D int16 array (empty for empty input)
    """
    try:
        audio = np.asarray(audio, dtype=np.float32).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise OperationError(f"Invalid output from model inference. {exc}") from exc
    if audio.size == 0:
        return np.zeros(0, dtype=np.int16)

    min_value = float(audio.min())
    max_value = float(audio.max())
    if not (np.isfinite(min_value) and np.isfinite(max_value)):
        raise OperationError("Invalid output from model inference: non-finite samples.")

    abs_max = max(abs(min_value), abs(max_value))
    scale = np.float32(MAX_WAV_VALUE / max(abs_max, MIN_PEAK))
    scaled = np.clip(audio * scale, np.iinfo(np.int16).min, np.iinfo(np.int16).max)
    return scaled.astype(np.int16)


def save_audio(
    wave: Union[WaveSamples, Iterable[WaveSamples]],
    output_path: Union[str, Path],
    *,
    format: str = "wav",
) -> Dict[str, Any]:
    """
    Write synthesized audio to a file.

    Args:
        wave: One WaveSamples, or an iterable of chunks written back to back
        output_path: File path to save
        format: Audio format - "wav" or "mp3" (default: "wav")

    Returns:
        Dict with:
        - path: Absolute path to saved file
        - duration_seconds: Audio duration
        - sample_rate: Sample rate used
    """
    if isinstance(wave, WaveSamples):
        chunks = [wave]
    else:
        chunks = list(wave)
    if not chunks:
        raise OperationError("No audio to save.")
    sample_rate = chunks[0].sample_rate
    samples = np.concatenate([chunk.samples for chunk in chunks]).astype(np.int16)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "save_audio input=%s",
            summarize_payload(
                {
                    "samples": samples,
                    "chunks": len(chunks),
                    "output_path": str(output_path),
                    "sample_rate": sample_rate,
                    "format": format,
                }
            ),
        )
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if format == "mp3":
        if not str(output_path).endswith(".mp3"):
            output_path = output_path.with_suffix(".mp3")
        sf.write(str(output_path), samples, sample_rate)
    else:
        if not str(output_path).endswith(".wav"):
            output_path = output_path.with_suffix(".wav")
        sf.write(str(output_path), samples, sample_rate, subtype="PCM_16")

    result = {
        "path": str(output_path.resolve()),
        "duration_seconds": len(samples) / sample_rate,
        "sample_rate": sample_rate,
    }
    logger.info("audio_saved path=%s duration_s=%.2f", result["path"], result["duration_seconds"])
    return result
