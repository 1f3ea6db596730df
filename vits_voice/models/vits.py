"""
VITS voices: single-graph and split encoder/decoder variants.
"""

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from vits_voice.backend.session import InferenceBackend, OnnxSession
from vits_voice.backend.tensors import TensorBuffers
from vits_voice.config import ModelDescriptor, Settings, load_model_config, model_files
from vits_voice.errors import OperationError
from vits_voice.logging_utils import get_logger, summarize_payload
from vits_voice.models.streamer import ChunkStreamer, check_chunk_geometry
from vits_voice.phonemizer.espeak import Diacritizer, EspeakPhonemizer
from vits_voice.phonemizer.phoneme_ids import PhonemeIdMapper
from vits_voice.synthesis.audio import WaveInfo, WaveSamples, render_to_pcm16
from vits_voice.synthesis.parameters import SynthesisConfig, SynthesisParameters

logger = get_logger(__name__)


class EncoderOutput:
    """
    Latent ``z``, mask ``y_mask`` and optional speaker conditioning ``g``.

    Owns the encoder's output buffers until ``release()``; ``g`` is an empty
    array when the encoder produced none.
    """

    def __init__(self, buffers: TensorBuffers) -> None:
        if not 2 <= len(buffers) <= 3:
            count = len(buffers)
            buffers.release()
            raise OperationError(
                f"Encoder returned {count} output tensors; expected z, y_mask and optionally g."
            )
        self._buffers = buffers
        self.z = buffers[0]
        self.y_mask = buffers[1]
        self.g = buffers[2] if len(buffers) == 3 else np.zeros(0, dtype=np.float32)

    @property
    def released(self) -> bool:
        return self._buffers.released

    def decoder_inputs(self) -> Dict[str, np.ndarray]:
        if self.released:
            raise OperationError("Encoder output was already released.")
        inputs = {"z": self.z, "y_mask": self.y_mask}
        if self.g.size:
            inputs["g"] = self.g
        return inputs

    def release(self) -> None:
        self._buffers.release()
        self.z = self.y_mask = self.g = None

    def __enter__(self) -> "EncoderOutput":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class VitsVoice(ABC):
    """
    Synthesis contract shared by both VITS variants.

    Streaming support is an optional capability: check ``supports_streaming``
    before calling ``stream_synthesis``.
    """
    supports_streaming = False

    def __init__(
        self,
        descriptor: ModelDescriptor,
        *,
        phonemizer: Optional[EspeakPhonemizer] = None,
        diacritizer: Optional[Diacritizer] = None,
        name: Optional[str] = None,
    ) -> None:
        self.descriptor = descriptor
        self.name = name or descriptor.key or "voice"
        self.parameters = SynthesisParameters(
            SynthesisConfig.from_inference(descriptor.inference),
            num_speakers=descriptor.num_speakers,
            speaker_id_map=descriptor.speaker_id_map,
            speaker_map=descriptor.speaker_map,
        )
        self.id_mapper = PhonemeIdMapper(descriptor.phoneme_id_map)
        self.phonemizer = phonemizer or EspeakPhonemizer(descriptor.espeak.voice, diacritizer)

    @property
    def language(self) -> Optional[str]:
        return self.descriptor.language_code

    @property
    def quality(self) -> Optional[str]:
        return self.descriptor.audio.quality

    @property
    def speakers(self) -> Dict[int, str]:
        return dict(self.descriptor.speaker_map)

    def wave_info(self) -> WaveInfo:
        return WaveInfo(sample_rate=self.descriptor.sample_rate)

    def get_speaker(self) -> str:
        return self.parameters.get_speaker()

    def set_speaker(self, name: str) -> None:
        self.parameters.set_speaker(name)

    def get_noise_scale(self) -> float:
        return self.parameters.get_noise_scale()

    def set_noise_scale(self, value: float) -> None:
        self.parameters.set_noise_scale(value)

    def get_length_scale(self) -> float:
        return self.parameters.get_length_scale()

    def set_length_scale(self, value: float) -> None:
        self.parameters.set_length_scale(value)

    def get_noise_w(self) -> float:
        return self.parameters.get_noise_w()

    def set_noise_w(self, value: float) -> None:
        self.parameters.set_noise_w(value)

    def phonemize(self, text: str) -> str:
        return self.phonemizer.phonemize(text)

    @abstractmethod
    def synthesize(self, phonemes: str) -> WaveSamples:
        """Render one phoneme string to PCM16 samples."""

    def synthesize_batch(self, phoneme_batches: Sequence[str]) -> List[WaveSamples]:
        """Synthesize each phoneme string in order; results match input order."""
        return [self.synthesize(phonemes) for phonemes in phoneme_batches]

    def synthesize_text(self, text: str) -> WaveSamples:
        return self.synthesize(self.phonemize(text))

    def _build_inputs(self, ids: Sequence[int], config: SynthesisConfig) -> Dict[str, np.ndarray]:
        inputs = {
            "input": np.array(ids, dtype=np.int64)[None, :],
            "input_lengths": np.array([len(ids)], dtype=np.int64),
            "scales": np.array(
                [config.noise_scale, config.length_scale, config.noise_w],
                dtype=np.float32,
            ),
        }
        if self.descriptor.num_speakers > 1:
            inputs["sid"] = np.array([config.speaker_id], dtype=np.int64)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("model_inputs voice=%s inputs=%s", self.name, summarize_payload(inputs))
        return inputs


class VitsModel(VitsVoice):
    """Single-graph VITS voice: one backend call per utterance."""

    def __init__(self, descriptor: ModelDescriptor, session: InferenceBackend, **kwargs) -> None:
        super().__init__(descriptor, **kwargs)
        self.session = session

    def synthesize(self, phonemes: str) -> WaveSamples:
        ids = self.id_mapper.map_to_ids(phonemes)
        inputs = self._build_inputs(ids, self.parameters.snapshot())
        timer = time.monotonic()
        with self.session.run(inputs) as outputs:
            inference_ms = (time.monotonic() - timer) * 1000.0
            samples = render_to_pcm16(outputs.first())
        logger.info(
            "synthesized voice=%s ids=%d samples=%d inference_ms=%.2f",
            self.name,
            len(ids),
            samples.shape[0],
            inference_ms,
        )
        return WaveSamples(samples, self.descriptor.sample_rate, inference_ms)


class VitsStreamingModel(VitsVoice):
    """
    Encoder/decoder VITS voice.

    The encoder runs once per utterance; its output can feed the decoder
    directly (``synthesize``) or through a ChunkStreamer
    (``stream_synthesis``) so playback can start before the caller has
    consumed the whole utterance.
    """
    supports_streaming = True

    def __init__(
        self,
        descriptor: ModelDescriptor,
        encoder: InferenceBackend,
        decoder: InferenceBackend,
        *,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> None:
        super().__init__(descriptor, **kwargs)
        self.encoder = encoder
        self.decoder = decoder
        self.settings = settings or Settings()

    def encode(self, ids: Sequence[int]) -> EncoderOutput:
        inputs = self._build_inputs(ids, self.parameters.snapshot())
        return EncoderOutput(self.encoder.run(inputs))

    def decode(self, encoder_output: EncoderOutput) -> np.ndarray:
        """Run the decoder once; the encoder output stays owned by the caller."""
        with self.decoder.run(encoder_output.decoder_inputs()) as outputs:
            return render_to_pcm16(outputs.first())

    def synthesize(self, phonemes: str) -> WaveSamples:
        ids = self.id_mapper.map_to_ids(phonemes)
        timer = time.monotonic()
        with self.encode(ids) as encoder_output:
            samples = self.decode(encoder_output)
        inference_ms = (time.monotonic() - timer) * 1000.0
        logger.info(
            "synthesized voice=%s ids=%d samples=%d inference_ms=%.2f",
            self.name,
            len(ids),
            samples.shape[0],
            inference_ms,
        )
        return WaveSamples(samples, self.descriptor.sample_rate, inference_ms)

    def stream_synthesis(
        self,
        phonemes: str,
        chunk_size: Optional[int] = None,
        chunk_padding: Optional[int] = None,
    ) -> ChunkStreamer:
        """Encode once and return a streamer that owns the encoder output."""
        chunk_size = self.settings.chunk_size if chunk_size is None else chunk_size
        chunk_padding = self.settings.chunk_padding if chunk_padding is None else chunk_padding
        check_chunk_geometry(chunk_size, chunk_padding)
        encoder_output = self.encode(self.id_mapper.map_to_ids(phonemes))
        logger.debug(
            "stream_started voice=%s chunk_size=%d chunk_padding=%d",
            self.name,
            chunk_size,
            chunk_padding,
        )
        return ChunkStreamer(
            encoder_output,
            self.decode,
            chunk_size=chunk_size,
            chunk_padding=chunk_padding,
            sample_rate=self.descriptor.sample_rate,
        )


def from_config_path(
    config_path: Union[str, Path],
    *,
    settings: Optional[Settings] = None,
    diacritizer: Optional[Diacritizer] = None,
) -> VitsVoice:
    """
    Load a voice from its ``<voice>.onnx.json`` descriptor.

    Streaming voices load ``encoder.onnx`` and ``decoder.onnx`` next to the
    descriptor; other voices load the descriptor path minus ``.json``.
    """
    config_path = Path(config_path)
    descriptor = load_model_config(config_path)
    settings = settings or Settings.from_env()
    name = descriptor.key or config_path.name.split(".")[0]
    files = model_files(config_path, descriptor)

    if descriptor.streaming:
        voice: VitsVoice = VitsStreamingModel(
            descriptor,
            OnnxSession(files[0], settings),
            OnnxSession(files[1], settings),
            settings=settings,
            diacritizer=diacritizer,
            name=name,
        )
    else:
        voice = VitsModel(
            descriptor,
            OnnxSession(files[0], settings),
            diacritizer=diacritizer,
            name=name,
        )
    logger.info(
        "voice_loaded voice=%s streaming=%s speakers=%d sample_rate=%d device=%s",
        name,
        descriptor.streaming,
        descriptor.num_speakers,
        descriptor.sample_rate,
        settings.device,
    )
    return voice
