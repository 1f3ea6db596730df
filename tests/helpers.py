"""Fake backends and descriptor builders shared by the voice tests."""

from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from vits_voice.backend.tensors import TensorBuffers
from vits_voice.config import ModelDescriptor
from vits_voice.errors import InferenceError

VOCAB = {
    "_": [0],
    "^": [1],
    "$": [2],
    "a": [3],
    "b": [4],
    "c": [5],
    " ": [6],
    "ə": [7, 70],
}

SAMPLES_PER_ID = 256
FRAMES_PER_ID = 2
SAMPLES_PER_FRAME = SAMPLES_PER_ID // FRAMES_PER_ID

BASE_DESCRIPTOR: Dict[str, Any] = {
    "key": "en_US-test-medium",
    "audio": {"sample_rate": 22050, "quality": "medium"},
    "espeak": {"voice": "en-us"},
    "language": {"code": "en_US", "family": "en", "region": "US"},
    "inference": {"noise_scale": 0.667, "length_scale": 1.0, "noise_w": 0.8},
    "num_speakers": 1,
    "speaker_id_map": {},
    "phoneme_id_map": VOCAB,
    "num_symbols": 256,
}


def descriptor_dict(**overrides: Any) -> Dict[str, Any]:
    data = copy.deepcopy(BASE_DESCRIPTOR)
    data.update(overrides)
    return data


def make_descriptor(**overrides: Any) -> ModelDescriptor:
    return ModelDescriptor.from_dict(descriptor_dict(**overrides))


def multi_speaker_descriptor(**overrides: Any) -> ModelDescriptor:
    overrides.setdefault("num_speakers", 3)
    overrides.setdefault("speaker_id_map", {"alice": 0, "bob": 1, "carol": 2})
    return make_descriptor(**overrides)


def waveform(num_samples: int) -> np.ndarray:
    """Deterministic float waveform shaped like a VITS output (1, 1, T)."""
    t = np.linspace(0.0, 40.0, num_samples, dtype=np.float32)
    return (0.5 * np.sin(t) + 0.1 * np.cos(3 * t)).astype(np.float32)[None, None, :]


class FakeBackend:
    """InferenceBackend stand-in that records calls and counts buffer releases."""

    def __init__(
        self,
        input_names: Sequence[str],
        output_names: Sequence[str],
        produce: Callable[[Mapping[str, np.ndarray]], List[np.ndarray]],
        *,
        error: Optional[str] = None,
    ) -> None:
        self.input_names = list(input_names)
        self.output_names = list(output_names)
        self._produce = produce
        self.error = error
        self.calls: List[Dict[str, np.ndarray]] = []
        self.release_counts: List[int] = []
        self._lock = threading.Lock()

    def run(self, inputs: Mapping[str, np.ndarray]) -> TensorBuffers:
        self.calls.append(dict(inputs))
        if self.error:
            raise InferenceError(f"Failed to run model inference. Error: {self.error}")
        values = self._produce(inputs)
        with self._lock:
            index = len(self.release_counts)
            self.release_counts.append(0)

        def on_release() -> None:
            with self._lock:
                self.release_counts[index] += 1

        return TensorBuffers(self.output_names[: len(values)], values, on_release=on_release)

    @property
    def last_inputs(self) -> Dict[str, np.ndarray]:
        return self.calls[-1]


def monolithic_backend(**kwargs: Any) -> FakeBackend:
    def produce(inputs: Mapping[str, np.ndarray]) -> List[np.ndarray]:
        return [waveform(inputs["input"].shape[1] * SAMPLES_PER_ID)]

    return FakeBackend(
        ["input", "input_lengths", "scales", "sid"],
        ["output"],
        produce,
        **kwargs,
    )


def encoder_backend(*, with_g: bool = False, num_outputs: Optional[int] = None, **kwargs: Any) -> FakeBackend:
    def produce(inputs: Mapping[str, np.ndarray]) -> List[np.ndarray]:
        frames = inputs["input"].shape[1] * FRAMES_PER_ID
        outputs = [
            np.zeros((1, 4, frames), dtype=np.float32),
            np.ones((1, 1, frames), dtype=np.float32),
        ]
        if with_g:
            outputs.append(np.full((1, 8, 1), 0.5, dtype=np.float32))
        if num_outputs is not None:
            outputs = (outputs * 2)[:num_outputs]
        return outputs

    return FakeBackend(
        ["input", "input_lengths", "scales", "sid"],
        ["z", "y_mask", "g", "extra"],
        produce,
        **kwargs,
    )


def decoder_backend(**kwargs: Any) -> FakeBackend:
    def produce(inputs: Mapping[str, np.ndarray]) -> List[np.ndarray]:
        return [waveform(inputs["y_mask"].shape[2] * SAMPLES_PER_FRAME)]

    return FakeBackend(["z", "y_mask", "g"], ["output"], produce, **kwargs)


class FakePhonemizer:
    def __init__(self, mapping: Optional[Dict[str, str]] = None) -> None:
        self.mapping = mapping or {}
        self.calls: List[str] = []

    def phonemize(self, text: str) -> str:
        self.calls.append(text)
        return self.mapping.get(text, text)
