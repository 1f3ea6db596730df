"""Mutable synthesis tunables shared by concurrent synthesis calls."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Iterator, Mapping, Optional, Tuple
import threading

from vits_voice.config import InferenceConfig
from vits_voice.errors import OperationError

DEFAULT_SPEAKER_NAME = "Default"


class ReadWriteLock:
    """
    Multiple-reader/single-writer lock.

    A waiting writer blocks new readers, so updates are not starved by a
    steady stream of synthesis calls. Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class SynthesisConfig:
    """Snapshot of the tunables one inference call runs with."""
    noise_scale: float
    length_scale: float
    noise_w: float
    speaker: Optional[Tuple[str, int]] = None

    @property
    def speaker_id(self) -> int:
        return self.speaker[1] if self.speaker else 0

    @classmethod
    def from_inference(cls, inference: InferenceConfig) -> "SynthesisConfig":
        return cls(
            noise_scale=inference.noise_scale,
            length_scale=inference.length_scale,
            noise_w=inference.noise_w,
        )


class SynthesisParameters:
    """Lock-guarded holder of the current SynthesisConfig for one voice."""

    def __init__(
        self,
        defaults: SynthesisConfig,
        *,
        num_speakers: int = 0,
        speaker_id_map: Optional[Mapping[str, int]] = None,
        speaker_map: Optional[Mapping[int, str]] = None,
    ) -> None:
        self._defaults = defaults
        self._config = defaults
        self._num_speakers = num_speakers
        self._speaker_id_map = speaker_id_map or {}
        self._speaker_map = speaker_map or {}
        self._lock = ReadWriteLock()

    def snapshot(self) -> SynthesisConfig:
        with self._lock.read():
            return self._config

    def reset(self) -> None:
        with self._lock.write():
            self._config = self._defaults

    def _update(self, **changes) -> None:
        with self._lock.write():
            self._config = replace(self._config, **changes)

    def get_noise_scale(self) -> float:
        return self.snapshot().noise_scale

    def set_noise_scale(self, value: float) -> None:
        self._update(noise_scale=float(value))

    def get_length_scale(self) -> float:
        return self.snapshot().length_scale

    def set_length_scale(self, value: float) -> None:
        self._update(length_scale=float(value))

    def get_noise_w(self) -> float:
        return self.snapshot().noise_w

    def set_noise_w(self, value: float) -> None:
        self._update(noise_w=float(value))

    def get_speaker(self) -> str:
        if self._num_speakers == 0:
            raise OperationError("This model is a single speaker model.")
        speaker = self.snapshot().speaker
        if speaker is not None:
            return speaker[0]
        return self._speaker_map.get(0, DEFAULT_SPEAKER_NAME)

    def set_speaker(self, name: str) -> None:
        if self._num_speakers == 0:
            raise OperationError("This model is a single speaker model.")
        sid = self._speaker_id_map.get(name)
        if sid is None:
            raise OperationError(f"Invalid speaker name: `{name}`")
        self._update(speaker=(name, sid))
