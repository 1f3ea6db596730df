"""
Tests for the espeak-ng phonemizer boundary and Arabic diacritization.
"""

from __future__ import annotations

import threading
import time
import unittest

import pytest

from vits_voice.errors import OperationError, PhonemizationError
from vits_voice.phonemizer import espeak
from vits_voice.phonemizer.espeak import EspeakPhonemizer


class _FakeEspeakBackend:
    instances = []

    def __init__(self, language, preserve_punctuation=False, with_stress=False):
        self.language = language
        self.preserve_punctuation = preserve_punctuation
        self.with_stress = with_stress
        self.calls = []
        _FakeEspeakBackend.instances.append(self)

    def phonemize(self, texts, strip=False):
        self.calls.append((list(texts), strip))
        if texts[0] == "explode":
            raise RuntimeError("espeak crashed")
        return [f"<{self.language}>{texts[0]}"]


class _FailingEspeakBackend:
    def __init__(self, *args, **kwargs):
        raise RuntimeError("espeak not installed")


class _Diacritizer:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def diacritize(self, text):
        self.calls.append(text)
        if self.error:
            raise ValueError(self.error)
        return text + "َ"


@pytest.fixture(autouse=True)
def fake_backend(monkeypatch):
    _FakeEspeakBackend.instances = []
    monkeypatch.setattr(espeak, "EspeakBackend", _FakeEspeakBackend)
    return _FakeEspeakBackend


def test_phonemize_uses_voice_and_stress(fake_backend):
    phonemizer = EspeakPhonemizer("en-us")
    assert phonemizer.phonemize("hello world") == "<en-us>hello world"
    backend = fake_backend.instances[0]
    assert backend.language == "en-us"
    assert backend.preserve_punctuation is True
    assert backend.with_stress is True
    assert backend.calls == [(["hello world"], True)]


def test_backend_is_created_once(fake_backend):
    phonemizer = EspeakPhonemizer("de")
    phonemizer.phonemize("eins")
    phonemizer.phonemize("zwei")
    assert len(fake_backend.instances) == 1


def test_phonemize_failure_is_phonemization_error():
    with pytest.raises(PhonemizationError, match="espeak crashed"):
        EspeakPhonemizer("en-us").phonemize("explode")


def test_backend_init_failure_is_phonemization_error(monkeypatch):
    monkeypatch.setattr(espeak, "EspeakBackend", _FailingEspeakBackend)
    with pytest.raises(PhonemizationError, match="espeak not installed"):
        EspeakPhonemizer("xx").phonemize("text")


class ArabicDiacritizationTests(unittest.TestCase):
    def test_arabic_text_is_diacritized_before_phonemization(self) -> None:
        diacritizer = _Diacritizer()
        phonemizer = EspeakPhonemizer("ar", diacritizer)
        result = phonemizer.phonemize("كتب")
        self.assertEqual(diacritizer.calls, ["كتب"])
        self.assertEqual(result, "<ar>كتبَ")

    def test_other_voices_skip_diacritization(self) -> None:
        diacritizer = _Diacritizer()
        EspeakPhonemizer("fa", diacritizer).phonemize("salam")
        self.assertEqual(diacritizer.calls, [])

    def test_missing_diacritizer(self) -> None:
        with self.assertRaises(OperationError):
            EspeakPhonemizer("ar").phonemize("كتب")

    def test_diacritizer_failure(self) -> None:
        phonemizer = EspeakPhonemizer("ar", _Diacritizer(error="model unavailable"))
        with self.assertRaises(OperationError) as ctx:
            phonemizer.phonemize("كتب")
        self.assertIn("Failed to diacritize text.", str(ctx.exception))
        self.assertIn("model unavailable", str(ctx.exception))


def test_espeak_calls_never_overlap(monkeypatch):
    state = {"active": 0, "peak": 0}
    guard = threading.Lock()

    class _SlowBackend(_FakeEspeakBackend):
        def phonemize(self, texts, strip=False):
            with guard:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.005)
            with guard:
                state["active"] -= 1
            return super().phonemize(texts, strip)

    monkeypatch.setattr(espeak, "EspeakBackend", _SlowBackend)
    phonemizers = [EspeakPhonemizer("en-us"), EspeakPhonemizer("de")]

    def worker(index):
        for _ in range(5):
            phonemizers[index % 2].phonemize(f"text {index}")

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert state["peak"] == 1
