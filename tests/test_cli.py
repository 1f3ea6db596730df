import json

import numpy as np
import pytest
import soundfile as sf

from vits_voice import cli
from vits_voice.models.vits import VitsModel, VitsStreamingModel

from helpers import (
    SAMPLES_PER_ID,
    FakePhonemizer,
    decoder_backend,
    descriptor_dict,
    encoder_backend,
    make_descriptor,
    monolithic_backend,
    multi_speaker_descriptor,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("VITS_VOICE_SETTINGS", "VITS_VOICE_CHUNK_SIZE", "VITS_VOICE_CHUNK_PADDING", "VITS_VOICE_DEVICE"):
        monkeypatch.delenv(name, raising=False)


def _patch_loader(monkeypatch, voice):
    captured = {}

    def fake_from_config_path(config_path, *, settings=None, diacritizer=None):
        captured["config_path"] = config_path
        captured["settings"] = settings
        return voice

    monkeypatch.setattr(cli, "from_config_path", fake_from_config_path)
    return captured


def test_synthesizes_phonemes_to_wav(monkeypatch, tmp_path, capsys):
    backend = monolithic_backend()
    voice = VitsModel(multi_speaker_descriptor(), backend, phonemizer=FakePhonemizer(), name="test")
    captured = _patch_loader(monkeypatch, voice)
    output = tmp_path / "out.wav"

    code = cli.main(
        ["voice.onnx.json", str(output), "--phonemes", "abc", "--speaker", "bob", "--length-scale", "1.2", "--device", "cuda"]
    )

    assert code == 0
    assert captured["settings"].device == "cuda"
    assert backend.last_inputs["sid"].tolist() == [1]
    assert backend.last_inputs["scales"][1] == pytest.approx(1.2)
    result = json.loads(capsys.readouterr().out)
    assert result["sample_rate"] == 22050
    data, sample_rate = sf.read(output, dtype="int16")
    assert sample_rate == 22050
    assert len(data) == 9 * SAMPLES_PER_ID


def test_text_is_phonemized(monkeypatch, tmp_path):
    phonemizer = FakePhonemizer({"hi": "ab"})
    voice = VitsModel(make_descriptor(), monolithic_backend(), phonemizer=phonemizer)
    _patch_loader(monkeypatch, voice)
    assert cli.main(["voice.onnx.json", str(tmp_path / "out.wav"), "--text", "hi"]) == 0
    assert phonemizer.calls == ["hi"]


def test_stream_output_matches_one_shot(monkeypatch, tmp_path):
    voice = VitsStreamingModel(
        make_descriptor(streaming=True),
        encoder_backend(),
        decoder_backend(),
        phonemizer=FakePhonemizer(),
    )
    _patch_loader(monkeypatch, voice)
    streamed = tmp_path / "streamed.wav"
    one_shot = tmp_path / "one_shot.wav"

    assert cli.main(["v.onnx.json", str(streamed), "--phonemes", "abc", "--stream", "--chunk-size", "500", "--chunk-padding", "50"]) == 0
    assert cli.main(["v.onnx.json", str(one_shot), "--phonemes", "abc"]) == 0

    streamed_data, _ = sf.read(streamed, dtype="int16")
    one_shot_data, _ = sf.read(one_shot, dtype="int16")
    np.testing.assert_array_equal(streamed_data, one_shot_data)


def test_stream_on_monolithic_voice_fails(monkeypatch, tmp_path, capsys):
    voice = VitsModel(make_descriptor(), monolithic_backend(), phonemizer=FakePhonemizer())
    _patch_loader(monkeypatch, voice)
    code = cli.main(["voice.onnx.json", str(tmp_path / "out.wav"), "--phonemes", "a", "--stream"])
    assert code == 1
    assert "does not support streaming" in capsys.readouterr().err
    assert not (tmp_path / "out.wav").exists()


def test_unknown_speaker_fails(monkeypatch, tmp_path, capsys):
    voice = VitsModel(multi_speaker_descriptor(), monolithic_backend(), phonemizer=FakePhonemizer())
    _patch_loader(monkeypatch, voice)
    code = cli.main(["voice.onnx.json", str(tmp_path / "out.wav"), "--phonemes", "a", "--speaker", "zoe"])
    assert code == 1
    assert "Invalid speaker name" in capsys.readouterr().err


def test_output_required_without_info(capsys):
    assert cli.main(["voice.onnx.json"]) == 1
    assert "output path is required" in capsys.readouterr().err


def test_info_prints_voice_details(tmp_path, capsys):
    config_path = tmp_path / "voice.onnx.json"
    config_path.write_text(json.dumps(descriptor_dict()), encoding="utf-8")
    assert cli.main([str(config_path), "--info"]) == 0
    info = json.loads(capsys.readouterr().out)
    assert info["name"] == "en_US-test-medium"
    assert info["model_files"] == {"voice.onnx": False}


def test_missing_config_reports_error(tmp_path, capsys):
    assert cli.main([str(tmp_path / "missing.onnx.json"), "--info"]) == 1
    assert "Model config not found" in capsys.readouterr().err
