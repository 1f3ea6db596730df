from vits_voice.synthesis.audio import WaveInfo, WaveSamples, render_to_pcm16, save_audio
from vits_voice.synthesis.parameters import ReadWriteLock, SynthesisConfig, SynthesisParameters

__all__ = [
    "ReadWriteLock",
    "SynthesisConfig",
    "SynthesisParameters",
    "WaveInfo",
    "WaveSamples",
    "render_to_pcm16",
    "save_audio",
]
