"""
VITS voice inference on ONNX Runtime.

This module exposes the public APIs for loading a voice and synthesizing speech.
"""

from vits_voice.config import ModelDescriptor, Settings, load_model_config
from vits_voice.errors import (
    ConfigParseError,
    InferenceError,
    OperationError,
    PhonemizationError,
    ResourceNotFoundError,
    VoiceError,
)
from vits_voice.models import (
    ChunkStreamer,
    EncoderOutput,
    VitsModel,
    VitsStreamingModel,
    VitsVoice,
    from_config_path,
)
from vits_voice.phonemizer import EspeakPhonemizer, PhonemeIdMapper
from vits_voice.synthesis import (
    SynthesisConfig,
    SynthesisParameters,
    WaveInfo,
    WaveSamples,
    render_to_pcm16,
    save_audio,
)
from vits_voice.voices import get_voice_info, list_voices

__all__ = [
    # Loading
    "from_config_path",
    "load_model_config",
    "ModelDescriptor",
    "Settings",
    # Voices
    "VitsVoice",
    "VitsModel",
    "VitsStreamingModel",
    "EncoderOutput",
    "ChunkStreamer",
    # Inputs and tunables
    "EspeakPhonemizer",
    "PhonemeIdMapper",
    "SynthesisConfig",
    "SynthesisParameters",
    # Output
    "WaveInfo",
    "WaveSamples",
    "render_to_pcm16",
    "save_audio",
    # Catalogue
    "list_voices",
    "get_voice_info",
    # Errors
    "VoiceError",
    "ResourceNotFoundError",
    "ConfigParseError",
    "InferenceError",
    "OperationError",
    "PhonemizationError",
]
