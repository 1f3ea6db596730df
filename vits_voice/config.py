"""Voice descriptor parsing and runtime settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import json
import os

import yaml

from vits_voice.errors import ConfigParseError, OperationError, ResourceNotFoundError

ENCODER_FILENAME = "encoder.onnx"
DECODER_FILENAME = "decoder.onnx"


@dataclass(frozen=True)
class AudioConfig:
    sample_rate: int
    quality: Optional[str] = None


@dataclass(frozen=True)
class EspeakConfig:
    voice: str


@dataclass(frozen=True)
class InferenceConfig:
    noise_scale: float
    length_scale: float
    noise_w: float


@dataclass(frozen=True)
class LanguageInfo:
    code: str
    family: Optional[str] = None
    region: Optional[str] = None
    name_native: Optional[str] = None
    name_english: Optional[str] = None


@dataclass(frozen=True)
class ModelDescriptor:
    """
    Parsed voice metadata from a ``<voice>.onnx.json`` file.

    The speaker and phoneme tables are exposed as read-only mappings.
    ``speaker_map`` is the inverse of ``speaker_id_map``.
    """
    audio: AudioConfig
    espeak: EspeakConfig
    inference: InferenceConfig
    num_speakers: int
    speaker_id_map: Mapping[str, int]
    speaker_map: Mapping[int, str]
    phoneme_id_map: Mapping[str, Tuple[int, ...]]
    streaming: bool = False
    language: Optional[LanguageInfo] = None
    key: Optional[str] = None
    dataset: Optional[str] = None
    num_symbols: Optional[int] = None

    @property
    def sample_rate(self) -> int:
        return self.audio.sample_rate

    @property
    def language_code(self) -> Optional[str]:
        return self.language.code if self.language else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModelDescriptor":
        """Build a descriptor from decoded JSON, validating required fields."""
        if not isinstance(data, Mapping):
            raise ConfigParseError("Model config must be a JSON object.")

        audio = _require_section(data, "audio")
        espeak = _require_section(data, "espeak")
        inference = _require_section(data, "inference")

        speaker_id_map = _parse_speaker_id_map(data.get("speaker_id_map") or {})
        speaker_map = {sid: name for name, sid in speaker_id_map.items()}

        language = None
        if data.get("language") is not None:
            lang = data["language"]
            if not isinstance(lang, Mapping) or not isinstance(lang.get("code"), str):
                raise ConfigParseError("Field `language.code` must be a string.")
            language = LanguageInfo(
                code=lang["code"],
                family=_optional_str(lang, "family", "language.family"),
                region=_optional_str(lang, "region", "language.region"),
                name_native=_optional_str(lang, "name_native", "language.name_native"),
                name_english=_optional_str(lang, "name_english", "language.name_english"),
            )

        return cls(
            audio=AudioConfig(
                sample_rate=_require_int(audio, "sample_rate", "audio.sample_rate"),
                quality=_optional_str(audio, "quality", "audio.quality"),
            ),
            espeak=EspeakConfig(voice=_require_str(espeak, "voice", "espeak.voice")),
            inference=InferenceConfig(
                noise_scale=_require_float(inference, "noise_scale", "inference.noise_scale"),
                length_scale=_require_float(inference, "length_scale", "inference.length_scale"),
                noise_w=_require_float(inference, "noise_w", "inference.noise_w"),
            ),
            num_speakers=_require_int(data, "num_speakers", "num_speakers"),
            speaker_id_map=MappingProxyType(speaker_id_map),
            speaker_map=MappingProxyType(speaker_map),
            phoneme_id_map=MappingProxyType(_parse_phoneme_id_map(data.get("phoneme_id_map"))),
            streaming=_optional_bool(data, "streaming", "streaming"),
            language=language,
            key=_optional_str(data, "key", "key"),
            dataset=_optional_str(data, "dataset", "dataset"),
            num_symbols=_optional_int(data, "num_symbols", "num_symbols"),
        )


def _require_section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name)
    if not isinstance(section, Mapping):
        raise ConfigParseError(f"Missing or invalid `{name}` section in model config.")
    return section


def _require_int(section: Mapping[str, Any], key: str, label: str) -> int:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigParseError(f"Field `{label}` must be a non-negative integer, got {value!r}.")
    return value


def _require_float(section: Mapping[str, Any], key: str, label: str) -> float:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigParseError(f"Field `{label}` must be a number, got {value!r}.")
    return float(value)


def _require_str(section: Mapping[str, Any], key: str, label: str) -> str:
    value = section.get(key)
    if not isinstance(value, str):
        raise ConfigParseError(f"Field `{label}` must be a string, got {value!r}.")
    return value


def _optional_int(section: Mapping[str, Any], key: str, label: str) -> Optional[int]:
    if section.get(key) is None:
        return None
    return _require_int(section, key, label)


def _optional_str(section: Mapping[str, Any], key: str, label: str) -> Optional[str]:
    if section.get(key) is None:
        return None
    return _require_str(section, key, label)


def _optional_bool(section: Mapping[str, Any], key: str, label: str) -> bool:
    value = section.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigParseError(f"Field `{label}` must be a boolean, got {value!r}.")
    return value


def _parse_speaker_id_map(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, Mapping):
        raise ConfigParseError("Field `speaker_id_map` must be an object.")
    result: Dict[str, int] = {}
    seen: Dict[int, str] = {}
    for name, sid in raw.items():
        if isinstance(sid, bool) or not isinstance(sid, int):
            raise ConfigParseError(f"Speaker `{name}` has a non-integer id {sid!r}.")
        if sid in seen:
            raise ConfigParseError(
                f"Speakers `{seen[sid]}` and `{name}` share id {sid}; speaker ids must be unique."
            )
        seen[sid] = name
        result[str(name)] = sid
    return result


def _parse_phoneme_id_map(raw: Any) -> Dict[str, Tuple[int, ...]]:
    if not isinstance(raw, Mapping):
        raise ConfigParseError("Missing or invalid `phoneme_id_map` in model config.")
    result: Dict[str, Tuple[int, ...]] = {}
    for phoneme, ids in raw.items():
        if not isinstance(ids, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in ids
        ):
            raise ConfigParseError(f"Phoneme `{phoneme}` must map to a list of integers.")
        result[phoneme] = tuple(ids)
    return result


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    obj: Dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise ConfigParseError(f"Duplicate key `{key}` in model config.")
        obj[key] = value
    return obj


def load_model_config(config_path: Union[str, Path]) -> ModelDescriptor:
    """
    Load and validate a voice descriptor.

    Args:
        config_path: Path to the ``<voice>.onnx.json`` file

    Returns:
        The parsed ModelDescriptor
    """
    path = Path(config_path)
    if not path.exists():
        raise ResourceNotFoundError(f"Model config not found: `{path}`")
    try:
        data = json.loads(
            path.read_text(encoding="utf-8"),
            object_pairs_hook=_reject_duplicate_keys,
        )
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigParseError(
            f"Failed to parse model config from file: `{path}`. Caused by: `{exc}`"
        ) from exc
    return ModelDescriptor.from_dict(data)


def _env_int(name: str, default: int) -> int:
    """Read an int env var with a default."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for inference sessions and streaming."""
    device: str = "cpu"
    intra_op_num_threads: int = 0
    inter_op_num_threads: int = 0
    chunk_size: int = 22050
    chunk_padding: int = 0

    @classmethod
    def from_env(cls) -> "Settings":
        """Construct settings from environment variables and an optional YAML file."""
        overrides: Dict[str, Any] = {}
        settings_path = os.getenv("VITS_VOICE_SETTINGS")
        if settings_path:
            path = Path(settings_path)
            if not path.exists():
                raise ResourceNotFoundError(f"Settings file not found: `{path}`")
            try:
                loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            except yaml.YAMLError as exc:
                raise ConfigParseError(f"Failed to parse settings file `{path}`: {exc}") from exc
            if not isinstance(loaded, dict):
                raise ConfigParseError(f"Settings file `{path}` must contain a mapping.")
            overrides = loaded

        cpu_count = os.cpu_count() or 4
        return cls(
            device=os.getenv("VITS_VOICE_DEVICE") or str(overrides.get("device", "cpu")),
            intra_op_num_threads=_env_int(
                "ORT_INTRA_OP_NUM_THREADS", int(overrides.get("intra_op_num_threads", cpu_count))
            ),
            inter_op_num_threads=_env_int(
                "ORT_INTER_OP_NUM_THREADS", int(overrides.get("inter_op_num_threads", 0))
            ),
            chunk_size=_env_int("VITS_VOICE_CHUNK_SIZE", int(overrides.get("chunk_size", 22050))),
            chunk_padding=_env_int("VITS_VOICE_CHUNK_PADDING", int(overrides.get("chunk_padding", 0))),
        )


def model_files(config_path: Union[str, Path], descriptor: ModelDescriptor) -> List[Path]:
    """Return the ONNX files a voice needs: the full graph, or encoder then decoder."""
    config_path = Path(config_path)
    if descriptor.streaming:
        return [config_path.with_name(ENCODER_FILENAME), config_path.with_name(DECODER_FILENAME)]
    if not config_path.suffix:
        raise OperationError(f"Invalid config filename format `{config_path}`")
    return [config_path.with_suffix("")]
