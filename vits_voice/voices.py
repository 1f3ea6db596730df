"""
Voice catalogue helpers.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from vits_voice.config import ModelDescriptor, load_model_config, model_files
from vits_voice.errors import ConfigParseError
from vits_voice.logging_utils import get_logger

logger = get_logger(__name__)

CONFIG_SUFFIX = ".onnx.json"


def _voice_id(config_path: Path) -> str:
    if config_path.name.endswith(CONFIG_SUFFIX):
        return config_path.name[: -len(CONFIG_SUFFIX)]
    return config_path.stem


def list_voices(search_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    List voices found below a directory.

    Args:
        search_path: Directory searched recursively for ``*.onnx.json`` files

    Returns:
        List of voice info dicts sorted by id, with:
        - id: Descriptor filename without ``.onnx.json``
        - name: Descriptor ``key`` when present, else the id
        - path: Descriptor path relative to ``search_path``
        - language, quality, streaming
    """
    search_path = Path(search_path)
    if not search_path.exists():
        return []

    voices = []
    for config_path in sorted(search_path.rglob(f"*{CONFIG_SUFFIX}")):
        try:
            descriptor = load_model_config(config_path)
        except ConfigParseError as exc:
            logger.warning("voice_config_invalid path=%s error=%s", config_path, exc)
            continue
        voice_id = _voice_id(config_path)
        voices.append(
            {
                "id": voice_id,
                "name": descriptor.key or voice_id,
                "path": str(config_path.relative_to(search_path)),
                "language": descriptor.language_code,
                "quality": descriptor.audio.quality,
                "streaming": descriptor.streaming,
            }
        )
    return sorted(voices, key=lambda info: info["id"])


def get_voice_info(config_path: Union[str, Path], descriptor: Optional[ModelDescriptor] = None) -> Dict[str, Any]:
    """
    Get detailed information about a voice.

    Args:
        config_path: Path to the voice descriptor
        descriptor: Already-parsed descriptor (loaded from ``config_path`` if omitted)

    Returns:
        Capabilities dict with speakers, sample rate, inference defaults and
        the model files with their presence on disk.
    """
    config_path = Path(config_path)
    if descriptor is None:
        descriptor = load_model_config(config_path)
    files = model_files(config_path, descriptor)
    return {
        "name": descriptor.key or _voice_id(config_path),
        "path": str(config_path.resolve()),
        "language": descriptor.language_code,
        "espeak_voice": descriptor.espeak.voice,
        "quality": descriptor.audio.quality,
        "sample_rate": descriptor.sample_rate,
        "streaming": descriptor.streaming,
        "num_speakers": descriptor.num_speakers,
        "speakers": [descriptor.speaker_map[sid] for sid in sorted(descriptor.speaker_map)],
        "inference": {
            "noise_scale": descriptor.inference.noise_scale,
            "length_scale": descriptor.inference.length_scale,
            "noise_w": descriptor.inference.noise_w,
        },
        "model_files": {str(path.name): path.exists() for path in files},
    }
