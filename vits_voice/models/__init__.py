from vits_voice.models.streamer import ChunkStreamer, StreamState
from vits_voice.models.vits import (
    EncoderOutput,
    VitsModel,
    VitsStreamingModel,
    VitsVoice,
    from_config_path,
)

__all__ = [
    "ChunkStreamer",
    "EncoderOutput",
    "StreamState",
    "VitsModel",
    "VitsStreamingModel",
    "VitsVoice",
    "from_config_path",
]
