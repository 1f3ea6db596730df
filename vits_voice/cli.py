from __future__ import annotations

import argparse
import json
import sys
import uuid
from dataclasses import replace
from typing import List, Optional

from vits_voice.config import Settings
from vits_voice.errors import OperationError, VoiceError
from vits_voice.logging_utils import configure_logging, get_logger, set_log_context
from vits_voice.models.vits import from_config_path
from vits_voice.synthesis.audio import WaveSamples, save_audio
from vits_voice.voices import get_voice_info

logger = get_logger(__name__)

DEFAULT_TEXT = "Hello! This is an example of neural speech synthesis."


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vits-voice",
        description="Synthesize speech with a VITS voice exported to ONNX.",
    )
    parser.add_argument("config", help="Path to the voice descriptor (<voice>.onnx.json).")
    parser.add_argument("output", nargs="?", help="Output audio file (.wav or .mp3).")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--text", help="Raw text, phonemized with espeak-ng.")
    source.add_argument("--phonemes", help="Phoneme string passed to the model as is.")
    parser.add_argument("--speaker", help="Speaker name for multi-speaker voices.")
    parser.add_argument("--noise-scale", type=float)
    parser.add_argument("--length-scale", type=float)
    parser.add_argument("--noise-w", type=float)
    parser.add_argument("--stream", action="store_true", help="Decode through the chunk streamer.")
    parser.add_argument("--chunk-size", type=int, help="Samples per streamed chunk.")
    parser.add_argument("--chunk-padding", type=int, help="Overlap samples between streamed chunks.")
    parser.add_argument("--device", help="Inference device: cpu, cuda or coreml.")
    parser.add_argument("--info", action="store_true", help="Print voice information and exit.")
    parser.add_argument("--log-dir", help="Also write package logs to <dir>/vits_voice.log.")
    return parser


def _stream_chunks(voice, phonemes: str, chunk_size: Optional[int], chunk_padding: Optional[int]) -> List[WaveSamples]:
    """Collect streamed chunks with the overlap prefix trimmed off."""
    chunks: List[WaveSamples] = []
    with voice.stream_synthesis(phonemes, chunk_size, chunk_padding) as streamer:
        for index, chunk in enumerate(streamer):
            overlap = 0 if index == 0 else min(streamer.chunk_padding, len(chunk))
            chunks.append(replace(chunk, samples=chunk.samples[overlap:]))
            logger.debug("chunk_received index=%d samples=%d", index, len(chunk))
    return chunks


def run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    if args.device:
        settings = replace(settings, device=args.device)

    if args.info:
        print(json.dumps(get_voice_info(args.config), indent=2, ensure_ascii=False))
        return 0
    if not args.output:
        raise OperationError("An output path is required unless --info is given.")

    voice = from_config_path(args.config, settings=settings)
    set_log_context(voice=voice.name)
    if args.speaker:
        voice.set_speaker(args.speaker)
    if args.noise_scale is not None:
        voice.set_noise_scale(args.noise_scale)
    if args.length_scale is not None:
        voice.set_length_scale(args.length_scale)
    if args.noise_w is not None:
        voice.set_noise_w(args.noise_w)

    phonemes = args.phonemes if args.phonemes is not None else voice.phonemize(args.text or DEFAULT_TEXT)

    audio_format = "mp3" if args.output.lower().endswith(".mp3") else "wav"
    if args.stream:
        if not voice.supports_streaming:
            raise OperationError(f"Voice `{voice.name}` does not support streaming synthesis.")
        wave = _stream_chunks(voice, phonemes, args.chunk_size, args.chunk_padding)
    else:
        wave = voice.synthesize(phonemes)
    result = save_audio(wave, args.output, format=audio_format)
    print(json.dumps(result))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(log_dir=args.log_dir)
    set_log_context(request_id=uuid.uuid4().hex[:12])
    try:
        return run(args)
    except VoiceError as exc:
        logger.error("synthesis_failed error=%s", exc.to_payload())
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
