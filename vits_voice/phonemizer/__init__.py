from vits_voice.phonemizer.espeak import Diacritizer, EspeakPhonemizer
from vits_voice.phonemizer.phoneme_ids import PhonemeIdMapper

__all__ = ["Diacritizer", "EspeakPhonemizer", "PhonemeIdMapper"]
