from __future__ import annotations

from functools import cached_property
from typing import List, Mapping, NamedTuple, Sequence

from vits_voice.errors import OperationError

PAD = "_"
BOS = "^"
EOS = "$"


class SpecialIds(NamedTuple):
    pad: int
    bos: int
    eos: int


class PhonemeIdMapper:
    """Map phoneme strings to the id sequence a VITS voice was trained on."""

    def __init__(self, phoneme_id_map: Mapping[str, Sequence[int]]) -> None:
        self._phoneme_id_map = phoneme_id_map

    @cached_property
    def special_ids(self) -> SpecialIds:
        return SpecialIds(
            pad=self._lookup_special(PAD, "PAD"),
            bos=self._lookup_special(BOS, "BOS"),
            eos=self._lookup_special(EOS, "EOS"),
        )

    def _lookup_special(self, symbol: str, label: str) -> int:
        ids = self._phoneme_id_map.get(symbol)
        if not ids:
            raise OperationError(
                f"Voice vocabulary has no {label} symbol `{symbol}`; cannot synthesize."
            )
        return ids[0]

    def map_to_ids(self, phonemes: str) -> List[int]:
        """
        Return ``[BOS, PAD, id1, PAD, ..., idN, PAD, EOS]`` for the given phonemes.

        A PAD follows BOS too, so every id is flanked by PADs; exports that
        omit the PAD after BOS are not matched. Characters missing from the
        vocabulary are skipped without error.
        """
        pad_id, bos_id, eos_id = self.special_ids
        ids: List[int] = [bos_id, pad_id]
        for phoneme in phonemes:
            mapped = self._phoneme_id_map.get(phoneme)
            if mapped:
                ids.append(mapped[0])
                ids.append(pad_id)
        ids.append(eos_id)
        return ids
