import random
import unittest

from vits_voice.errors import OperationError
from vits_voice.phonemizer.phoneme_ids import PhonemeIdMapper

from helpers import VOCAB

PAD_ID, BOS_ID, EOS_ID = 0, 1, 2


class PhonemeIdMapperTests(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = PhonemeIdMapper(VOCAB)

    def test_wraps_with_boundaries_and_interleaves_pad(self) -> None:
        self.assertEqual(self.mapper.map_to_ids("ab"), [1, 0, 3, 0, 4, 0, 2])

    def test_empty_input_keeps_boundaries(self) -> None:
        self.assertEqual(self.mapper.map_to_ids(""), [1, 0, 2])

    def test_unknown_characters_are_dropped(self) -> None:
        self.assertEqual(self.mapper.map_to_ids("aXb!"), self.mapper.map_to_ids("ab"))
        self.assertEqual(self.mapper.map_to_ids("XYZ"), [1, 0, 2])

    def test_first_id_of_a_multi_id_entry_is_used(self) -> None:
        self.assertEqual(self.mapper.map_to_ids("ə"), [1, 0, 7, 0, 2])

    def test_special_ids_are_cached(self) -> None:
        self.assertIs(self.mapper.special_ids, self.mapper.special_ids)
        self.assertEqual(tuple(self.mapper.special_ids), (PAD_ID, BOS_ID, EOS_ID))

    def test_missing_pad_fails_on_first_use(self) -> None:
        vocab = {k: v for k, v in VOCAB.items() if k != "_"}
        mapper = PhonemeIdMapper(vocab)
        with self.assertRaises(OperationError) as ctx:
            mapper.map_to_ids("ab")
        self.assertIn("PAD", str(ctx.exception))

    def test_empty_id_list_counts_as_missing(self) -> None:
        vocab = dict(VOCAB, **{"$": []})
        with self.assertRaises(OperationError):
            PhonemeIdMapper(vocab).map_to_ids("a")


def test_sequence_shape_holds_for_random_strings():
    rng = random.Random(1234)
    alphabet = "abc əXYZ!?"
    mapper = PhonemeIdMapper(VOCAB)
    for _ in range(200):
        text = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 30)))
        ids = mapper.map_to_ids(text)
        known = [ch for ch in text if ch in VOCAB]

        assert ids[0] == BOS_ID
        assert ids[-1] == EOS_ID
        assert len(ids) == 2 * len(known) + 3
        # odd positions are PAD, everything else is a real or boundary id
        assert ids[1::2] == [PAD_ID] * (len(known) + 1)
        assert PAD_ID not in ids[0::2]
        assert ids[2:-1:2] == [VOCAB[ch][0] for ch in known]
