import unittest
from collections import Counter

from prizeledger.errors import RandomSourceFailure
from prizeledger.randomness import TOKEN_ALPHABET, RandomnessProvider

from support import FailingSource, SequenceSource


class RandomnessProviderTests(unittest.TestCase):
    def test_randint_stays_in_inclusive_range(self) -> None:
        rng = RandomnessProvider()
        values = {rng.randint(1, 3) for _ in range(300)}
        self.assertEqual(values, {1, 2, 3})

    def test_randint_rejects_empty_range(self) -> None:
        with self.assertRaises(ValueError):
            RandomnessProvider().randint(5, 4)

    def test_source_failure_is_reported_not_replaced(self) -> None:
        rng = RandomnessProvider(FailingSource())
        with self.assertRaises(RandomSourceFailure):
            rng.randint(0, 10)
        with self.assertRaises(RandomSourceFailure):
            rng.shuffle([1, 2, 3])
        with self.assertRaises(RandomSourceFailure):
            rng.token()

    def test_sample_returns_distinct_items(self) -> None:
        rng = RandomnessProvider()
        items = list(range(20))
        picked = rng.sample(items, 7)
        self.assertEqual(len(picked), 7)
        self.assertEqual(len(set(picked)), 7)
        self.assertTrue(set(picked) <= set(items))
        self.assertEqual(sorted(rng.sample(items, 50)), items)

    def test_shuffle_is_a_permutation(self) -> None:
        items = list(range(10))
        shuffled = RandomnessProvider().shuffle(list(items))
        self.assertEqual(sorted(shuffled), items)

    def test_shuffle_uses_fisher_yates_swaps(self) -> None:
        # Always picking j == 0 rotates the first element to the end.
        rng = RandomnessProvider(SequenceSource([0]))
        self.assertEqual(rng.shuffle([1, 2, 3, 4]), [2, 3, 4, 1])

    def test_choice_is_roughly_uniform(self) -> None:
        rng = RandomnessProvider()
        counts = Counter(rng.choice("abcd") for _ in range(4000))
        for letter in "abcd":
            self.assertGreater(counts[letter], 800)

    def test_choice_of_empty_sequence_raises(self) -> None:
        with self.assertRaises(ValueError):
            RandomnessProvider().choice([])

    def test_token_alphabet_and_length(self) -> None:
        token = RandomnessProvider().token(12)
        self.assertEqual(len(token), 12)
        self.assertTrue(set(token) <= set(TOKEN_ALPHABET))


if __name__ == "__main__":
    unittest.main()
