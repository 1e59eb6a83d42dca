import random
import unittest

from marketplace.lifecycle.order_numbers import (
    allocate_order_number,
    generate_order_number,
    is_order_number,
)


class OrderNumberTest(unittest.TestCase):
    def test_format_uses_kind_prefix_and_low_timestamp_digits(self) -> None:
        number = generate_order_number("material", now_ms=1_893_456_789_012, rng=random.Random(3))
        self.assertTrue(number.startswith("MAT-789012-"))
        self.assertTrue(is_order_number(number))

        number = generate_order_number("vehicle", now_ms=42, rng=random.Random(3))
        self.assertTrue(number.startswith("VEH-000042-"))
        self.assertTrue(is_order_number(number))

    def test_suffix_is_zero_padded(self) -> None:
        class _Zero(random.Random):
            def randint(self, a, b):
                return 7

        self.assertEqual(generate_order_number("material", now_ms=123456, rng=_Zero()), "MAT-123456-007")

    def test_unknown_kind_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            generate_order_number("service", now_ms=1)

    def test_allocate_retries_until_free(self) -> None:
        seen = []

        def exists(candidate: str) -> bool:
            seen.append(candidate)
            return len(seen) < 3

        number = allocate_order_number(
            "vehicle",
            exists_fn=exists,
            max_attempts=5,
            now_fn=lambda: 1_000_000,
            rng=random.Random(11),
        )
        self.assertEqual(len(seen), 3)
        self.assertEqual(number, seen[-1])

    def test_allocate_gives_up_after_max_attempts(self) -> None:
        calls = {"count": 0}

        def exists(_candidate: str) -> bool:
            calls["count"] += 1
            return True

        self.assertIsNone(allocate_order_number("material", exists_fn=exists, max_attempts=4))
        self.assertEqual(calls["count"], 4)

    def test_is_order_number(self) -> None:
        self.assertTrue(is_order_number("VEH-000001-999"))
        self.assertFalse(is_order_number("VEH-1-999"))
        self.assertFalse(is_order_number("XYZ-000001-001"))
        self.assertFalse(is_order_number(None))


if __name__ == "__main__":
    unittest.main()
