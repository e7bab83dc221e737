"""Tests for milton.validation."""
import unittest

from milton.schema import Assessment, ProbabilityAssessment
from milton.validation import coerce_probability, validate_probability


def _assessment(probability):
    return Assessment(probability_assessment=ProbabilityAssessment(probability=probability))


class TestValidateProbability(unittest.TestCase):
    def test_out_of_range_and_non_numeric_are_rejected(self):
        for value in (-1, 101, "abc", None):
            with self.subTest(value=value):
                self.assertIsNone(validate_probability(_assessment(value)))

    def test_bounds_are_inclusive(self):
        self.assertEqual(validate_probability(_assessment(0)), 0)
        self.assertEqual(validate_probability(_assessment(100)), 100)

    def test_numeric_strings_are_coerced(self):
        self.assertEqual(validate_probability(_assessment("73")), 73.0)
        self.assertEqual(validate_probability(_assessment(" 42.5% ")), 42.5)

    def test_booleans_and_nan_rejected(self):
        self.assertIsNone(coerce_probability(True))
        self.assertIsNone(coerce_probability(float("nan")))
        self.assertIsNone(coerce_probability(float("inf")))

    def test_integer_beyond_float_range_rejected(self):
        self.assertIsNone(coerce_probability(10 ** 400))
        self.assertIsNone(validate_probability(_assessment(10 ** 400)))
        self.assertIsNone(coerce_probability("1" + "0" * 400))

    def test_empty_assessment_has_no_probability(self):
        self.assertIsNone(validate_probability(Assessment.empty()))

    def test_raw_mapping(self):
        self.assertEqual(validate_probability({"probabilityAssessment": {"probability": 55}}), 55.0)
        self.assertIsNone(validate_probability({"probabilityAssessment": "55"}))
        self.assertIsNone(validate_probability({}))
        self.assertIsNone(validate_probability(None))


if __name__ == "__main__":
    unittest.main()
