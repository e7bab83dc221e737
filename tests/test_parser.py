"""Tests for milton.parser."""
import json
import unittest

from milton.parser import ParseError, parse_assessment, repair_json
from milton.schema import Assessment


def _payload(probability=73, verdict="Likely yes"):
    return {
        "questionClarity": {"question": "Will X happen?", "timeframe": "2025", "thresholds": "none"},
        "analysis": {"marketConditions": "calm", "metrics": ["volume"], "keyDataPoints": ["dp"]},
        "probabilityAssessment": {
            "probability": probability,
            "supportingFactors": ["f1", "f2"],
            "criticalAssumptions": ["a1"],
        },
        "reasoning": {"evidence": ["e1"], "logicalSteps": ["s1"], "uncertainties": ["u1"]},
        "certaintyLevel": {"level": "PARTIALLY_OBSCURED", "explanation": "some data"},
        "finalVerdict": verdict,
        "error": "false",
    }


class TestParseAssessment(unittest.TestCase):
    def test_plain_json(self):
        result = parse_assessment(json.dumps(_payload()))
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.probability, 73)
        self.assertEqual(result.question_clarity.question, "Will X happen?")
        self.assertEqual(result.probability_assessment.supporting_factors, ("f1", "f2"))
        self.assertEqual(result.certainty_level.level, "PARTIALLY_OBSCURED")
        self.assertEqual(result.final_verdict, "Likely yes")
        self.assertFalse(result.error)

    def test_fenced_json_inside_prose(self):
        raw = 'prefix ```json\n{"questionClarity":{"question":"q"},"finalVerdict":"x"}\n``` suffix'
        result = parse_assessment(raw)
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.final_verdict, "x")
        self.assertEqual(result.question_clarity.question, "q")

    def test_bare_fence_without_language(self):
        raw = "Here you go:\n```\n" + json.dumps(_payload(probability=40)) + "\n```"
        result = parse_assessment(raw)
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.probability, 40)

    def test_embedded_object_with_comments_and_newlines(self):
        raw = (
            "Sure! My assessment follows.\n"
            '{"questionClarity": {"question": "Will it\n rain?"},\n'
            '  "probabilityAssessment": {"probability": 75, // numerical percentage\n'
            '    "supportingFactors": ["clouds",]},\n'
            '  "finalVerdict": "Probably"}\n'
            "Let me know if you need more."
        )
        result = parse_assessment(raw)
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.probability, 75)
        self.assertEqual(result.question_clarity.question, "Will it rain?")
        self.assertEqual(result.probability_assessment.supporting_factors, ("clouds",))

    def test_single_quoted_object(self):
        raw = "Answer: {'questionClarity': {'question': 'q'}, 'probabilityAssessment': {'probability': 12}, 'finalVerdict': 'no'}"
        result = parse_assessment(raw)
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.probability, 12)
        self.assertEqual(result.final_verdict, "no")

    def test_single_quoted_object_with_url(self):
        raw = (
            "{'questionClarity': {'question': 'see https://x.com'}, "
            "'probabilityAssessment': {'probability': 12}, 'finalVerdict': 'no'}"
        )
        result = parse_assessment(raw)
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.question_clarity.question, "see https://x.com")
        self.assertEqual(result.probability, 12)

    def test_unclosed_brace_in_prose_before_object(self):
        raw = (
            "Using {curly notation I answer: "
            '{"questionClarity": {"question": "q"}, "probabilityAssessment": {"probability": 30}, '
            '"finalVerdict": "x"}'
        )
        result = parse_assessment(raw)
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.probability, 30)
        self.assertEqual(result.final_verdict, "x")

    def test_skips_objects_without_expected_keys(self):
        raw = 'meta {"note": "ignore me"} then {"questionClarity": {}, "finalVerdict": "kept"}'
        result = parse_assessment(raw)
        self.assertIsInstance(result, Assessment)
        self.assertEqual(result.final_verdict, "kept")

    def test_unparseable_returns_parse_error(self):
        raw = "I cannot answer this question. " * 20
        result = parse_assessment(raw)
        self.assertIsInstance(result, ParseError)
        self.assertEqual(len(result.raw_sample), 200)
        self.assertTrue(result.message)

    def test_empty_text(self):
        result = parse_assessment("")
        self.assertIsInstance(result, ParseError)
        self.assertEqual(result.message, "empty response")
        self.assertIsInstance(parse_assessment(None), ParseError)

    def test_json_array_is_not_an_assessment(self):
        result = parse_assessment("[1, 2, 3]")
        self.assertIsInstance(result, ParseError)
        self.assertIn("list", result.message)

    def test_error_string_coerced_to_bool(self):
        payload = _payload()
        payload["error"] = "true"
        result = parse_assessment(json.dumps(payload))
        self.assertTrue(result.error)

    def test_unknown_certainty_level_blanked(self):
        payload = _payload()
        payload["certaintyLevel"]["level"] = "one of: CRYSTAL_CLEAR, VEILED_IN_MIST"
        result = parse_assessment(json.dumps(payload))
        self.assertEqual(result.certainty_level.level, "")


class TestRepairJson(unittest.TestCase):
    def test_collapses_whitespace_and_trailing_commas(self):
        self.assertEqual(repair_json('{"a": [1,\n 2,\n],\n}'), '{"a": [1, 2]}')

    def test_keeps_urls_inside_strings(self):
        repaired = repair_json('{"src": "https://example.com"} // note')
        self.assertEqual(json.loads(repaired), {"src": "https://example.com"})

    def test_keeps_urls_inside_single_quoted_strings(self):
        self.assertEqual(repair_json("{'src': 'https://example.com'}"), "{'src': 'https://example.com'}")


if __name__ == "__main__":
    unittest.main()
