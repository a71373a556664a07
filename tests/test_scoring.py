"""
Unit tests for the ScoringEngine class.
"""
import unittest
from datetime import datetime, timezone

from selfquiz.models import QuestionOption, SessionQuestion
from selfquiz.scoring import ScoringEngine
from tests.test_fixtures import TestFixtures


class TestScoringEngine(unittest.TestCase):
    """Test cases for grading answers."""

    def setUp(self):
        """Set up test fixtures."""
        self.engine = ScoringEngine()
        self.mc = TestFixtures.session_question(
            TestFixtures.mc_question("mc1", correct="Paris", options=("London", "Paris", "Rome"))
        )
        self.tf = TestFixtures.session_question(TestFixtures.tf_question("tf1", correct="False"))
        self.fill = TestFixtures.session_question(TestFixtures.fill_question("fb1", correct="Paris"))

    def test_all_correct_multiple_choice(self):
        """Three questions answered with the correct option score 3 and 100%."""
        questions = [
            TestFixtures.session_question(TestFixtures.mc_question(f"q{i}", correct="B"))
            for i in range(3)
        ]
        result = self.engine.grade(questions, [1, 1, 1])

        self.assertEqual(result.score, 3)
        self.assertEqual(result.total_possible, 3)
        self.assertEqual(result.percentage, 100.0)

    def test_choice_compares_rendered_option_text(self):
        """The index refers to the rendered order, not the stored one."""
        shuffled = SessionQuestion(
            self.mc.question,
            (QuestionOption("Rome"), QuestionOption("Paris"), QuestionOption("London"))
        )

        self.assertTrue(self.engine.is_correct(shuffled, 1))
        self.assertFalse(self.engine.is_correct(shuffled, 0))

    def test_choice_comparison_trims_but_keeps_case(self):
        question = SessionQuestion(
            TestFixtures.mc_question("q", correct=" Paris "),
            (QuestionOption("Paris  "), QuestionOption("paris"))
        )

        self.assertTrue(self.engine.is_correct(question, 0))
        self.assertFalse(self.engine.is_correct(question, 1))

    def test_true_false(self):
        self.assertTrue(self.engine.is_correct(self.tf, 1))
        self.assertFalse(self.engine.is_correct(self.tf, 0))

    def test_fill_blank_is_case_insensitive(self):
        self.assertTrue(self.engine.is_correct(self.fill, "paris"))
        self.assertTrue(self.engine.is_correct(self.fill, "  PARIS "))
        self.assertFalse(self.engine.is_correct(self.fill, "Lyon"))

    def test_unanswered_and_invalid_answers_are_incorrect(self):
        for answer in (None, 7, -1, "1", True):
            with self.subTest(answer=answer):
                self.assertFalse(self.engine.is_correct(self.mc, answer))
        for answer in (None, 0, ""):
            with self.subTest(answer=answer):
                self.assertFalse(self.engine.is_correct(self.fill, answer))

    def test_percentage_rounding(self):
        self.assertEqual(ScoringEngine.percentage(1, 3), 33.3)
        self.assertEqual(ScoringEngine.percentage(2, 3), 66.7)
        self.assertEqual(ScoringEngine.percentage(1, 16), 6.3)
        self.assertEqual(ScoringEngine.percentage(0, 5), 0.0)
        self.assertEqual(ScoringEngine.percentage(0, 0), 0.0)

    def test_mixed_attempt(self):
        result = self.engine.grade([self.mc, self.tf, self.fill], [1, 0, "paris"])

        self.assertEqual(result.score, 2)
        self.assertEqual(result.percentage, 66.7)
        self.assertEqual([r.is_correct for r in result.reviews], [True, False, True])

    def test_reviews_describe_answers(self):
        result = self.engine.grade([self.mc, self.fill], [0, None])

        first, second = result.reviews
        self.assertEqual(first.question_id, "mc1")
        self.assertEqual(first.user_answer_text, "London")
        self.assertTrue(first.answered)
        self.assertEqual(first.correct_answer_text, "Paris")
        self.assertFalse(second.answered)
        self.assertIsNone(second.user_answer_text)

    def test_short_answer_list_counts_missing_as_unanswered(self):
        result = self.engine.grade([self.mc, self.tf], [1])

        self.assertEqual(result.score, 1)
        self.assertEqual(result.total_possible, 2)

    def test_time_taken_only_when_timed(self):
        untimed = self.engine.grade([self.mc], [1], elapsed_seconds=42)
        timed = self.engine.grade([self.mc], [1], elapsed_seconds=42, timer_duration_seconds=600)
        overrun = self.engine.grade([self.mc], [1], elapsed_seconds=700, timer_duration_seconds=600)

        self.assertIsNone(untimed.time_taken_seconds)
        self.assertEqual(timed.time_taken_seconds, 42)
        self.assertEqual(overrun.time_taken_seconds, 600)

    def test_empty_attempt(self):
        result = self.engine.grade([], [])

        self.assertEqual(result.score, 0)
        self.assertEqual(result.percentage, 0.0)

    def test_build_history_entry(self):
        result = self.engine.grade([self.mc, self.tf], [1, 1], elapsed_seconds=30, timer_duration_seconds=60)
        date = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
        entry = ScoringEngine.build_history_entry(result, date)

        self.assertEqual(entry.date, date)
        self.assertEqual(entry.score, 2)
        self.assertEqual(entry.total_possible, 2)
        self.assertEqual(entry.questions_in_quiz, 2)
        self.assertEqual(entry.percentage, 100.0)
        self.assertEqual(entry.time_taken_seconds, 30)
        self.assertEqual(entry.to_dict()["totalPossible"], 2)
        self.assertEqual(entry.to_dict()["date"], "2024-03-01T09:30:00+00:00")


if __name__ == '__main__':
    unittest.main()
