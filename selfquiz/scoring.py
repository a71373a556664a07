"""
Grading of submitted quiz attempts.
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from .models import (
    Answer, HistoryEntry, QuestionReview, QuestionType, QuizResult, SessionQuestion
)

logger = logging.getLogger(__name__)

_CHOICE_TYPES = (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)


class ScoringEngine:
    """Grades answers against session questions. Stateless and side-effect free."""

    def grade(
        self,
        questions: Sequence[SessionQuestion],
        answers: Sequence[Answer],
        elapsed_seconds: Optional[int] = None,
        timer_duration_seconds: Optional[int] = None
    ) -> QuizResult:
        """
        Grade an attempt.

        Args:
            questions: Session questions in presentation order
            answers: Answers aligned by index with ``questions``
            elapsed_seconds: Seconds since the attempt started, when timed
            timer_duration_seconds: Configured time limit, None when untimed

        Returns:
            Immutable result with score, percentage and per-question reviews
        """
        reviews: List[QuestionReview] = []
        for index, session_question in enumerate(questions):
            answer = answers[index] if index < len(answers) else None
            reviews.append(self.review(session_question, answer))

        score = sum(1 for review in reviews if review.is_correct)
        total = len(questions)

        time_taken = None
        if timer_duration_seconds is not None and elapsed_seconds is not None:
            time_taken = min(max(0, int(elapsed_seconds)), timer_duration_seconds)

        result = QuizResult(
            score=score,
            total_possible=total,
            percentage=self.percentage(score, total),
            time_taken_seconds=time_taken,
            reviews=tuple(reviews)
        )
        logger.debug(f"Graded attempt: {score}/{total} ({result.percentage}%)")
        return result

    def is_correct(self, session_question: SessionQuestion, answer: Answer) -> bool:
        """
        Check one answer.

        Choice questions compare the chosen rendered option's trimmed text with
        the correct text case-sensitively; fill-in-the-blank compares trimmed
        text case-insensitively. Missing or out-of-range answers are incorrect.
        """
        correct_text = session_question.question.correct_option_text.strip()

        if session_question.type in _CHOICE_TYPES:
            option = self._chosen_option(session_question, answer)
            return option is not None and option.text.strip() == correct_text

        if session_question.type == QuestionType.FILL_BLANK:
            return isinstance(answer, str) and answer.strip().lower() == correct_text.lower()

        return False

    def review(self, session_question: SessionQuestion, answer: Answer) -> QuestionReview:
        """Build the review line for one question."""
        user_text = None
        if session_question.type in _CHOICE_TYPES:
            option = self._chosen_option(session_question, answer)
            user_text = option.text if option is not None else None
        elif isinstance(answer, str) and answer.strip():
            user_text = answer.strip()

        return QuestionReview(
            question_id=session_question.id,
            is_correct=self.is_correct(session_question, answer),
            answered=user_text is not None,
            user_answer_text=user_text,
            correct_answer_text=session_question.question.correct_option_text
        )

    @staticmethod
    def _chosen_option(session_question: SessionQuestion, answer: Answer):
        # bool is an int subclass but never a valid selection
        if not isinstance(answer, int) or isinstance(answer, bool):
            return None
        if 0 <= answer < len(session_question.rendered_options):
            return session_question.rendered_options[answer]
        return None

    @staticmethod
    def percentage(score: int, total: int) -> float:
        """Percentage correct rounded half-up to one decimal, 0.0 for no questions."""
        if total <= 0:
            return 0.0
        value = Decimal(score * 100) / Decimal(total)
        return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def build_history_entry(result: QuizResult, date: datetime) -> HistoryEntry:
        """Map a graded result to the record kept in the profile history."""
        return HistoryEntry(
            date=date,
            score=result.score,
            total_possible=result.total_possible,
            percentage=result.percentage,
            questions_in_quiz=result.total_possible,
            time_taken_seconds=result.time_taken_seconds
        )
