"""
Test fixtures and sample data for quiz session engine tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from selfquiz.models import (
    HistoryEntry, Question, QuestionOption, QuestionType, SessionConfig, SessionQuestion
)
from selfquiz.quiz_timer import Clock, TickHandle, TickSource


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def mc_question(question_id: str, correct: str = "B", options=("A", "B", "C", "D"),
                    topic: Optional[str] = None) -> Question:
        """Create a multiple-choice question."""
        return Question(
            id=question_id,
            text=f"Question {question_id}?",
            type=QuestionType.MULTIPLE_CHOICE,
            correct_option_text=correct,
            options=tuple(QuestionOption(text) for text in options),
            topic=topic
        )

    @staticmethod
    def tf_question(question_id: str, correct: str = "True", topic: Optional[str] = None) -> Question:
        """Create a true/false question."""
        return Question(
            id=question_id,
            text=f"Statement {question_id}.",
            type=QuestionType.TRUE_FALSE,
            correct_option_text=correct,
            topic=topic
        )

    @staticmethod
    def fill_question(question_id: str, correct: str = "Paris", topic: Optional[str] = None) -> Question:
        """Create a fill-in-the-blank question."""
        return Question(
            id=question_id,
            text=f"The capital of France is ___ ({question_id})",
            type=QuestionType.FILL_BLANK,
            correct_option_text=correct,
            topic=topic
        )

    @staticmethod
    def create_sample_pool(size: int = 10) -> List[Question]:
        """Create a pool of multiple-choice questions q1..qN."""
        return [TestFixtures.mc_question(f"q{i}") for i in range(1, size + 1)]

    @staticmethod
    def create_topic_pool() -> List[Question]:
        """Pool with 4 math, 3 science and 2 untopiced questions."""
        pool = [TestFixtures.mc_question(f"m{i}", topic="Math") for i in range(1, 5)]
        pool += [TestFixtures.mc_question(f"s{i}", topic="Science") for i in range(1, 4)]
        pool += [TestFixtures.mc_question(f"n{i}") for i in range(1, 3)]
        return pool

    @staticmethod
    def create_mixed_pool() -> List[Question]:
        """One question of each type, in a fixed order."""
        return [
            TestFixtures.mc_question("mc1", correct="Paris", options=("London", "Paris", "Rome")),
            TestFixtures.tf_question("tf1", correct="False"),
            TestFixtures.fill_question("fb1", correct="Paris"),
        ]

    @staticmethod
    def sequential_config(**overrides) -> SessionConfig:
        """Config with randomization off so selection order is predictable."""
        values: Dict[str, Any] = {
            'randomize_questions': False,
            'randomize_answers': False,
        }
        values.update(overrides)
        return SessionConfig.from_dict(values)

    @staticmethod
    def session_question(question: Question) -> SessionQuestion:
        """Session question with options in stored order (True/False synthesized)."""
        if question.type == QuestionType.TRUE_FALSE:
            return SessionQuestion(question, (QuestionOption("True"), QuestionOption("False")))
        return SessionQuestion(question, question.options)

    @staticmethod
    def create_valid_profile_data() -> Dict[str, Any]:
        """Create a valid profile mapping."""
        return {
            "id": "geo",
            "name": "Geography",
            "questions": [
                {
                    "id": "g1",
                    "question": "Capital of Japan?",
                    "type": "multiple_choice",
                    "correctOptionText": "Tokyo",
                    "options": ["Osaka", "Tokyo", "Kyoto"],
                    "topic": "Asia"
                },
                {
                    "id": "g2",
                    "question": "The Nile is in Africa.",
                    "type": "true_false",
                    "correctOptionText": "True",
                    "topic": "Africa"
                },
                {
                    "id": "g3",
                    "question": "Capital of Italy is ___",
                    "type": "fill_blank",
                    "correctOptionText": "Rome"
                }
            ],
            "settings": {
                "useAllQuestions": True,
                "randomizeQuestions": False,
                "randomizeAnswers": False
            }
        }

    @staticmethod
    def create_invalid_profile_structures() -> List[Any]:
        """Create various invalid profile mappings."""
        return [
            "not a mapping",
            {},
            {"id": ""},
            {"id": 42},
            {"id": "p", "questions": "not a list"},
            {"id": "p", "settings": ["not", "a", "mapping"]},
            {"id": "p", "questions": ["not an object"]},
        ]

    @staticmethod
    def history_entry(score: int = 1, total: int = 2) -> HistoryEntry:
        return HistoryEntry(
            date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            score=score,
            total_possible=total,
            percentage=round(score * 100 / total, 1),
            questions_in_quiz=total
        )


class FakeClock(Clock):
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: float = 1000.0,
                 wall_start: datetime = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start
        self._start = start
        self._wall_start = wall_start

    def monotonic(self) -> float:
        return self.now

    def utcnow(self) -> datetime:
        return self._wall_start + timedelta(seconds=self.now - self._start)

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTickSource(TickSource):
    """Tick source firing scheduled callbacks as a FakeClock is advanced."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        # [next_due, interval, callback, handle]
        self._schedules: List[list] = []

    def schedule_repeating(self, interval: float, callback: Callable[[], Any]) -> TickHandle:
        handle = TickHandle()
        self._schedules.append([self.clock.now + interval, interval, callback, handle])
        return handle

    @property
    def active_count(self) -> int:
        return sum(1 for schedule in self._schedules if not schedule[3].cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every tick that falls due on the way."""
        target = self.clock.now + seconds
        while True:
            due = [s for s in self._schedules if not s[3].cancelled and s[0] <= target]
            if not due:
                break
            schedule = min(due, key=lambda s: s[0])
            self.clock.now = max(self.clock.now, schedule[0])
            schedule[0] += schedule[1]
            schedule[2]()
        self.clock.now = target

    def tick(self, count: int = 1, interval: float = 1.0) -> None:
        """Advance by ``count`` intervals."""
        for _ in range(count):
            self.advance(interval)

