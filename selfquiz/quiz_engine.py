"""
Quiz engine core logic for the quiz session engine.
Handles question selection, ordering, and answer-option rendering.
"""
import logging
import random
from typing import Dict, List, Optional, Sequence, TypeVar

from .models import Question, QuestionOption, QuestionType, SessionConfig, SessionQuestion
from .translations import Translator, default_translate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Shuffler:
    """Uniform random permutations driven by an injectable random source."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the shuffler.

        Args:
            rng: Random source to draw from; a fresh ``random.Random`` if None
        """
        self._rng = rng or random.Random()

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """
        Return a shuffled copy of ``items`` using Fisher-Yates.

        Args:
            items: Sequence to permute; left unmodified

        Returns:
            New list with the same elements in random order
        """
        shuffled = list(items)
        for i in range(len(shuffled) - 1, 0, -1):
            j = self._rng.randint(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled


class SelectionPlanner:
    """Builds the ordered question set for one attempt from a pool and a config."""

    # Used when the fixed-total mode is asked for a non-positive count.
    DEFAULT_QUESTION_COUNT = 10

    def __init__(
        self,
        shuffler: Optional[Shuffler] = None,
        translate: Translator = default_translate,
        default_question_count: Optional[int] = None
    ):
        """
        Initialize the planner.

        Args:
            shuffler: Shuffler used for question and option order
            translate: Translation function for True/False and topic labels
            default_question_count: Overrides DEFAULT_QUESTION_COUNT when positive
        """
        self.shuffler = shuffler or Shuffler()
        self.translate = translate
        if default_question_count is not None and default_question_count > 0:
            self.default_question_count = default_question_count
        else:
            self.default_question_count = self.DEFAULT_QUESTION_COUNT

    def plan(self, pool: Sequence[Question], config: SessionConfig) -> List[SessionQuestion]:
        """
        Select questions and render their options for a new attempt.

        Args:
            pool: Available questions
            config: Attempt configuration

        Returns:
            Session questions in presentation order; empty if the pool is empty
        """
        selected = self.select_questions(pool, config)
        session_questions = [
            SessionQuestion(question, self.render_options(question, config.randomize_answers))
            for question in selected
        ]
        logger.info(
            f"Planned attempt with {len(session_questions)} of {len(pool)} questions",
            extra={
                'event_type': 'selection_planned',
                'pool_size': len(pool),
                'selected': len(session_questions),
                'mode': self.selection_mode(config),
            }
        )
        return session_questions

    def selection_mode(self, config: SessionConfig) -> str:
        """Name of the selection policy ``config`` resolves to."""
        if config.use_all_questions:
            return "all"
        if config.select_by_topic and config.positive_topic_counts():
            return "by_topic"
        return "fixed_total"

    def select_questions(self, pool: Sequence[Question], config: SessionConfig) -> List[Question]:
        """
        Select and order questions based on the configuration.

        Args:
            pool: Available questions
            config: Attempt configuration

        Returns:
            Unique questions in presentation order
        """
        candidates = self.dedupe_by_id(pool)
        if not candidates:
            logger.debug("Question pool is empty, nothing to select")
            return []

        mode = self.selection_mode(config)
        cap: Optional[int] = None

        if mode == "all":
            selected = self.shuffler.shuffle(candidates) if config.randomize_questions else candidates
        elif mode == "by_topic":
            selected = self._select_by_topic(candidates, config)
        else:
            cap = self.resolve_question_count(config.num_questions, len(candidates))
            ordered = self.shuffler.shuffle(candidates) if config.randomize_questions else candidates
            selected = ordered[:cap]

        return self.dedupe_by_id(selected, limit=cap)

    def resolve_question_count(self, requested: int, available: int) -> int:
        """
        Clamp the requested fixed total to what the pool can supply.

        Non-positive requests fall back to the default question count.
        """
        if requested <= 0:
            logger.debug(
                f"Non-positive question count {requested}, using default {self.default_question_count}"
            )
            requested = self.default_question_count
        return min(requested, available)

    def _select_by_topic(self, candidates: List[Question], config: SessionConfig) -> List[Question]:
        grouped: List[Question] = []
        for topic, count in config.positive_topic_counts():
            in_topic = [q for q in candidates if self.topic_label(q) == topic]
            if config.randomize_questions:
                in_topic = self.shuffler.shuffle(in_topic)
            taken = in_topic[:min(count, len(in_topic))]
            logger.debug(f"Topic '{topic}': requested {count}, available {len(in_topic)}, taken {len(taken)}")
            grouped.extend(taken)

        if config.randomize_questions and len(grouped) > 1:
            grouped = self.shuffler.shuffle(grouped)
        return grouped

    def topic_label(self, question: Question) -> str:
        """Topic a question is grouped under; untopiced questions share one label."""
        return question.topic or self.translate("qBankNotSpecified")

    def topic_counts(self, pool: Sequence[Question]) -> Dict[str, int]:
        """Number of unique questions available per topic label."""
        counts: Dict[str, int] = {}
        for question in self.dedupe_by_id(pool):
            label = self.topic_label(question)
            counts[label] = counts.get(label, 0) + 1
        return counts

    @staticmethod
    def dedupe_by_id(questions: Sequence[Question], limit: Optional[int] = None) -> List[Question]:
        """
        Drop repeated ids, keeping the first occurrence.

        Args:
            questions: Questions in order
            limit: Stop once this many unique questions are collected

        Returns:
            Unique questions in original order
        """
        unique: List[Question] = []
        seen = set()
        for question in questions:
            if limit is not None and len(unique) >= limit:
                break
            if question.id in seen:
                continue
            seen.add(question.id)
            unique.append(question)
        return unique

    def render_options(self, question: Question, randomize_answers: bool) -> tuple:
        """
        Build the option order shown for ``question``.

        True/false questions always get a synthesized True/False pair; other
        types use their stored options, shuffled when ``randomize_answers``.
        """
        if question.type == QuestionType.TRUE_FALSE:
            return (
                QuestionOption(self.translate("optionTrue")),
                QuestionOption(self.translate("optionFalse")),
            )
        options = list(question.options)
        if randomize_answers:
            options = self.shuffler.shuffle(options)
        return tuple(options)
