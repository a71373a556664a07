"""
Core data models for the quiz session engine.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


# An answer slot holds nothing, a rendered option index, or free text.
Answer = Union[None, int, str]


class QuestionType(Enum):
    """Supported question kinds."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"

    @classmethod
    def parse(cls, value: Any) -> "QuestionType":
        """
        Parse a question type from its value or an accepted alias.

        Raises:
            ValueError: If the value names no known question type
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {
            "mcq": cls.MULTIPLE_CHOICE,
            "truefalse": cls.TRUE_FALSE,
            "fill_in_the_blank": cls.FILL_BLANK,
            "fill_in_blank": cls.FILL_BLANK,
        }
        if normalized in aliases:
            return aliases[normalized]
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown question type: {value!r}")


class AnswerNumberingStyle(Enum):
    """Prefix style shown in front of rendered options."""
    NONE = "none"
    NUMBERS = "numbers"
    LETTERS_UPPER = "letters_upper"
    LETTERS_LOWER = "letters_lower"


class SessionPhase(Enum):
    """Lifecycle phase of a quiz attempt."""
    SETUP = "setup"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class ValidationReason(Enum):
    """Symbolic reason codes returned when a transition is blocked."""
    ANSWER_REQUIRED = "answer_required"
    TEXT_REQUIRED = "text_required"
    LAST_ANSWER_REQUIRED = "last_answer_required"
    NOT_IN_PROGRESS = "not_in_progress"
    NOT_READY = "not_ready"
    NO_QUESTIONS = "no_questions"
    ALREADY_SUBMITTED = "already_submitted"


@dataclass(frozen=True)
class QuestionOption:
    """A single answer option, optionally illustrated."""
    text: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Question:
    """Represents a single question from the question bank."""
    id: str
    text: str
    type: QuestionType
    correct_option_text: str
    options: Tuple[QuestionOption, ...] = ()
    topic: Optional[str] = None
    question_image_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """
        Build a Question from a plain mapping supplied by the question bank.

        Options may be plain strings or mappings with ``text`` and
        ``imageURL``/``image_url`` keys.

        Raises:
            ValueError: If the mapping is missing an id or has an unknown type
        """
        if not isinstance(data, dict):
            raise ValueError("Question data must be a mapping")

        question_id = data.get("id")
        if question_id is None or str(question_id).strip() == "":
            raise ValueError("Question data must contain a non-empty 'id'")

        options = []
        for item in data.get("options") or []:
            if isinstance(item, dict):
                options.append(QuestionOption(
                    text=str(item.get("text", "")),
                    image_url=item.get("imageURL", item.get("image_url"))
                ))
            else:
                options.append(QuestionOption(text=str(item)))

        topic = data.get("topic")
        return cls(
            id=str(question_id),
            text=str(data.get("question", data.get("text", ""))),
            type=QuestionType.parse(data.get("type")),
            correct_option_text=str(data.get("correctOptionText", data.get("correct_option_text", ""))),
            options=tuple(options),
            topic=str(topic) if topic else None,
            question_image_url=data.get("questionImageURL", data.get("question_image_url"))
        )


def _coerce_count(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class SessionConfig:
    """Per-attempt selection, ordering and timing configuration."""
    use_all_questions: bool = False
    select_by_topic: bool = False
    topic_question_counts: Dict[str, int] = field(default_factory=dict)
    num_questions: int = 10
    randomize_questions: bool = True
    randomize_answers: bool = True
    enable_timer: bool = False
    timer_duration_minutes: int = 10
    answer_numbering_style: AnswerNumberingStyle = AnswerNumberingStyle.NUMBERS

    # camelCase keys used by the settings collaborator
    _KEY_ALIASES = {
        "useAllQuestions": "use_all_questions",
        "selectByTopic": "select_by_topic",
        "topicQuestionCounts": "topic_question_counts",
        "numQuestions": "num_questions",
        "randomizeQuestions": "randomize_questions",
        "randomizeAnswers": "randomize_answers",
        "enableTimer": "enable_timer",
        "timerDurationMinutes": "timer_duration_minutes",
        "answerNumberingStyle": "answer_numbering_style",
    }

    @property
    def timer_active(self) -> bool:
        """True when the attempt should run a countdown."""
        return self.enable_timer and self.timer_duration_minutes > 0

    @property
    def timer_duration_seconds(self) -> int:
        return max(0, self.timer_duration_minutes) * 60

    def positive_topic_counts(self) -> List[Tuple[str, int]]:
        """Topics with a positive requested count, in configured order."""
        return [
            (topic, count)
            for topic, count in self.topic_question_counts.items()
            if count > 0
        ]

    def signature(self) -> Tuple:
        """Hashable value identifying this configuration's contents."""
        return (
            self.use_all_questions,
            self.select_by_topic,
            tuple(self.topic_question_counts.items()),
            self.num_questions,
            self.randomize_questions,
            self.randomize_answers,
            self.enable_timer,
            self.timer_duration_minutes,
            self.answer_numbering_style,
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], base: Optional["SessionConfig"] = None) -> "SessionConfig":
        """
        Merge a partial settings mapping over ``base`` (or the defaults).

        Accepts camelCase or snake_case keys; unknown keys are ignored.
        """
        source = base or cls()
        values = {item.name: getattr(source, item.name) for item in fields(cls)}
        for key, value in (data or {}).items():
            name = cls._KEY_ALIASES.get(key, key)
            if name in values:
                values[name] = value

        values["topic_question_counts"] = {
            str(topic): _coerce_count(count)
            for topic, count in (values["topic_question_counts"] or {}).items()
        }
        values["num_questions"] = _coerce_count(values["num_questions"])
        values["timer_duration_minutes"] = _coerce_count(values["timer_duration_minutes"])
        style = values["answer_numbering_style"]
        if not isinstance(style, AnswerNumberingStyle):
            try:
                style = AnswerNumberingStyle(str(style).lower())
            except ValueError:
                style = AnswerNumberingStyle.NUMBERS
        values["answer_numbering_style"] = style
        for flag in ("use_all_questions", "select_by_topic", "randomize_questions",
                     "randomize_answers", "enable_timer"):
            values[flag] = bool(values[flag])
        return cls(**values)


def format_option_prefix(style: AnswerNumberingStyle, index: int) -> str:
    """Return the label shown before the option at ``index``."""
    if style == AnswerNumberingStyle.NUMBERS:
        return f"{index + 1}. "
    if style == AnswerNumberingStyle.LETTERS_UPPER:
        return f"{chr(65 + index)}. "
    if style == AnswerNumberingStyle.LETTERS_LOWER:
        return f"{chr(97 + index)}. "
    return ""


@dataclass(frozen=True)
class SessionQuestion:
    """A question together with the option order shown for one attempt."""
    question: Question
    rendered_options: Tuple[QuestionOption, ...]

    @property
    def id(self) -> str:
        return self.question.id

    @property
    def type(self) -> QuestionType:
        return self.question.type

    def labelled_options(self, style: AnswerNumberingStyle) -> List[str]:
        """Rendered option texts prefixed according to ``style``."""
        return [
            f"{format_option_prefix(style, index)}{option.text}"
            for index, option in enumerate(self.rendered_options)
        ]


@dataclass
class SessionState:
    """Mutable state of one in-flight attempt, owned by the state machine."""
    attempt_id: str
    questions: List[SessionQuestion]
    answers: List[Answer]
    config: SessionConfig
    current_index: int = 0
    phase: SessionPhase = SessionPhase.IN_PROGRESS
    start_timestamp: Optional[float] = None
    remaining_seconds: Optional[int] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current(self) -> SessionQuestion:
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    def answered_count(self) -> int:
        return sum(
            1 for answer in self.answers
            if answer is not None and not (isinstance(answer, str) and not answer.strip())
        )


@dataclass(frozen=True)
class QuestionReview:
    """Grading detail for one question of a submitted attempt."""
    question_id: str
    is_correct: bool
    answered: bool
    user_answer_text: Optional[str]
    correct_answer_text: str


@dataclass(frozen=True)
class QuizResult:
    """Outcome of grading an attempt."""
    score: int
    total_possible: int
    percentage: float
    time_taken_seconds: Optional[int] = None
    reviews: Tuple[QuestionReview, ...] = ()


@dataclass(frozen=True)
class HistoryEntry:
    """Record handed to the history store once per submitted attempt."""
    date: datetime
    score: int
    total_possible: int
    percentage: float
    questions_in_quiz: int
    time_taken_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "score": self.score,
            "totalPossible": self.total_possible,
            "percentage": self.percentage,
            "questionsInQuiz": self.questions_in_quiz,
            "timeTakenSeconds": self.time_taken_seconds,
        }
