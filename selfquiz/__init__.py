"""
Quiz session engine: question selection, timed attempts and grading.
"""
from .config_manager import ConfigError, ConfigManager, load_config, setup_logging_from_config
from .models import (
    AnswerNumberingStyle, HistoryEntry, Question, QuestionOption, QuestionReview,
    QuestionType, QuizResult, SessionConfig, SessionPhase, SessionQuestion,
    SessionState, ValidationReason
)
from .profile_manager import HistoryStore, InMemoryHistoryStore, ProfileManager, TestProfile
from .quiz_controller import (
    InvalidSessionStateError, QuizSessionError, SessionNotReadyError, SessionStateMachine
)
from .quiz_engine import SelectionPlanner, Shuffler
from .quiz_timer import AsyncioTickSource, Clock, SystemClock, TickSource, TimerController
from .scoring import ScoringEngine
from .translations import default_translate, format_time

__version__ = "0.1.0"
