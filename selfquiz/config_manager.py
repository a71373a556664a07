"""
Configuration manager for quiz session settings and engine parameters.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import AnswerNumberingStyle, SessionConfig


class ConfigError(Exception):
    """Raised when the engine configuration file cannot be loaded."""
    pass


def load_config(path: Union[str, Path] = "config.json") -> Dict[str, Any]:
    """
    Load engine configuration from a JSON file.

    Args:
        path: Path to the configuration file

    Returns:
        Parsed configuration dictionary

    Raises:
        ConfigError: If the file is missing, unreadable or not a JSON object
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Configuration in {config_path} must be a JSON object")
    return config


def setup_logging_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logging based on configuration."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))

    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "selfquiz.log", encoding='utf-8')
        ]
    )
    return logging.getLogger("selfquiz")


class ConfigManager:
    """Manages default session settings and engine parameters."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = 10
    DEFAULT_TIMER_MINUTES = 10
    DEFAULT_TICK_INTERVAL = 1.0

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 500
    MIN_TIMER_MINUTES = 1
    MAX_TIMER_MINUTES = 300

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize ConfigManager with default settings.

        Args:
            config: Optional engine configuration as returned by ``load_config``
        """
        self.logger = logging.getLogger(__name__)
        self._settings = SessionConfig()
        self._default_question_count = self.DEFAULT_QUESTION_COUNT
        self._tick_interval = self.DEFAULT_TICK_INTERVAL
        if config:
            self.load_from_dict(config)

    def load_from_dict(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply the ``quiz`` and ``engine`` sections of an engine configuration.

        Returns:
            Dictionary with success status and the issues found, if any
        """
        quiz_section = config.get('quiz', {}) or {}
        engine_section = config.get('engine', {}) or {}

        self._settings = SessionConfig.from_dict(quiz_section, base=self._settings)

        default_count = engine_section.get('default_question_count')
        if isinstance(default_count, int) and not isinstance(default_count, bool) and default_count > 0:
            self._default_question_count = default_count
        elif default_count is not None:
            self.logger.warning(f"Ignoring invalid default_question_count: {default_count!r}")

        tick_interval = engine_section.get('tick_interval_seconds')
        if isinstance(tick_interval, (int, float)) and not isinstance(tick_interval, bool) and tick_interval > 0:
            self._tick_interval = float(tick_interval)
        elif tick_interval is not None:
            self.logger.warning(f"Ignoring invalid tick_interval_seconds: {tick_interval!r}")

        validation = self.validate_settings()
        if not validation['valid']:
            self.logger.warning(f"Loaded settings have issues: {validation['issues']}")
        else:
            self.logger.info("Configuration loaded")
        return {'success': validation['valid'], 'issues': validation['issues']}

    def get_session_config(self) -> SessionConfig:
        """
        Get current default session settings.

        Returns:
            SessionConfig with current defaults
        """
        return self._settings

    def build_session_config(self, overrides: Optional[Dict[str, Any]] = None) -> SessionConfig:
        """
        Merge per-profile settings over the defaults.

        An enabled timer without a positive duration is turned off.

        Args:
            overrides: Partial settings mapping, camelCase or snake_case keys

        Returns:
            SessionConfig for one attempt
        """
        config = SessionConfig.from_dict(overrides, base=self._settings)
        if config.enable_timer and config.timer_duration_minutes <= 0:
            self.logger.warning(
                f"Timer enabled with {config.timer_duration_minutes} minutes, disabling timer"
            )
            config = SessionConfig.from_dict({'enable_timer': False}, base=config)
        return config

    @property
    def default_question_count(self) -> int:
        return self._default_question_count

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def _update(self, **changes) -> None:
        self._settings = SessionConfig.from_dict(changes, base=self._settings)

    @staticmethod
    def _is_int(value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)

    def _type_error(self, name: str, expected: str, value: Any) -> Dict[str, Any]:
        error_msg = f"{name} must be {expected}, got {type(value).__name__}"
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': f"Invalid input: Expected {expected}, got {type(value).__name__}"
        }

    def _range_error(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {'success': False, 'error': error_msg, 'user_message': user_message}

    def _set_flag(self, field_name: str, label: str, value: Any) -> Dict[str, Any]:
        if not isinstance(value, bool):
            return self._type_error(label, "a boolean", value)
        self._update(**{field_name: value})
        state = "enabled" if value else "disabled"
        self.logger.info(f"{label} {state}")
        return {
            'success': True,
            'message': f"{label} {state}",
            'user_message': f"{label} {state}"
        }

    def set_num_questions(self, count: int) -> Dict[str, Any]:
        """
        Set the fixed number of questions per attempt with detailed error reporting.

        Args:
            count: Number of questions

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not self._is_int(count):
            return self._type_error("Question count", "a number", count)

        if count < self.MIN_QUESTION_COUNT:
            return self._range_error(
                f"Question count must be at least {self.MIN_QUESTION_COUNT}",
                f"Too few questions: Minimum is {self.MIN_QUESTION_COUNT}"
            )

        if count > self.MAX_QUESTION_COUNT:
            return self._range_error(
                f"Question count cannot exceed {self.MAX_QUESTION_COUNT}",
                f"Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            )

        self._update(num_questions=count)
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"Question count set to {count}"
        }

    def set_use_all_questions(self, use_all: bool) -> Dict[str, Any]:
        return self._set_flag('use_all_questions', "Use all questions", use_all)

    def set_select_by_topic(self, by_topic: bool) -> Dict[str, Any]:
        return self._set_flag('select_by_topic', "Select by topic", by_topic)

    def set_randomize_questions(self, randomize: bool) -> Dict[str, Any]:
        return self._set_flag('randomize_questions', "Random question order", randomize)

    def set_randomize_answers(self, randomize: bool) -> Dict[str, Any]:
        return self._set_flag('randomize_answers', "Random answer order", randomize)

    def set_timer(self, enabled: bool) -> Dict[str, Any]:
        return self._set_flag('enable_timer', "Timer", enabled)

    def set_topic_question_count(self, topic: str, count: int) -> Dict[str, Any]:
        """
        Set how many questions to draw from one topic.

        A count of zero removes the topic from selection.

        Args:
            topic: Topic label
            count: Requested number of questions, zero or more

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(topic, str) or not topic.strip():
            return self._range_error("Topic must be a non-empty string", "Topic name cannot be empty")
        if not self._is_int(count):
            return self._type_error("Topic question count", "a number", count)
        if count < 0:
            return self._range_error(
                f"Topic question count cannot be negative: {count}",
                "Topic question count cannot be negative"
            )
        if count > self.MAX_QUESTION_COUNT:
            return self._range_error(
                f"Topic question count cannot exceed {self.MAX_QUESTION_COUNT}",
                f"Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            )

        counts = dict(self._settings.topic_question_counts)
        counts[topic] = count
        self._update(topic_question_counts=counts)
        self.logger.info(f"Topic '{topic}' question count set to {count}")
        return {
            'success': True,
            'message': f"Topic '{topic}' question count set to {count}",
            'user_message': f"{count} questions from '{topic}'"
        }

    def set_timer_duration_minutes(self, minutes: int) -> Dict[str, Any]:
        """
        Set the attempt time limit with error handling.

        Args:
            minutes: Timer duration in minutes

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not self._is_int(minutes):
            return self._type_error("Timer duration", "a number", minutes)

        if minutes < self.MIN_TIMER_MINUTES:
            return self._range_error(
                f"Timer duration must be at least {self.MIN_TIMER_MINUTES} minute",
                f"Timer too short: Minimum is {self.MIN_TIMER_MINUTES} minute"
            )

        if minutes > self.MAX_TIMER_MINUTES:
            return self._range_error(
                f"Timer duration cannot exceed {self.MAX_TIMER_MINUTES} minutes",
                f"Timer too long: Maximum is {self.MAX_TIMER_MINUTES} minutes"
            )

        self._update(timer_duration_minutes=minutes)
        self.logger.info(f"Timer duration set to {minutes} minutes")
        return {
            'success': True,
            'message': f"Timer duration set to {minutes} minutes",
            'user_message': f"Timer set to {minutes} minutes"
        }

    def set_answer_numbering_style(self, style: Union[str, AnswerNumberingStyle]) -> Dict[str, Any]:
        """Set the prefix style shown before answer options."""
        if isinstance(style, AnswerNumberingStyle):
            parsed = style
        else:
            try:
                parsed = AnswerNumberingStyle(str(style).lower())
            except ValueError:
                allowed = ", ".join(member.value for member in AnswerNumberingStyle)
                return self._range_error(
                    f"Unknown answer numbering style: {style!r}",
                    f"Unknown numbering style. Choose one of: {allowed}"
                )

        self._update(answer_numbering_style=parsed)
        self.logger.info(f"Answer numbering style set to {parsed.value}")
        return {
            'success': True,
            'message': f"Answer numbering style set to {parsed.value}",
            'user_message': f"Answers will be numbered with style '{parsed.value}'"
        }

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = SessionConfig()
        self._default_question_count = self.DEFAULT_QUESTION_COUNT
        self._tick_interval = self.DEFAULT_TICK_INTERVAL
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        settings = self._settings
        validation_result = {
            "valid": True,
            "issues": []
        }

        if not settings.use_all_questions and not settings.select_by_topic:
            if not (self.MIN_QUESTION_COUNT <= settings.num_questions <= self.MAX_QUESTION_COUNT):
                validation_result["valid"] = False
                validation_result["issues"].append(
                    f"Invalid question count: {settings.num_questions}"
                )

        for topic, count in settings.topic_question_counts.items():
            if count < 0:
                validation_result["valid"] = False
                validation_result["issues"].append(
                    f"Invalid question count for topic '{topic}': {count}"
                )

        if settings.enable_timer and not (
            self.MIN_TIMER_MINUTES <= settings.timer_duration_minutes <= self.MAX_TIMER_MINUTES
        ):
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid timer duration: {settings.timer_duration_minutes}"
            )

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._settings
        if settings.use_all_questions:
            selection_str = "all available"
        elif settings.select_by_topic and settings.positive_topic_counts():
            selection_str = ", ".join(
                f"{topic}: {count}" for topic, count in settings.positive_topic_counts()
            )
        else:
            selection_str = str(settings.num_questions)

        question_order = "random" if settings.randomize_questions else "sequential"
        answer_order = "random" if settings.randomize_answers else "as written"
        timer_str = (
            f"{settings.timer_duration_minutes} minutes" if settings.timer_active else "off"
        )

        return (
            f"Quiz Settings:\n"
            f"• Questions: {selection_str}\n"
            f"• Question order: {question_order}\n"
            f"• Answer order: {answer_order}\n"
            f"• Timer: {timer_str}\n"
            f"• Numbering: {settings.answer_numbering_style.value}"
        )

    def get_user_friendly_validation_errors(self) -> List[str]:
        """
        Get user-friendly validation error messages for current settings.

        Returns:
            List of user-friendly error messages
        """
        user_friendly_errors = []
        for issue in self.validate_settings().get("issues", []):
            if "topic" in issue.lower():
                user_friendly_errors.append(
                    f"Topic Count Issue: {issue}. Please use zero or a positive number."
                )
            elif "question count" in issue.lower():
                user_friendly_errors.append(
                    f"Question Count Issue: {issue}. "
                    f"Please set a value between {self.MIN_QUESTION_COUNT} and {self.MAX_QUESTION_COUNT}."
                )
            elif "timer duration" in issue.lower():
                user_friendly_errors.append(
                    f"Timer Duration Issue: {issue}. "
                    f"Please set a value between {self.MIN_TIMER_MINUTES} and {self.MAX_TIMER_MINUTES} minutes."
                )
            else:
                user_friendly_errors.append(f"Configuration Issue: {issue}")
        return user_friendly_errors
