"""
Default English message catalog and translate function.

The engine only needs a handful of strings: the synthesized True/False option
texts, the label for questions without a topic, remaining-time formatting and
the message keys attached to validation signals. A host application passes its
own translate callable with the same signature to localize them.
"""
import logging
from typing import Callable, Dict

from .models import ValidationReason

logger = logging.getLogger(__name__)

# translate(key, **replacements) -> str
Translator = Callable[..., str]

DEFAULT_MESSAGES: Dict[str, str] = {
    "optionTrue": "True",
    "optionFalse": "False",
    "qBankNotSpecified": "Not specified",
    "timeMinutesSeconds": "{minutes}m {seconds}s",
    "msgPleaseSelectAnswer": "Please select an answer before continuing.",
    "msgPleaseEnterAnswer": "Please enter an answer before continuing.",
    "msgPleaseAnswerLast": "Please answer the last question before submitting.",
    "msgQuizNotInProgress": "There is no quiz in progress.",
    "msgQuizNotReady": "No test profile is selected.",
    "quizNoQuestionsAvailable": "No questions are available for this test.",
    "msgQuizAlreadySubmitted": "This attempt has already been submitted.",
    "msgTimerUnavailable": "The timer could not be started, so this attempt has no time limit.",
    "quizTimeUpTitle": "Time's up!",
    "quizTimeUpMessage": "The time limit was reached and your answers were submitted.",
}

# Message key shown to the user for each validation reason.
REASON_MESSAGE_KEYS: Dict[ValidationReason, str] = {
    ValidationReason.ANSWER_REQUIRED: "msgPleaseSelectAnswer",
    ValidationReason.TEXT_REQUIRED: "msgPleaseEnterAnswer",
    ValidationReason.LAST_ANSWER_REQUIRED: "msgPleaseAnswerLast",
    ValidationReason.NOT_IN_PROGRESS: "msgQuizNotInProgress",
    ValidationReason.NOT_READY: "msgQuizNotReady",
    ValidationReason.NO_QUESTIONS: "quizNoQuestionsAvailable",
    ValidationReason.ALREADY_SUBMITTED: "msgQuizAlreadySubmitted",
}


def default_translate(key: str, **replacements) -> str:
    """Look up ``key`` in the default catalog and fill in replacements."""
    template = DEFAULT_MESSAGES.get(key)
    if template is None:
        logger.debug(f"Missing translation for key '{key}'")
        return key
    try:
        return template.format(**replacements)
    except (KeyError, IndexError) as e:
        logger.warning(f"Translation '{key}' missing replacement {e}")
        return template


def message_key_for(reason: ValidationReason) -> str:
    return REASON_MESSAGE_KEYS[reason]


def format_time(total_seconds: int, translate: Translator = default_translate) -> str:
    """Render a second count as minutes and seconds using ``timeMinutesSeconds``."""
    total_seconds = max(0, int(total_seconds))
    minutes, seconds = divmod(total_seconds, 60)
    return translate("timeMinutesSeconds", minutes=minutes, seconds=seconds)
