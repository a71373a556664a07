"""
Profile manager holding question pools, settings and attempt history in memory.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config_manager import ConfigManager
from .models import HistoryEntry, Question, SessionConfig


class HistoryStore:
    """Receives the history entry of each submitted attempt."""

    def append_history(self, entry: HistoryEntry) -> None:
        raise NotImplementedError


class InMemoryHistoryStore(HistoryStore):
    """History store keeping entries in a list."""

    def __init__(self):
        self.entries: List[HistoryEntry] = []

    def append_history(self, entry: HistoryEntry) -> None:
        self.entries.append(entry)


@dataclass
class TestProfile:
    """A named question bank with its own settings and history."""
    __test__ = False  # not a pytest test class

    id: str
    name: str
    questions: List[Question] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)
    history: List[HistoryEntry] = field(default_factory=list)


class ProfileHistoryStore(HistoryStore):
    """History store bound to one profile of a ProfileManager."""

    def __init__(self, manager: "ProfileManager", profile_id: str):
        self.manager = manager
        self.profile_id = profile_id

    def append_history(self, entry: HistoryEntry) -> None:
        self.manager.append_history(self.profile_id, entry)


class ProfileManager:
    """Manages test profiles and validation of profile data."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize ProfileManager.

        Args:
            config_manager: Supplies the default settings merged under each
                profile's own settings
        """
        self.config_manager = config_manager or ConfigManager()
        self.profiles: Dict[str, TestProfile] = {}
        self.active_profile_id: Optional[str] = None
        self.load_errors: List[str] = []
        self.logger = logging.getLogger(__name__)

    def validate_profile_structure(self, data: Any) -> bool:
        """
        Validate that profile data has the expected structure.

        Expected structure:
        {
            "id": str,
            "name": str,               # Optional
            "questions": [ {...} ],    # Optional, question mappings
            "settings": { ... }        # Optional
        }

        Args:
            data: Profile mapping to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Profile data must be an object")
            return False

        profile_id = data.get("id")
        if not isinstance(profile_id, str) or not profile_id.strip():
            self.logger.error("Profile data must contain a non-empty string 'id'")
            return False

        if "questions" in data and not isinstance(data["questions"], list):
            self.logger.error(f"Profile '{profile_id}' 'questions' field must be an array")
            return False

        if "settings" in data and not isinstance(data["settings"], dict):
            self.logger.error(f"Profile '{profile_id}' 'settings' field must be an object")
            return False

        for i, question_data in enumerate(data.get("questions", [])):
            if not isinstance(question_data, (dict, Question)):
                self.logger.error(f"Profile '{profile_id}' question {i} must be an object")
                return False

        return True

    def load_profile_data(self, data: Dict[str, Any]) -> TestProfile:
        """
        Parse a profile mapping and register it.

        Questions may be Question objects or mappings accepted by
        ``Question.from_dict``.

        Args:
            data: Profile mapping

        Returns:
            The registered profile

        Raises:
            ValueError: If the mapping or one of its questions is malformed
        """
        if not self.validate_profile_structure(data):
            error = f"Invalid profile structure: {str(data)[:80]}"
            self.load_errors.append(error)
            raise ValueError(error)

        questions: List[Question] = []
        for i, question_data in enumerate(data.get("questions", [])):
            if isinstance(question_data, Question):
                questions.append(question_data)
                continue
            try:
                questions.append(Question.from_dict(question_data))
            except ValueError as e:
                error = f"Profile '{data['id']}' question {i}: {e}"
                self.load_errors.append(error)
                self.logger.error(error)
                raise ValueError(error) from e

        profile = TestProfile(
            id=data["id"],
            name=str(data.get("name") or data["id"]),
            questions=questions,
            settings=dict(data.get("settings", {}))
        )
        self.add_profile(profile)
        return profile

    def add_profile(self, profile: TestProfile) -> None:
        if profile.id in self.profiles:
            self.logger.info(f"Replacing profile '{profile.id}'")
        self.profiles[profile.id] = profile
        self.logger.info(f"Loaded profile '{profile.id}' with {len(profile.questions)} questions")

    def remove_profile(self, profile_id: str) -> bool:
        """
        Remove a profile, clearing it as active if selected.

        Returns:
            True if the profile existed
        """
        if profile_id not in self.profiles:
            return False
        del self.profiles[profile_id]
        if self.active_profile_id == profile_id:
            self.active_profile_id = None
        self.logger.info(f"Removed profile '{profile_id}'")
        return True

    def get_profile(self, profile_id: str) -> Optional[TestProfile]:
        return self.profiles.get(profile_id)

    def get_available_profiles(self) -> List[str]:
        """
        Get list of registered profile ids.

        Returns:
            Profile ids in registration order
        """
        return list(self.profiles.keys())

    def set_active_profile(self, profile_id: Optional[str]) -> Dict[str, Any]:
        """
        Select the profile whose pool and settings feed new attempts.

        Args:
            profile_id: Profile to activate, or None to clear the selection

        Returns:
            Dictionary with success status and error message if applicable
        """
        if profile_id is None:
            self.active_profile_id = None
            self.logger.info("Active profile cleared")
            return {'success': True}

        if profile_id not in self.profiles:
            error = f"Profile '{profile_id}' not found"
            self.logger.error(error)
            return {'success': False, 'error': error}

        self.active_profile_id = profile_id
        self.logger.info(f"Active profile set to '{profile_id}'")
        return {'success': True}

    @property
    def active_profile(self) -> Optional[TestProfile]:
        if self.active_profile_id is None:
            return None
        return self.profiles.get(self.active_profile_id)

    def get_session_config(self, profile_id: str) -> Optional[SessionConfig]:
        """Profile settings merged over the configured defaults, None if unknown."""
        profile = self.get_profile(profile_id)
        if profile is None:
            return None
        return self.config_manager.build_session_config(profile.settings)

    def get_session_inputs(
        self, profile_id: Optional[str] = None
    ) -> Tuple[Optional[List[Question]], Optional[SessionConfig]]:
        """
        Pool and configuration for a new attempt.

        Args:
            profile_id: Profile to use; the active profile if None

        Returns:
            ``(pool, config)``, or ``(None, None)`` when no such profile exists
        """
        profile = self.get_profile(profile_id) if profile_id is not None else self.active_profile
        if profile is None:
            self.logger.debug("No profile available for a new attempt")
            return None, None
        return list(profile.questions), self.config_manager.build_session_config(profile.settings)

    def append_history(self, profile_id: str, entry: HistoryEntry) -> None:
        """
        Record a submitted attempt on a profile.

        Raises:
            KeyError: If the profile does not exist
        """
        profile = self.profiles.get(profile_id)
        if profile is None:
            self.logger.error(f"Cannot record history, profile '{profile_id}' not found")
            raise KeyError(profile_id)
        profile.history.append(entry)
        self.logger.info(
            f"Recorded attempt for profile '{profile_id}': {entry.score}/{entry.total_possible}"
        )

    def get_history(self, profile_id: str) -> List[HistoryEntry]:
        profile = self.profiles.get(profile_id)
        return list(profile.history) if profile else []

    def history_store(self, profile_id: str) -> ProfileHistoryStore:
        """History collaborator appending to ``profile_id``."""
        return ProfileHistoryStore(self, profile_id)

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the registered profiles.

        Returns:
            Dictionary with profile statistics and status
        """
        return {
            'total_profiles': len(self.profiles),
            'active_profile': self.active_profile_id,
            'has_errors': bool(self.load_errors),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'question_counts': {pid: len(p.questions) for pid, p in self.profiles.items()},
        }
