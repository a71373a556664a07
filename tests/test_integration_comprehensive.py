"""
Integration tests wiring profiles, configuration and the session state machine together.
"""
import asyncio
import logging
import random
import unittest

from selfquiz.config_manager import ConfigManager
from selfquiz.models import SessionPhase, ValidationReason
from selfquiz.profile_manager import ProfileManager
from selfquiz.quiz_controller import SessionStateMachine
from selfquiz.quiz_engine import SelectionPlanner, Shuffler
from selfquiz.quiz_timer import AsyncioTickSource
from selfquiz.translations import format_time
from tests.test_fixtures import FakeClock, ManualTickSource, TestFixtures


class TestEndToEndSession(unittest.TestCase):
    """Full attempt flows from profile selection to recorded history."""

    def setUp(self):
        """Set up test fixtures."""
        logging.disable(logging.CRITICAL)
        self.config_manager = ConfigManager({'engine': {'default_question_count': 2}})
        self.profiles = ProfileManager(self.config_manager)
        self.profiles.load_profile_data(TestFixtures.create_valid_profile_data())
        self.clock = FakeClock()
        self.ticks = ManualTickSource(self.clock)
        self.machine = SessionStateMachine(
            self.profiles.history_store("geo"),
            planner=SelectionPlanner(
                Shuffler(random.Random(11)),
                default_question_count=self.config_manager.default_question_count
            ),
            clock=self.clock,
            tick_source=self.ticks,
            tick_interval=self.config_manager.tick_interval
        )

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def test_no_active_profile_then_select_profile(self):
        result = self.machine.rebuild_session(*self.profiles.get_session_inputs())
        self.assertEqual(result['reason'], ValidationReason.NOT_READY)

        self.profiles.set_active_profile("geo")
        result = self.machine.rebuild_session(*self.profiles.get_session_inputs())
        self.assertTrue(result['started'])
        self.assertEqual(self.machine.state.total_questions, 3)

    def test_complete_attempt_records_profile_history(self):
        self.profiles.set_active_profile("geo")
        self.machine.rebuild_session(*self.profiles.get_session_inputs())

        # Geography questions in stored order: Tokyo (index 1), True (index 0), Rome
        self.machine.select_answer(1)
        self.assertTrue(self.machine.go_to_next()['success'])
        self.machine.select_answer(0)
        self.assertTrue(self.machine.go_to_next()['success'])
        self.machine.select_answer(" rome ")
        result = self.machine.submit()

        self.assertTrue(result['success'])
        history = self.profiles.get_history("geo")
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].score, 3)
        self.assertEqual(history[0].percentage, 100.0)

    def test_re_selecting_same_profile_keeps_attempt(self):
        self.profiles.set_active_profile("geo")
        self.machine.rebuild_session(*self.profiles.get_session_inputs())
        attempt_id = self.machine.state.attempt_id
        self.machine.select_answer(1)

        self.machine.rebuild_session(*self.profiles.get_session_inputs())

        self.assertEqual(self.machine.state.attempt_id, attempt_id)
        self.assertEqual(self.machine.current_answer(), 1)

    def test_fixed_total_uses_engine_default_for_non_positive_count(self):
        profile = self.profiles.get_profile("geo")
        profile.settings = {'numQuestions': 0, 'randomizeQuestions': False}
        self.profiles.set_active_profile("geo")

        self.machine.rebuild_session(*self.profiles.get_session_inputs())

        self.assertEqual(self.machine.state.total_questions, 2)

    def test_timed_attempt_expires_into_history(self):
        profile = self.profiles.get_profile("geo")
        profile.settings = dict(profile.settings, enableTimer=True, timerDurationMinutes=1)
        self.profiles.set_active_profile("geo")
        self.machine.rebuild_session(*self.profiles.get_session_inputs())

        self.ticks.tick(30)
        self.assertEqual(format_time(self.machine.status()['remaining_seconds']), "0m 30s")
        self.ticks.tick(30)

        self.assertEqual(self.machine.phase, SessionPhase.SUBMITTED)
        self.assertTrue(self.machine.time_up)
        self.assertEqual(self.profiles.get_history("geo")[0].time_taken_seconds, 60)

    def test_try_again_after_submission_adds_second_entry(self):
        self.profiles.set_active_profile("geo")
        self.machine.rebuild_session(*self.profiles.get_session_inputs())
        self.machine.submit()
        self.machine.try_again()
        self.machine.submit()

        self.assertEqual(len(self.profiles.get_history("geo")), 2)

    def test_removing_profile_returns_to_not_ready(self):
        self.profiles.set_active_profile("geo")
        self.machine.rebuild_session(*self.profiles.get_session_inputs())
        self.profiles.remove_profile("geo")

        result = self.machine.rebuild_session(*self.profiles.get_session_inputs())

        self.assertEqual(result['reason'], ValidationReason.NOT_READY)
        self.assertIsNone(self.machine.state)


class TestAsyncTimedSession(unittest.IsolatedAsyncioTestCase):
    """Timed attempt running on a real event loop."""

    async def asyncSetUp(self):
        logging.disable(logging.CRITICAL)

    async def asyncTearDown(self):
        logging.disable(logging.NOTSET)

    async def test_expiry_on_event_loop_submits_once(self):
        clock = FakeClock()
        profiles = ProfileManager()
        profiles.load_profile_data(TestFixtures.create_valid_profile_data())
        profile = profiles.get_profile("geo")
        profile.settings = dict(profile.settings, enableTimer=True, timerDurationMinutes=1)

        time_up = asyncio.Event()

        def on_tick(remaining):
            # Each real tick stands for ten seconds
            clock.advance(10)

        machine = SessionStateMachine(
            profiles.history_store("geo"),
            clock=clock,
            tick_source=AsyncioTickSource(),
            on_tick=on_tick,
            on_time_up=lambda result: time_up.set(),
            tick_interval=0.01
        )
        machine.rebuild_session(*profiles.get_session_inputs("geo"))
        await asyncio.wait_for(time_up.wait(), timeout=2)

        self.assertEqual(machine.submit()['reason'], ValidationReason.ALREADY_SUBMITTED)
        await asyncio.sleep(0.05)
        self.assertEqual(len(profiles.get_history("geo")), 1)
        self.assertTrue(machine.time_up)


if __name__ == '__main__':
    unittest.main()
