"""Unit tests for the data models."""

from datetime import datetime, timedelta

import pytest

from math_streak.models import CelebrationPhase, GameState, SessionStats, UserSettings
from math_streak.problems import (
    DEFAULT_CONFIG,
    RESULT,
    Constraints,
    Operation,
    Problem,
    UnknownPosition,
    get_preset,
)

PROBLEM = Problem(Operation.ADDITION, (3, 4), RESULT, 7, "3 + 4 = ?")


class TestProblem:
    """Tests for Problem."""

    def test_check_answer(self):
        assert PROBLEM.check_answer(7)
        assert not PROBLEM.check_answer(8)

    def test_result_with_hidden_operand(self):
        problem = Problem(
            Operation.MULTIPLICATION, (3, 4), UnknownPosition.operand(0), 3, "? × 4 = 12"
        )
        assert problem.result == 12
        assert problem.check_answer(3)


class TestGameState:
    """Tests for GameState."""

    def test_defaults(self):
        state = GameState(current_problem=PROBLEM)
        assert state.current_answer == ""
        assert state.streak == 0
        assert state.high_score == 0
        assert state.is_answer_correct is None
        assert state.celebration_phase is CelebrationPhase.IDLE
        assert state.is_idle

    def test_is_frozen(self):
        state = GameState(current_problem=PROBLEM)
        with pytest.raises(AttributeError):
            state.streak = 5

    def test_is_new_high_score(self):
        assert GameState(current_problem=PROBLEM, streak=3, high_score=3).is_new_high_score
        assert not GameState(current_problem=PROBLEM, streak=2, high_score=3).is_new_high_score
        assert not GameState(current_problem=PROBLEM).is_new_high_score


class TestUserSettings:
    """Tests for UserSettings."""

    def test_defaults_match_default_config(self):
        assert UserSettings() == UserSettings.from_config(DEFAULT_CONFIG)
        assert UserSettings().constraints == DEFAULT_CONFIG.constraints

    def test_invalid_bounds_raise(self):
        with pytest.raises(ValueError):
            UserSettings(min_operand=8, max_operand=3)

    def test_empty_operations_raise(self):
        with pytest.raises(ValueError):
            UserSettings(operations=())

    def test_to_dict(self):
        settings = UserSettings(
            max_result=20,
            allow_zero=False,
            operations=(Operation.ADDITION, Operation.SUBTRACTION),
            unknown_positions=(RESULT, UnknownPosition.operand(1)),
        )
        assert settings.to_dict() == {
            "maxResult": 20,
            "minOperand": 0,
            "maxOperand": 10,
            "allowZero": False,
            "operations": ["addition", "subtraction"],
            "unknownPositions": ["result", "operand-1"],
        }

    def test_from_dict_restores_settings(self):
        settings = UserSettings(
            max_result=50,
            min_operand=2,
            max_operand=9,
            operations=(Operation.MULTIPLICATION,),
            unknown_positions=(UnknownPosition.operand(0),),
        )
        assert UserSettings.from_dict(settings.to_dict()) == settings

    def test_from_dict_fills_missing_fields(self):
        settings = UserSettings.from_dict({"maxResult": 15})
        assert settings.max_result == 15
        assert settings.operations == (Operation.ADDITION,)
        assert settings.unknown_positions == (RESULT,)

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"maxResult": "ten"},
            {"maxResult": True},
            {"allowZero": "yes"},
            {"operations": "addition"},
            {"operations": ["exponentiation"]},
            {"operations": []},
            {"unknownPositions": ["middle"]},
            {"minOperand": 5, "maxOperand": 1},
        ],
    )
    def test_from_dict_rejects_malformed(self, data):
        with pytest.raises(ValueError):
            UserSettings.from_dict(data)

    def test_apply_to(self):
        settings = UserSettings(max_result=20, operations=(Operation.SUBTRACTION,))
        config = settings.apply_to(DEFAULT_CONFIG)
        assert config.name == DEFAULT_CONFIG.name
        assert config.operations == (Operation.SUBTRACTION,)
        assert config.constraints == Constraints(max_result=20)

    def test_apply_to_checks_base_config(self):
        """Addition is the only operation allowed with three operands."""
        settings = UserSettings(operations=(Operation.SUBTRACTION,))
        with pytest.raises(ValueError):
            settings.apply_to(get_preset("Three Addends"))


class TestSessionStats:
    """Tests for SessionStats."""

    def test_record_attempts(self):
        stats = SessionStats()
        stats.record_attempt(True)
        stats.record_attempt(True)
        stats.record_attempt(False)

        assert stats.problems_attempted == 3
        assert stats.correct_answers == 2
        assert stats.incorrect_answers == 1
        assert stats.accuracy == 67

    def test_accuracy_without_attempts(self):
        assert SessionStats().accuracy == 0

    def test_duration_minutes(self):
        started = datetime(2024, 1, 1, 12, 0, 0)
        stats = SessionStats(started_at=started)
        assert stats.duration_minutes(started + timedelta(seconds=90)) == 1.5

    def test_reset(self):
        stats = SessionStats(started_at=datetime(2024, 1, 1))
        stats.record_attempt(False)
        stats.reset()

        assert stats.problems_attempted == 0
        assert stats.incorrect_answers == 0
        assert stats.started_at > datetime(2024, 1, 1)
