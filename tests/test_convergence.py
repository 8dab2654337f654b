"""Tests for docbot.agent.convergence."""

import pytest

from conftest import ScriptedProvider
from docbot.agent.convergence import ConvergenceChecker, fallback_should_stop, parse_verdict
from docbot.agent.errors import ConvergenceCheckError
from docbot.core.config.schema import FallbackCheckpoint

CHECKPOINTS = [
    FallbackCheckpoint(iteration=5, min_changes=1),
    FallbackCheckpoint(iteration=10, min_changes=2),
    FallbackCheckpoint(iteration=15, min_changes=3),
]


def test_parse_done():
    v = parse_verdict("DONE\nThe section was added.")
    assert v.done
    assert v.reason == "The section was added."
    assert v.as_text() == "DONE: The section was added."


def test_parse_continue_and_garbage():
    assert not parse_verdict("CONTINUE\nmore work").done
    assert not parse_verdict("").done
    assert not parse_verdict("maybe?").done
    assert parse_verdict("**DONE**").done


@pytest.mark.parametrize(
    "iteration, changes, expected",
    [
        (4, 0, False),
        (5, 0, True),
        (5, 1, False),
        (9, 1, False),
        (10, 1, True),
        (12, 2, False),
        (15, 2, True),
        (19, 5, False),
        (20, 10, True),
    ],
)
def test_fallback_thresholds(iteration, changes, expected):
    assert fallback_should_stop(iteration, changes, CHECKPOINTS, hard_stop=20) is expected


@pytest.mark.asyncio
async def test_check_status(cfg):
    provider = ScriptedProvider(status="DONE\nGoal reached.")
    checker = ConvergenceChecker(cfg, provider)
    verdict = await checker.check_status("add a title", "Iteration 3", "Title added.")
    assert verdict.done
    assert verdict.reason == "Goal reached."
    prompt = provider.status_calls[0][1]["content"]
    assert "add a title" in prompt
    assert "Title added." in prompt


@pytest.mark.asyncio
async def test_check_status_failure_raises(cfg):
    checker = ConvergenceChecker(cfg, ScriptedProvider(status=RuntimeError("timeout")))
    with pytest.raises(ConvergenceCheckError):
        await checker.check_status("goal", "summary")
