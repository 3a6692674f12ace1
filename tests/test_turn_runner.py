import pytest

from shopping_assistant.turn_runner import TurnRunner, TurnStep


def test_steps_run_in_order_and_honor_skip():
    seen = []
    runner = TurnRunner(
        [
            TurnStep("a", lambda ctx: seen.append("a")),
            TurnStep("b", lambda ctx: seen.append("b"), skip_if=lambda ctx: True),
            TurnStep("c", lambda ctx: seen.append("c")),
        ]
    )
    assert runner.step_names == ["a", "b", "c"]
    assert runner.run({}) == ["a", "c"]
    assert seen == ["a", "c"]


def test_raising_step_stops_the_run():
    seen = []

    def boom(ctx):
        raise RuntimeError("boom")

    runner = TurnRunner([TurnStep("boom", boom), TurnStep("after", lambda ctx: seen.append("after"))])
    with pytest.raises(RuntimeError):
        runner.run({})
    assert seen == []
