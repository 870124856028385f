"""
test_registry.py — Verify state hook registration and discovery.

Place at: tests/test_registry.py
Run from the repo root (folder that contains cdc/).

What this does:
  - Registers hooks explicitly and through the decorator.
  - Calls cdc.registry.discover() on a temporary directory of *_states.py modules.
  - Asserts the result maps state names to callables and skips tests/ folders.

Why it matters:
  - The provider verifier refuses to run an interaction whose state it cannot set up.

Common examples:
  pytest -q tests/test_registry.py
  pytest -k registry
"""

import pytest

from cdc.core.errors import MissingStateHook
from cdc.registry import StateHookRegistry, discover


def test_register_and_get():
    hooks = StateHookRegistry({"a": lambda: None})

    @hooks.register("weather forecast data")
    def seed():
        return "seeded"

    assert "weather forecast data" in hooks
    assert hooks.get("weather forecast data") is seed
    assert sorted(hooks) == ["a", "weather forecast data"]
    with pytest.raises(MissingStateHook) as exc:
        hooks.get("storm warning active")
    assert exc.value.provider_state == "storm warning active"


def test_non_callable_hook_rejected():
    with pytest.raises(TypeError):
        StateHookRegistry({"a": "not callable"})


def test_discover_state_modules(tmp_path):
    (tmp_path / "weather_states.py").write_text(
        "CALLS = []\n"
        "STATE_HOOKS = {'weather forecast data': lambda: CALLS.append('rain')}\n"
    )
    nested = tmp_path / "extra"
    nested.mkdir()
    (nested / "storm_states.py").write_text(
        "from cdc.registry import StateHookRegistry\n"
        "STATE_HOOKS = StateHookRegistry()\n"
        "@STATE_HOOKS.register('storm warning active')\n"
        "def storm():\n"
        "    pass\n"
    )
    ignored = tmp_path / "tests"
    ignored.mkdir()
    (ignored / "fake_states.py").write_text("STATE_HOOKS = {'ignored': lambda: None}\n")
    (tmp_path / "helpers_states.py").write_text("VALUE = 1\n")

    reg = discover(tmp_path)
    assert isinstance(reg, StateHookRegistry)
    assert sorted(reg) == ["storm warning active", "weather forecast data"]
    # Every entry must map to a callable
    assert all(callable(reg.get(state)) for state in reg)


def test_discover_missing_dir_is_empty(tmp_path):
    assert len(discover(tmp_path / "nope")) == 0
