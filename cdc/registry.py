# cdc/registry.py
"""
Registry for provider state setup hooks.

A state hook prepares provider-side fixtures for one provider state named in a
contract ("weather forecast data", "no forecast available", ...). The
registry is built explicitly and handed to ProviderVerifier; nothing is
resolved from global state.

Typical usage:

    from cdc.registry import StateHookRegistry

    hooks = StateHookRegistry()

    @hooks.register("weather forecast data")
    def _seed_forecast():
        fake_weather.summary = "Rain"

For command-line verification, discover() loads *_states.py files from a
directory. Each module is expected to expose STATE_HOOKS, either a
StateHookRegistry or a plain {state: callable} dict.

Notes:
  - Hooks take no arguments and their return value is ignored.
  - Generated hook modules live under e.g. provider_states/weather_states.py
"""

from __future__ import annotations
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Union

from cdc.core.errors import MissingStateHook

StateHook = Callable[[], None]


class StateHookRegistry:
    def __init__(self, hooks: Optional[Mapping[str, StateHook]] = None):
        self._hooks: Dict[str, StateHook] = {}
        for state, fn in (hooks or {}).items():
            self.add(state, fn)

    def add(self, state: str, fn: StateHook) -> None:
        if not callable(fn):
            raise TypeError(f"state hook for {state!r} is not callable")
        self._hooks[state] = fn

    def register(self, state: str) -> Callable[[StateHook], StateHook]:
        def deco(fn: StateHook) -> StateHook:
            self.add(state, fn)
            return fn
        return deco

    def get(self, state: str) -> StateHook:
        try:
            return self._hooks[state]
        except KeyError:
            raise MissingStateHook(state) from None

    def update(self, other: Union["StateHookRegistry", Mapping[str, StateHook]]) -> None:
        items = other._hooks.items() if isinstance(other, StateHookRegistry) else other.items()
        for state, fn in items:
            self.add(state, fn)

    def __contains__(self, state: object) -> bool:
        return state in self._hooks

    def __iter__(self) -> Iterator[str]:
        return iter(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)


def _iter_state_paths(root: Path) -> Iterable[Path]:
    """
    Yield all *_states.py paths under root, excluding caches/tests.
    """
    if not root.exists():
        return []
    for p in sorted(root.rglob("*_states.py")):
        if any(part in {".cache", "__pycache__", "tests"} for part in p.relative_to(root).parts):
            continue
        yield p


def _load_module_from_path(path: Path) -> ModuleType:
    """
    Import a module given a filesystem path.
    """
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if not spec or not spec.loader:  # pragma: no cover
        raise ImportError(f"Failed to load spec for {path}")
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)     # type: ignore[attr-defined]
    return mod


def discover(root: Union[str, Path]) -> StateHookRegistry:
    """
    Load every *_states.py module under root and merge their STATE_HOOKS.
    """
    registry = StateHookRegistry()
    for path in _iter_state_paths(Path(root)):
        mod = _load_module_from_path(path)
        hooks = getattr(mod, "STATE_HOOKS", None)
        if hooks is None:
            continue
        registry.update(hooks)
    return registry
