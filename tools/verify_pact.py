#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
verify_pact.py — Verify a running provider against a contract artifact.

Place at: tools/verify_pact.py
Run from the repo root (folder that contains cdc/).

What this does:
  - Loads the pact file given with --pact.
  - Loads provider state hooks from every *_states.py module under --states.
  - Replays each interaction against --base-url and prints a JSON report.

Exit codes:
  - 0  => every interaction passed.
  - 1  => at least one interaction failed, or the setup was broken
          (malformed artifact, missing state hook).

Common examples:
  python tools/verify_pact.py --pact pacts/weather-client-weather-api.json \\
      --base-url http://127.0.0.1:8000 --states provider_states

  CDC_REQUEST_TIMEOUT_SECS=2 python tools/verify_pact.py --pact pacts/x.json --concurrent
"""
import sys, json, argparse
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cdc.core.errors import ContractError, MissingStateHook  # noqa: E402
from cdc.core.settings import get_settings  # noqa: E402
from cdc.registry import StateHookRegistry, discover  # noqa: E402
from cdc.services.artifact import read_artifact  # noqa: E402
from cdc.services.provider_verifier import ProviderVerifier  # noqa: E402
from shared.http import make_client  # noqa: E402
from shared.logging import setup_json_logging  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    cfg = get_settings()
    ap = argparse.ArgumentParser(description="Replay a contract artifact against a provider.")
    ap.add_argument("--pact", required=True, help="Path to the contract artifact (JSON)")
    ap.add_argument("--base-url", default=cfg.provider_base_url, help="Provider base URL")
    ap.add_argument("--states", default=None, help="Directory holding *_states.py hook modules")
    ap.add_argument("--timeout", type=float, default=cfg.request_timeout_secs, help="Per-request timeout (s)")
    ap.add_argument("--concurrent", action="store_true", help="Verify interactions in parallel")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_json_logging(get_settings().log_level.value, stream=sys.stderr)

    hooks = discover(args.states) if args.states else StateHookRegistry()
    try:
        artifact = read_artifact(args.pact)
        with make_client(args.base_url, timeout=args.timeout) as client:
            verifier = ProviderVerifier(client, hooks, timeout=args.timeout, concurrent=args.concurrent)
            report = verifier.verify(artifact)
    except MissingStateHook as e:
        print(json.dumps({
            "ok": False,
            "error": e.message,
            "completed": [r.model_dump(mode="json") for r in e.results],
        }, indent=2))
        return 1
    except ContractError as e:
        print(json.dumps({"ok": False, "error": e.message}, indent=2))
        return 1

    print(json.dumps({"ok": report.passed, **report.summary()}, indent=2))
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
