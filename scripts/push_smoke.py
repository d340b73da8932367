#!/usr/bin/env python3
"""Live Releva push verification tool.

Performs one screen view sync against a real realm and prints the
recommender tokens returned, plus the change flags before and after.

Credential sourcing:
- RELEVA_REALM
- RELEVA_ACCESS_TOKEN

Client options are read with ``RelevaConfig.from_env`` (``RELEVA_*``).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyreleva import JsonFileKeyValueStore, RelevaClient, RelevaConfig  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--screen", default="home", help="Screen token to send")
    parser.add_argument("--device-id", default="pyreleva-smoke-device")
    parser.add_argument("--profile-id", default=None)
    parser.add_argument(
        "--state-file",
        type=Path,
        default=_repo / ".releva-smoke.json",
        help="JSON file used as the persistent store",
    )
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    realm = os.environ.get("RELEVA_REALM")
    token = os.environ.get("RELEVA_ACCESS_TOKEN")
    if not realm or not token:
        raise SystemExit("Missing required env vars: RELEVA_REALM, RELEVA_ACCESS_TOKEN")

    config = RelevaConfig.from_env(enable_debug_logging=True) if args.debug else RelevaConfig.from_env()
    store = JsonFileKeyValueStore(args.state_file)

    async with RelevaClient(realm, token, config, store=store) as client:
        client.set_device_id(args.device_id)
        if args.profile_id:
            client.set_profile_id(args.profile_id)
        print(f"session:      {client.session.session_id}")
        print(f"flags before: {client.flags.model_dump()}")

        result = await client.track_screen_view(args.screen)
        if not result.ok:
            print(f"push failed:  {type(result.error).__name__}: {result.error}")
            return 1

        response = result.unwrap()
        tokens = [rec.get("token") for rec in response.recommenders]
        print(f"recommenders: {tokens}")
        print(f"flags after:  {client.flags.model_dump()}")
    return 0


def main() -> None:
    args = _parse_args()
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
