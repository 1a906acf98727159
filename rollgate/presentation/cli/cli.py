"""
CLI Module

Architectural Intent:
- Command-line interface for rollgate
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug/--json-logs flags for log control

Exit codes for `rollout`:
- 0 SUCCEEDED, 1 FAILED, 2 ROLLED_BACK, 3 host busy (conflict)
"""

import argparse
import asyncio
import logging
import sys
import traceback

from rollgate.domain.entities.rollout import Rollout, RolloutStatus
from rollgate.domain.errors import RollgateError, RolloutConflictError
from rollgate.infrastructure.config import load_config
from rollgate.infrastructure.logging import configure_logging

EXIT_SUCCEEDED = 0
EXIT_FAILED = 1
EXIT_ROLLED_BACK = 2
EXIT_CONFLICT = 3

EXIT_CODES = {
    RolloutStatus.SUCCEEDED: EXIT_SUCCEEDED,
    RolloutStatus.FAILED: EXIT_FAILED,
    RolloutStatus.ROLLED_BACK: EXIT_ROLLED_BACK,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="rollgate: health-gated deployment rollouts"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Path to rollgate.json"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    rollout_parser = subparsers.add_parser(
        "rollout", help="Deploy a reference, probe it, roll back on failure"
    )
    rollout_parser.add_argument("host", help="Target host ([user@]host[:port] or localhost)")
    rollout_parser.add_argument("--ref", "-r", required=True, help="Reference to deploy")
    _add_probe_arguments(rollout_parser)
    rollout_parser.add_argument(
        "--previous-ref", default=None, help="Known-good reference to roll back to"
    )

    deploy_parser = subparsers.add_parser(
        "deploy", help="Run the deploy stage only (fetch, install, restart)"
    )
    deploy_parser.add_argument("host", help="Target host")
    deploy_parser.add_argument("--ref", "-r", required=True, help="Reference to deploy")

    probe_parser = subparsers.add_parser("probe", help="Probe a health endpoint")
    probe_parser.add_argument("endpoint", help="Health endpoint URL")
    probe_parser.add_argument("--timeout", type=float, default=None, help="Overall timeout (s)")
    probe_parser.add_argument("--interval", type=float, default=None, help="Seconds between attempts")
    probe_parser.add_argument("--max-attempts", type=int, default=None, help="Attempt limit")

    history_parser = subparsers.add_parser("history", help="Show finished rollouts")
    history_parser.add_argument("--host", default=None, help="Filter by host")
    history_parser.add_argument("--limit", "-n", type=int, default=20, help="Rows to show")

    dash_parser = subparsers.add_parser("dash", help="Launch the rollout dashboard")
    dash_parser.add_argument("--host", default=None, help="Filter by host")
    dash_parser.add_argument(
        "--interval", "-i", type=float, default=5.0, help="Refresh interval in seconds"
    )

    return parser


def _add_probe_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--endpoint", "-e", default=None, help="Health endpoint URL")
    parser.add_argument("--timeout", type=float, default=None, help="Probe timeout (s)")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between attempts")
    parser.add_argument("--max-attempts", type=int, default=None, help="Probe attempt limit")


def _pick(value, fallback):
    return fallback if value is None else value


def _print_rollout(rollout: Rollout) -> None:
    print(f"[*] Rollout {rollout.rollout_id} on {rollout.host}: {rollout.status.name}")
    if rollout.status is RolloutStatus.SUCCEEDED:
        print(f"[+] {rollout.reference} is live and healthy.")
    elif rollout.status is RolloutStatus.ROLLED_BACK:
        print(
            f"[-] {rollout.reference} was rolled back; "
            f"{rollout.rollback_reference} is running."
        )
    else:
        stage = rollout.failed_stage.value if rollout.failed_stage else "unknown"
        print(f"[-] Rollout failed during {stage}.")
    for cause in rollout.causes:
        print(f"    cause: {cause}")


def _print_history(rows: list[dict]) -> None:
    if not rows:
        print("[*] No rollouts recorded.")
        return
    for row in rows:
        causes = "; ".join(f"{c['stage']}: {c['cause']}" for c in row["causes"])
        line = f"{row['finished_at']}  {row['host']:<20} {row['reference']:<16} {row['status']}"
        if row.get("rollback_reference"):
            line += f" -> {row['rollback_reference']}"
        if causes:
            line += f"  ({causes})"
        print(line)


async def async_main():
    parser = _build_parser()
    args = parser.parse_args()

    config = load_config(args.config)

    # Configure logging based on flags
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.getLevelName(config.log_level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    configure_logging(level=level, json_format=args.json_logs)

    verbose = args.verbose or args.debug

    if args.command is None:
        parser.print_help()
        return

    from rollgate.composition_root import create_container

    container = create_container(config)
    try:
        if args.command == "rollout":
            await _rollout(args, container, verbose)
        elif args.command == "deploy":
            await _deploy(args, container, verbose)
        elif args.command == "probe":
            await _probe(args, container)
        elif args.command == "history":
            _history(args, container)
        elif args.command == "dash":
            await _dash(args, container)
    finally:
        container.close()


async def _rollout(args, container, verbose: bool) -> None:
    from rollgate.application.dtos.rollout_dtos import RolloutRequest

    probe = container.config.probe
    try:
        request = RolloutRequest(
            host=args.host,
            reference=args.ref,
            endpoint=_pick(args.endpoint, probe.endpoint),
            timeout=_pick(args.timeout, probe.timeout),
            interval=_pick(args.interval, probe.interval),
            max_attempts=_pick(args.max_attempts, probe.max_attempts),
            previous_reference=args.previous_ref,
        )
    except ValueError as e:
        print(f"[-] Invalid rollout request: {e}")
        sys.exit(EXIT_FAILED)

    print(f"[*] Rolling out {request.reference} to {request.host}...")
    try:
        rollout = await container.controller.submit(request)
    except RolloutConflictError as e:
        print(f"[-] Conflict: {e}")
        sys.exit(EXIT_CONFLICT)
    except Exception as e:
        print(f"[-] Rollout aborted: {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(EXIT_FAILED)

    _print_rollout(rollout)
    code = EXIT_CODES.get(rollout.status, EXIT_FAILED)
    if code != EXIT_SUCCEEDED:
        sys.exit(code)


async def _deploy(args, container, verbose: bool) -> None:
    from rollgate.application.dtos.rollout_dtos import RolloutRequest

    try:
        # The endpoint is never probed here; the request only carries the target
        request = RolloutRequest(
            host=args.host,
            reference=args.ref,
            endpoint=container.config.probe.endpoint or "http://localhost/",
        )
    except ValueError as e:
        print(f"[-] Invalid deploy request: {e}")
        sys.exit(EXIT_FAILED)

    print(f"[*] Deploying {request.reference} to {request.host}...")
    try:
        result = await container.deploy_stage.deploy(request)
    except RollgateError as e:
        print(f"[-] Deploy Failed: {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(EXIT_FAILED)

    if result.ok:
        print(f"[+] Deploy Successful: {result.describe()}")
        return
    print(f"[-] Deploy Failed: {result.describe()}")
    sys.exit(EXIT_FAILED)


async def _probe(args, container) -> None:
    probe = container.config.probe
    print(f"[*] Probing {args.endpoint}...")
    try:
        outcome = await container.prober.probe(
            args.endpoint,
            _pick(args.interval, probe.interval),
            _pick(args.timeout, probe.timeout),
            _pick(args.max_attempts, probe.max_attempts),
        )
    except ValueError as e:
        print(f"[-] Invalid probe request: {e}")
        sys.exit(EXIT_FAILED)
    if outcome.is_healthy:
        print(f"[+] {outcome}")
        return
    print(f"[-] {outcome}")
    sys.exit(EXIT_FAILED)


def _history(args, container) -> None:
    if container.repository is None:
        print("[-] Rollout history is disabled in configuration.")
        sys.exit(EXIT_FAILED)
    _print_history(container.repository.get_rollout_history(args.host, args.limit))


async def _dash(args, container) -> None:
    if container.repository is None:
        print("[-] Rollout history is disabled in configuration.")
        sys.exit(EXIT_FAILED)
    from rollgate.presentation.tui.dashboard import RolloutDashboard

    app = RolloutDashboard(container.repository, host=args.host, refresh_interval=args.interval)
    await app.run_async()


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
