"""Main CLI entry point."""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal
from pathlib import Path


def main() -> None:
    """Parse args and dispatch to subcommands."""
    parser = argparse.ArgumentParser(prog="pitch-tracker", description="Team pitch and sales tracker")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: PITCH_TRACKER_* environment variables)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (overrides settings)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from settings)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # init-db
    subparsers.add_parser("init-db", help="Create the local SQLite schema")

    # resolve
    resolve_parser = subparsers.add_parser("resolve", help="Resolve an auth identity to a profile")
    _add_identity_args(resolve_parser)

    # record
    record_parser = subparsers.add_parser("record", help="Log a pitch or sale")
    record_parser.add_argument("--actor", required=True, help="Profile id (persons.id)")
    record_parser.add_argument("--kind", required=True, choices=["pitch", "sale"])
    record_parser.add_argument("--value", type=Decimal, default=None, help="Sale value")

    # dashboard
    dashboard_parser = subparsers.add_parser("dashboard", help="Aggregate stats for a signed-in identity")
    _add_identity_args(dashboard_parser)
    dashboard_parser.add_argument(
        "--period",
        choices=["daily", "weekly", "monthly"],
        default=None,
        help="Activity window (default: from settings)",
    )
    dashboard_parser.add_argument(
        "--search",
        default="",
        help="Only show leaderboard members whose name contains this text",
    )

    # members
    members_parser = subparsers.add_parser("members", help="List members of a scope")
    group = members_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--scope", help="Organization id")
    group.add_argument("--unassigned", action="store_true", help="Members without an organization")

    args = parser.parse_args()
    settings = _load_settings(args)
    logging.basicConfig(
        level=getattr(logging, (args.log_level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "init-db":
        _run_init_db(settings)
    elif args.command == "resolve":
        asyncio.run(_run_resolve(args, settings))
    elif args.command == "record":
        asyncio.run(_run_record(args, settings))
    elif args.command == "dashboard":
        asyncio.run(_run_dashboard(args, settings))
    elif args.command == "members":
        asyncio.run(_run_members(args, settings))
    else:
        parser.print_help()


def _add_identity_args(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("--auth-id", required=True, help="Auth user id")
    sub.add_argument("--email", default=None, help="Email from the auth session")
    sub.add_argument("--name", default=None, help="Sign-up name hint")
    sub.add_argument("--role", default=None, help="Sign-up role hint (user | team_leader)")


def _load_settings(args: argparse.Namespace):
    from pitch_tracker.config import Settings

    settings = Settings.load(args.config)
    if args.db is not None:
        settings = settings.model_copy(update={"db_path": args.db, "backend": "sqlite"})
    return settings


def _identity(args: argparse.Namespace):
    from pitch_tracker.models.identity import RawIdentity

    metadata = {k: v for k, v in (("name", args.name), ("role", args.role)) if v}
    return RawIdentity(id=args.auth_id, email=args.email, metadata=metadata)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _run_init_db(settings) -> None:
    """Run init-db command."""
    from pitch_tracker.store import SqliteStore

    if settings.backend != "sqlite":
        raise SystemExit("init-db only applies to the sqlite backend")
    SqliteStore(settings.db_path)
    print(f"Initialized {settings.db_path}")


async def _run_resolve(args: argparse.Namespace, settings) -> None:
    """Run resolve command."""
    from pitch_tracker.errors import NotFound
    from pitch_tracker.resolver import ProfileResolver
    from pitch_tracker.store import StoreRegistry

    store = StoreRegistry.from_settings(settings)
    try:
        resolver = ProfileResolver.from_settings(store, settings)
        try:
            profile = await resolver.resolve(_identity(args))
        except NotFound as e:
            raise SystemExit(str(e))
        _print_json(profile.model_dump(mode="json"))
    finally:
        await store.aclose()


async def _run_record(args: argparse.Namespace, settings) -> None:
    """Run record command. Write failures are reported, never retried."""
    from pitch_tracker.errors import ActorUnresolved, TransientQueryFailure
    from pitch_tracker.recorder import EventRecorder
    from pitch_tracker.store import StoreRegistry

    store = StoreRegistry.from_settings(settings)
    try:
        recorder = EventRecorder(store)
        try:
            event = await recorder.record(args.actor, args.kind, value=args.value)
        except (ActorUnresolved, TransientQueryFailure) as e:
            print(f"Error: {e}", file=sys.stderr)
            raise SystemExit(1)
        _print_json(event.model_dump(mode="json"))
    finally:
        await store.aclose()


async def _run_dashboard(args: argparse.Namespace, settings) -> None:
    """Run dashboard command: resolve the identity, then one refresh."""
    from pitch_tracker.aggregation import AggregationEngine, LiveDashboard
    from pitch_tracker.models.identity import AuthSession
    from pitch_tracker.policy import AccessPolicy
    from pitch_tracker.resolver import ProfileResolver
    from pitch_tracker.session import SessionContext, SessionStore
    from pitch_tracker.store import StoreRegistry

    store = StoreRegistry.from_settings(settings)
    sessions = SessionStore()
    context = SessionContext(sessions, ProfileResolver.from_settings(store, settings)).start()
    try:
        sessions.set_session(AuthSession(identity=_identity(args)))
        profile = await context.wait_resolved()
        if profile is None:
            raise SystemExit(f"No profile for {args.auth_id}")
        policy = AccessPolicy(profile)
        if not policy.can_view_dashboard():
            print(policy.denied_message(), file=sys.stderr)

        dashboard = LiveDashboard(
            store,
            context,
            engine=AggregationEngine(settings.series_buckets, settings.tzinfo),
            period=args.period or settings.period,
        )
        state = await dashboard.refresh()
        dashboard.close()
        output = {
            "profile": profile.model_dump(mode="json"),
            "scope": state.scope.model_dump(mode="json") if state.scope else None,
            "snapshot": state.snapshot.model_dump(mode="json"),
            "leaderboard": [e.model_dump(mode="json") for e in dashboard.leaderboard(args.search)],
            "degraded": str(state.degraded) if state.degraded else None,
        }
        _print_json(output)
    finally:
        context.close()
        await store.aclose()


async def _run_members(args: argparse.Namespace, settings) -> None:
    """Run members command."""
    from pitch_tracker.aggregation.membership import fetch_members, fetch_unassigned
    from pitch_tracker.store import StoreRegistry

    store = StoreRegistry.from_settings(settings)
    try:
        if args.unassigned:
            members = await fetch_unassigned(store)
        else:
            members = list((await fetch_members(store, args.scope)).members)
        _print_json([m.model_dump(mode="json") for m in members])
    finally:
        await store.aclose()


if __name__ == "__main__":
    main()
