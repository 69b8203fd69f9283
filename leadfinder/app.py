import argparse
from pathlib import Path

from . import __version__
from .auditor import SiteAuditor
from .config import MissionConfig
from .env import load_env
from .errors import LeadFinderError
from .events import event_message
from .mission import MissionOrchestrator, is_mission_request, parse_goal, run_mission
from .storage import LeadStore


def _config_from_args(args: argparse.Namespace) -> MissionConfig:
    overrides = {
        "places_api_key": getattr(args, "api_key", None),
        "database_path": Path(args.db) if getattr(args, "db", None) else None,
    }
    if getattr(args, "source_file", None):
        overrides["provider"] = "json_file"
        overrides["source_file"] = Path(args.source_file)
    if getattr(args, "strict", False):
        overrides["strict_scoring"] = True
    if getattr(args, "max_leads", None):
        overrides["max_leads"] = args.max_leads
    return MissionConfig.from_env(**overrides)


def cmd_mission(args: argparse.Namespace) -> None:
    goal_text = args.goal.strip()
    if not args.force and not is_mission_request(goal_text):
        raise SystemExit(
            "That doesn't look like a search. Try something like 'find dentists in San Diego' "
            "(or pass --force)."
        )

    try:
        config = _config_from_args(args)
    except LeadFinderError as e:
        raise SystemExit(str(e))
    store = LeadStore(config.database_path)
    goal = parse_goal(goal_text, strict=config.strict_scoring, max_leads=config.max_leads)
    mode = "strict (score >= 75)" if config.strict_scoring else "relaxed (all scores)"
    print(f"Starting mission to find {goal.query} in {goal.location}. Using {mode} mode.")

    orchestrator = MissionOrchestrator(store, config)
    try:
        mission_id, summary = run_mission(orchestrator, goal)
    except LeadFinderError as e:
        raise SystemExit(f"Mission failed: {e}")

    print(f"Mission: {mission_id}")
    print(summary.message)
    print(
        f"considered={summary.considered} saved={summary.saved} qualified={summary.qualified} "
        f"junk={summary.junk} updated={summary.updated} duplicates={summary.skipped_duplicates} "
        f"rejected={summary.rejected}"
    )
    for lead in summary.top_leads:
        print(f" - {lead.name} ({lead.score})")


def cmd_events(args: argparse.Namespace) -> None:
    store = LeadStore(Path(args.db))
    mission = store.get_mission(args.mission_id)
    if mission is None:
        raise SystemExit(f"Mission not found: {args.mission_id}")
    print(f"Mission {mission.id} [{mission.status}] {mission.goal_text}")
    # Stored newest first; print in the order they happened
    for event in reversed(store.get_mission_events(mission.id, args.limit)):
        tool = f" ({event.tool_name})" if event.tool_name else ""
        print(f"{event.created_at:%H:%M:%S} {event.event_type:<8}{tool} {event_message(event)}")


def cmd_leads(args: argparse.Namespace) -> None:
    store = LeadStore(Path(args.db))
    rows = store.get_leads_with_scores(limit=args.limit, min_score=args.min_score)
    if not rows:
        print("No leads in store.")
        return
    print(f"Found {len(rows)} leads:\n")
    for lead, score in rows:
        total = score.total if score else 0
        print(f"ID: {lead.id}")
        print(f"  Name: {lead.name}")
        print(f"  Category: {lead.category}")
        print(f"  Phone: {lead.phone or '-'}")
        print(f"  Website: {lead.domain or '-'}")
        print(f"  Status: {lead.status}")
        if score:
            print(f"  Score: {total} (need {score.need}, value {score.value}, reach {score.reachability})")
        print()


def cmd_audit(args: argparse.Namespace) -> None:
    result = SiteAuditor().audit(args.url)
    print(f"HTTPS: {result.https_ok}")
    print(f"Mobile viewport: {result.mobile_ok}")
    print(f"Booking: {result.has_booking}")
    print(f"Structured data: {result.schema_ok}")
    print(f"CMS: {result.cms_hint}")
    print(f"Analytics: {', '.join(result.analytics_pixels) or '-'}")
    if result.lcp_ms is not None:
        print(f"Load time: {result.lcp_ms} ms")


def main():
    # Load .env if present (GOOGLE_PLACES_API_KEY, LEADFINDER_DB, etc.)
    load_env()
    default_db = str(MissionConfig.from_env().database_path)

    parser = argparse.ArgumentParser(prog="leadfinder", description="Find, audit and score local business leads")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    msn = subparsers.add_parser("mission", help="Run a lead search mission, e.g. \"find dentists in San Diego\"")
    msn.add_argument("goal", help="What to find and where")
    msn.add_argument("--strict", action="store_true", help="Only save leads scoring >= 75")
    msn.add_argument("--max-leads", type=int, help="Stop after this many qualified leads (default 10)")
    msn.add_argument("--api-key", help="Google Places API key (or set GOOGLE_PLACES_API_KEY)")
    msn.add_argument("--source-file", help="Search a local JSON file of businesses instead of Google Places")
    msn.add_argument("--force", action="store_true", help="Run even if the goal doesn't look like a search")
    msn.add_argument("--db", default=default_db, help=f"Path to SQLite database (default: {default_db})")
    msn.set_defaults(func=cmd_mission)

    evt = subparsers.add_parser("events", help="Show the event log of a mission")
    evt.add_argument("mission_id", help="Mission id printed by the mission command")
    evt.add_argument("--limit", type=int, default=50, help="Most recent N events (default 50)")
    evt.add_argument("--db", default=default_db, help="Path to SQLite database")
    evt.set_defaults(func=cmd_events)

    lds = subparsers.add_parser("leads", help="List stored leads with scores")
    lds.add_argument("--min-score", type=int, help="Only leads with total score >= this")
    lds.add_argument("--limit", type=int, default=100, help="Maximum leads to show")
    lds.add_argument("--db", default=default_db, help="Path to SQLite database")
    lds.set_defaults(func=cmd_leads)

    aud = subparsers.add_parser("audit", help="Audit a single website")
    aud.add_argument("url", help="Website URL")
    aud.set_defaults(func=cmd_audit)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
