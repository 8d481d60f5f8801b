"""Main entry point for the casewatch supervisory client."""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime
from typing import Optional

from .api_client import ApiError, AuthenticationError, CaseApiClient
from .config import AppConfig, load_config
from .engine import SyncEngine
from .models import ADMISSIONS, APPOINTMENTS, DIAGNOSTICS
from .normalizer import normalize
from .session import Session
from .sinks import build_sinks

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)

RESOURCE_ALIASES = {
    "appointment": APPOINTMENTS,
    "appointments": APPOINTMENTS,
    "diagnostic": DIAGNOSTICS,
    "diagnostics": DIAGNOSTICS,
    "admission": ADMISSIONS,
    "admissions": ADMISSIONS,
}


def _format_time(timestamp: int) -> str:
    if not timestamp:
        return "--"
    return datetime.fromtimestamp(timestamp).strftime("%H:%M")


def _build_engine(config: AppConfig) -> SyncEngine:
    session = Session()
    client = CaseApiClient(config.api, session)
    return SyncEngine(
        client,
        session,
        poll=config.poll,
        notification=config.notification,
        sinks=build_sinks(config.twilio),
    )


async def _authenticate(engine: SyncEngine, config: AppConfig) -> None:
    """Use the configured token, or log in with username and password."""
    if config.api.token:
        engine.session.establish(config.api.token)
        return
    logger.info(f"Logging in to {config.api.base_url} as {config.api.username}...")
    await engine.client.login(config.api.username, config.api.password)
    logger.info("Login successful.")


def _print_summary(engine: SyncEngine) -> None:
    if engine.last_updated:
        print(f"Last updated {_format_time(int(engine.last_updated))}")

    stats = engine.stats
    if stats:
        print(
            f"Patients: {stats.total_patients}  Appointments: {stats.total_appointments}  "
            f"Diagnostics: {stats.total_diagnostics}  Admissions: {stats.total_admissions}"
        )
        print(
            f"Today: {stats.today_appointments} appointments, "
            f"{stats.today_diagnostics} diagnostics, {engine.pending_admissions} pending admissions"
        )

    weekly = engine.weekly()
    if weekly:
        print("This week: " + ", ".join(f"{point.day} {point.appointments}" for point in weekly))

    counts = engine.appointment_status_counts()
    print("Appointments by status: " + ", ".join(f"{k}={v}" for k, v in counts.items()))

    today = engine.today_appointments()
    if today:
        print("Today's appointments:")
    for record in today:
        print(f"  {record.time or '--'} {record.patient_name or 'Patient'} with {record.doctor or 'Doctor'} ({record.status})")

    patients = engine.patients()
    if patients:
        print("Patients:")
    for patient in patients:
        print(f"  {patient.display_name} ({patient.phone or 'no phone'}): {patient.booking_count} bookings")

    feed = engine.feed()
    if feed:
        print("Live activity:")
    for interaction, message in feed:
        arrow = "<-" if interaction.inbound else "->"
        first_line = message.text.splitlines()[0] if message.text else ""
        options = f"  [{' | '.join(message.options)}]" if message.options else ""
        print(f"  {_format_time(interaction.timestamp)} {arrow} {interaction.patient_name or 'Patient'}: {first_line}{options}")


async def _watch(config: AppConfig) -> int:
    engine = _build_engine(config)
    ended = asyncio.Event()

    def on_session_change(session: Session) -> None:
        if not session.authenticated:
            ended.set()

    engine.session.subscribe(on_session_change)
    try:
        await _authenticate(engine, config)
        engine.start()
        await ended.wait()
        logger.error("Session ended by the backend; stopping.")
        return 1
    finally:
        await engine.close()


async def _once(config: AppConfig) -> int:
    engine = _build_engine(config)
    try:
        await _authenticate(engine, config)
        result = await engine.refresh()
        if not result.ok:
            logger.error(f"Refresh failed: {result.error}")
            return 1
        for name, reason in result.errors.items():
            logger.warning(f"{name} unavailable: {reason}")
        _print_summary(engine)
        return 0
    finally:
        await engine.close()


async def _set_status(config: AppConfig, resource: str, identity: str, status: str) -> int:
    engine = _build_engine(config)
    try:
        await _authenticate(engine, config)
        if await engine.update_status(resource, identity, status):
            logger.info(f"{resource} {identity} is now {status}")
            return 0
        return 1
    finally:
        await engine.close()


async def _timeline(config: AppConfig, patient_id: int) -> int:
    engine = _build_engine(config)
    try:
        await _authenticate(engine, config)
        for interaction, message in await engine.patient_conversation(patient_id):
            who = "patient" if interaction.inbound else "bot"
            print(f"[{_format_time(interaction.timestamp)}] {who}: {message.text}")
            if message.options:
                print("    options: " + ", ".join(message.options))
        return 0
    finally:
        await engine.close()


def run(args: argparse.Namespace) -> int:
    """Run one CLI command and return the process exit status."""
    if args.command == "normalize":
        print(json.dumps(normalize(args.text).to_dict(), ensure_ascii=False, indent=2))
        return 0

    try:
        logger.info("Loading configuration...")
        config = load_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logging.getLogger().setLevel(getattr(logging, config.log_level, logging.INFO))

    if args.interval:
        config.poll.interval_seconds = args.interval

    try:
        if args.command == "watch":
            return asyncio.run(_watch(config))
        if args.command == "once":
            return asyncio.run(_once(config))
        if args.command == "set-status":
            return asyncio.run(
                _set_status(config, RESOURCE_ALIASES[args.kind], args.identity, args.status)
            )
        if args.command == "timeline":
            return asyncio.run(_timeline(config, args.patient_id))
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        return 1
    except ApiError as e:
        logger.error(f"Backend error: {e}")
        return 1
    except ValueError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 0
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Watch the hospital case-management backend and report new bookings and admissions"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Poll interval in seconds (default: from POLL_INTERVAL_SECONDS env var or 15)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("watch", help="Poll continuously and report new records")
    subparsers.add_parser("once", help="Fetch everything once and print a summary")

    normalize_parser = subparsers.add_parser("normalize", help="Show the canonical form of a raw message")
    normalize_parser.add_argument("text")

    status_parser = subparsers.add_parser("set-status", help="Update the status of a booking or admission")
    status_parser.add_argument("kind", choices=sorted(RESOURCE_ALIASES))
    status_parser.add_argument("identity", help="Booking or admission ID")
    status_parser.add_argument("status")

    timeline_parser = subparsers.add_parser("timeline", help="Print a patient's conversation")
    timeline_parser.add_argument("patient_id", type=int)

    return parser


def main(argv: Optional[list] = None) -> None:
    """Main entry point with command-line argument parsing."""
    args = build_parser().parse_args(argv)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
