# main.py
import argparse
import asyncio
import sys

from audit_engine.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from audit_engine.adapters.console_renderer import console, print_jobs, print_result
from audit_engine.adapters.session_memory_adapter import (
    ConsoleNavigatorAdapter,
    InMemorySessionAdapter,
)
from audit_engine.adapters.system_clock_adapter import SystemClockAdapter
from audit_engine.core.config import AuditEngineConfig
from audit_engine.core.logging_config import configure_logging
from audit_engine.core.managers.audit_session import AuditSession
from audit_engine.core.settings import app_settings, logger
from audit_engine.core.utils.job_views import parse_partner_ids


# main lives at the outermost layer (not in core)
# Instantiates the concrete adapters
# Wires dependencies together
# Runs one audit session per invocation

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audit-engine",
        description="Trigger and track partner audit jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:

  audit-engine trigger P-001 --watch
  audit-engine bulk "P-001, P-002 P-003"
  audit-engine status 9f1c0a --watch
  audit-engine cancel 9f1c0a
        """,
    )
    parser.add_argument("--api-url", default=app_settings.AUDIT_API_URL, help="Backend base URL")
    parser.add_argument(
        "--requested-by",
        default=app_settings.AUDIT_REQUESTED_BY,
        help="User recorded as requester of new audits",
    )
    parser.add_argument("--show-settings", action="store_true", help="Print effective settings")

    # --watch belongs to every command so it can follow the command arguments
    watch = argparse.ArgumentParser(add_help=False)
    watch.add_argument(
        "--watch",
        action="store_true",
        help="Keep polling until every tracked job reaches a final status",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    trigger = commands.add_parser("trigger", parents=[watch], help="Audit a single partner")
    trigger.add_argument("partner_id")
    bulk = commands.add_parser("bulk", parents=[watch], help="Audit several partners in one job")
    bulk.add_argument("partner_ids", nargs="+", help="Ids separated by spaces, commas or semicolons")
    for name, text in (
        ("status", "Look up an existing job"),
        ("reprocess", "Restart a finished job"),
        ("cancel", "Cancel a running job"),
    ):
        command = commands.add_parser(name, parents=[watch], help=text)
        command.add_argument("job_id")
    return parser


async def run(args: argparse.Namespace) -> int:
    token = app_settings.AUDIT_API_TOKEN.get_secret_value() if app_settings.AUDIT_API_TOKEN else None
    config = AuditEngineConfig(
        api_url=args.api_url,
        poll_interval=app_settings.AUDIT_POLL_INTERVAL,
        poll_overlap=app_settings.AUDIT_POLL_OVERLAP,
        request_timeout=app_settings.AUDIT_REQUEST_TIMEOUT,
    )
    navigator = ConsoleNavigatorAdapter()

    async with AuditSession(
        http_client=AioHttpClientAdapter(),
        session=InMemorySessionAdapter(token),
        config=config,
        navigator=navigator,
        clock=SystemClockAdapter(),
    ) as session:
        if args.command == "trigger":
            result = await session.trigger_individual(args.partner_id, args.requested_by)
        elif args.command == "bulk":
            partner_ids = parse_partner_ids(" ".join(args.partner_ids))
            result = await session.trigger_bulk(partner_ids, args.requested_by)
        elif args.command == "status":
            result = await session.fetch_status(args.job_id.strip())
        elif args.command == "reprocess":
            result = await session.reprocess(args.job_id.strip())
        else:
            result = await session.cancel(args.job_id.strip())

        print_result(result)
        settled = True
        if result.ok and args.watch and not session.expired:
            with console.status("Waiting for audit jobs to finish..."):
                settled = await session.wait_until_settled()
        print_jobs(session.jobs())

    return 0 if result.ok and settled and not session.expired else 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Central logging configuration before anything emits
    configure_logging(app_settings.AUDIT_LOG_LEVEL)
    if args.show_settings:
        app_settings.print_settings(logger)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("[dim]Interrupted[/dim]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
