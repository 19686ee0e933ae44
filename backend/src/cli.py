"""Command line interface for DocLifecycle.

Usage:
    python cli.py scan [--category bank_statements] [--apply] [--json]
    python cli.py apply archive|delete|extend DOCUMENT_ID [--days N] [--confirm]
    python cli.py query-audit [--start ...] [--end ...] [--action UPDATE] [--table tracked_document]
    python cli.py export-audit --format csv|json [--output FILE]
    python cli.py seed-defaults

Exit codes:
    0  success
    1  partial failure (some documents or actions failed, run completed)
    2  fatal configuration error (e.g. malformed policy)
"""

import argparse
import json
import logging
import sys
from datetime import datetime, time
from pathlib import Path
from typing import List, Optional

from sqlalchemy.orm import Session, sessionmaker

from config import settings
from database import SessionLocal, build_engine, init_db, transaction_factory
from domain.audit.models import AuditAction, AuditFilter
from domain.lifecycle.errors import ConfigError, LifecycleError
from domain.lifecycle.models import ActionRequest, ActionType, DocumentCategory
from observability.logging_config import configure_logging
from retention.schemas import ActionResultResponse, ScanReport
from retention.service import RetentionService
from audit.export import ExportFormat
from audit.schemas import AuditLogResponse

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_CONFIG = 2


def _parse_timestamp(value: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO timestamp; a bare date covers the whole day."""
    try:
        if len(value) == 10:
            day = datetime.fromisoformat(value).date()
            return datetime.combine(day, time.max if end_of_day else time.min)
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timestamp: {value!r}")


def _parse_end(value: str) -> datetime:
    return _parse_timestamp(value, end_of_day=True)


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", type=_parse_timestamp, help="inclusive start (ISO date or timestamp)")
    parser.add_argument("--end", type=_parse_end, help="inclusive end (ISO date or timestamp)")
    parser.add_argument(
        "--action",
        action="append",
        choices=[a.value for a in AuditAction],
        help="action type (repeatable)",
    )
    parser.add_argument("--table", action="append", help="table name (repeatable)")
    parser.add_argument("--actor", help="actor id")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="doclifecycle", description="Document compliance and lifecycle engine")
    parser.add_argument("--database-url", help="override DATABASE_URL")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    parser.add_argument("--actor-id", default=settings.SYSTEM_ACTOR_ID, help="actor recorded in audit records")
    commands = parser.add_subparsers(dest="command", required=True)

    scan = commands.add_parser("scan", help="evaluate all documents and print the worklist")
    scan.add_argument("--category", type=DocumentCategory.parse, help="restrict to one category")
    scan.add_argument("--apply", action="store_true", help="apply automatic worklist entries")
    scan.add_argument("--json", action="store_true", help="print the full report as JSON")

    apply = commands.add_parser("apply", help="apply one action to one document")
    apply.add_argument("action", choices=[a.value for a in ActionType])
    apply.add_argument("document_id")
    apply.add_argument("--days", type=int, default=None, help="extension length for extend")
    apply.add_argument("--confirm", action="store_true", help="confirm a manual deletion")

    query = commands.add_parser("query-audit", help="print matching audit records (newest first)")
    _add_filter_arguments(query)
    query.add_argument("--limit", type=int, default=settings.AUDIT_PREVIEW_LIMIT)

    export = commands.add_parser("export-audit", help="export matching audit records")
    _add_filter_arguments(export)
    export.add_argument("--format", choices=[f.value for f in ExportFormat], default=ExportFormat.CSV.value)
    export.add_argument("--output", type=Path, help="output file (default audit_trail_<timestamp>.<format>)")

    commands.add_parser("seed-defaults", help="install default policies and validity windows")
    return parser


def _filter_from_args(args: argparse.Namespace) -> AuditFilter:
    return AuditFilter(
        start=args.start,
        end=args.end,
        actions=args.action or (),
        tables=args.table or (),
        actor_id=args.actor,
    )


def cmd_scan(service: RetentionService, args: argparse.Namespace) -> int:
    result = service.run_scan(category=args.category)
    report = ScanReport.from_result(result)

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        print(
            f"Scan {result.scan_id} as of {result.as_of.isoformat()}: "
            f"{result.documents_scanned} documents, {report.pending_archive} pending archive, "
            f"{report.pending_delete} pending delete, {report.manual_review} manual review, "
            f"{len(result.unpoliced)} unpoliced, {len(result.errors)} errors"
        )
        for entry in report.worklist:
            flag = " (confirmation required)" if entry.requires_confirmation else ""
            print(
                f"  {entry.due_date.isoformat()}  {entry.document_id}  "
                f"{entry.from_state} -> {entry.to_state}  [{entry.action}]{flag}"
            )
        for document in report.unpoliced:
            print(f"  no policy: {document.id} ({document.category_name})")
        for issue in report.errors:
            print(f"  error: {issue.document_id}: {issue.message}")

    failed_actions = 0
    if args.apply:
        outcomes = service.apply_worklist(result, actor_id=args.actor_id)
        failed_actions = sum(1 for o in outcomes if not o.success)
        print(f"Applied {len(outcomes) - failed_actions} actions, {failed_actions} failed")

    return EXIT_PARTIAL if result.is_partial or failed_actions else EXIT_OK


def cmd_apply(service: RetentionService, args: argparse.Namespace) -> int:
    action = ActionType(args.action)
    days = args.days
    if action == ActionType.EXTEND_RETENTION and days is None:
        days = settings.DEFAULT_EXTENSION_DAYS
    try:
        request = ActionRequest(
            document_id=args.document_id,
            action=action,
            actor_id=args.actor_id,
            days=days,
            confirmed=args.confirm,
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_PARTIAL

    result = service.apply_action(request)
    print(ActionResultResponse.from_domain(result).model_dump_json(indent=2))
    if isinstance(result.error, ConfigError):
        return EXIT_CONFIG
    return EXIT_OK if result.success else EXIT_PARTIAL


def cmd_query_audit(service: RetentionService, args: argparse.Namespace) -> int:
    records = service.audit.query(_filter_from_args(args), limit=args.limit)
    rows = [AuditLogResponse.from_domain(r).model_dump(mode="json") for r in records]
    print(json.dumps(rows, indent=2))
    return EXIT_OK


def cmd_export_audit(service: RetentionService, args: argparse.Namespace) -> int:
    audit_filter = _filter_from_args(args)
    records = service.audit.query(audit_filter, limit=settings.AUDIT_EXPORT_MAX_ROWS)
    payload = service.audit.export(records, args.format)

    output = args.output or Path(service.audit.export_filename(args.format))
    output.write_bytes(payload)

    with transaction_factory(service.db)():
        service.audit.record_export(audit_filter, args.format, len(records), actor_id=args.actor_id)

    print(f"Exported {len(records)} records to {output}")
    return EXIT_OK


def cmd_seed_defaults(service: RetentionService, args: argparse.Namespace) -> int:
    created = service.policies.seed_defaults(actor_id=args.actor_id)
    print(
        f"Created {created['policies_created']} policies and "
        f"{created['validity_rules_created']} validity rules"
    )
    return EXIT_OK


COMMANDS = {
    "scan": cmd_scan,
    "apply": cmd_apply,
    "query-audit": cmd_query_audit,
    "export-audit": cmd_export_audit,
    "seed-defaults": cmd_seed_defaults,
}


def _open_session(database_url: Optional[str]) -> Session:
    if not database_url:
        init_db()
        return SessionLocal()
    engine = build_engine(database_url)
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def main(argv: Optional[List[str]] = None, session: Optional[Session] = None) -> int:
    """Run one command and return its exit code.

    Args:
        argv: Arguments (defaults to sys.argv[1:])
        session: Existing session to use instead of opening one
    """
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, json_format=settings.LOG_JSON)

    db = session or _open_session(args.database_url)
    try:
        service = RetentionService(db)
        return COMMANDS[args.command](service, args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except (LifecycleError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_PARTIAL
    finally:
        if session is None:
            db.close()


if __name__ == "__main__":
    sys.exit(main())
