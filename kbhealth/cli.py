"""CLI entry point for sync and audit operations."""

import argparse
import asyncio
import json
import logging

from pydantic import BaseModel, ValidationError

from .config import configure_logging
from .exceptions import AlreadySyncing, KBHealthError, NotFound
from .models import Severity
from .schemas import AddSourceRequest
from .service import KnowledgeBaseService

logger = logging.getLogger(__name__)

SEVERITIES = [s.value for s in Severity]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kbhealth", description="Knowledge base sync and content audits")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add-source", help="Register a knowledge-base source")
    add.add_argument("id")
    add.add_argument("base_url")
    add.add_argument("--name")
    add.add_argument("--platform", default="generic", choices=["generic", "intercom", "zendesk", "feed"])
    add.add_argument("--max-per-category", type=int)
    add.add_argument("--disabled", action="store_true")

    remove = commands.add_parser("remove-source", help="Remove a source and its articles")
    remove.add_argument("id")

    commands.add_parser("sources", help="List sources with sync status")

    enable = commands.add_parser("enable", help="Enable a source")
    enable.add_argument("id")
    disable = commands.add_parser("disable", help="Disable a source")
    disable.add_argument("id")

    sync = commands.add_parser("sync", help="Sync one source, or all enabled sources")
    sync.add_argument("id", nargs="?")
    sync.add_argument("--force", action="store_true", help="Re-fetch unchanged articles")
    sync.add_argument("--max-per-category", type=int)

    audit = commands.add_parser("audit", help="Audit one or more articles")
    audit.add_argument("article_ids", nargs="+")
    audit.add_argument("--min-severity", choices=SEVERITIES, help="Only list issues at or above this severity")

    audit_source = commands.add_parser("audit-source", help="Audit every article of a source")
    audit_source.add_argument("id")

    history = commands.add_parser("history", help="Recent audits of an article")
    history.add_argument("article_id")
    history.add_argument("--limit", type=int, default=10)

    commands.add_parser("rules", help="List the rule catalog")

    rule_config = commands.add_parser("rule-config", help="Change settings of one rule")
    rule_config.add_argument("rule_id")
    rule_config.add_argument("settings", nargs="+", metavar="KEY=VALUE")

    return parser


def parse_settings(pairs: list[str]) -> dict:
    """KEY=VALUE pairs to a dict. Values are read as JSON, falling back to plain strings."""
    settings = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        try:
            settings[key] = json.loads(raw)
        except json.JSONDecodeError:
            settings[key] = raw
    return settings


def _print(value) -> None:
    if isinstance(value, BaseModel):
        print(value.model_dump_json(indent=2))
    elif isinstance(value, list):
        print(json.dumps([item.model_dump() for item in value], indent=2))
    elif value is not None:
        print(json.dumps(value, indent=2))


async def run(args: argparse.Namespace, service: KnowledgeBaseService):
    if args.command == "add-source":
        return service.add_source(AddSourceRequest(
            id=args.id,
            name=args.name or args.id,
            base_url=args.base_url,
            platform=args.platform,
            enabled=not args.disabled,
            max_articles_per_category=args.max_per_category,
        ))
    if args.command == "remove-source":
        service.remove_source(args.id)
        return {"removed": args.id}
    if args.command == "sources":
        return service.source_status()
    if args.command == "enable":
        return service.enable_source(args.id)
    if args.command == "disable":
        return service.disable_source(args.id)
    if args.command == "sync":
        return await service.sync(args.id, force_refresh=args.force, max_articles_per_category=args.max_per_category)
    if args.command == "audit":
        if len(args.article_ids) == 1:
            return service.audit_article(args.article_ids[0], min_severity=args.min_severity)
        return service.audit_articles(args.article_ids, min_severity=args.min_severity)
    if args.command == "audit-source":
        return service.audit_source(args.id)
    if args.command == "history":
        return service.audit_history(args.article_id, args.limit)
    if args.command == "rules":
        return service.rule_catalog()
    if args.command == "rule-config":
        return service.update_rule_config(args.rule_id, parse_settings(args.settings))
    raise ValueError(f"Unknown command: {args.command}")


async def _main(args: argparse.Namespace) -> int:
    service = KnowledgeBaseService.from_config()
    try:
        _print(await run(args, service))
        return 0
    except (NotFound, AlreadySyncing) as e:
        logger.error(str(e))
        return 1
    except (KBHealthError, ValidationError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2
    finally:
        await service.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(_main(args))
