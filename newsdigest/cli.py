"""
Command-line interface for NewsDigest.
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any, List, Optional

from newsdigest.config import Config, ENV_PREFIX
from newsdigest.core.errors import ValidationError
from newsdigest.core.service import NewsDigestService, build_service

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False, log_file: bool = True):
    """
    Configure root logging: a dated log file plus stderr.
    """
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.insert(0, logging.FileHandler(f"newsdigest_{datetime.now().strftime('%Y%m%d')}.log"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def parse_args(argv: Optional[List[str]] = None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="NewsDigest - Personalized News Digest")
    parser.add_argument("--config", help=f"Path to YAML/JSON config (or set {ENV_PREFIX}CONFIG_PATH)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--no-log-file", action="store_true", help="Log to stderr only")
    parser.add_argument("--user", type=int, required=True, help="User id")

    commands = parser.add_subparsers(dest="command", required=True)

    digest = commands.add_parser("digest", help="Fetch a personalized digest")
    digest.add_argument("--interests", help="Comma-separated topics (default: stored preferences)")
    digest.add_argument("--sentiment", choices=["all", "positive", "negative", "neutral"])
    digest.add_argument("--language")
    digest.add_argument("--max-articles", type=int)

    read = commands.add_parser("read", help="Record that an article was read")
    read.add_argument("--url", required=True)
    read.add_argument("--title", default="")
    read.add_argument("--description", default="")
    read.add_argument("--sentiment", default="neutral")

    history = commands.add_parser("history", help="Show reading history")
    history.add_argument("--limit", type=int, default=100)

    commands.add_parser("stats", help="Reading counts for today, this week and overall")
    commands.add_parser("suggest", help="Suggested interests from reading history")
    commands.add_parser("adjust", help="Rewrite preferences from reading history")
    commands.add_parser("profile", help="Reading profile summary")
    commands.add_parser("clear-cache", help="Forget which articles were already shown")
    commands.add_parser("clear-history", help="Delete reading history")
    commands.add_parser("export", help="Export all stored data as JSON")
    return parser.parse_args(argv)


def _digest_payload(service: NewsDigestService, args) -> dict:
    payload = service.get_preferences(args.user).to_dict()
    if args.interests is not None:
        payload['interests'] = args.interests
    if args.sentiment is not None:
        payload['sentiment_filter'] = args.sentiment
    if args.language is not None:
        payload['language'] = args.language
    if args.max_articles is not None:
        payload['max_articles'] = args.max_articles
    return payload


async def run_command(service: NewsDigestService, args) -> Any:
    """
    Execute one subcommand and return its JSON-serializable result.
    """
    user_id = args.user
    command = args.command

    if command == "digest":
        articles = await service.get_digest(user_id, _digest_payload(service, args))
        return [article.to_dict() for article in articles]
    if command == "read":
        recorded = await service.track_read(user_id, {
            'url': args.url,
            'title': args.title,
            'description': args.description,
            'sentiment': args.sentiment,
        })
        return {'recorded': recorded}
    if command == "history":
        return [entry.to_dict() for entry in service.reading_history(user_id, args.limit)]
    if command == "stats":
        return service.get_stats(user_id).to_dict()
    if command == "suggest":
        return {'suggested_interests': service.suggested_interests(user_id)}
    if command == "adjust":
        return service.auto_adjust(user_id).to_dict()
    if command == "profile":
        return service.profile_summary(user_id)
    if command == "clear-cache":
        return {'cleared': await service.clear_cache(user_id)}
    if command == "clear-history":
        return {'deleted': await service.clear_history(user_id)}
    if command == "export":
        return service.export_user_data(user_id)
    raise ValueError(f"Unknown command: {command}")


async def _main(args) -> int:
    service = build_service(Config(args.config) if args.config else None)
    try:
        result = await run_command(service, args)
    except ValidationError as e:
        logger.error(f"Invalid preferences: {e}")
        return 2
    finally:
        await service.close()

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the newsdigest command.
    """
    args = parse_args(argv)
    configure_logging(args.verbose, log_file=not args.no_log_file)
    return asyncio.run(_main(args))


if __name__ == '__main__':
    sys.exit(main())
