"""Command-line entry point for RAGChat: UI launcher and pipeline utilities."""

from __future__ import annotations

import argparse
import json
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from ragchat import ChatPipeline, ConversationManager, EmbeddingClient
from ragchat.config import config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "app.py"
DEFAULT_SUBJECT_ID = "cli-user"
DEFAULT_CONVERSATION_ID = "cli"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="RAGChat chat pipeline tools.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ui = subparsers.add_parser("ui", help="Launch the Streamlit chat application.")
    ui.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: app.py).",
    )
    ui.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for the Streamlit server (default: 8501).",
    )
    ui.add_argument(
        "--address",
        default="localhost",
        help="Bind address for the Streamlit server (default: localhost).",
    )
    ui.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open Streamlit in a browser window instead of headless mode.",
    )
    ui.set_defaults(headless=True)

    ask = subparsers.add_parser("ask", help="Send one message through the pipeline.")
    ask.add_argument("message", help="User message text.")
    ask.add_argument("--subject-id", default=DEFAULT_SUBJECT_ID)
    ask.add_argument("--conversation-id", default=DEFAULT_CONVERSATION_ID)
    ask.add_argument(
        "--history",
        type=Path,
        default=None,
        help="JSON list of stored {sender, content, createdAt} message records.",
    )

    embed = subparsers.add_parser(
        "embed-batch",
        help="Embed a JSON list of {userId, threadId, content, messageId} records.",
    )
    embed.add_argument("file", type=Path, help="JSON file with message records.")
    embed.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds to wait between requests (default: 1.0).",
    )

    rag = subparsers.add_parser("rag-query", help="Query the RAG service directly.")
    rag.add_argument("query", help="Question to send to the RAG service.")
    rag.add_argument("--subject-id", default=DEFAULT_SUBJECT_ID)
    rag.add_argument("--conversation-id", default=None)

    subparsers.add_parser("check-env", help="Show which services are configured.")

    return parser.parse_args(argv)


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def run_streamlit(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured streamlit command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("RAGChat stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit: %s", command[0])
        return 1
    return result.returncode


def launch_ui(args: argparse.Namespace, logger: Logger) -> int:
    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting RAGChat Streamlit app at http://%s:%s (headless=%s)",
        args.address,
        args.port,
        args.headless,
    )

    command = build_streamlit_command(
        script_path,
        port=args.port,
        headless=args.headless,
        address=args.address,
    )

    return_code = run_streamlit(command, logger)
    if return_code != 0:
        logger.error("Streamlit exited with status %s", return_code)
    return return_code


def ask(args: argparse.Namespace, logger: Logger) -> int:
    records: list[dict] = []
    if args.history is not None:
        try:
            records = json.loads(args.history.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Unable to read history from %s", args.history)
            return 1
        if not isinstance(records, list):
            logger.error("Expected a JSON list of records in %s", args.history)
            return 1

    pipeline = ChatPipeline(await_reply_embedding=True)
    manager = ConversationManager(pipeline, args.subject_id, args.conversation_id)
    try:
        manager.load_history(records)
        reply = manager.send(args.message)
    except ValueError:
        logger.exception("Unable to process message for %s", args.subject_id)
        return 1
    finally:
        pipeline.close()
        pipeline.embedding_client.close()

    print(reply.content)
    if reply.used_fallback:
        print(f"[notice] {reply.warning}", file=sys.stderr)
    return 0


def embed_batch(args: argparse.Namespace, logger: Logger) -> int:
    try:
        records = json.loads(args.file.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.exception("Unable to read records from %s", args.file)
        return 1
    if not isinstance(records, list):
        logger.error("Expected a JSON list of records in %s", args.file)
        return 1

    with EmbeddingClient() as client:
        if not client.is_enabled():
            logger.error("EMBEDDING_API_URL is not set")
            return 1
        results = client.create_embeddings_batch(records, delay=args.delay)

    failed = [status for status in results if not status.ok]
    for status in failed:
        logger.error("Embedding failed: %s", status.error)
    print(f"Embedded {len(results) - len(failed)}/{len(results)} records")
    return 1 if failed else 0


def rag_query(args: argparse.Namespace) -> int:
    with EmbeddingClient() as client:
        result = client.get_rag_response(
            args.subject_id, args.query, args.conversation_id
        )

    print(f"Answer: {result.answer}")
    print(f"Context: {result.context}")
    for match in result.matches:
        print(f"  ({match.score:.4f}) {match.content}")
    return 1 if result.degraded else 0


def check_env() -> int:
    for name, present in config.status().items():
        print(f"{name}: {'set' if present else 'not set'}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and dispatch the requested command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    if args.command == "ui":
        return launch_ui(args, logger)
    if args.command == "ask":
        return ask(args, logger)
    if args.command == "embed-batch":
        return embed_batch(args, logger)
    if args.command == "rag-query":
        return rag_query(args)
    return check_env()


if __name__ == "__main__":
    sys.exit(main())
