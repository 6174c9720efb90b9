"""Interactive terminal round-table for Roundtable Engine."""

import argparse
import asyncio
import io
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from roundtable_engine.config import ConfigLoader, ConfigLoadError, CharacterProfile
from roundtable_engine.models.chat import ChatMessage
from roundtable_engine.services.conversation_orchestrator import ConversationOrchestrator
from roundtable_engine.utils.debug_logger import initialize_debug_logger

logger = logging.getLogger(__name__)

# Visible history kept between rounds (newest first)
HISTORY_LIMIT = 20


def setup_logging(debug: bool = False):
    """Configure logging."""
    # Force UTF-8 encoding for stdout/stderr on Windows
    if sys.platform == 'win32':
        sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
        sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')

    handlers = [logging.StreamHandler(sys.stdout)]

    log_file = None
    if debug:
        log_dir = Path("data/debug_logs/server")
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"roundtable_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )

    logging.getLogger('roundtable_engine').setLevel(logging.DEBUG if debug else logging.INFO)

    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    if log_file:
        logging.getLogger(__name__).info(f"Debug logging to: {log_file}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chat with a round-table of AI characters in the terminal.")
    parser.add_argument("--config-dir", type=Path, default=Path("."),
                        help="Project directory containing config/ and characters/")
    parser.add_argument("--characters", nargs="*", default=None,
                        help="Character IDs to seat (default: every active character)")
    parser.add_argument("--room", default="terminal", help="Room identifier")
    parser.add_argument("--temperature", type=float, default=None,
                        help="Temperature override for every reply")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def run_roundtable(
    orchestrator: ConversationOrchestrator,
    characters: List[CharacterProfile],
    room_id: str,
    temperature: Optional[float] = None,
):
    """Read user lines from stdin and print each round's replies."""
    created = await orchestrator.warm_up(characters)
    for character_id in created:
        print(f"[new memory bank] {character_id}")

    names = ", ".join(c.name for c in characters)
    print(f"\nSeated: {names}")
    print("Type a message and press Enter. /quit to leave.\n")

    history: List[ChatMessage] = []
    while True:
        try:
            line = await asyncio.to_thread(input, "你: ")
        except EOFError:
            break

        message = line.strip()
        if not message:
            continue
        if message in ("/quit", "/exit"):
            break

        result = await orchestrator.handle_message(
            characters, message, room_id=room_id,
            recent_messages=history, temperature_override=temperature,
        )
        for entry in result.replies:
            evaluation = entry.selection.evaluation
            tag = "forced" if entry.selection.forced else f"{evaluation.score:.2f}"
            print(f"\n{entry.message.sender_name} [{tag}]: {entry.reply.text}")
        if not result.replies:
            print("\n(no one replied)")
        print()

        round_messages = [entry.message for entry in reversed(result.replies)]
        round_messages.append(ChatMessage(sender_type="user", content=message, topic=result.topic))
        history = (round_messages + history)[:HISTORY_LIMIT]


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    loader = ConfigLoader(args.config_dir)
    try:
        system_config = loader.load_system_config()
    except ConfigLoadError as e:
        print(e, file=sys.stderr)
        return 1

    setup_logging(args.debug or system_config.debug)
    initialize_debug_logger(
        enabled=args.debug or system_config.debug,
        debug_dir=args.config_dir / system_config.paths.debug_logs,
    )

    credentials = loader.load_credentials()
    if credentials.demo_mode:
        logger.info("Demo mode: interest evaluation runs offline")

    characters = list(loader.load_all_characters(args.config_dir / system_config.paths.characters).values())
    if args.characters:
        characters = [c for c in characters if c.id in args.characters]
    characters = [c for c in characters if c.is_active]
    if not characters:
        print("No active characters found.", file=sys.stderr)
        return 1

    system_config.paths.memory_banks = args.config_dir / system_config.paths.memory_banks
    orchestrator = ConversationOrchestrator.from_config(system_config, credentials)

    try:
        asyncio.run(run_roundtable(orchestrator, characters, args.room, args.temperature))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
