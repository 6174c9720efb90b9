"""
Memory Bank Inspector

Generates a markdown report of a character's memory bank: traits,
self-summary, key memories and conversation history.

Usage:
    python utilities/inspect_memory_bank.py <character_id> [--storage PATH] [--output PATH]

Example:
    python utilities/inspect_memory_bank.py ai_expert
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from roundtable_engine.models.memory_bank import MemoryBank
from roundtable_engine.repositories.memory_bank_repository import (
    MemoryBankRepository,
    MemoryStoreError,
)

DEFAULT_STORAGE = project_root / "storage" / "memory_banks"
OUTPUT_DIR = Path(__file__).parent / "reports"


def format_datetime(dt):
    """Format datetime for display."""
    if dt is None:
        return "N/A"
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def truncate(text, max_length=80):
    """Truncate text for display."""
    if text is None:
        return "N/A"
    text = str(text)
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def table_cell(text, max_length=80):
    """Make text safe for a single markdown table cell."""
    if text is None:
        return "N/A"
    text = " ".join(str(text).split())
    return truncate(text, max_length).replace("|", "\\|")


def render_report(bank: MemoryBank) -> str:
    """Render a memory bank as a markdown document."""
    lines = [
        f"# Memory Bank: {bank.character_name}",
        "",
        f"- **Character ID:** `{bank.character_id}`",
        f"- **Last updated:** {format_datetime(bank.last_updated)}",
        f"- **Key memories:** {len(bank.key_memories)}",
        f"- **History entries:** {len(bank.conversation_history)}",
        f"- **Report generated:** {format_datetime(datetime.now())}",
        "",
        "## Personality Summary",
        "",
        bank.personality_summary or "_(empty)_",
        "",
        "## Personality Traits",
        "",
        "| Trait | Score |",
        "|-------|-------|",
    ]
    for trait, score in bank.personality_traits.model_dump().items():
        lines.append(f"| {trait} | {score:.2f} |")

    lines += ["", "## Key Memories", ""]
    if bank.key_memories:
        lines += ["| # | Kind | Topic | Importance | Content | Time |",
                  "|---|------|-------|------------|---------|------|"]
        for i, memory in enumerate(bank.key_memories, 1):
            lines.append(
                f"| {i} | {memory.kind} | {table_cell(memory.topic, 40)} | {memory.importance:.2f} "
                f"| {table_cell(memory.content)} | {format_datetime(memory.timestamp)} |"
            )
    else:
        lines.append("_No key memories._")

    lines += ["", "## Conversation History", ""]
    if bank.conversation_history:
        lines += ["| # | Topic | View | Context | Time |",
                  "|---|-------|------|---------|------|"]
        for i, entry in enumerate(bank.conversation_history, 1):
            lines.append(
                f"| {i} | {table_cell(entry.topic, 40)} | {table_cell(entry.view_expressed)} "
                f"| {table_cell(entry.context_summary, 60)} | {format_datetime(entry.timestamp)} |"
            )
    else:
        lines.append("_No conversation history._")

    lines.append("")
    return "\n".join(lines)


async def generate_report(character_id: str, storage: Path, output: Path) -> bool:
    repository = MemoryBankRepository(storage)
    try:
        bank = await repository.load(character_id)
    except MemoryStoreError as e:
        print(f"❌ Could not read memory bank: {e}")
        return False

    if bank is None:
        print(f"❌ No memory bank for '{character_id}' in {storage}")
        known = await repository.list_character_ids()
        if known:
            print(f"   Known characters: {', '.join(known)}")
        return False

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(render_report(bank), encoding="utf-8")
    print(f"✓ Report written to {output}")
    return True


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Write a markdown report of a character's memory bank.")
    parser.add_argument("character_id")
    parser.add_argument("--storage", type=Path, default=DEFAULT_STORAGE, help="Memory bank directory")
    parser.add_argument("--output", type=Path, default=None, help="Report path")
    args = parser.parse_args()

    output = args.output or OUTPUT_DIR / f"{args.character_id}_memory_bank.md"
    ok = asyncio.run(generate_report(args.character_id, args.storage, output))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
