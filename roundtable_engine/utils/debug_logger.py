"""
Debug logging utility for LLM interactions.
Logs every prompt sent to any provider, per character, when debug mode is on.
"""
import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class DebugLogger:
    """Logs all LLM interactions to character-specific JSONL files."""

    def __init__(self, debug_dir: Optional[Path] = None, enabled: bool = True):
        """Initialize debug logger.

        Args:
            debug_dir: Directory for debug logs. Defaults to data/debug_logs/llm/
            enabled: Whether debug logging is enabled (from system config)
        """
        self.debug_dir = Path(debug_dir) if debug_dir is not None else Path("data/debug_logs/llm")
        self.enabled = enabled

        if self.enabled:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Debug logger initialized: {self.debug_dir}")

    def log_llm_interaction(
        self,
        character_id: str,
        interaction_type: str,
        provider: str,
        prompt: str,
        model: Optional[str] = None,
        response: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        """Append one interaction record.

        Args:
            character_id: Character the call was made for (or 'system')
            interaction_type: interest_evaluation, generation, ...
            provider: Provider name
            prompt: Full prompt sent
            model: Model reported by the provider, if any
            response: Raw reply text (if available)
            settings: Sampling settings
            error: Error message if the attempt failed
        """
        if not self.enabled:
            return

        try:
            character_dir = self.debug_dir / character_id
            character_dir.mkdir(parents=True, exist_ok=True)

            interaction = {
                "timestamp": datetime.now().isoformat(),
                "type": interaction_type,
                "provider": provider,
                "model": model,
                "prompt": prompt,
                "response": response,
                "settings": settings or {},
                "error": error,
            }
            with open(character_dir / "interactions.jsonl", "a", encoding="utf-8") as f:
                f.write(json.dumps(interaction, ensure_ascii=False) + "\n")

            logger.debug(
                f"[DEBUG LOG] {interaction_type} | provider={provider} | "
                f"character={character_id} | prompt_len={len(prompt)} chars"
            )
        except OSError as e:
            logger.error(f"Failed to write debug log: {e}")

    def get_character_log(self, character_id: str) -> List[Dict[str, Any]]:
        """Read all logged interactions for a character."""
        log_file = self.debug_dir / character_id / "interactions.jsonl"
        if not log_file.exists():
            return []

        with open(log_file, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def clear_character_log(self, character_id: str):
        """Delete the debug log directory for a character."""
        character_dir = self.debug_dir / character_id
        if character_dir.exists():
            shutil.rmtree(character_dir)
            logger.info(f"Cleared debug logs for character {character_id}")


# Global debug logger instance
_debug_logger: Optional[DebugLogger] = None


def initialize_debug_logger(enabled: bool = True, debug_dir: Optional[Path] = None) -> DebugLogger:
    """Initialize the global debug logger (call once at startup)."""
    global _debug_logger
    _debug_logger = DebugLogger(debug_dir=debug_dir, enabled=enabled)
    return _debug_logger


def get_debug_logger() -> DebugLogger:
    """Get global debug logger instance (disabled until initialized)."""
    global _debug_logger
    if _debug_logger is None:
        _debug_logger = DebugLogger(enabled=False)
    return _debug_logger


def log_llm_call(character_id: str, interaction_type: str, provider: str, prompt: str, **kwargs):
    """Convenience function to log an LLM interaction."""
    get_debug_logger().log_llm_interaction(
        character_id=character_id,
        interaction_type=interaction_type,
        provider=provider,
        prompt=prompt,
        **kwargs
    )
