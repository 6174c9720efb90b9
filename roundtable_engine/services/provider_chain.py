"""
Ordered provider fallback chain.

Each provider call is captured as a ProviderOutcome value instead of an
exception, and the chain walks an explicit list of steps followed by an
optional terminal function that cannot fail.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from roundtable_engine.llm.base import BaseLLMClient, LLMError
from roundtable_engine.utils.debug_logger import log_llm_call

logger = logging.getLogger(__name__)


@dataclass
class ProviderStep:
    """One provider in the chain."""
    name: str
    client: BaseLLMClient


@dataclass
class ProviderOutcome:
    """Result of a single provider attempt: either a value or an error."""
    provider: str
    value: Any = None
    text: Optional[str] = None
    model: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ChainResult:
    """Final result of running the chain."""
    value: Any = None
    text: Optional[str] = None
    provider: Optional[str] = None
    attempts: List[ProviderOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.provider is not None


class ProviderChain:
    """
    Tries each provider in order and returns the first accepted result.

    `accept` turns raw reply text into the caller's value and raises
    ValueError to reject it (malformed JSON, empty text...), which moves the
    chain on to the next provider exactly like a transport failure.
    """

    def __init__(
        self,
        steps: List[ProviderStep],
        terminal: Optional[Callable[[str], str]] = None,
        terminal_name: str = "offline",
    ):
        self.steps = steps
        self.terminal = terminal
        self.terminal_name = terminal_name

    async def run(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        accept: Optional[Callable[[str], Any]] = None,
        character_id: str = "system",
        interaction_type: str = "generation",
    ) -> ChainResult:
        """Run the chain. Never raises."""
        accept = accept or (lambda text: text)
        attempts: List[ProviderOutcome] = []

        for step in self.steps:
            outcome = await self._attempt(
                step, prompt, system_prompt, temperature, max_tokens, accept
            )
            attempts.append(outcome)
            log_llm_call(
                character_id=character_id,
                interaction_type=interaction_type,
                provider=step.name,
                model=outcome.model,
                prompt=prompt,
                response=outcome.text,
                settings={"temperature": temperature, "max_tokens": max_tokens},
                error=outcome.error,
            )
            if outcome.ok:
                if len(attempts) > 1:
                    logger.info(f"Provider '{step.name}' succeeded after {len(attempts) - 1} failed attempt(s)")
                return ChainResult(value=outcome.value, text=outcome.text, provider=step.name, attempts=attempts)
            logger.warning(f"Provider '{step.name}' failed for {character_id}: {outcome.error}")

        if self.terminal is None:
            return ChainResult(attempts=attempts)

        logger.info(f"All providers failed for {character_id}; using {self.terminal_name} responder")
        text = self.terminal(prompt)
        attempts.append(ProviderOutcome(provider=self.terminal_name, value=text, text=text))
        return ChainResult(value=text, text=text, provider=self.terminal_name, attempts=attempts)

    async def _attempt(
        self,
        step: ProviderStep,
        prompt: str,
        system_prompt: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        accept: Callable[[str], Any],
    ) -> ProviderOutcome:
        try:
            response = await step.client.generate(
                prompt,
                system_prompt=system_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except LLMError as e:
            return ProviderOutcome(provider=step.name, error=str(e))
        except Exception as e:
            logger.error(f"Unexpected error from provider '{step.name}': {e}", exc_info=True)
            return ProviderOutcome(provider=step.name, error=f"unexpected error: {e}")

        try:
            value = accept(response.content)
        except ValueError as e:
            return ProviderOutcome(
                provider=step.name, text=response.content, model=response.model,
                error=f"rejected response: {e}",
            )
        return ProviderOutcome(provider=step.name, value=value, text=response.content, model=response.model)

    async def aclose(self) -> None:
        """Close every client in the chain."""
        for step in self.steps:
            try:
                await step.client.close()
            except Exception as e:
                logger.debug(f"Error closing provider '{step.name}': {e}")
