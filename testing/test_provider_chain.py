"""Tests for the provider fallback chain."""

import asyncio

from roundtable_engine.services.provider_chain import ProviderChain, ProviderStep

from conftest import ScriptedClient, unreachable


def _step(name, respond, calls=None):
    return ProviderStep(name, ScriptedClient(name, respond, calls if calls is not None else []))


def _boom(prompt):
    raise RuntimeError("adapter bug")


def test_first_success_wins():
    later_calls = []
    chain = ProviderChain([_step("zai", lambda p: "hello"), _step("openai", lambda p: "other", later_calls)])

    result = asyncio.run(chain.run("prompt"))
    assert result.ok
    assert result.provider == "zai"
    assert result.value == "hello"
    assert later_calls == []


def test_failures_fall_through_to_next_provider():
    chain = ProviderChain([_step("zai", unreachable), _step("openai", lambda p: "from openai")])

    result = asyncio.run(chain.run("prompt"))
    assert result.provider == "openai"
    assert [a.provider for a in result.attempts] == ["zai", "openai"]
    assert "connection refused" in result.attempts[0].error


def test_rejected_reply_moves_on():
    def accept(text):
        if not text.startswith("{"):
            raise ValueError("not json")
        return text

    chain = ProviderChain([_step("zai", lambda p: "prose"), _step("openai", lambda p: "{}")])
    result = asyncio.run(chain.run("prompt", accept=accept))
    assert result.provider == "openai"
    assert result.attempts[0].text == "prose"
    assert "rejected" in result.attempts[0].error


def test_terminal_runs_when_everything_fails():
    chain = ProviderChain(
        [_step("zai", unreachable), _step("ollama", _boom)],
        terminal=lambda prompt: f"offline: {prompt}",
    )
    result = asyncio.run(chain.run("hi"))
    assert result.provider == "offline"
    assert result.value == "offline: hi"
    assert "unexpected error" in result.attempts[1].error


def test_without_terminal_reports_failure():
    chain = ProviderChain([_step("zai", unreachable)])
    result = asyncio.run(chain.run("hi"))
    assert not result.ok
    assert result.value is None
    assert len(result.attempts) == 1


def test_sampling_settings_reach_the_client():
    calls = []
    chain = ProviderChain([_step("zai", lambda p: "ok", calls)])
    asyncio.run(chain.run("hi", system_prompt="sys", temperature=0.3, max_tokens=500))
    assert calls[0]["system_prompt"] == "sys"
    assert calls[0]["temperature"] == 0.3
    assert calls[0]["max_tokens"] == 500


def test_aclose_closes_clients():
    step = _step("zai", lambda p: "ok")
    chain = ProviderChain([step])
    asyncio.run(chain.aclose())
    assert step.client.client.is_closed
