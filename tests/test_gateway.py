"""Tests for hippodrome/gateway.py."""

import logging

from hippodrome.gateway import (
    ModelGateway,
    alternate_identifier,
    is_sentinel,
    sentinel_for,
)
from hippodrome.models import Participant, TransportKind
from hippodrome.providers.base import TransportError
from tests.conftest import ScriptedTransport, failing_responder, make_gateway


def test_alternate_identifier_strips_vendor_prefix():
    assert alternate_identifier("google/gemma-3-27b-it") == "gemma-3-27b-it"
    assert alternate_identifier("google/gemma-3-27b-it:free") == "gemma-3-27b-it"


def test_alternate_identifier_none_without_prefix():
    assert alternate_identifier("gemma-3-27b-it") is None


def test_sentinel_embeds_identifier():
    text = sentinel_for("vendor/alpha-one")
    assert "vendor/alpha-one" in text
    assert is_sentinel(text)


def test_is_sentinel_for_empty_text():
    assert is_sentinel("")
    assert is_sentinel("   ")
    assert is_sentinel(None)
    assert not is_sentinel("A real answer")


def test_normalize_appends_suffix_once(sample_gateway_config):
    gateway, _ = make_gateway(sample_gateway_config, lambda p, m: "ok")
    assert gateway.normalize("vendor/alpha") == "vendor/alpha:free"
    assert gateway.normalize("vendor/alpha:free") == "vendor/alpha:free"


def test_normalize_without_configured_suffix(sample_gateway_config):
    sample_gateway_config.model_suffix = ""
    gateway, _ = make_gateway(sample_gateway_config, lambda p, m: "ok")
    assert gateway.normalize("vendor/alpha") == "vendor/alpha"


async def test_generate_returns_transport_text(sample_gateway_config):
    gateway, transport = make_gateway(sample_gateway_config, lambda p, m: f"hello from {m}")
    text = await gateway.generate("hi", Participant("vendor/alpha"))
    assert text == "hello from vendor/alpha:free"
    assert transport.calls == [("hi", "vendor/alpha:free")]


async def test_generate_retries_once_with_alternate_identifier(sample_gateway_config):
    def respond(prompt: str, model_id: str) -> str:
        if model_id.startswith("vendor/"):
            raise TransportError(model_id, "not found", status_code=404)
        return "recovered"

    gateway, transport = make_gateway(sample_gateway_config, respond)
    text = await gateway.generate("hi", Participant("vendor/alpha"))
    assert text == "recovered"
    assert [m for _, m in transport.calls] == ["vendor/alpha:free", "alpha:free"]


async def test_generate_returns_sentinel_after_failed_retry(sample_gateway_config, caplog):
    gateway, transport = make_gateway(sample_gateway_config, failing_responder())
    with caplog.at_level(logging.WARNING):
        text = await gateway.generate("hi", Participant("vendor/alpha"))
    assert text == sentinel_for("vendor/alpha")
    assert len(transport.calls) == 2
    assert any("failed after retry" in msg for msg in caplog.messages)


async def test_generate_no_retry_without_vendor_prefix(sample_gateway_config):
    gateway, transport = make_gateway(sample_gateway_config, failing_responder())
    text = await gateway.generate("hi", Participant("alpha"))
    assert is_sentinel(text)
    assert len(transport.calls) == 1


async def test_unexpected_exception_becomes_sentinel(sample_gateway_config):
    def respond(prompt: str, model_id: str) -> str:
        raise RuntimeError("socket closed")

    gateway, transport = make_gateway(sample_gateway_config, respond)
    text = await gateway.generate("hi", Participant("vendor/alpha"))
    assert text == sentinel_for("vendor/alpha")
    assert len(transport.calls) == 2


async def test_generate_dispatches_on_transport_kind(sample_gateway_config):
    buffered = ScriptedTransport(lambda p, m: "buffered")
    streaming = ScriptedTransport(lambda p, m: "streamed")
    gateway = ModelGateway(
        sample_gateway_config,
        {TransportKind.BUFFERED: buffered, TransportKind.STREAMING: streaming},
    )
    assert await gateway.generate("x", Participant("v/a", TransportKind.STREAMING)) == "streamed"
    assert await gateway.generate("x", Participant("v/a", TransportKind.BUFFERED)) == "buffered"


async def test_generate_forwards_chunk_observer(sample_gateway_config):
    seen: list[str] = []
    gateway, _ = make_gateway(sample_gateway_config, lambda p, m: "abcdefgh", chunks=4)
    text = await gateway.generate("x", Participant("v/a", TransportKind.STREAMING), on_chunk=seen.append)
    assert text == "abcdefgh"
    assert seen[-1] == "abcdefgh"
    assert all("abcdefgh".startswith(s) for s in seen)


def test_for_credential_builds_both_transports(sample_gateway_config):
    gateway = ModelGateway.for_credential(sample_gateway_config, "sk-or-test")
    assert set(gateway._transports) == {TransportKind.BUFFERED, TransportKind.STREAMING}
