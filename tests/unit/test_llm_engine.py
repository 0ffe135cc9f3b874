from __future__ import annotations

import asyncio

import pytest

from pagepilot.exceptions import CompletionFailure, ModelUnavailable
from pagepilot.llm.base import TranscriptEntry, build_messages
from pagepilot.llm.engine import LLMEngine


class DummyBackend:
    def __init__(self, failing=(), unsupported=False, reply="hello", gate=None):
        self.failing = set(failing)
        self.unsupported = unsupported
        self.reply = reply
        self.gate = gate
        self.loads = []
        self.chats = []

    def check_support(self):
        if self.unsupported:
            raise ModelUnavailable("WebGPU is not supported in this browser")

    async def load(self, model_id, progress):
        self.loads.append(model_id)
        progress(0.5)
        if self.gate is not None:
            await self.gate.wait()
        if model_id in self.failing:
            raise RuntimeError(f"cannot load {model_id}")

    async def chat(self, messages, *, model_id, temperature, max_tokens):
        self.chats.append({"messages": messages, "model_id": model_id, "temperature": temperature, "max_tokens": max_tokens})
        return self.reply


class StreamingBackend(DummyBackend):
    async def chat_stream(self, messages, *, model_id, temperature, max_tokens):
        for chunk in ["he", "", "llo"]:
            yield chunk


def test_build_messages_alternates_roles():
    messages = build_messages("sys", [TranscriptEntry(prompt="p1", output="o1")], "p2")
    assert [(m.role, m.content) for m in messages] == [
        ("system", "sys"),
        ("user", "p1"),
        ("assistant", "o1"),
        ("user", "p2"),
    ]


@pytest.mark.asyncio
async def test_initialize_loads_requested_model_and_reports_progress():
    backend = DummyBackend()
    engine = LLMEngine(backend, fallback_models=["small"], temperature=0.2, max_tokens=64)
    progress = []
    engine.on_progress(progress.append)

    await engine.initialize("big")

    assert engine.is_ready()
    assert backend.loads == ["big"]
    assert progress == [0.5, 1.0]
    state = engine.get_state()
    assert state.current_model == "big"
    assert state.load_progress == 1.0
    assert not state.is_loading


@pytest.mark.asyncio
async def test_initialize_falls_back_in_order():
    backend = DummyBackend(failing={"big", "medium"})
    engine = LLMEngine(backend, fallback_models=["medium", "small"])

    await engine.initialize("big")

    assert backend.loads == ["big", "medium", "small"]
    assert engine.get_state().current_model == "small"


@pytest.mark.asyncio
async def test_initialize_raises_last_error_when_every_model_fails():
    backend = DummyBackend(failing={"big", "small"})
    engine = LLMEngine(backend, fallback_models=["small"])

    with pytest.raises(RuntimeError, match="cannot load small"):
        await engine.initialize("big")

    assert not engine.is_ready()
    assert engine.get_state().error == "cannot load small"


@pytest.mark.asyncio
async def test_unsupported_host_is_model_unavailable():
    backend = DummyBackend(unsupported=True)
    engine = LLMEngine(backend, fallback_models=[])

    with pytest.raises(ModelUnavailable):
        await engine.initialize("big")

    assert backend.loads == []
    assert "WebGPU" in engine.get_state().error


@pytest.mark.asyncio
async def test_concurrent_initialize_shares_one_load():
    gate = asyncio.Event()
    backend = DummyBackend(gate=gate)
    engine = LLMEngine(backend, fallback_models=[])

    first = asyncio.create_task(engine.initialize("big"))
    second = asyncio.create_task(engine.initialize("big"))
    await asyncio.sleep(0)
    gate.set()
    await asyncio.gather(first, second)

    assert backend.loads == ["big"]
    # already loaded: no further work
    await engine.initialize("big")
    assert backend.loads == ["big"]


@pytest.mark.asyncio
async def test_chat_before_initialize_fails():
    engine = LLMEngine(DummyBackend(), fallback_models=[])
    with pytest.raises(CompletionFailure, match="not initialized"):
        await engine.complete("sys", [], "hi")


@pytest.mark.asyncio
async def test_complete_uses_engine_defaults():
    backend = DummyBackend(reply="answer")
    engine = LLMEngine(backend, fallback_models=[], temperature=0.3, max_tokens=128)
    await engine.initialize("big")

    assert await engine.complete("sys", [], "hi") == "answer"
    call = backend.chats[0]
    assert (call["model_id"], call["temperature"], call["max_tokens"]) == ("big", 0.3, 128)
    assert [m.role for m in call["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_empty_reply_is_completion_failure():
    engine = LLMEngine(DummyBackend(reply=""), fallback_models=[])
    await engine.initialize("big")
    with pytest.raises(CompletionFailure, match="Empty response"):
        await engine.chat(build_messages("s", [], "p"))


@pytest.mark.asyncio
async def test_streaming_skips_empty_chunks():
    engine = LLMEngine(StreamingBackend(), fallback_models=[])
    await engine.initialize("big")

    chunks = [c async for c in engine.complete_streaming("s", [], "p")]

    assert chunks == ["he", "llo"]


@pytest.mark.asyncio
async def test_streaming_without_backend_support_yields_full_reply():
    engine = LLMEngine(DummyBackend(reply="whole"), fallback_models=[])
    await engine.initialize("big")

    chunks = [c async for c in engine.complete_streaming("s", [], "p")]

    assert chunks == ["whole"]


@pytest.mark.asyncio
async def test_reset_forgets_model_and_unsubscribe_stops_progress():
    backend = DummyBackend()
    engine = LLMEngine(backend, fallback_models=[])
    progress = []
    unsubscribe = engine.on_progress(progress.append)
    await engine.initialize("big")
    unsubscribe()

    engine.reset()
    assert not engine.is_ready()
    assert engine.get_state().current_model is None

    await engine.initialize("big")
    assert backend.loads == ["big", "big"]
    assert progress == [0.5, 1.0]


@pytest.mark.asyncio
async def test_faulty_progress_callback_does_not_break_loading():
    engine = LLMEngine(DummyBackend(), fallback_models=[])

    def broken(_):
        raise ValueError("ui gone")

    engine.on_progress(broken)
    await engine.initialize("big")
    assert engine.is_ready()


class GatedBackend(DummyBackend):
    """Loads of the models in `gates` block until their event is set."""

    def __init__(self, gates, failing=()):
        super().__init__(failing=failing)
        self.gates = gates

    async def load(self, model_id, progress):
        self.loads.append(model_id)
        gate = self.gates.get(model_id)
        if gate is not None:
            await gate.wait()
        if model_id in self.failing:
            raise RuntimeError(f"cannot load {model_id}")


@pytest.mark.asyncio
async def test_superseded_load_does_not_mask_failed_newer_request():
    old_gate = asyncio.Event()
    backend = GatedBackend({"old": old_gate}, failing={"new"})
    engine = LLMEngine(backend, fallback_models=[])

    first = asyncio.ensure_future(engine.initialize("old"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    with pytest.raises(RuntimeError, match="cannot load new"):
        await engine.initialize("new")

    old_gate.set()
    await first

    state = engine.get_state()
    assert not engine.is_ready()
    assert state.current_model is None
    assert state.error == "cannot load new"
    assert not state.is_loading


@pytest.mark.asyncio
async def test_superseded_load_finishing_last_keeps_newer_model():
    old_gate = asyncio.Event()
    backend = GatedBackend({"old": old_gate})
    engine = LLMEngine(backend, fallback_models=[])

    first = asyncio.ensure_future(engine.initialize("old"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    await engine.initialize("new")

    old_gate.set()
    await first

    assert engine.is_ready()
    assert engine.get_state().current_model == "new"
    await engine.complete("sys", [], "hi")
    assert backend.chats[-1]["model_id"] == "new"


@pytest.mark.asyncio
async def test_reset_discards_load_in_flight():
    gate = asyncio.Event()
    engine = LLMEngine(GatedBackend({"big": gate}), fallback_models=[])

    pending = asyncio.ensure_future(engine.initialize("big"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    engine.reset()
    gate.set()
    await pending

    assert not engine.is_ready()
    assert engine.get_state().current_model is None
