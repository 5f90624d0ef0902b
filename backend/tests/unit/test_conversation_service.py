# backend/tests/unit/test_conversation_service.py
import asyncio
import pytest
from unittest.mock import MagicMock

from convers.config import strings

TENANT = "acme"
PARTY = "5511999990000"

SCENARIO = [
    {"id": "A", "type": "message", "content": "Hi", "next": "B"},
    {"id": "B", "type": "question", "content": "Pick one", "next_options": {"Red": "C"}},
    {"id": "C", "type": "message", "content": "Bye"},
]


@pytest.mark.asyncio
async def test_end_to_end_scenario(service, flows, conversations, channel, notifier, make_flow):
    flows.set_flows(TENANT, [make_flow(SCENARIO)])

    outcome = await service.handle_message(TENANT, PARTY, "hello")
    assert outcome == "started"
    assert channel.texts() == ["Hi", "Pick one"]
    assert conversations.get(TENANT, PARTY).current_block_id == "B"

    outcome = await service.handle_message(TENANT, PARTY, "red")
    assert outcome == "advanced"
    assert channel.texts() == ["Hi", "Pick one", "Bye"]
    assert conversations.get(TENANT, PARTY).current_block_id == "C"

    await asyncio.sleep(0)
    notifier.notify_conversation_started.assert_awaited_once_with(TENANT, PARTY)


@pytest.mark.asyncio
async def test_first_message_uses_legacy_text_fields(service, flows, channel, make_flow):
    flows.set_flows(TENANT, [make_flow([
        {"id": "start", "type": "question", "title": "Welcome! Choose:", "next_options": {"1": "x"}},
        {"id": "x", "type": "message", "content": "Done"},
    ])])
    await service.handle_message(TENANT, PARTY, "oi")
    assert channel.texts() == ["Welcome! Choose:"]


@pytest.mark.asyncio
async def test_reset_clears_state_without_touching_flow_store(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow(SCENARIO)])
    await service.handle_message(TENANT, PARTY, "hello")
    channel.sent.clear()

    flows.get_active_flow = MagicMock(wraps=flows.get_active_flow)
    outcome = await service.handle_message(TENANT, PARTY, "  #RESET ")

    assert outcome == "reset"
    assert conversations.get(TENANT, PARTY) is None
    assert channel.texts() == [strings.RESET_ACKNOWLEDGED]
    flows.get_active_flow.assert_not_called()


@pytest.mark.asyncio
async def test_reset_without_state_still_acknowledges(service, channel):
    assert await service.handle_message(TENANT, PARTY, "#reset") == "reset"
    assert channel.texts() == [strings.RESET_ACKNOWLEDGED]


@pytest.mark.asyncio
async def test_no_active_flow_is_silent(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow(SCENARIO, is_active=False), make_flow([], flow_id="2")])
    assert await service.handle_message(TENANT, PARTY, "hello") == "no_flow"
    assert channel.sent == []
    assert conversations.get(TENANT, PARTY) is None


@pytest.mark.asyncio
async def test_first_active_flow_wins(service, flows, channel, make_flow):
    flows.set_flows(TENANT, [
        make_flow([{"id": "a", "type": "message", "content": "first"}], flow_id="1"),
        make_flow([{"id": "a", "type": "message", "content": "second"}], flow_id="2"),
    ])
    await service.handle_message(TENANT, PARTY, "hello")
    assert channel.texts() == ["first"]


@pytest.mark.asyncio
async def test_stale_position_is_dropped_silently(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow(SCENARIO)])
    await service.handle_message(TENANT, PARTY, "hello")
    channel.sent.clear()

    # Reload removes block B, where the party currently is.
    flows.set_flows(TENANT, [make_flow([SCENARIO[0], SCENARIO[2]])])
    assert await service.handle_message(TENANT, PARTY, "red") == "stale"
    assert channel.sent == []
    assert conversations.get(TENANT, PARTY) is None

    # The next message starts over at the entry block.
    assert await service.handle_message(TENANT, PARTY, "hi again") == "started"
    assert channel.texts() == ["Hi"]


@pytest.mark.asyncio
async def test_unmatched_option_keeps_state_and_asks_again(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow(SCENARIO)])
    await service.handle_message(TENANT, PARTY, "hello")
    channel.sent.clear()

    assert await service.handle_message(TENANT, PARTY, "redd") == "clarification"
    assert channel.texts() == [strings.DID_NOT_UNDERSTAND]
    assert conversations.get(TENANT, PARTY).current_block_id == "B"

    assert await service.handle_message(TENANT, PARTY, " RED ") == "advanced"
    assert conversations.get(TENANT, PARTY).current_block_id == "C"


@pytest.mark.asyncio
async def test_yes_no_routing(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow([
        {"id": "ask", "type": "yes_no", "content": "Want news?", "next_yes": "yes", "next_no": "no"},
        {"id": "yes", "type": "message", "content": "Great"},
        {"id": "no", "type": "message", "content": "Ok, bye"},
    ])])
    await service.handle_message(TENANT, PARTY, "hello")
    assert conversations.get(TENANT, PARTY).current_block_id == "ask"

    assert await service.handle_message(TENANT, PARTY, "maybe") == "clarification"
    assert conversations.get(TENANT, PARTY).current_block_id == "ask"

    assert await service.handle_message(TENANT, PARTY, "Não") == "advanced"
    assert conversations.get(TENANT, PARTY).current_block_id == "no"
    assert channel.texts() == ["Want news?", strings.ANSWER_YES_OR_NO, "Ok, bye"]


@pytest.mark.asyncio
async def test_dangling_target_is_a_dead_end(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow([
        {"id": "ask", "type": "question", "content": "Pick", "next_options": {"Go": "nowhere"}},
    ])])
    await service.handle_message(TENANT, PARTY, "hello")
    channel.sent.clear()

    assert await service.handle_message(TENANT, PARTY, "go") == "dead_end"
    assert channel.sent == []
    assert conversations.get(TENANT, PARTY).current_block_id == "ask"


@pytest.mark.asyncio
async def test_message_block_at_dead_end_stays_silent(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow([{"id": "only", "type": "message", "content": "Hello"}])])
    await service.handle_message(TENANT, PARTY, "hi")
    assert await service.handle_message(TENANT, PARTY, "anyone?") == "dead_end"
    assert channel.texts() == ["Hello"]


@pytest.mark.asyncio
async def test_unknown_block_type_takes_no_action(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow([
        {"id": "u", "type": "carousel", "content": "Cards", "next": "m"},
        {"id": "m", "type": "message", "content": "after"},
    ])])
    await service.handle_message(TENANT, PARTY, "hi")
    assert channel.texts() == ["Cards"]
    assert await service.handle_message(TENANT, PARTY, "next") == "dead_end"
    assert channel.texts() == ["Cards"]


@pytest.mark.asyncio
async def test_parties_and_tenants_are_isolated(service, flows, conversations, channel, make_flow):
    flows.set_flows(TENANT, [make_flow(SCENARIO)])
    await service.handle_message(TENANT, "111", "hello")
    await service.handle_message(TENANT, "222", "hello")
    await service.handle_message(TENANT, "111", "red")

    assert conversations.get(TENANT, "111").current_block_id == "C"
    assert conversations.get(TENANT, "222").current_block_id == "B"
    assert await service.handle_message("other-tenant", "111", "red") == "no_flow"
    assert conversations.get("other-tenant", "111") is None


@pytest.mark.asyncio
async def test_lifecycle_failure_does_not_break_reply(service, flows, channel, notifier, make_flow):
    notifier.notify_conversation_started.side_effect = RuntimeError("callback down")
    flows.set_flows(TENANT, [make_flow(SCENARIO)])

    assert await service.handle_message(TENANT, PARTY, "hello") == "started"
    await asyncio.sleep(0)
    assert channel.texts() == ["Hi", "Pick one"]
