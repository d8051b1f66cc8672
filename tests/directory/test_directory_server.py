"""Tests for the company directory server's tools, resources and prompts."""

import orjson
import pytest

from agentline.directory.server import DirectoryProvider
from agentline.exceptions import AgentNotRegisteredError, InvalidParamsError, ServerError
from agentline.protocol.engine import ProtocolEngine
from agentline.storage.gateway import PersistenceGateway

DIRECTORY_TOOLS = {
    "directory_register_agent",
    "directory_list_agents",
    "directory_find_agent",
    "directory_update_status",
    "directory_send_message",
    "directory_get_messages",
    "directory_mark_message_read",
    "directory_unregister_agent",
    "directory_send_email",
    "directory_check_inbox",
    "directory_get_available_recipients",
    "directory_get_email",
    "directory_reply_to_email",
    "directory_forward_email",
    "directory_delete_email",
    "directory_get_inbox_stats",
}


@pytest.fixture
async def staffed(directory, call_json):
    await call_json(directory, "directory_register_agent", "alice", name="Alice", role="dev",
                    capabilities=["python", "review"])
    await call_json(directory, "directory_register_agent", "bob", name="Bob", role="qa")
    return directory


async def test_tool_set(directory):
    tools = {t.name: t for t in await directory.list_tools()}
    assert set(tools) == DIRECTORY_TOOLS
    for tool in tools.values():
        assert "agentName" in tool.input_schema()["required"]

    find = tools["directory_find_agent"].input_schema()["properties"]
    assert {"agentName", "agent_id", "agent_name"} <= set(find)


async def test_register_and_list(staffed, call_json):
    listing = await call_json(staffed, "directory_list_agents", "alice")
    assert listing["success"]
    assert listing["total_agents"] == 2
    assert listing["filters_applied"] == {"status": "all"}
    for agent in listing["agents"]:
        assert "messages" not in agent
        assert "email_inbox" not in agent

    by_capability = await call_json(staffed, "directory_list_agents", "bob", capability_filter="review")
    assert [a["name"] for a in by_capability["agents"]] == ["Alice"]


async def test_find_agent(staffed, call_json):
    found = await call_json(staffed, "directory_find_agent", "bob", agent_name="alice")
    assert found["found"]
    assert found["agent"]["role"] == "dev"

    missing = await call_json(staffed, "directory_find_agent", "bob", agent_id="nobody_1")
    assert missing == {"success": False, "found": False, "message": "Agent not found"}

    with pytest.raises(InvalidParamsError):
        await staffed.call_tool("directory_find_agent", {"agentName": "bob"})


async def test_update_status_and_recipients(staffed, call_json):
    updated = await call_json(staffed, "directory_update_status", "bob", status="busy", message="testing")
    assert updated["new_status"] == "busy"

    recipients = await call_json(staffed, "directory_get_available_recipients", "alice")
    assert recipients["total_recipients"] == 0

    everyone = await call_json(staffed, "directory_get_available_recipients", "alice",
                               status_filter="all", include_self=True)
    assert {r["name"] for r in everyone["recipients"]} == {"Alice", "Bob"}


async def test_invalid_status_is_rejected(staffed):
    with pytest.raises(InvalidParamsError):
        await staffed.call_tool("directory_update_status", {"agentName": "bob", "status": "asleep"})


async def test_directory_messages(staffed, call_json):
    sent = await call_json(staffed, "directory_send_message", "alice",
                           recipient_name="Bob", message="hello", priority="high")
    assert sent["sent_to"] == "Bob"

    inbox = await call_json(staffed, "directory_get_messages", "bob")
    assert inbox["total_messages"] == 1
    assert inbox["messages"][0]["content"] == "hello"
    assert "read_at" not in inbox["messages"][0]

    marked = await call_json(staffed, "directory_mark_message_read", "bob", message_id=sent["message_id"])
    assert marked["message"] == "Message marked as read"
    assert (await call_json(staffed, "directory_get_messages", "bob"))["total_messages"] == 0


async def test_email_scenario(staffed, call_json):
    sent = await call_json(staffed, "directory_send_email", "alice",
                           to=["bob"], subject="Review", body="please check")
    assert sent["successful_deliveries"] == 1

    inbox = await call_json(staffed, "directory_check_inbox", "bob")
    assert inbox["unread_count"] == 1

    email = await call_json(staffed, "directory_get_email", "bob", email_id=sent["email_id"])
    assert email["email_id"] == sent["email_id"]
    assert email["is_read"]
    assert email["body"] == "please check"

    assert (await call_json(staffed, "directory_check_inbox", "bob"))["unread_count"] == 0


async def test_email_with_unknown_recipient(staffed, call_json):
    sent = await call_json(staffed, "directory_send_email", "alice",
                           to=["bob", "carol"], subject="Hi", body="all")
    assert sent["total_recipients"] == 2
    assert sent["successful_deliveries"] == 1


async def test_email_requires_a_recipient(staffed):
    with pytest.raises(InvalidParamsError):
        await staffed.call_tool("directory_send_email",
                                {"agentName": "alice", "to": [], "subject": "x", "body": "y"})


async def test_reply_forward_delete_and_stats(staffed, call_json):
    await call_json(staffed, "directory_register_agent", "carol", name="Carol", role="ops")
    sent = await call_json(staffed, "directory_send_email", "alice", to=["bob"], subject="Plan",
                           body="draft", attachments=[{"filename": "a.txt", "content": "abc"}])

    reply = await call_json(staffed, "directory_reply_to_email", "bob",
                            email_id=sent["email_id"], body="ok")
    assert reply["thread_id"] == sent["thread_id"]

    forward = await call_json(staffed, "directory_forward_email", "bob", email_id=sent["email_id"],
                              to=["Carol"], forward_note="FYI")
    opened = await call_json(staffed, "directory_get_email", "carol",
                             email_id=forward["forwarded_email_id"])
    assert opened["forward_from_id"] == sent["email_id"]
    assert opened["attachments"][0]["filename"] == "a.txt"
    assert opened["attachments"][0]["size"] == 3

    stats = await call_json(staffed, "directory_get_inbox_stats", "bob")
    assert stats["total_emails"] == 2
    assert stats["total_threads"] == 1

    deleted = await call_json(staffed, "directory_delete_email", "bob", email_id=sent["email_id"])
    assert deleted["permanent"] is False
    assert (await call_json(staffed, "directory_get_inbox_stats", "bob"))["total_emails"] == 1


async def test_unregistered_caller_errors(staffed):
    with pytest.raises(AgentNotRegisteredError):
        await staffed.call_tool("directory_check_inbox", {"agentName": "ghost"})
    with pytest.raises(AgentNotRegisteredError):
        await staffed.call_tool("directory_unregister_agent", {"agentName": "ghost"})


async def test_unregister(staffed, call_json):
    removed = await call_json(staffed, "directory_unregister_agent", "bob", reason="leaving")
    assert removed["removed_agent"] == "Bob"
    assert (await call_json(staffed, "directory_list_agents", "alice"))["total_agents"] == 1


async def test_resources(staffed, call_json):
    uris = [r.uri for r in await staffed.list_resources()]
    assert uris == ["directory://company/agents", "directory://company/active-agents"]

    await call_json(staffed, "directory_update_status", "bob", status="offline")
    everyone = orjson.loads((await staffed.read_resource("directory://company/agents")).text)
    active = orjson.loads((await staffed.read_resource("directory://company/active-agents")).text)
    assert everyone["total_count"] == 2
    assert [a["name"] for a in active["active_agents"]] == ["Alice"]

    with pytest.raises(ServerError):
        await staffed.read_resource("directory://company/nothing")


async def test_status_report_prompt(staffed, call_json):
    await call_json(staffed, "directory_update_status", "bob", status="busy", message="triage")

    [summary] = await staffed.get_prompt("agent_status_report", {})
    assert "Total Agents: 2" in summary.content.text
    assert "Busy: 1" in summary.content.text

    [detailed] = await staffed.get_prompt("agent_status_report", {"format": "detailed"})
    assert "- Bob (qa) [busy]: triage" in detailed.content.text

    [as_json] = await staffed.get_prompt("agent_status_report", {"format": "json"})
    assert orjson.loads(as_json.content.text)["total_agents"] == 2


async def test_state_survives_restart(gateway, staffed, call_json):
    await call_json(staffed, "directory_send_email", "alice", to=["bob"], subject="Saved", body="x")

    restarted = DirectoryProvider(gateway)
    await restarted.on_startup()
    inbox = await call_json(restarted, "directory_check_inbox", "bob")
    assert [e["subject"] for e in inbox["emails"]] == ["Saved"]


async def test_capacity_error_over_the_wire(gateway):
    provider = DirectoryProvider(gateway, max_agents=1)
    engine = ProtocolEngine(provider)

    def register(session, id):
        return orjson.dumps({
            "jsonrpc": "2.0", "id": id, "method": "tools/call",
            "params": {"name": "directory_register_agent",
                       "arguments": {"agentName": session, "name": session, "role": "r"}},
        })

    assert "result" in await engine.handle_line(register("one", 1))
    refused = await engine.handle_line(register("two", 2))
    assert refused["error"]["code"] == -32603
    assert "Directory full" in refused["error"]["message"]
    assert len(provider.registry) == 1


async def test_tools_succeed_when_state_cannot_be_written(tmp_path, call_json):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    provider = DirectoryProvider(PersistenceGateway(blocker / "data"))
    await provider.on_startup()

    alice = await call_json(provider, "directory_register_agent", "alice", name="Alice", role="dev")
    await call_json(provider, "directory_register_agent", "bob", name="Bob", role="qa")
    sent = await call_json(provider, "directory_send_email", "alice", to=["bob"], subject="Hi", body="x")

    assert alice["success"]
    assert sent["successful_deliveries"] == 1
    assert len(provider.registry) == 2
    assert (await call_json(provider, "directory_check_inbox", "bob"))["unread_count"] == 1
    assert not (blocker / "data").exists()
