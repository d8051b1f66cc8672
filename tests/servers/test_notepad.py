"""Tests for the notepad server."""

import pytest

from agentline.exceptions import InvalidParamsError
from agentline.servers.notepad import NotepadProvider


@pytest.fixture
def notepad(gateway):
    return NotepadProvider(gateway)


async def call(provider, tool, agent="writer", **arguments):
    result = await provider.call_tool(tool, {"agentName": agent, **arguments})
    return result.first_text


async def test_empty_notepad(notepad):
    assert await call(notepad, "notepad_read") == "Your notepad is empty."
    assert "Status: Empty" in await call(notepad, "notepad_info")
    assert await call(notepad, "notepad_search", query="x") == "Cannot search: notepad is empty."


async def test_write_and_read(notepad, tmp_path):
    text = await call(notepad, "notepad_write", content="first line\nsecond line")
    assert "22 characters, 4 words, 2 lines" in text
    assert await call(notepad, "notepad_read") == "Notepad contents:\n\nfirst line\nsecond line"
    assert (tmp_path / "notepad_writer.txt").read_text() == "first line\nsecond line"


async def test_append_and_prepend(notepad):
    await call(notepad, "notepad_append", content="middle")
    await call(notepad, "notepad_append", content="end")
    await call(notepad, "notepad_prepend", content="start", separator=" | ")
    assert await notepad.notepad("writer") == "start | middle\nend"


async def test_clear(notepad):
    await call(notepad, "notepad_write", content="12345")
    assert "Removed 5 characters" in await call(notepad, "notepad_clear")
    assert await notepad.notepad("writer") == ""


async def test_search(notepad):
    await call(notepad, "notepad_write", content="Alpha\nbeta\nALPHABET")
    found = await call(notepad, "notepad_search", query="alpha")
    assert found.startswith('Found 2 match(es) for "alpha"')
    assert "Line 1: Alpha" in found
    assert "Line 3: ALPHABET" in found

    exact = await call(notepad, "notepad_search", query="alpha", case_sensitive=True)
    assert exact == 'No matches found for "alpha" in your notepad.'


async def test_info(notepad):
    await call(notepad, "notepad_write", content="one two\n\nthree")
    info = await call(notepad, "notepad_info")
    assert "- Words: 3" in info
    assert "- Lines: 3 (2 non-empty)" in info
    assert "- Agent ID: writer" in info


async def test_size_limit(gateway):
    notepad = NotepadProvider(gateway, max_size=2048)
    with pytest.raises(InvalidParamsError, match="Maximum size is 2KB"):
        await call(notepad, "notepad_write", content="x" * 2049)
    assert await notepad.notepad("writer") == ""


async def test_notepads_are_per_agent(notepad):
    await call(notepad, "notepad_write", agent="a", content="mine")
    assert await call(notepad, "notepad_read", agent="b") == "Your notepad is empty."


async def test_persisted_across_instances(gateway, notepad):
    await call(notepad, "notepad_write", agent="Agent One", content="kept")
    fresh = NotepadProvider(gateway)
    assert await fresh.notepad("Agent One") == "kept"


async def test_resource(notepad):
    [resource] = await notepad.list_resources()
    assert resource.uri.startswith("notepad://")

    empty = await notepad.read_resource("notepad://notepad?agentName=writer")
    assert empty.text == "Empty notepad"
    await call(notepad, "notepad_write", content="hello")
    full = await notepad.read_resource("notepad://notepad?agentName=writer")
    assert full.text == "hello"

    with pytest.raises(InvalidParamsError, match="Agent name is required"):
        await notepad.read_resource("notepad://notepad")


async def test_names_differing_in_case_or_punctuation_stay_separate(gateway, notepad, tmp_path):
    await call(notepad, "notepad_write", agent="Alice", content="secret of Alice")
    await call(notepad, "notepad_write", agent="alice", content="secret of alice")
    await call(notepad, "notepad_write", agent="a.b", content="dotted")

    assert await call(notepad, "notepad_read", agent="alice") == "Notepad contents:\n\nsecret of alice"
    assert await call(notepad, "notepad_read", agent="Alice") == "Notepad contents:\n\nsecret of Alice"
    assert await call(notepad, "notepad_read", agent="a_b") == "Your notepad is empty."

    fresh = NotepadProvider(gateway)
    assert await fresh.notepad("Alice") == "secret of Alice"
    assert await fresh.notepad("alice") == "secret of alice"
    assert (tmp_path / "notepad_a%2Eb.txt").read_text() == "dotted"
