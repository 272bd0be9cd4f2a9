"""Tests for the send_file_to_user agent tool."""

import pytest

from agent_bridge.providers.file_tools import (
    file_category,
    file_type,
    send_file_to_user,
)


class FailingSender:
    async def send_file(self, receive_id, path, category):
        raise RuntimeError("upload rejected")


class TestClassification:
    """Tests for extension-based classification."""

    def test_categories(self):
        assert file_category("a.PNG") == "image"
        assert file_category("b.mp3") == "audio"
        assert file_category("c.pdf") == "file"
        assert file_category("no_extension") == "file"

    def test_upload_types(self):
        assert file_type("r.docx") == "docx"
        assert file_type("v.mp4") == "mp4"
        assert file_type("x.zip") == "stream"


class TestSendFileToUser:
    """Tests for send_file_to_user()."""

    async def test_sends_file(self, sink, tmp_path):
        path = tmp_path / "plot.png"
        path.write_bytes(b"png")

        text = await send_file_to_user(sink, "oc_chat", str(path), "here you go")

        assert sink.files == [("oc_chat", path, "image")]
        assert text == 'Image "plot.png" was sent to the user, note: here you go'

    async def test_missing_file(self, sink, tmp_path):
        text = await send_file_to_user(sink, "oc_chat", str(tmp_path / "nope.txt"))
        assert text.startswith("Error: file does not exist")
        assert sink.files == []

    async def test_image_over_limit(self, sink, tmp_path):
        path = tmp_path / "big.jpg"
        with path.open("wb") as fh:
            fh.truncate(11 * 1024 * 1024)

        text = await send_file_to_user(sink, "oc_chat", str(path))

        assert text.startswith("Error: image exceeds the 10MB limit")
        assert sink.files == []

    async def test_file_over_limit(self, sink, tmp_path):
        path = tmp_path / "big.zip"
        with path.open("wb") as fh:
            fh.truncate(31 * 1024 * 1024)

        text = await send_file_to_user(sink, "oc_chat", str(path))
        assert text.startswith("Error: file exceeds the 30MB limit")

    async def test_sender_failure_is_reported(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("x")
        text = await send_file_to_user(FailingSender(), "oc_chat", str(path))
        assert text == "Error: failed to send file - upload rejected"


def test_mcp_server_is_built(sink):
    pytest.importorskip("claude_agent_sdk")
    from agent_bridge.providers.file_tools import create_file_tools_server

    server = create_file_tools_server(sink, "oc_chat")
    assert server["name"] == "feishu-tools"
