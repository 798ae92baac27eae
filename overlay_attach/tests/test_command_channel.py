from __future__ import annotations

import io
import json

import pytest

from overlay_attach.command_channel import CommandChannel, format_response, parse_command_line


@pytest.mark.parametrize("line", ["", "   \n", "{broken", "[1, 2]", "42"])
def test_parse_command_line_rejects_non_objects(line: str) -> None:
    assert parse_command_line(line) is None


def test_parse_command_line_decodes_request() -> None:
    payload = parse_command_line('{"command": "windowAttach.attach", "id": "0x3e00007", "requestId": 4}\n')

    assert payload == {"command": "windowAttach.attach", "id": "0x3e00007", "requestId": 4}


def test_format_response_echoes_request_id() -> None:
    line = format_response({"command": "windowAttach.state", "requestId": "abc"}, {"ok": True, "result": 1})

    assert json.loads(line) == {"ok": True, "result": 1, "requestId": "abc"}
    assert "\n" not in line


def test_format_response_without_request_id() -> None:
    assert format_response({"command": "windowAttach.detach"}, {"ok": True, "result": True}) == (
        '{"ok": true, "result": true}'
    )


@pytest.mark.pyqt_required
def test_channel_dispatches_requests_and_reports_close() -> None:
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    stream_in = io.StringIO('{"command": "windowAttach.state", "requestId": 1}\nnot json\n')
    stream_out = io.StringIO()
    channel = CommandChannel(stream_in, stream_out)
    closed = []
    channel.bind(lambda request: {"ok": True, "result": request["command"]})
    channel.closed.connect(lambda: closed.append(True))

    channel._thread_main()
    app.processEvents()

    assert json.loads(stream_out.getvalue()) == {"ok": True, "result": "windowAttach.state", "requestId": 1}
    assert closed == [True]
