from __future__ import annotations

import logging
import subprocess
from types import SimpleNamespace
from typing import List

import pytest

from overlay_attach import window_query
from overlay_attach.attach_types import MappedGeometry, WindowRef
from overlay_attach.window_query import (
    X11WindowQuery,
    create_window_query_provider,
    is_x11_session,
    parse_geometry,
    parse_window_list,
)

XWININFO_OUTPUT = """
xwininfo: Window id: 0x3e00007 "Terminal"

  Absolute upper-left X:  100
  Absolute upper-left Y:  -20
  Relative upper-left X:  3
  Relative upper-left Y:  25
  Width: 800
  Height: 600
  Depth: 24
  Visual: 0x21
  Map State: IsViewable
  Corners:  +100+80  -1020+80  -1020-400  +100-400
  -geometry 800x600+100+80
"""

WMCTRL_OUTPUT = (
    "0x0460000a  0 myhost Firefox.Firefox  Some window title\n"
    "0x03e00007 -1 myhost xterm.XTerm  user@host: ~/src  (dev)\n"
    "garbage line without id\n"
    "\n"
    "0x01200004  1 myhost code.Code  \n"
)


def _completed(stdout: str = "", returncode: int = 0) -> SimpleNamespace:
    return SimpleNamespace(stdout=stdout, returncode=returncode)


def test_parse_window_list_keeps_order_and_full_titles() -> None:
    windows = parse_window_list(WMCTRL_OUTPUT)

    assert windows == [
        WindowRef(id=0x0460000A, title="Some window title", wm_class="Firefox.Firefox"),
        WindowRef(id=0x03E00007, title="user@host: ~/src  (dev)", wm_class="xterm.XTerm"),
        WindowRef(id=0x01200004, title="", wm_class="code.Code"),
    ]


def test_parse_geometry_reads_absolute_position_and_map_state() -> None:
    assert parse_geometry(XWININFO_OUTPUT) == MappedGeometry(x=100, y=-20, width=800, height=600, mapped=True)


@pytest.mark.parametrize("state", ["IsUnMapped", "IsUnviewable"])
def test_parse_geometry_reports_unmapped_windows(state: str) -> None:
    output = XWININFO_OUTPUT.replace("IsViewable", state)

    geometry = parse_geometry(output)

    assert geometry is not None
    assert geometry.mapped is False


def test_parse_geometry_defaults_missing_fields() -> None:
    output = "  Width: 640\n  Height: 480\n"

    assert parse_geometry(output) == MappedGeometry(x=0, y=0, width=640, height=480, mapped=False)


@pytest.mark.parametrize(
    "output",
    [
        "",
        "  Width: 0\n  Height: 480\n  Map State: IsViewable\n",
        "  Absolute upper-left X:  10\n  Width: 640\n",
    ],
)
def test_parse_geometry_treats_degenerate_sizes_as_unavailable(output: str) -> None:
    assert parse_geometry(output) is None


def test_provider_runs_expected_commands(monkeypatch) -> None:
    commands: List[List[str]] = []
    outputs = {
        "wmctrl": WMCTRL_OUTPUT,
        "xdotool": "65011719\n",
        "xwininfo": XWININFO_OUTPUT,
    }

    def fake_run(command, **kwargs):
        commands.append(command)
        assert kwargs["timeout"] == 0.5
        assert kwargs["capture_output"] is True
        return _completed(outputs[command[0]])

    monkeypatch.setattr(window_query.subprocess, "run", fake_run)
    provider = X11WindowQuery(logging.getLogger("test"), tool_timeout=0.5)

    assert len(provider.list_windows()) == 3
    assert provider.get_active_window() == 65011719
    assert provider.get_geometry(65011719) == MappedGeometry(x=100, y=-20, width=800, height=600, mapped=True)
    assert commands == [
        ["wmctrl", "-l", "-x"],
        ["xdotool", "getactivewindow"],
        ["xwininfo", "-id", "65011719"],
    ]


def test_provider_swallows_missing_binaries_and_warns_once(monkeypatch, caplog) -> None:
    def fake_run(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(window_query.subprocess, "run", fake_run)
    provider = X11WindowQuery(logging.getLogger("test.missing"))

    with caplog.at_level(logging.DEBUG, logger="test.missing"):
        assert provider.list_windows() == []
        assert provider.list_windows() == []
        assert provider.get_active_window() is None
        assert provider.get_geometry(1) is None

    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert [record.getMessage() for record in warnings] == [
        "wmctrl binary not found; window attachment cannot query X11",
        "xdotool binary not found; window attachment cannot query X11",
        "xwininfo binary not found; window attachment cannot query X11",
    ]


def test_provider_returns_none_on_failures(monkeypatch) -> None:
    responses = iter(
        [
            _completed("", returncode=1),
            _completed("not-a-number\n"),
            _completed(XWININFO_OUTPUT, returncode=1),
        ]
    )

    def fake_run(command, **kwargs):
        return next(responses)

    monkeypatch.setattr(window_query.subprocess, "run", fake_run)
    provider = X11WindowQuery(logging.getLogger("test"))

    assert provider.list_windows() == []
    assert provider.get_active_window() is None
    assert provider.get_geometry(5) is None


def test_provider_returns_none_on_timeout(monkeypatch) -> None:
    def fake_run(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(window_query.subprocess, "run", fake_run)
    provider = X11WindowQuery(logging.getLogger("test"))

    assert provider.get_geometry(5) is None
    assert provider.get_active_window() is None


@pytest.mark.parametrize(
    "platform, override, session, expected",
    [
        ("linux", None, "x11", True),
        ("linux", None, "X11", True),
        ("linux", None, "wayland", False),
        ("linux", "x11", "wayland", True),
        ("linux", None, None, False),
        ("darwin", None, "x11", False),
    ],
)
def test_is_x11_session(monkeypatch, platform, override, session, expected) -> None:
    monkeypatch.setattr(window_query.sys, "platform", platform)
    if override is None:
        monkeypatch.delenv("OVERLAY_ATTACH_SESSION_TYPE", raising=False)
    else:
        monkeypatch.setenv("OVERLAY_ATTACH_SESSION_TYPE", override)
    if session is None:
        monkeypatch.delenv("XDG_SESSION_TYPE", raising=False)
    else:
        monkeypatch.setenv("XDG_SESSION_TYPE", session)

    assert is_x11_session() is expected


def test_create_provider_respects_gate_and_settings(monkeypatch) -> None:
    logger = logging.getLogger("test")
    monkeypatch.setattr(window_query.sys, "platform", "linux")
    monkeypatch.delenv("OVERLAY_ATTACH_SESSION_TYPE", raising=False)

    monkeypatch.setenv("XDG_SESSION_TYPE", "wayland")
    assert create_window_query_provider(logger) is None

    monkeypatch.setenv("XDG_SESSION_TYPE", "x11")
    assert isinstance(create_window_query_provider(logger), X11WindowQuery)
    assert create_window_query_provider(logger, enabled=False) is None
