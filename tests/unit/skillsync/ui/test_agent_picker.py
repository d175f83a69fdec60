from __future__ import annotations

from pathlib import Path

import pytest

from skillsync.skills.agents import AgentTarget
from skillsync.ui.agent_picker import _AgentPicker


def _picker() -> _AgentPicker:
    return _AgentPicker(
        [
            AgentTarget("claude-code", Path("/home/u/.claude/skills")),
            AgentTarget("windsurf", Path("/home/u/.codeium/windsurf/skills")),
            AgentTarget("amp", Path("/home/u/.config/agents/skills")),
        ]
    )


def test_move_wraps_around() -> None:
    picker = _picker()

    picker._move(-1)
    assert picker.state.cursor == 2

    picker._move(1)
    assert picker.state.cursor == 0


def test_toggle_selects_in_display_order() -> None:
    picker = _picker()

    picker._move(2)
    picker._toggle()
    picker._move(-2)
    picker._toggle()

    assert picker._selected_ids() == ["claude-code", "amp"]

    picker._toggle()
    assert picker._selected_ids() == ["amp"]


def test_toggle_all() -> None:
    picker = _picker()

    picker._toggle_all()
    assert picker._selected_ids() == ["claude-code", "windsurf", "amp"]

    picker._toggle_all()
    assert picker._selected_ids() == []


def test_render_marks_cursor_and_checked_rows() -> None:
    picker = _picker()
    picker._move(1)
    picker._toggle()

    rows = [text for _, text in picker._render_list()]

    assert rows[0].startswith("  [ ] claude-code")
    assert rows[1].startswith("❯ [x] windsurf")
    assert "Selected: 1/3" in picker._render_status_bar()[0][1]


def test_picker_requires_targets() -> None:
    with pytest.raises(ValueError):
        _AgentPicker([])


def test_picker_renders_inline() -> None:
    assert _picker().app.full_screen is False
