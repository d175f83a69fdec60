from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from prompt_toolkit.application import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import Frame

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skillsync.skills.agents import AgentTarget

StyleFragments = list[tuple[str, str]]


@dataclass
class PickerState:
    cursor: int = 0
    checked: set[int] = field(default_factory=set)


class _AgentPicker:
    def __init__(self, targets: Sequence[AgentTarget]) -> None:
        if not targets:
            raise ValueError("No agents available to pick from.")
        self.targets = list(targets)
        self.state = PickerState()

        self.list_control = FormattedTextControl(self._render_list, show_cursor=False)
        self.status_control = FormattedTextControl(self._render_status_bar)

        body = HSplit(
            [
                Frame(
                    Window(
                        self.list_control,
                        wrap_lines=False,
                        height=Dimension(max=len(self.targets)),
                        always_hide_cursor=True,
                    ),
                    title="Install to agents",
                ),
                Window(self.status_control, height=2),
            ]
        )
        self.app: Application[list[str] | None] = Application(
            layout=Layout(body),
            key_bindings=self._create_key_bindings(),
            style=Style.from_dict(
                {
                    "selected": "reverse",
                    "checked": "ansigreen",
                    "muted": "ansibrightblack",
                    "focus": "ansicyan",
                }
            ),
            full_screen=False,
            mouse_support=False,
        )

    def _move(self, delta: int) -> None:
        self.state.cursor = (self.state.cursor + delta) % len(self.targets)

    def _toggle(self) -> None:
        index = self.state.cursor
        if index in self.state.checked:
            self.state.checked.discard(index)
        else:
            self.state.checked.add(index)

    def _toggle_all(self) -> None:
        if len(self.state.checked) == len(self.targets):
            self.state.checked.clear()
        else:
            self.state.checked = set(range(len(self.targets)))

    def _selected_ids(self) -> list[str]:
        return [target.agent_id for index, target in enumerate(self.targets) if index in self.state.checked]

    def _render_list(self) -> StyleFragments:
        fragments: StyleFragments = []
        for index, target in enumerate(self.targets):
            selected = index == self.state.cursor
            cursor = "❯ " if selected else "  "
            box = "[x]" if index in self.state.checked else "[ ]"
            style = "class:selected" if selected else ""
            if index in self.state.checked:
                style = f"{style} class:checked".strip()
            fragments.append(
                (style, f"{cursor}{box} {target.agent_id:<14} {target.skill_root_path}\n")
            )
        return fragments

    def _render_status_bar(self) -> StyleFragments:
        return [
            ("class:focus", f"Selected: {len(self.state.checked)}/{len(self.targets)}\n"),
            (
                "class:muted",
                "Keys: ↑/↓ move · Space toggle · a all · Enter install · q quit",
            ),
        ]

    def _create_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("up")
        def _up(event) -> None:
            self._move(-1)
            event.app.invalidate()

        @kb.add("down")
        def _down(event) -> None:
            self._move(1)
            event.app.invalidate()

        @kb.add(" ")
        def _toggle(event) -> None:
            self._toggle()
            event.app.invalidate()

        @kb.add("a")
        def _toggle_all(event) -> None:
            self._toggle_all()
            event.app.invalidate()

        @kb.add("enter")
        def _accept(event) -> None:
            event.app.exit(result=self._selected_ids() or None)

        @kb.add("q")
        @kb.add("escape")
        @kb.add("c-c")
        def _quit(event) -> None:
            event.app.exit(result=None)

        return kb

    def run(self) -> list[str] | None:
        result = self.app.run()
        if isinstance(result, list):
            return result
        return None


def run_agent_picker(targets: Sequence[AgentTarget]) -> list[str] | None:
    """Ask the user which agents to install to; ``None`` when cancelled."""
    picker = _AgentPicker(targets)
    return picker.run()
