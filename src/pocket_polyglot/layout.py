"""Layout builders for the Dash presentation layer."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

import dash_bootstrap_components as dbc
from dash import dcc, html
from dash.development.base_component import Component as DashComponent

from .models import (
    ASSISTANT_ROLE,
    FEEDBACK_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    CEFRLevel,
    ConversationMessage,
    Language,
)

# Component IDs the callbacks read from or write to
REQUIRED_COMPONENT_IDS = {
    "category_dropdown",
    "scenario_dropdown",
    "language_dropdown",
    "level_dropdown",
    "start_button",
    "reset_button",
    "messages_container",
    "input_textarea",
    "submit_button",
    "status_indicator",
    "error_banner",
    "translation_output",
    "poll_interval",
    "state_token",
    "record_button",
    "interim_transcript",
    "audio_level_meter",
    "speech_control",
    "speech_result",
    "audio_chunk",
}

RECORD_LABEL = "Record"
STOP_LABEL = "Stop"

ROLE_DISPLAY_NAMES = {
    SYSTEM_ROLE: "System",
    USER_ROLE: "You",
    ASSISTANT_ROLE: "Assistant",
    FEEDBACK_ROLE: "Feedback",
}

ROLE_STYLES = {
    SYSTEM_ROLE: {"backgroundColor": "#ffe8cc", "color": "#212529"},
    USER_ROLE: {"backgroundColor": "#0d6efd", "color": "#ffffff", "marginLeft": "auto"},
    ASSISTANT_ROLE: {"backgroundColor": "#e9ecef", "color": "#212529"},
    FEEDBACK_ROLE: {"backgroundColor": "#f3e8fa", "color": "#6f42c1"},
}


def collect_ids(component) -> Set[str]:
    """All string component IDs in a Dash component tree."""
    ids: Set[str] = set()
    if isinstance(component, (list, tuple)):
        for child in component:
            ids |= collect_ids(child)
        return ids
    if not isinstance(component, DashComponent):
        return ids
    component_id = getattr(component, "id", None)
    if isinstance(component_id, str):
        ids.add(component_id)
    ids |= collect_ids(getattr(component, "children", None))
    return ids


def speaker_label(
    message: ConversationMessage, previous: Optional[ConversationMessage]
) -> Optional[str]:
    """Name shown above a bubble, or None when it would repeat the previous one."""
    if message.speaker is None:
        if previous is not None and previous.role == message.role:
            return None
        return ROLE_DISPLAY_NAMES[message.role]
    if previous is not None and previous.speaker == message.speaker:
        return None
    return message.speaker


def message_style(role: str) -> Dict[str, str]:
    style = {
        "padding": "10px",
        "borderRadius": "15px",
        "marginBottom": "10px",
        "maxWidth": "70%",
        "width": "fit-content",
        "whiteSpace": "pre-wrap",
    }
    style.update(ROLE_STYLES.get(role, {}))
    return style


def is_translatable(message: ConversationMessage) -> bool:
    return message.role in (USER_ROLE, ASSISTANT_ROLE)


def record_label(is_recording: bool) -> str:
    return STOP_LABEL if is_recording else RECORD_LABEL


class Layout(ABC):
    """Interface for building the Dash component layout."""

    @abstractmethod
    def build_layout(self) -> DashComponent:
        """Constructs and returns the entire Dash component tree for the UI."""
        pass

    @abstractmethod
    def build_messages(self, messages: List[ConversationMessage]) -> List[DashComponent]:
        """Converts the transcript into renderable Dash components."""
        pass

    def get_external_stylesheets(self) -> List:
        return []

    def get_external_scripts(self) -> List:
        return []

    def build_state_components(self, poll_interval_ms: int = 1000) -> List[DashComponent]:
        """Non-visual components every layout needs.

        ``speech_control`` tells the browser whether to capture the microphone;
        ``speech_result`` and ``audio_chunk`` carry recognizer text and PCM16
        audio back to the server.
        """
        return [
            dcc.Interval(id="poll_interval", interval=poll_interval_ms, n_intervals=0),
            dcc.Store(id="state_token", data=0),
            dcc.Store(id="speech_control", data=None),
            dcc.Store(id="speech_result", data=None),
            dcc.Store(id="audio_chunk", data=None),
        ]


class Minimal(Layout):
    """Plain Dash layout with no extra component libraries."""

    def __init__(self, categories: Optional[List[str]] = None, poll_interval_ms: int = 1000):
        self.categories = list(categories or [])
        self.poll_interval_ms = poll_interval_ms

    def build_layout(self) -> DashComponent:
        return html.Div(
            style={"display": "flex", "flexDirection": "column", "height": "100vh"},
            children=[
                html.H3("Pocket Polyglot"),
                html.Div(
                    style={"display": "flex", "gap": "8px"},
                    children=[
                        dcc.Dropdown(
                            id="language_dropdown",
                            options=[lang.value for lang in Language],
                            value=Language.ITALIAN.value,
                            clearable=False,
                            style={"width": "160px"},
                        ),
                        dcc.Dropdown(
                            id="level_dropdown",
                            options=[
                                {"label": lvl.description, "value": lvl.value}
                                for lvl in CEFRLevel
                            ],
                            value=CEFRLevel.A1.value,
                            clearable=False,
                            style={"width": "220px"},
                        ),
                        dcc.Dropdown(
                            id="category_dropdown",
                            options=self.categories,
                            placeholder="Category",
                            style={"width": "240px"},
                        ),
                        dcc.Dropdown(
                            id="scenario_dropdown",
                            options=[],
                            placeholder="Random scenario",
                            style={"flexGrow": 1},
                        ),
                        html.Button("Start", id="start_button"),
                        html.Button("Reset", id="reset_button"),
                    ],
                ),
                html.Div(id="error_banner", hidden=True, style={"color": "#dc3545"}),
                html.Div(
                    id="messages_container",
                    style={"flexGrow": 1, "overflowY": "auto", "padding": "10px"},
                ),
                html.Div(id="translation_output", style={"fontStyle": "italic"}),
                html.Div("Thinking...", id="status_indicator", hidden=True),
                html.Div(id="interim_transcript", style={"fontStyle": "italic", "opacity": 0.7}),
                html.Progress(id="audio_level_meter", value=0, max=100, style={"width": "100%"}),
                html.Div(
                    style={"display": "flex", "gap": "8px"},
                    children=[
                        dcc.Textarea(
                            id="input_textarea",
                            placeholder="Type your answer...",
                            style={"flexGrow": 1},
                        ),
                        html.Button(RECORD_LABEL, id="record_button"),
                        html.Button("Send", id="submit_button", disabled=True),
                    ],
                ),
                *self.build_state_components(self.poll_interval_ms),
            ],
        )

    def build_messages(self, messages: List[ConversationMessage]) -> List[DashComponent]:
        if not messages:
            return []
        components = []
        previous = None
        for msg in messages:
            components.append(self.build_message(msg, previous))
            previous = msg
        return components

    def build_message(
        self, message: ConversationMessage, previous: Optional[ConversationMessage] = None
    ) -> DashComponent:
        children = []
        label = speaker_label(message, previous)
        if label:
            children.append(html.Small(label, style={"display": "block", "opacity": 0.7}))
        children.append(html.Div(message.text))
        if is_translatable(message):
            children.append(
                html.Button(
                    "Translate",
                    id={"type": "translate_button", "index": message.id},
                    style={"fontSize": "0.75em"},
                )
            )
        return html.Div(children, style=message_style(message.role))


class Bootstrap(Minimal):
    """The default layout, styled with dash-bootstrap-components."""

    def get_external_stylesheets(self) -> List:
        return [dbc.themes.BOOTSTRAP]

    def build_layout(self) -> DashComponent:
        return html.Div(
            className="d-flex flex-column vh-100",
            children=[
                self.build_header(),
                self.build_controls(),
                html.Div(id="error_banner", className="alert alert-danger m-2", hidden=True),
                html.Main(
                    id="messages_container",
                    className="flex-grow-1 p-3",
                    style={"overflowY": "auto"},
                ),
                html.Div(id="translation_output", className="px-3 fst-italic text-muted"),
                self.build_input_area(),
                *self.build_state_components(self.poll_interval_ms),
            ],
        )

    def build_header(self) -> DashComponent:
        return html.Header(
            className="p-2 bg-light border-bottom",
            children=[
                dbc.Container(
                    fluid=True,
                    children=[
                        dbc.Row(
                            align="center",
                            children=[
                                dbc.Col(html.H4("Pocket Polyglot", className="m-0")),
                                dbc.Col(
                                    html.Span(
                                        "Thinking...",
                                        id="status_indicator",
                                        className="text-muted",
                                        hidden=True,
                                    ),
                                    width="auto",
                                ),
                            ],
                        )
                    ],
                )
            ],
        )

    def build_controls(self) -> DashComponent:
        return dbc.Container(
            fluid=True,
            className="p-2 border-bottom",
            children=[
                dbc.Row(
                    className="g-2",
                    children=[
                        dbc.Col(
                            dbc.Select(
                                id="language_dropdown",
                                options=[{"label": lang.display_name, "value": lang.value} for lang in Language],
                                value=Language.ITALIAN.value,
                            ),
                            md=2,
                        ),
                        dbc.Col(
                            dbc.Select(
                                id="level_dropdown",
                                options=[
                                    {"label": lvl.description, "value": lvl.value}
                                    for lvl in CEFRLevel
                                ],
                                value=CEFRLevel.A1.value,
                            ),
                            md=2,
                        ),
                        dbc.Col(
                            dcc.Dropdown(
                                id="category_dropdown",
                                options=self.categories,
                                placeholder="Category",
                            ),
                            md=3,
                        ),
                        dbc.Col(
                            dcc.Dropdown(
                                id="scenario_dropdown",
                                options=[],
                                placeholder="Random scenario",
                            ),
                            md=3,
                        ),
                        dbc.Col(
                            dbc.ButtonGroup(
                                [
                                    dbc.Button("Start", id="start_button", color="primary"),
                                    dbc.Button("Reset", id="reset_button", color="secondary"),
                                ]
                            ),
                            md=2,
                        ),
                    ],
                )
            ],
        )

    def build_input_area(self) -> DashComponent:
        return html.Footer(
            className="p-3 bg-light border-top",
            children=[
                html.Div(id="interim_transcript", className="mb-1 small fst-italic text-muted"),
                dbc.Progress(
                    id="audio_level_meter", value=0, color="success", className="mb-2", style={"height": "4px"}
                ),
                dbc.InputGroup(
                    [
                        dbc.Textarea(id="input_textarea", placeholder="Type your answer..."),
                        dbc.Button(RECORD_LABEL, id="record_button", color="danger", outline=True),
                        dbc.Button("Send", id="submit_button", color="primary", disabled=True),
                    ]
                ),
            ],
        )
