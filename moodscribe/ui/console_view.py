"""Terminal rendering of session state, live transcript and chat history."""

import logging
from typing import Dict, Optional

from pubsub import pub
from rich.console import Console
from rich.text import Text

from ..models.emotion import ChatEntry, Emotion, EmotionResult
from ..models.session import SessionState, SessionStatus

logger = logging.getLogger(__name__)

EMOTION_STYLES: Dict[Emotion, str] = {
    Emotion.SADNESS: "blue",
    Emotion.JOY: "yellow",
    Emotion.LOVE: "magenta",
    Emotion.ANGER: "red",
    Emotion.FEAR: "purple",
    Emotion.SURPRISE: "dark_orange",
    Emotion.NEUTRAL: "grey50",
}

STATE_LABELS: Dict[SessionState, str] = {
    SessionState.IDLE: "Ready",
    SessionState.REQUESTING_PERMISSION: "Waiting for permission...",
    SessionState.ACTIVE: "Transcribing...",
    SessionState.ERROR: "Error",
}


class ConsoleChatView:
    """Prints observable pipeline state to the terminal. Presentation only."""

    def __init__(self, console: Optional[Console] = None, show_partials: bool = True):
        self.console = console or Console()
        self.show_partials = show_partials
        self.current_emotion: EmotionResult = EmotionResult.neutral()

    def attach(self) -> None:
        pub.subscribe(self.on_status, "session_state")
        pub.subscribe(self.on_transcript, "transcript_changed")
        pub.subscribe(self.on_emotion, "emotion_classified")
        pub.subscribe(self.on_entry, "chat_entry")

    def detach(self) -> None:
        for listener, topic in ((self.on_status, "session_state"),
                                (self.on_transcript, "transcript_changed"),
                                (self.on_emotion, "emotion_classified"),
                                (self.on_entry, "chat_entry")):
            pub.unsubscribe(listener, topic)

    def on_status(self, status: SessionStatus) -> None:
        style = "green" if status.state is SessionState.ACTIVE else "grey50"
        line = Text("● ", style=style)
        line.append(STATE_LABELS[status.state], style="bold")
        if status.error is not None:
            line.append(f"  {status.error.message}", style="red")
        self.console.print(line)

    def on_transcript(self, text: str) -> None:
        if self.show_partials and text:
            self.console.print(Text(f"  … {text}", style="italic grey70"))

    def on_emotion(self, result: EmotionResult) -> None:
        changed = result.label is not self.current_emotion.label
        self.current_emotion = result
        if changed and self.show_partials:
            style = EMOTION_STYLES[result.label]
            self.console.print(Text(f"  mood: {result.label.value} ({result.confidence:.0%})", style=style))

    def on_entry(self, entry: ChatEntry) -> None:
        self.console.print(self.format_entry(entry))

    @staticmethod
    def format_entry(entry: ChatEntry) -> Text:
        style = EMOTION_STYLES[entry.emotion.label]
        line = Text(entry.timestamp.strftime("%H:%M:%S "), style="dim")
        line.append(f"[{entry.emotion.label.value} {entry.emotion.confidence:.0%}] ", style=f"bold {style}")
        line.append(entry.text)
        return line
