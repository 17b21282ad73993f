from typing import Dict, Literal, Optional, Tuple, override

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer

from utils.messages import QuitRequestedMessage


class DialogModal(ModalScreen[bool]):
    """
    A yes/no dialog box, returns True when the primary button is pressed.
    """

    VARIANT_MAP: Dict[
        str, Tuple[Literal["primary", "default", "success", "warning", "error"], ...]
    ] = {
        "default": ("primary", "default"),
        "positive": ("success", "default"),
        "warning": ("warning", "default"),
        "error": ("error", "primary"),
    }

    def __init__(
        self,
        caption: str,
        primary_text: str = "OK",
        secondary_text: str = "",
        tone: Literal["default", "positive", "warning", "error"] = "default",
    ):
        super().__init__()
        self.caption = caption
        self.primary_text = primary_text
        self.secondary_text = secondary_text
        self.tone = tone

    def compose(self) -> ComposeResult:
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            with Horizontal(id="dialog"):
                if self.secondary_text:
                    yield Button(
                        self.secondary_text,
                        variant=DialogModal.VARIANT_MAP[self.tone][1],
                        id="btn-secondary",
                    )
                yield Button(
                    self.primary_text,
                    variant=DialogModal.VARIANT_MAP[self.tone][0],
                    id="btn-primary",
                )

    def on_mount(self):
        # destructive dialogs focus "No"
        if not self.secondary_text or not self.tone == "error":
            self.query_one("#btn-primary").focus()
        else:
            self.query_one("#btn-secondary").focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.dismiss(True)
        if event.button.id == "btn-secondary":
            self.dismiss(False)


class QuitDialogModal(DialogModal):
    def __init__(self):
        super().__init__("Are you sure you want to quit?", "Yes", "No", "error")

    @override
    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.post_message(QuitRequestedMessage())
            self.dismiss(True)
        else:
            self.dismiss(False)


class PromptModal(ModalScreen[Optional[str]]):
    """
    Ask for one line of text. Returns the text, or None when cancelled.
    """

    def __init__(self, caption: str, value: str = "", placeholder: str = ""):
        super().__init__()
        self.caption = caption
        self.value = value
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Container(id="div-dialog"):
            yield Label(self.caption, id="caption")
            yield Input(self.value, placeholder=self.placeholder, id="input-prompt")
            with Horizontal(id="dialog"):
                yield Button("Cancel", id="btn-secondary")
                yield Button("Save", variant="primary", id="btn-primary")

    def on_mount(self):
        self.query_one("#input-prompt").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Input.Submitted, "#input-prompt")
    @on(Button.Pressed, "#btn-primary")
    def handle_save(self) -> None:
        self.dismiss(self.query_one("#input-prompt", Input).value.strip())

    @on(Button.Pressed, "#btn-secondary")
    def handle_cancel(self) -> None:
        self.dismiss(None)


class DocumentModal(ModalScreen[bool]):
    """
    Read-only markdown document, used for print previews.
    """

    def __init__(self, markdown: str, close_text: str = "Close"):
        super().__init__()
        self.markdown = markdown
        self.close_text = close_text

    def compose(self) -> ComposeResult:
        with Container(id="div-document"):
            yield MarkdownViewer(self.markdown, show_table_of_contents=False)
            with Horizontal(id="dialog"):
                yield Button(self.close_text, variant="primary", id="btn-primary")

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(True)

    @on(Button.Pressed, "#btn-primary")
    def handle_close(self) -> None:
        self.dismiss(True)
