"""Brokerage TUI entrypoint: Textual shell around the dispatcher."""

from __future__ import annotations

import logging

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.message import Message
from textual.widgets import Static

from ..auth import TokenManager
from ..client import PublicClient, new_http_client
from ..config import PubConfig, UIConfig, load_config, load_ui_config
from ..keystore import SecretStore, default_store
from .commands import AppContext, Command, Quit
from .dispatcher import Dispatcher
from .orchestrator import CommandRunner

log = logging.getLogger(__name__)


class ResultArrived(Message):
    """A command finished; carries its result message into the UI loop."""

    def __init__(self, result: object) -> None:
        super().__init__()
        self.result = result


# region Brokerage UI
class PubApp(App):
    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    CSS = """
    Screen {
        layout: vertical;
    }

    #toolbar {
        height: 1;
        background: #0d1117;
    }

    #content {
        height: 1fr;
        padding: 1 1 0 1;
        overflow-y: auto;
    }

    #footer {
        height: 1;
        padding: 0 1;
        background: #161b22;
    }
    """

    def __init__(
        self,
        config: PubConfig | None = None,
        ui_config: UIConfig | None = None,
        *,
        secret_store: SecretStore | None = None,
        client: PublicClient | None = None,
    ) -> None:
        super().__init__()
        self._config = config or load_config()
        ui_config = ui_config or load_ui_config()
        if client is None:
            http = new_http_client(self._config)
            tokens = TokenManager(
                http,
                base_url=self._config.api_base_url,
                secret_store=secret_store or default_store(),
                validity_minutes=self._config.token_validity_minutes,
            )
            client = PublicClient(http, tokens)
        self._client = client
        self._ctx = AppContext(config=self._config, ui_config=ui_config, account_id=self._config.account_uuid)
        self._dispatcher = Dispatcher(self._ctx, refresh_interval=self._config.refresh_interval_sec)
        self._runner = CommandRunner(client, self._post_result)

    def compose(self) -> ComposeResult:
        yield Static("", id="toolbar")
        yield Static("", id="content")
        yield Static("", id="footer")

    async def on_mount(self) -> None:
        self._toolbar = self.query_one("#toolbar", Static)
        self._content = self.query_one("#content", Static)
        self._footer = self.query_one("#footer", Static)
        self._dispatcher.handle_resize(self.size.width, self.size.height)
        self._submit(self._dispatcher.start())
        self._render_all()

    async def on_unmount(self) -> None:
        await self._runner.aclose()
        await self._client.aclose()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self._submit(self._dispatcher.handle_key(event.key, event.character))
        self._render_all()

    def on_resize(self, event: events.Resize) -> None:
        self._submit(self._dispatcher.handle_resize(event.size.width, event.size.height))
        self._render_all()

    def on_result_arrived(self, event: ResultArrived) -> None:
        self._submit(self._dispatcher.handle_message(event.result))
        self._render_all()

    def _post_result(self, result: object) -> None:
        self.post_message(ResultArrived(result))

    def _submit(self, commands: list[Command]) -> None:
        if any(isinstance(command, Quit) for command in commands):
            log.info("quit requested")
            self.exit()
            return
        self._runner.submit(commands)

    def _render_all(self) -> None:
        if not hasattr(self, "_content"):
            return
        self._toolbar.update(self._dispatcher.render_toolbar())
        self._content.update(self._dispatcher.render_content())
        self._footer.update(self._dispatcher.render_footer())
# endregion
