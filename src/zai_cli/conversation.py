import asyncio
import logging
import uuid
from collections.abc import Callable

from rich.console import Console
from rich.markup import escape

from zai_cli.api_client import APIClient, AskRequest, ChatMessage, StreamConfig
from zai_cli.instrumentation import record_error, record_stream_result, stream_span
from zai_cli.progress import ProgressIndicator, Spinner
from zai_cli.rendering import ConsoleRenderer, RenderCallback
from zai_cli.runner import StreamCancelledError, StreamResult, run_stream
from zai_cli.transcript import Transcript

logger = logging.getLogger(__name__)

NEW_THREAD = "new"


class Conversation:
    """A chat session with the agent server.

    Holds the thread, the transcript and the API client across turns.
    In ask mode (``thread_id=None``) every prompt is a standalone,
    non-streaming question.

    Args:
        client: API client used for every request.
        console: Where blocks, notices and the spinner are drawn.
        user_name: Sent as the user id and recorded in the transcript.
        thread_id: Existing thread id, ``"new"`` to create one on the
            first prompt, or ``None`` for ask mode.
        cancel_event: Optional abort signal; setting it ends the in-flight
            stream with :class:`StreamCancelledError`.  The CLI does not
            set it and relies on task cancellation instead.
        indicator_factory: Builds the progress indicator for a turn.
    """

    def __init__(
        self,
        client: APIClient,
        console: Console,
        user_name: str,
        thread_id: str | None = NEW_THREAD,
        cancel_event: asyncio.Event | None = None,
        indicator_factory: Callable[[str], ProgressIndicator] | None = None,
        render: RenderCallback | None = None,
    ):
        self.client = client
        self.console = console
        self.user_name = user_name
        self.thread_id = thread_id
        self.cancel_event = cancel_event or asyncio.Event()
        self.transcript = Transcript()
        self._indicator_factory = indicator_factory or (
            lambda text: Spinner(console, text).start()
        )
        self._render = render or ConsoleRenderer(console)

    @property
    def ask_mode(self) -> bool:
        return self.thread_id is None

    async def send(self, prompt: str) -> StreamResult | None:
        """Send *prompt* and render the answer.

        Returns the final answer, or ``None`` when ask mode got no content.
        Errors are reported on the console and re-raised.
        """
        self.transcript.add_user_message(prompt)
        indicator = self._indicator_factory("AI: Thinking...")
        try:
            if self.ask_mode:
                result = await self._ask(prompt, indicator)
            else:
                result = await self._chat(prompt, indicator)
        except (Exception, asyncio.CancelledError) as e:
            indicator.error("Request failed")
            if self.cancel_event.is_set() or isinstance(
                e, (asyncio.CancelledError, StreamCancelledError)
            ):
                self.console.print("\n[yellow]⚠️  Request was cancelled[/yellow]")
            else:
                self.console.print(f"\n[red]❌ Error:[/red] {escape(str(e))}")
            raise
        self.console.print()
        return result

    async def _ask(self, prompt: str, indicator: ProgressIndicator) -> StreamResult | None:
        indicator.text = "AI: Processing..."
        response = await self.client.ask(AskRequest(
            messages=[ChatMessage(role="user", content=prompt)],
        ))
        indicator.success("Response received")

        if not isinstance(response, list) or not response:
            return None
        last = response[-1]
        content = last.get("content") if isinstance(last, dict) else None
        if not content:
            return None

        agent_name = last.get("name")
        self.console.print("[bold cyan]AI:[/bold cyan]")
        self.console.print(f"[bright_white]{escape(content)}[/bright_white]")
        self.transcript.add_answer(content, user="User", agent=agent_name)
        return StreamResult(content=content, agent_name=agent_name or "")

    async def _chat(self, prompt: str, indicator: ProgressIndicator) -> StreamResult:
        if not self.thread_id or self.thread_id == NEW_THREAD:
            indicator.text = "AI: Creating new thread..."
            thread = await self.client.create_new_thread(self.user_name)
            self.thread_id = thread.thread_id
            self.console.print(f"[dim]🧵 Thread: {escape(self.thread_id)}[/dim]")

        config = StreamConfig(
            thread_id=self.thread_id,
            content=prompt,
            user_id=self.user_name,
            message_id=str(uuid.uuid4()),
        )
        sequence_index = len(self.transcript.metadata) + 1

        indicator.text = "AI: Connecting..."
        async with stream_span(self.thread_id, sequence_index) as span:
            try:
                async with self.client.stream_chat(config) as response:
                    indicator.text = "AI: Connected"
                    result = await run_stream(
                        response.aiter_bytes(),
                        render=self._render,
                        indicator=indicator,
                        sequence_index=sequence_index,
                        cancel_event=self.cancel_event,
                    )
            except (Exception, asyncio.CancelledError) as e:
                record_error(span, e)
                raise
            record_stream_result(span, result)
        indicator.stop()

        content = result.content.strip()
        if content:
            self.transcript.add_answer(
                content, user=self.user_name, agent=result.agent_name or None,
            )
        logger.info(
            f"Turn {sequence_index} finished: {len(content)} chars "
            f"from {result.agent_name or 'unknown agent'}"
        )
        return result
