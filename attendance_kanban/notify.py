"""
Notification bridge: routes board outcomes (toasts) to subscribed sinks.

The core only raises notifications. Sinks decide how to show them:
  LoggingSink  - always installed, writes to the module logger
  TelegramSink - optional, forwards to a Telegram chat
"""
import asyncio
import logging
from typing import Callable, List, Optional

from telegram import Bot
from telegram.error import TelegramError

from .schema import Notification, Severity

logger = logging.getLogger(__name__)

Sink = Callable[[Notification], None]


class Notifier:
    """Dispatches notifications to all registered sinks."""

    def __init__(self):
        self.sinks: List[Sink] = []
        self.history: List[Notification] = []

    def subscribe(self, sink: Sink) -> None:
        """Register a sink."""
        self.sinks.append(sink)

    def emit(self, notification: Notification) -> None:
        """Emit a notification to all sinks. A failing sink never breaks the caller."""
        self.history.append(notification)
        for sink in self.sinks:
            try:
                sink(notification)
            except Exception as e:
                logger.error("Notification sink %r failed: %s", sink, e)

    def info(self, title: str, message: str) -> None:
        self.emit(Notification(title, message, Severity.INFO))

    def success(self, title: str, message: str) -> None:
        self.emit(Notification(title, message, Severity.SUCCESS))

    def error(self, title: str, message: str) -> None:
        self.emit(Notification(title, message, Severity.ERROR))


class LoggingSink:
    """Writes every notification to a logger."""

    LEVELS = {
        Severity.INFO: logging.INFO,
        Severity.SUCCESS: logging.INFO,
        Severity.ERROR: logging.ERROR,
    }

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def __call__(self, notification: Notification) -> None:
        self.log.log(
            self.LEVELS[notification.severity],
            "[%s] %s: %s",
            notification.severity.value.upper(),
            notification.title,
            notification.message,
        )


class TelegramSink:
    """
    Forwards notifications to a Telegram chat.

    Sending is asynchronous: inside a running event loop the message is
    scheduled as a task, otherwise it is sent to completion. Delivery errors
    are logged, never raised.
    """

    ICONS = {
        Severity.INFO: "ℹ️",
        Severity.SUCCESS: "✅",
        Severity.ERROR: "❌",
    }

    def __init__(self, token: str, chat_id: str, bot: Optional[Bot] = None,
                 min_severity: Severity = Severity.INFO):
        self.bot = bot or Bot(token=token)
        self.chat_id = chat_id
        self.min_severity = min_severity
        self._tasks: set = set()

    def format(self, notification: Notification) -> str:
        icon = self.ICONS.get(notification.severity, "")
        return f"{icon} {notification.title}\n{notification.message}"

    async def send(self, notification: Notification) -> bool:
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=self.format(notification))
            return True
        except TelegramError as e:
            logger.warning("Telegram delivery failed: %s", e)
            return False

    def __call__(self, notification: Notification) -> None:
        if self.min_severity == Severity.ERROR and notification.severity != Severity.ERROR:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.send(notification))
            return
        task = loop.create_task(self.send(notification))
        # Keep a reference until done so the task is not garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
