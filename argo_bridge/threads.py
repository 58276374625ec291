from typing import Optional

from .logging_utils import StructuredLogger, logger as default_logger
from .models import ChatMessage


class ThreadLocator:
    """Finds the bridge's own recent message about a deployment so follow-ups can thread onto it.

    ``history`` is anything exposing ``conversations_history(channel_id, limit=...)``
    that returns a ``Result[HistoryPage]`` (normally the ``SlackGateway``).
    """

    def __init__(self, history, app_id: str, logger: Optional[StructuredLogger] = None) -> None:
        self.history = history
        self.app_id = app_id
        self.logger = logger or default_logger

    def find_thread(self, channel_id: str, search_string: str, limit: int = 10) -> Optional[ChatMessage]:
        """Return the most recent message posted by this app whose text contains ``search_string``.

        Only one page of ``limit`` messages is scanned; older threads are not found.
        """
        if not channel_id or not search_string:
            return None

        self.logger.debug("find_thread", channel_id=channel_id, search_string=search_string, limit=limit)

        result = self.history.conversations_history(channel_id, limit=limit)
        page = result.value
        if page is None or not page.ok:
            self.logger.error(
                f"conversations_history(channel_id: {channel_id}, limit: {limit}) failed",
                reason=result.reason or (page.error if page else ""),
            )
            return None

        if not page.messages:
            self.logger.info(f"conversations_history(channel_id: {channel_id}, limit: {limit}) returned no messages")
            return None

        self.logger.debug(
            f"conversations_history(channel_id: {channel_id}, limit: {limit}) returned ({len(page.messages)} messages)"
        )
        # Slack returns history most-recent-first; the first match wins.
        for message in page.messages:
            if message.app_id != self.app_id:
                continue
            if search_string not in (message.text or ""):
                continue

            if message.is_thread_root:
                self.logger.debug("Found message", thread_ts=message.thread_ts)
            else:
                self.logger.debug("Found message w/o matching thread_ts", ts=message.ts)
            return message
        return None
