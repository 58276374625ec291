"""Slack Web API gateway.

Like the GitHub gateway, every operation returns a ``Result`` and logs its own
failures. Slack reports most errors as HTTP 200 with ``"ok": false``.
"""
from typing import Any, Dict, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from .cache import AppendOnlyCache
from .config import DEFAULT_SLACK_APP_ID, SLACK_API, mask_token
from .logging_utils import StructuredLogger, log_exception, logger as default_logger
from .models import ChatMessage, ConversationResult, HistoryPage, PostResult, SlackUser
from .results import FailureKind, Result
from .threads import ThreadLocator

M = TypeVar("M", bound=BaseModel)


def slack_api_headers(token: str) -> Dict[str, str]:
    h = {"Content-Type": "application/json; charset=utf-8"}
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


class _LookupResponse(BaseModel):
    ok: bool = False
    user: Optional[SlackUser] = None
    error: Optional[str] = None


class SlackGateway:
    def __init__(
        self,
        token: str = "",
        app_id: str = DEFAULT_SLACK_APP_ID,
        api_url: str = SLACK_API,
        *,
        session: Any = None,
        users: Optional[AppendOnlyCache[SlackUser]] = None,
        timeout: float = 15.0,
        thread_search_limit: int = 100,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.logger = logger or default_logger
        self.app_id = app_id
        self.api_url = (api_url or SLACK_API).rstrip("/")
        self.timeout = timeout
        self.thread_search_limit = thread_search_limit
        # Anything with requests.request's signature; the requests module by default
        self.session = session or requests
        self.headers = slack_api_headers(token)
        # email -> SlackUser, never evicted
        self.known_users: AppendOnlyCache[SlackUser] = users if users is not None else AppendOnlyCache()
        self.threads = ThreadLocator(self, app_id, logger=self.logger)
        self.logger.debug("SLACK_TOKEN configured" if token else "SLACK_TOKEN is not set", token=mask_token(token))

    def _request(self, method: str, api_method: str, model: Type[M], **kwargs: Any) -> Result[M]:
        url = f"{self.api_url}/{api_method}"
        try:
            r = self.session.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log_exception(self.logger, e, operation=api_method, url=url)
            return Result.fail(FailureKind.TRANSPORT, f"{api_method} request failed: {e.__class__.__name__}")

        if r.status_code != 200:
            self.logger.error(f"{method} {url} returned {r.status_code}!", status=r.status_code)
            return Result.fail(FailureKind.UPSTREAM, f"{api_method} failed: HTTP {r.status_code}")
        try:
            parsed = model.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            log_exception(self.logger, e, operation=api_method, url=url)
            return Result.fail(FailureKind.TRANSPORT, f"{api_method}: unexpected response")
        self.logger.debug(f"{method} {url} returned {r.status_code}")
        return Result.of(parsed)

    def lookup_user_by_email(self, email: str) -> Result[SlackUser]:
        """Find a Slack user by email address, cached by email once found.

        @see https://api.slack.com/methods/users.lookupByEmail
        """
        if not email:
            return Result.fail(FailureKind.SKIPPED, "email is empty")
        cached = self.known_users.get(email)
        if cached is not None:
            return Result.of(cached)

        result = self._request("GET", "users.lookupByEmail", _LookupResponse, params={"email": email})
        if not result.ok:
            return Result.fail(result.error, result.reason)
        body = result.value
        if not body.ok or body.user is None:
            # not cached: a later call with the same email tries again
            self.logger.error("users.lookupByEmail was not ok", error=body.error)
            return Result.fail(FailureKind.UPSTREAM, body.error or "users.lookupByEmail failed")
        return Result.of(self.known_users.put(email, body.user))

    def find_thread(self, channel_id: str, search_string: str, limit: int = 10) -> Optional[ChatMessage]:
        return self.threads.find_thread(channel_id, search_string, limit=limit)

    def post_message(
        self,
        channel_id: str,
        content: Dict[str, Any],
        thread_search_string: Optional[str] = None,
        thread_reply_broadcast: bool = False,
    ) -> Result[PostResult]:
        """Send a message to a channel.

        ``content`` holds the message arguments (``text``, ``blocks``, ...). If
        ``thread_search_string`` matches one of this app's recent messages in the
        channel, the message is posted as a reply in that thread.

        @see https://api.slack.com/methods/chat.postMessage
        """
        body: Dict[str, Any] = {"channel": channel_id, **(content or {})}

        if thread_search_string:
            message = self.threads.find_thread(channel_id, thread_search_string, limit=self.thread_search_limit)
            if message is not None:
                self.logger.debug(f"Found thread in channel {channel_id} with search string {thread_search_string}")
                body["thread_ts"] = message.thread_root_ts
                if thread_reply_broadcast:
                    body["reply_broadcast"] = True

        result = self._request("POST", "chat.postMessage", PostResult, json=body)
        if result.ok and not result.value.ok:
            self.logger.warn("chat.postMessage was not ok", channel_id=channel_id, error=result.value.error)
        return result

    def open_conversation(self, user_id: str) -> Result[ConversationResult]:
        """Open (or reuse) a direct-message conversation with a Slack user.

        @see https://api.slack.com/methods/conversations.open
        """
        if not user_id:
            return Result.fail(FailureKind.SKIPPED, "user id is empty")
        return self._request("POST", "conversations.open", ConversationResult, json={"users": user_id, "return_im": True})

    def send_direct_message(
        self,
        user_id: str,
        content: Dict[str, Any],
        thread_search_string: Optional[str] = None,
        thread_reply_broadcast: bool = False,
    ) -> Result[PostResult]:
        self.logger.debug("send_direct_message", user_id=user_id)
        opened = self.open_conversation(user_id)
        channel_id = opened.value.channel_id if opened.ok else None
        if not channel_id:
            return Result.fail(opened.error or FailureKind.UPSTREAM, opened.reason or "conversation has no channel")

        self.logger.debug(f"Opened conversation with {user_id} in channel {channel_id}")
        return self.post_message(
            channel_id,
            content,
            thread_search_string=thread_search_string,
            thread_reply_broadcast=thread_reply_broadcast,
        )

    def conversations_history(self, channel_id: str, limit: int = 10, cursor: str = "") -> Result[HistoryPage]:
        """Fetch one page of a conversation's messages, newest first.

        @see https://api.slack.com/methods/conversations.history
        """
        if not channel_id:
            return Result.fail(FailureKind.SKIPPED, "channel id is empty")
        params: Dict[str, Any] = {"channel": channel_id, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        return self._request("GET", "conversations.history", HistoryPage, params=params)
