"""Authenticated intake for Argo notification webhooks.

``RequestIntake.handle`` checks the ``Authorization`` bearer token, decodes the
JSON body and passes it to the dispatcher, returning the HTTP status code to
send back.
"""
import hmac
import json
from http import HTTPStatus
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .logging_utils import StructuredLogger, log_exception, logger as default_logger

HTTP_NO_CONTENT = int(HTTPStatus.NO_CONTENT)
HTTP_BAD_REQUEST = int(HTTPStatus.BAD_REQUEST)
HTTP_UNAUTHORIZED = int(HTTPStatus.UNAUTHORIZED)

# Decoded notification body -> HTTP status code
Dispatcher = Callable[[Dict[str, Any]], int]


class RequestIntake:
    def __init__(
        self,
        token: str,
        dispatcher: Dispatcher,
        log_body: bool = False,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.token = token or ""
        self.dispatcher = dispatcher
        self.log_body = log_body
        self.logger = logger or default_logger

    def handle(self, headers: Mapping[str, str], body: Union[bytes, str, None]) -> int:
        """Authenticate, decode and dispatch one webhook request."""
        try:
            if not self.authorization_check(headers):
                return HTTP_UNAUTHORIZED

            if not body:
                self.logger.warn("Request body is empty!")
                return HTTP_BAD_REQUEST

            return self.handle_raw_body(body)
        except Exception as e:
            log_exception(self.logger, e)
            return HTTP_BAD_REQUEST

    def authorization_check(self, headers: Mapping[str, str]) -> bool:
        """True if the request carries ``Authorization: Bearer <ARGO_BRIDGE_TOKEN>``."""
        others = {str(k).lower(): v for k, v in (headers or {}).items()}
        authorization = others.pop("authorization", None)

        if not authorization:
            self.logger.error("No authorization header provided!")
            return False

        for k, v in others.items():
            self.logger.debug(f"{k}: {v}")
        self.logger.debug(f"Authorization: {authorization[:11]}")

        if not authorization.startswith("Bearer "):
            self.logger.error("Authorization is not a Bearer token!")
            return False
        if not self.token:
            self.logger.fatal("$ARGO_BRIDGE_TOKEN is not set; rejecting request")
            return False

        bearer_token = authorization[len("Bearer "):]
        if not hmac.compare_digest(bearer_token.encode("utf-8"), self.token.encode("utf-8")):
            self.logger.error(f"Bearer token unrecognized! ({bearer_token[:5]})")
            return False
        return True

    def handle_raw_body(self, body: Union[bytes, str]) -> int:
        """Parse the body as a JSON object and dispatch it."""
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self.logger.fatal(f"body: {body!r}"[:1000])
            log_exception(self.logger, e)
            return HTTP_BAD_REQUEST

        if not isinstance(payload, dict):
            self.logger.error("Request body is not a JSON object!", type=type(payload).__name__)
            return HTTP_BAD_REQUEST

        if self.log_body:
            self.logger.debug("body", body=payload)
        return int(self.dispatcher(payload))
