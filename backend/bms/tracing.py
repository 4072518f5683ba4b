# Overview: Request correlation ids (X-Request-ID) for log tracing.

import re
import uuid

from flask import g, request


REQUEST_ID_HEADER = "X-Request-ID"

# Inbound ids are echoed into headers and logs; keep them short and printable.
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def generate_request_id() -> str:
    return uuid.uuid4().hex


def resolve_request_id(inbound: str | None) -> str:
    """Use the caller's id when it is well-formed, otherwise mint one."""
    if inbound:
        inbound = inbound.strip()
        if _VALID_REQUEST_ID.match(inbound):
            return inbound
    return generate_request_id()


def register_request_tracing(app) -> None:
    @app.before_request
    def assign_request_id():
        g.request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

    @app.after_request
    def echo_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response
