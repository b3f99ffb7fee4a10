"""Accept-Language detection middleware."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_SUPPORTED = {"en", "id"}
_DEFAULT = "en"


class LanguageMiddleware(BaseHTTPMiddleware):
    """Parse ``Accept-Language`` and expose ``request.state.language``.

    Only ``en`` and ``id`` (Bahasa Indonesia) are supported. The resolved
    language is echoed back via the ``Content-Language`` response header.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        language = parse_preferred(request.headers.get("Accept-Language", ""))
        request.state.language = language

        response = await call_next(request)
        response.headers["Content-Language"] = language
        return response


def parse_preferred(header: str) -> str:
    """Return the best supported language from an Accept-Language header.

    Entries are ranked by their ``q`` weight; ties keep header order.
    """
    ranked: list[tuple[float, int, str]] = []
    for position, part in enumerate(header.split(",")):
        pieces = part.split(";")
        tag = pieces[0].strip().lower()
        if not tag:
            continue
        weight = 1.0
        for param in pieces[1:]:
            key, _, value = param.strip().partition("=")
            if key == "q":
                try:
                    weight = float(value)
                except ValueError:
                    weight = 0.0
        ranked.append((-weight, position, tag))

    for _, _, tag in sorted(ranked):
        # Match full tag or primary subtag (e.g. "id-ID" -> "id")
        if tag in _SUPPORTED:
            return tag
        primary = tag.split("-")[0]
        if primary in _SUPPORTED:
            return primary
    return _DEFAULT
