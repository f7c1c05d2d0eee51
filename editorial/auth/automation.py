import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request

from editorial.config import settings

BROWSER_HEADERS = ("origin", "sec-fetch-site", "sec-fetch-mode")


def is_browser_request(request: Request) -> bool:
    if any(request.headers.get(h) for h in BROWSER_HEADERS):
        return True
    return any(name.lower().startswith("sec-ch-ua") for name in request.headers.keys())


def require_automation_token(
    request: Request,
    x_automation_token: Optional[str] = Header(None),
) -> None:
    """Server-to-server only: a browser-origin request is refused even with the right secret."""
    if is_browser_request(request):
        raise HTTPException(403, "Browser-origin requests are not accepted on automation endpoints.")
    expected = settings.automation_token
    if not expected:
        raise HTTPException(503, "Automation token not configured.")
    if not x_automation_token or not hmac.compare_digest(x_automation_token.strip(), expected):
        raise HTTPException(401, "Missing or invalid x-automation-token.")
