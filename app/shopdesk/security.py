import secrets

from flask import Request, session

CSRF_SESSION_KEY = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# No session, no CSRF: probes and static files.
_EXEMPT_PREFIXES = ("/static/", "/health", "/healthz")


def is_exempt_path(path: str) -> bool:
    return path.startswith(_EXEMPT_PREFIXES)


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = session[CSRF_SESSION_KEY] = secrets.token_urlsafe(32)
    return token


def _submitted_token(req: Request) -> str | None:
    token = req.headers.get(CSRF_HEADER) or req.form.get(CSRF_SESSION_KEY)
    if token or not req.is_json:
        return token
    body = req.get_json(silent=True)
    return body.get(CSRF_SESSION_KEY) if isinstance(body, dict) else None


def validate_csrf(req: Request) -> bool:
    """Header, form field, or JSON body token must match the session's."""
    if req.method not in UNSAFE_METHODS:
        return True
    token = _submitted_token(req)
    expected = session.get(CSRF_SESSION_KEY)
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))
