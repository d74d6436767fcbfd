import secrets
from flask import request, jsonify, current_app

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

# Bootstrap endpoints: no session exists yet when these are called
CSRF_EXEMPT_PATHS = {
    "/api/auth/request-otp",
    "/api/auth/verify-otp",
    "/health",
}

def _set_csrf_cookie(resp, token):
    resp.set_cookie(
        CSRF_COOKIE,
        token,
        httponly=False,  # must be readable by client JS
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS"),
        path="/",
    )
    return resp

def issue_csrf_token(resp):
    """Double-submit token, issued alongside a new session cookie."""
    return _set_csrf_cookie(resp, secrets.token_urlsafe(32))

def renew_csrf_token(resp):
    """Keep the csrf cookie alive as long as the session it belongs to."""
    token = request.cookies.get(CSRF_COOKIE)
    if not token:
        return issue_csrf_token(resp)
    return _set_csrf_cookie(resp, token)

def clear_csrf_token(resp):
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp

def require_csrf():
    if request.path in CSRF_EXEMPT_PATHS:
        return None
    cookie_token = request.cookies.get(CSRF_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None
