from functools import wraps
from flask import g, jsonify, request
from security.csrf import renew_csrf_token
from security.session import cookie_name, resolve_user, set_session_cookie, clear_session_cookie

def load_current_user():
    raw_token = request.cookies.get(cookie_name())
    sess, user = resolve_user(raw_token)
    g.session = sess
    g.user = user
    # token whose cookie gets re-issued after the request (rolling expiry)
    g.session_token = raw_token if sess else None
    g.drop_session_cookie = bool(raw_token) and sess is None

def _sets_cookie(resp, name):
    return any(h.startswith(name + "=") for h in resp.headers.getlist("Set-Cookie"))

def refresh_session_cookie(resp):
    # login/logout already decided what the cookie should be
    if _sets_cookie(resp, cookie_name()):
        return resp
    if getattr(g, "session_token", None):
        set_session_cookie(resp, g.session_token)
        renew_csrf_token(resp)
    elif getattr(g, "drop_session_cookie", False):
        clear_session_cookie(resp)
    return resp

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
