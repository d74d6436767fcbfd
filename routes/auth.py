from flask import Blueprint, request, jsonify, g

from security.otp import VerifyStatus, request_code, verify_code
from security.rate_limit import check_otp_request_rate, check_otp_verify_rate
from security.session import (
    cookie_name,
    create_session,
    revoke_session,
    revoke_all_sessions,
    set_session_cookie,
    clear_session_cookie,
)
from security.csrf import issue_csrf_token, clear_csrf_token
from utils.audit import log_event
from utils.auth_context import login_required
from utils.emails import normalize_email
from utils.payload import json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def user_payload(user) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "mobile": user.mobile,
        "role": user.role,
    }


@auth_bp.post("/request-otp")
def request_otp():
    data = json_body()

    allowed, retry_after = check_otp_request_rate()
    if not allowed:
        log_event("OTP_RATE_LIMIT", metadata={"retry_after": retry_after})
        return jsonify(error="Too many requests. Slow down.", retry_after_seconds=retry_after), 429

    result = request_code(data.get("email"))
    log_event(
        "OTP_REQUEST",
        entity="otp_token",
        entity_id=result.token.id,
        metadata={"email": result.token.email, "delivered": result.delivered},
    )

    if not result.delivered:
        return jsonify(error="Failed to send code"), 502

    return jsonify(message="Code sent to your email", is_new_user=result.is_new_user), 200


@auth_bp.post("/verify-otp")
def verify_otp():
    data = json_body()

    allowed, retry_after = check_otp_verify_rate()
    if not allowed:
        log_event("OTP_RATE_LIMIT", metadata={"retry_after": retry_after, "verify": True})
        return jsonify(error="Too many requests. Slow down.", retry_after_seconds=retry_after), 429

    outcome = verify_code(
        data.get("email"),
        data.get("code"),
        name=data.get("name"),
        mobile=data.get("mobile"),
    )

    if outcome.status is VerifyStatus.INVALID_OR_EXPIRED:
        log_event("OTP_VERIFY_FAIL", metadata={"email": normalize_email(data.get("email"))})
        return jsonify(status=outcome.status.value, error="Invalid or expired code"), 400

    if outcome.status is VerifyStatus.REGISTRATION_REQUIRED:
        return jsonify(
            status=outcome.status.value,
            error="Name is required for new users",
            requires_registration=True,
        ), 400

    # VerifyStatus.SUCCESS
    user = outcome.user

    # Rotate: whatever session this browser carried before is dropped
    revoke_session(request.cookies.get(cookie_name()))
    raw_token = create_session(user)
    g.session_token = None
    g.drop_session_cookie = False

    resp = jsonify(status=outcome.status.value, user=user_payload(user))
    set_session_cookie(resp, raw_token)
    issue_csrf_token(resp)

    if outcome.created:
        log_event("REGISTER_SUCCESS", user_id=user.id, entity="user", entity_id=user.id)
    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.get("/me")
def me():
    user = getattr(g, "user", None)
    return jsonify(user=user_payload(user) if user else None), 200


@auth_bp.post("/logout")
def logout():
    user = getattr(g, "user", None)
    revoke_session(request.cookies.get(cookie_name()))
    g.session_token = None

    if user is not None:
        log_event("LOGOUT", user_id=user.id)

    resp = jsonify(ok=True)
    clear_session_cookie(resp)
    clear_csrf_token(resp)
    return resp, 200


@auth_bp.post("/logout-all")
@login_required
def logout_all():
    count = revoke_all_sessions(g.user.id)
    g.session_token = None
    log_event("LOGOUT_ALL", user_id=g.user.id, metadata={"revoked_sessions": count})

    resp = jsonify(ok=True, revoked_sessions=count)
    clear_session_cookie(resp)
    clear_csrf_token(resp)
    return resp, 200
