"""
Email one-time codes: issuing, and verifying them into an account.

A code is six digits, lives for OTP_TTL_SECONDS and can be consumed once.
Only a hash of the code is stored. Issuing a new code for an address
retires every code still outstanding for it, so at most one live code per
address exists at any time (backed by a partial unique index).
"""
import enum
import hashlib
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.otp_token import OtpToken
from models.user import User
from utils.accounts import create_account, find_by_email
from utils.audit import client_ip, client_user_agent
from utils.emailer import send_otp_email
from utils.emails import is_valid_email, normalize_email
from utils.errors import ValidationError

# concurrent requests for one address can collide on the live-code index
ISSUE_ATTEMPTS = 3


class VerifyStatus(enum.Enum):
    SUCCESS = "success"
    REGISTRATION_REQUIRED = "registration_required"
    INVALID_OR_EXPIRED = "invalid_or_expired"


@dataclass(frozen=True)
class VerifyOutcome:
    status: VerifyStatus
    user: Optional[User] = None
    created: bool = False


@dataclass(frozen=True)
class RequestCodeResult:
    token: OtpToken
    is_new_user: bool
    delivered: bool


def _otp_length() -> int:
    return current_app.config.get("OTP_LENGTH", 6)


def generate_code(length: int = None) -> str:
    # uniform over 000000-999999, leading zeros kept
    length = length or _otp_length()
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def hash_code(email: str, code: str) -> str:
    raw = f"{current_app.config['SECRET_KEY']}:{email}:{code}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def _validated_email(email) -> str:
    email = normalize_email(email) if isinstance(email, str) else ""
    if not is_valid_email(email):
        raise ValidationError("Invalid email")
    return email


def _validated_code(code) -> str:
    if not isinstance(code, str) or re.fullmatch(r"[0-9]{%d}" % _otp_length(), code) is None:
        raise ValidationError("Invalid code")
    return code


def issue_token(email: str, code: str) -> OtpToken:
    """Retire live codes for the email and store the new one, in one transaction."""
    ttl = timedelta(seconds=current_app.config.get("OTP_TTL_SECONDS", 600))

    for attempt in range(1, ISSUE_ATTEMPTS + 1):
        now = datetime.utcnow()
        (
            OtpToken.query
            .filter(OtpToken.email == email, OtpToken.consumed.is_(False))
            .update({"consumed": True}, synchronize_session=False)
        )
        token = OtpToken(
            email=email,
            code_hash=hash_code(email, code),
            expires_at=now + ttl,
            consumed=False,
            ip=client_ip(),
            user_agent=client_user_agent(),
        )
        db.session.add(token)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if attempt == ISSUE_ATTEMPTS:
                raise
            continue
        return token


def request_code(email) -> RequestCodeResult:
    email = _validated_email(email)
    code = generate_code()

    token = issue_token(email, code)
    is_new_user = find_by_email(email) is None

    # token stays valid even if delivery fails; the caller reports it
    delivered = send_otp_email(email, code)
    return RequestCodeResult(token=token, is_new_user=is_new_user, delivered=delivered)


def _find_live_token(email: str, code: str):
    return (
        OtpToken.query
        .filter(
            OtpToken.email == email,
            OtpToken.code_hash == hash_code(email, code),
            OtpToken.consumed.is_(False),
            OtpToken.expires_at > datetime.utcnow(),
        )
        .first()
    )


def _consume(token_id: int) -> bool:
    """Conditional update; of concurrent callers only one sees a row change."""
    now = datetime.utcnow()
    updated = (
        OtpToken.query
        .filter(
            OtpToken.id == token_id,
            OtpToken.consumed.is_(False),
            OtpToken.expires_at > now,
        )
        .update({"consumed": True, "consumed_at": now}, synchronize_session=False)
    )
    return updated == 1


def verify_code(email, code, name=None, mobile=None) -> VerifyOutcome:
    email = _validated_email(email)
    code = _validated_code(code)

    token = _find_live_token(email, code)
    if token is None:
        return VerifyOutcome(VerifyStatus.INVALID_OR_EXPIRED)

    user = find_by_email(email)
    if user is None and not (isinstance(name, str) and name.strip()):
        # Keep the code alive so the client can resend it with a name
        return VerifyOutcome(VerifyStatus.REGISTRATION_REQUIRED)

    if not _consume(token.id):
        db.session.rollback()
        return VerifyOutcome(VerifyStatus.INVALID_OR_EXPIRED)

    created = False
    if user is None:
        try:
            user = create_account(email, name, mobile)
        except ValidationError:
            # un-consume: the code is only spent together with an account
            db.session.rollback()
            raise
        created = True

    db.session.commit()
    return VerifyOutcome(VerifyStatus.SUCCESS, user=user, created=created)
