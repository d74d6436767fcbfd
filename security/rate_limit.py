from datetime import datetime, timedelta
from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.ip_rate_limit import IpRateLimit
from utils.audit import client_ip

def check_and_increment(scope: str, max_requests: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    Simple fixed window per (scope, IP).
    """
    ip = client_ip() or "unknown"
    now = datetime.utcnow()

    window_seconds = current_app.config.get("OTP_RATE_WINDOW_SECONDS", 60)

    row = IpRateLimit.query.filter_by(scope=scope, ip=ip).first()
    if not row:
        row = IpRateLimit(scope=scope, ip=ip, window_start=now, count=0)
        db.session.add(row)
        try:
            db.session.flush()
        except IntegrityError:
            # another request created the row first
            db.session.rollback()
            row = IpRateLimit.query.filter_by(scope=scope, ip=ip).first()

    window_end = row.window_start + timedelta(seconds=window_seconds)

    # Reset window if expired
    if now >= window_end:
        row.window_start = now
        row.count = 0
        window_end = row.window_start + timedelta(seconds=window_seconds)

    row.count += 1
    db.session.commit()

    if row.count > max_requests:
        retry_after = int((window_end - now).total_seconds())
        return False, max(retry_after, 1)

    return True, 0

def check_otp_request_rate() -> tuple[bool, int]:
    return check_and_increment("otp_request", current_app.config.get("OTP_REQUEST_RATE_MAX", 5))

def check_otp_verify_rate() -> tuple[bool, int]:
    return check_and_increment("otp_verify", current_app.config.get("OTP_VERIFY_RATE_MAX", 15))
