import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from models import db
from models.otp_token import OtpToken
from models.user import User
from security import otp
from security.otp import VerifyStatus, request_code, verify_code
from utils.accounts import create_account
from utils.errors import ValidationError


def _live_tokens(email):
    return OtpToken.query.filter_by(email=email, consumed=False).all()


def _existing_user(email, name="Existing"):
    user = create_account(email, name)
    db.session.commit()
    return user


def test_generate_code_keeps_leading_zeros(ctx, monkeypatch):
    monkeypatch.setattr(otp.secrets, "randbelow", lambda n: 42)
    assert otp.generate_code() == "000042"


def test_generate_code_is_six_digits(ctx):
    for _ in range(20):
        code = otp.generate_code()
        assert len(code) == 6 and code.isdigit()


def test_request_code_twice_leaves_one_live_token(ctx, outbox):
    request_code("a@x.com")
    request_code("a@x.com")

    assert len(_live_tokens("a@x.com")) == 1
    assert OtpToken.query.filter_by(email="a@x.com").count() == 2


def test_request_code_normalizes_address(ctx, outbox):
    result = request_code("  Mixed@X.com ")
    assert result.token.email == "mixed@x.com"
    assert outbox == [("mixed@x.com", outbox[0][1])]


def test_request_code_reports_existing_account(ctx, outbox):
    _existing_user("known@x.com")
    assert request_code("known@x.com").is_new_user is False
    assert request_code("fresh@x.com").is_new_user is True


def test_raw_code_is_not_stored(ctx, outbox):
    request_code("a@x.com")
    code = outbox[-1][1]
    token = _live_tokens("a@x.com")[0]
    assert code not in token.code_hash
    assert token.code_hash == otp.hash_code("a@x.com", code)


@pytest.mark.parametrize("email", ["", "not-an-email", "a@b", "a b@x.com", None, 42])
def test_request_code_rejects_malformed_address(ctx, outbox, email):
    with pytest.raises(ValidationError):
        request_code(email)
    assert OtpToken.query.count() == 0
    assert outbox == []


def _rival_live_token(email):
    return OtpToken(
        email=email,
        code_hash="rival",
        expires_at=datetime.utcnow() + timedelta(minutes=10),
        consumed=False,
    )


def test_issue_token_retries_after_live_code_collision(ctx, outbox, monkeypatch):
    attempts = []

    def racing_client_ip():
        # a concurrent request slips a live code in during the first attempt only
        attempts.append(1)
        if len(attempts) == 1:
            db.session.add(_rival_live_token("a@x.com"))
        return None

    monkeypatch.setattr(otp, "client_ip", racing_client_ip)
    result = request_code("a@x.com")

    assert len(attempts) == 2
    assert [t.id for t in _live_tokens("a@x.com")] == [result.token.id]
    assert result.delivered is True


def test_issue_token_gives_up_after_repeated_collisions(ctx, monkeypatch):
    attempts = []

    def racing_client_ip():
        attempts.append(1)
        db.session.add(_rival_live_token("a@x.com"))
        return None

    monkeypatch.setattr(otp, "client_ip", racing_client_ip)
    with pytest.raises(IntegrityError):
        otp.issue_token("a@x.com", "123456")

    assert len(attempts) == otp.ISSUE_ATTEMPTS
    assert _live_tokens("a@x.com") == []


def test_delivery_failure_keeps_token(ctx, monkeypatch):
    monkeypatch.setattr("security.otp.send_otp_email", lambda email, code: False)
    result = request_code("a@x.com")
    assert result.delivered is False
    assert len(_live_tokens("a@x.com")) == 1


def test_code_verifies_only_once(ctx, outbox):
    _existing_user("a@x.com")
    request_code("a@x.com")
    code = outbox[-1][1]

    first = verify_code("a@x.com", code)
    assert first.status is VerifyStatus.SUCCESS
    assert first.user.email == "a@x.com"
    assert first.created is False

    second = verify_code("a@x.com", code)
    assert second.status is VerifyStatus.INVALID_OR_EXPIRED


def test_expired_code_is_invalid(ctx, outbox):
    _existing_user("a@x.com")
    request_code("a@x.com")
    code = outbox[-1][1]

    token = _live_tokens("a@x.com")[0]
    token.expires_at = datetime.utcnow() - timedelta(seconds=1)
    db.session.commit()

    assert verify_code("a@x.com", code).status is VerifyStatus.INVALID_OR_EXPIRED
    # inert, not consumed
    assert db.session.get(OtpToken, token.id).consumed is False


def test_superseded_code_is_invalid(ctx, outbox):
    _existing_user("a@x.com")
    request_code("a@x.com")
    old_code = outbox[-1][1]
    request_code("a@x.com")
    new_code = outbox[-1][1]
    if old_code == new_code:
        pytest.skip("random codes collided")

    assert verify_code("a@x.com", old_code).status is VerifyStatus.INVALID_OR_EXPIRED
    assert verify_code("a@x.com", new_code).status is VerifyStatus.SUCCESS


def test_code_is_bound_to_its_address(ctx, outbox):
    _existing_user("a@x.com")
    _existing_user("b@x.com")
    request_code("a@x.com")
    code = outbox[-1][1]

    assert verify_code("b@x.com", code).status is VerifyStatus.INVALID_OR_EXPIRED
    assert verify_code("A@X.COM", code).status is VerifyStatus.SUCCESS


@pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", "12 456", 123456, None])
def test_malformed_code_is_rejected(ctx, code):
    with pytest.raises(ValidationError):
        verify_code("a@x.com", code)


def test_new_address_registration_flow(ctx, outbox, monkeypatch):
    monkeypatch.setattr(otp, "generate_code", lambda length=None: "123456")
    result = request_code("new@x.com")
    assert result.is_new_user is True
    assert outbox[-1] == ("new@x.com", "123456")

    first = verify_code("new@x.com", "123456")
    assert first.status is VerifyStatus.REGISTRATION_REQUIRED
    assert first.user is None
    assert len(_live_tokens("new@x.com")) == 1
    assert User.query.filter_by(email="new@x.com").first() is None

    second = verify_code("new@x.com", "123456", name="Jo")
    assert second.status is VerifyStatus.SUCCESS
    assert second.created is True
    user = second.user
    assert user.email == "new@x.com"
    assert user.name == "Jo"
    assert user.role == "client"
    assert user.is_protected is False

    assert verify_code("new@x.com", "123456", name="Jo").status is VerifyStatus.INVALID_OR_EXPIRED


def test_blank_name_still_requires_registration(ctx, outbox):
    request_code("new@x.com")
    code = outbox[-1][1]
    assert verify_code("new@x.com", code, name="   ").status is VerifyStatus.REGISTRATION_REQUIRED


def test_rejected_profile_fields_do_not_spend_the_code(ctx, outbox):
    request_code("new@x.com")
    code = outbox[-1][1]

    with pytest.raises(ValidationError):
        verify_code("new@x.com", code, name="x" * 121)

    outcome = verify_code("new@x.com", code, name="Jo", mobile="+977 9800000000")
    assert outcome.status is VerifyStatus.SUCCESS
    assert outcome.user.mobile == "+977 9800000000"


def test_superadmin_address_creates_protected_admin(ctx, outbox):
    # drop the startup seed so the flow has to create the account
    db.session.delete(User.query.filter_by(email="super@x.com").one())
    db.session.commit()

    request_code("Super@X.com")
    code = outbox[-1][1]
    outcome = verify_code("super@x.com", code, name="Boss")

    assert outcome.status is VerifyStatus.SUCCESS
    assert outcome.created is True
    assert outcome.user.role == "admin"
    assert outcome.user.is_protected is True


def test_seeded_superadmin_logs_in_without_name(ctx, outbox):
    request_code("super@x.com")
    outcome = verify_code("super@x.com", outbox[-1][1])
    assert outcome.status is VerifyStatus.SUCCESS
    assert outcome.created is False
    assert outcome.user.is_protected is True


def test_concurrent_verification_only_one_wins(app, outbox, monkeypatch):
    with app.app_context():
        _existing_user("race@x.com")
        request_code("race@x.com")
    code = outbox[-1][1]

    # both callers see the live token before either consumes it
    barrier = threading.Barrier(2)
    original = otp._find_live_token

    def synced(email, code):
        token = original(email, code)
        barrier.wait(timeout=5)
        return token

    monkeypatch.setattr(otp, "_find_live_token", synced)

    statuses = []
    errors = []

    def worker():
        try:
            with app.app_context():
                statuses.append(otp.verify_code("race@x.com", code).status)
        except Exception as exc:  # surfaced by the assert below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=15)

    assert errors == []
    assert sorted(s.value for s in statuses) == ["invalid_or_expired", "success"]

    with app.app_context():
        token = OtpToken.query.filter_by(email="race@x.com").one()
        assert token.consumed is True
        assert token.consumed_at is not None
