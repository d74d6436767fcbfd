from flask import current_app

from models import db
from models.user import User
from utils.emails import normalize_email
from utils.errors import Forbidden, NotFound, ValidationError
from utils.roles import Role, parse_role


def superadmin_email() -> str:
    return normalize_email(current_app.config.get("SUPERADMIN_EMAIL"))


def is_superadmin_email(email: str) -> bool:
    target = superadmin_email()
    return bool(target) and normalize_email(email) == target


def find_by_email(email: str):
    return User.query.filter_by(email=normalize_email(email)).first()


def get_account(user_id: int):
    return db.session.get(User, user_id)


def list_accounts(role=None):
    q = User.query
    if role is not None:
        q = q.filter(User.role == parse_role(role).value)
    # admins first, then newest
    return q.order_by(User.role.asc(), User.created_at.desc()).all()


def _clean(value, field: str, max_len: int):
    if value is None:
        return None
    if not isinstance(value, str) or len(value.strip()) > max_len:
        raise ValidationError(f"Invalid {field}")
    return value.strip() or None


def create_account(email: str, name: str, mobile: str = None) -> User:
    """
    Adds a new account to the current transaction (flushed, not committed).

    The role comes only from comparing the email with SUPERADMIN_EMAIL;
    this and the startup seed are the only places is_protected is set.
    """
    email = normalize_email(email)
    is_super = is_superadmin_email(email)
    user = User(
        email=email,
        name=_clean(name, "name", 120),
        mobile=_clean(mobile, "mobile", 30),
        role=Role.ADMIN.value if is_super else Role.CLIENT.value,
        is_protected=is_super,
    )
    db.session.add(user)
    db.session.flush()
    return user


def update_profile(user: User, name=None, mobile=None, commit: bool = True) -> User:
    if name is not None:
        user.name = _clean(name, "name", 120)
    if mobile is not None:
        user.mobile = _clean(mobile, "mobile", 30)
    if commit:
        db.session.commit()
    return user


def set_role(user_id: int, role, commit: bool = True) -> User:
    """
    With commit=False the change stays in the open transaction, so a caller
    can bundle it with other edits and roll everything back on failure.
    """
    try:
        new_role = parse_role(role)
    except ValueError:
        raise ValidationError("Invalid role")

    user = get_account(user_id)
    if user is None:
        raise NotFound()

    if user.role == new_role.value:
        return user
    if user.is_protected:
        raise Forbidden("Cannot modify superadmin role")

    # guarded write: never touch a protected row even if the flag flipped meanwhile
    updated = (
        User.query
        .filter(User.id == user.id, User.is_protected.is_(False))
        .update({"role": new_role.value}, synchronize_session=False)
    )
    if updated == 0:
        raise Forbidden("Cannot modify superadmin role")

    if commit:
        db.session.commit()
    db.session.refresh(user)
    return user


def delete_account(user_id: int) -> bool:
    """Returns False for the protected account. Sessions go with the row."""
    user = get_account(user_id)
    if user is None:
        raise NotFound()
    if user.is_protected:
        return False

    deleted = (
        User.query
        .filter(User.id == user.id, User.is_protected.is_(False))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted > 0
