from flask import current_app

from models import db
from models.user import User
from utils.accounts import superadmin_email
from utils.roles import Role


def seed_superadmin():
    """
    Ensure exactly one protected account exists and that it is the
    configured SUPERADMIN_EMAIL with the admin role. Safe to run on every start.
    """
    email = superadmin_email()
    if not email:
        current_app.logger.warning("SUPERADMIN_EMAIL not set, skipping superadmin seed")
        return None

    # anyone else still flagged (e.g. the address was changed in config)
    stale = User.query.filter(User.is_protected.is_(True), User.email != email).all()
    for u in stale:
        u.is_protected = False

    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(
            email=email,
            name=current_app.config.get("SUPERADMIN_NAME", "Super Admin"),
            role=Role.ADMIN.value,
            is_protected=True,
        )
        db.session.add(user)
        current_app.logger.info("Created superadmin: %s", email)
    else:
        user.role = Role.ADMIN.value
        user.is_protected = True

    db.session.commit()
    return user
