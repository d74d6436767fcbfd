from flask import Blueprint, jsonify, g, request

from models import db
from security.rbac import require_roles
from utils.accounts import delete_account, get_account, list_accounts, set_role, update_profile
from utils.audit import log_event
from utils.errors import NotFound, ValidationError
from utils.payload import json_body
from utils.roles import Role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_roles(Role.ADMIN)
def list_users():
    role = request.args.get("role")
    try:
        users = list_accounts(role=role or None)
    except ValueError:
        raise ValidationError("Invalid role")
    return jsonify([u.to_dict() for u in users]), 200


@admin_bp.patch("/users/<int:user_id>")
@require_roles(Role.ADMIN)
def update_user(user_id: int):
    data = json_body()
    role = data.get("role")

    user = get_account(user_id)
    if user is None:
        raise NotFound()

    # role and profile land in one commit; any rejection rolls both back
    previous = user.role
    if role is not None:
        # raises Forbidden for the superadmin
        user = set_role(user_id, role, commit=False)
    profile_changed = "name" in data or "mobile" in data
    if profile_changed:
        update_profile(user, name=data.get("name"), mobile=data.get("mobile"), commit=False)
    db.session.commit()

    if user.role != previous:
        log_event(
            "USER_ROLE_CHANGE",
            user_id=g.user.id,
            entity="user",
            entity_id=user.id,
            metadata={"from": previous, "to": user.role},
        )
    if profile_changed:
        log_event("USER_UPDATE", user_id=g.user.id, entity="user", entity_id=user.id)

    return jsonify(user.to_dict()), 200


@admin_bp.delete("/users/<int:user_id>")
@require_roles(Role.ADMIN)
def delete_user(user_id: int):
    if not delete_account(user_id):
        log_event("USER_DELETE_DENIED", user_id=g.user.id, entity="user", entity_id=user_id)
        return jsonify(error="Cannot delete this user"), 403

    log_event("USER_DELETE", user_id=g.user.id, entity="user", entity_id=user_id)
    return "", 204
