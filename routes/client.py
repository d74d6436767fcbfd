from flask import Blueprint, jsonify, g

from routes.auth import user_payload
from utils.accounts import update_profile
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payload import json_body

client_bp = Blueprint("client", __name__, url_prefix="/api/client")


@client_bp.patch("/profile")
@login_required
def profile():
    data = json_body()
    update_profile(g.user, name=data.get("name"), mobile=data.get("mobile"))
    log_event("PROFILE_UPDATE", user_id=g.user.id)
    return jsonify(user_payload(g.user)), 200
