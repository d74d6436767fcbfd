from datetime import datetime
from models.db import db
from utils.roles import Role


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    # always stored lower-cased (see utils.emails.normalize_email)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=True)
    mobile = db.Column(db.String(30), nullable=True)

    role = db.Column(db.String(20), nullable=False, default=Role.CLIENT.value)
    # role values: admin, client

    # the super admin: role is immutable and the account cannot be deleted
    is_protected = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "mobile": self.mobile,
            "role": self.role,
            "is_protected": self.is_protected,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
