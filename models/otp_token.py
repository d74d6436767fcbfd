from datetime import datetime
from models.db import db


class OtpToken(db.Model):
    __tablename__ = "otp_tokens"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, index=True)

    # store only hashed code in DB (never store raw code)
    code_hash = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    consumed = db.Column(db.Boolean, default=False, nullable=False)
    consumed_at = db.Column(db.DateTime, nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    __table_args__ = (
        # At most one live (unconsumed) code per email address
        db.Index(
            "uq_otp_tokens_live_email",
            "email",
            unique=True,
            sqlite_where=db.text("consumed = 0"),
            postgresql_where=db.text("consumed = false"),
        ),
    )
