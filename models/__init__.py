from .db import db
from .user import User
from .audit_log import AuditLog
from .session import Session
from .ip_rate_limit import IpRateLimit
from .otp_token import OtpToken
