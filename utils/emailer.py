import smtplib
from email.message import EmailMessage

from flask import current_app


OTP_SUBJECT = "Your Login Code - krpl.tech"

OTP_TEXT = """Use the following code to log in to your krpl.tech account:

    {code}

This code expires in {minutes} minutes. If you didn't request this code, you can safely ignore this email.

krpl.tech - Software Development Company
"""

OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Your Login Code</h2>
  <p>Use the following code to log in to your krpl.tech account:</p>
  <div style="background: #f5f5f5; padding: 20px; text-align: center; margin: 20px 0; border-radius: 8px;">
    <span style="font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #333;">{code}</span>
  </div>
  <p style="color: #666; font-size: 14px;">This code expires in {minutes} minutes. If you didn't request this code, you can safely ignore this email.</p>
  <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;" />
  <p style="color: #999; font-size: 12px;">krpl.tech - Software Development Company</p>
</div>
"""


def smtp_configured() -> bool:
    return bool(current_app.config.get("SMTP_HOST") and current_app.config.get("SMTP_FROM_EMAIL"))


def send_email(to_email: str, subject: str, body: str, html: str = None):
    host = current_app.config.get("SMTP_HOST")
    port = current_app.config.get("SMTP_PORT", 587)
    username = current_app.config.get("SMTP_USERNAME")
    password = current_app.config.get("SMTP_PASSWORD")
    from_email = current_app.config.get("SMTP_FROM_EMAIL") or username
    use_tls = current_app.config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        return False, "Email not configured"

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        return False, str(exc)


def send_otp_email(email: str, code: str) -> bool:
    """Deliver a login code. Returns False when delivery failed."""
    minutes = max(1, current_app.config.get("OTP_TTL_SECONDS", 600) // 60)

    if not smtp_configured():
        if current_app.config.get("ENV") == "production":
            current_app.logger.error("SMTP not configured, cannot send login code to %s", email)
            return False
        # dev mode: no mail server, print the code to the log instead
        current_app.logger.warning("SMTP not configured - login code for %s: %s", email, code)
        return True

    ok, err = send_email(
        email,
        OTP_SUBJECT,
        OTP_TEXT.format(code=code, minutes=minutes),
        html=OTP_HTML.format(code=code, minutes=minutes),
    )
    if not ok:
        current_app.logger.error("Failed to send login code to %s: %s", email, err)
        return False

    current_app.logger.info("Login code sent to %s", email)
    return True
