import smtplib
from datetime import datetime
from email.message import EmailMessage
from flask import current_app
from markupsafe import escape


def send_email(to, subject, html):
    """
    Send an HTML email through the configured SMTP server.

    Returns True on success and False on any delivery failure. With
    MAIL_SUPPRESS_SEND the message is only appended to ``app.extensions["mail_outbox"]``.
    """
    config = current_app.config
    message = EmailMessage()
    message["From"] = f"{config['MAIL_SENDER_NAME']} <{config['MAIL_DEFAULT_SENDER']}>"
    message["To"] = to
    message["Subject"] = subject
    message.set_content("This message requires an HTML capable email client.")
    message.add_alternative(html, subtype="html")

    if config.get("MAIL_SUPPRESS_SEND"):
        current_app.extensions.setdefault("mail_outbox", []).append(
            {"to": to, "subject": subject, "html": html}
        )
        return True

    try:
        with smtplib.SMTP(config["MAIL_SERVER"], config["MAIL_PORT"], timeout=10) as smtp:
            if config.get("MAIL_USE_TLS"):
                smtp.starttls()
            if config.get("MAIL_USERNAME"):
                smtp.login(config["MAIL_USERNAME"], config["MAIL_PASSWORD"])
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError):
        current_app.logger.exception("Email to %s could not be sent", to)
        return False

    current_app.logger.info("Email sent to %s: %s", to, subject)
    return True


def password_reset_html(first_name, reset_url):
    year = datetime.utcnow().year
    return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <div style="background-color: #4F46E5; padding: 20px; text-align: center;">
          <h1 style="color: white; margin: 0;">JCKC</h1>
          <p style="color: #E0E7FF; margin: 5px 0 0 0;">Fellowship Management System</p>
        </div>
        <div style="padding: 30px; background-color: #f9fafb;">
          <h2 style="color: #1f2937;">Password Reset Request</h2>
          <p style="color: #4b5563;">Hello {escape(first_name)},</p>
          <p style="color: #4b5563;">
            You requested to reset your password. Click the button below to set a new password:
          </p>
          <div style="text-align: center; margin: 30px 0;">
            <a href="{reset_url}"
               style="background-color: #4F46E5; color: white; padding: 12px 30px;
                      text-decoration: none; border-radius: 5px; display: inline-block;">
              Reset Password
            </a>
          </div>
          <p style="color: #4b5563;">This link will expire in <strong>10 minutes</strong>.</p>
          <p style="color: #4b5563;">
            If you didn't request this, please ignore this email and your password will remain unchanged.
          </p>
          <p style="color: #9ca3af; font-size: 12px;">
            If the button doesn't work, copy and paste this link into your browser:<br>
            <a href="{reset_url}" style="color: #4F46E5;">{reset_url}</a>
          </p>
        </div>
        <div style="background-color: #1f2937; padding: 20px; text-align: center;">
          <p style="color: #9ca3af; margin: 0; font-size: 12px;">
            &copy; {year} JCKC Fellowship. All rights reserved.
          </p>
        </div>
      </div>
    """
