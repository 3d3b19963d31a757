"""
Auth email templates

Each builder returns (subject, html, text).
"""
from html import escape
from typing import Tuple

BRAND_COLOR = "#f97316"


def _layout(title: str, body_html: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: {BRAND_COLOR}; padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">{escape(title)}</h1>
  </div>
  <div style="padding: 30px; background: #f8fafc; color: #475569; font-size: 16px; line-height: 1.6;">
    {body_html}
  </div>
</div>
"""


def _button(url: str, label: str) -> str:
    return (
        f'<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(url, quote=True)}" style="background: {BRAND_COLOR}; color: white; '
        f'padding: 15px 30px; text-decoration: none; border-radius: 8px; font-weight: bold;">'
        f"{escape(label)}</a></div>"
    )


def welcome_email(app_name: str, display_name: str, dashboard_url: str) -> Tuple[str, str, str]:
    subject = f"Welcome to {app_name} - registration complete"
    html = _layout(app_name, (
        f"<h2>Hi {escape(display_name)}!</h2>"
        f"<p>Your account is ready. Submit your latest utility bill to start earning credits.</p>"
        f"{_button(dashboard_url, 'Go to your dashboard')}"
    ))
    text = (
        f"Hi {display_name}!\n\n"
        f"Your {app_name} account is ready. Submit your latest utility bill to start earning credits.\n\n"
        f"{dashboard_url}\n"
    )
    return subject, html, text


def verification_email(app_name: str, display_name: str, verify_url: str, expire_hours: int) -> Tuple[str, str, str]:
    subject = f"{app_name} - confirm your email address"
    html = _layout(app_name, (
        f"<h2>Hi {escape(display_name)}!</h2>"
        f"<p>Please confirm your email address to unlock bill submissions and payouts.</p>"
        f"{_button(verify_url, 'Confirm email')}"
        f'<p style="font-size: 14px;">This link expires in {expire_hours} hours.</p>'
    ))
    text = (
        f"Hi {display_name}!\n\n"
        f"Confirm your email address by opening this link:\n{verify_url}\n\n"
        f"The link expires in {expire_hours} hours.\n"
    )
    return subject, html, text


def password_reset_email(app_name: str, display_name: str, reset_url: str, expire_hours: int) -> Tuple[str, str, str]:
    subject = f"{app_name} - reset your password"
    html = _layout(app_name, (
        f"<h2>Hi {escape(display_name)}!</h2>"
        f"<p>We received a request to reset your password.</p>"
        f"{_button(reset_url, 'Choose a new password')}"
        f'<p style="font-size: 14px;">This link expires in {expire_hours} hours. '
        f"If you did not ask for a reset, you can ignore this email.</p>"
    ))
    text = (
        f"Hi {display_name}!\n\n"
        f"Reset your password here:\n{reset_url}\n\n"
        f"The link expires in {expire_hours} hours. If you did not ask for a reset, ignore this email.\n"
    )
    return subject, html, text
