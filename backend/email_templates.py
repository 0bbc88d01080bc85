import html as html_lib
from typing import Iterable, Tuple

EVENT_NAME = "SUST CSE Carnival 2026"
BRAND_COLOR = "#3d5a30"

SIGNATURE_TEXT = (
    "Regards,\n"
    "Organizing Committee\n"
    f"{EVENT_NAME}\n"
    "This is an automated email, please do not reply.\n"
)
SIGNATURE_HTML = (
    '<p style="margin-bottom: 0; color: #666; font-size: 12px; text-align: center;">'
    f"{EVENT_NAME}<br>This is an automated email, please do not reply.</p>"
)


def _wrap(title: str, body_html: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
          <div style="background: {BRAND_COLOR}; color: #fff; padding: 20px; text-align: center; border-radius: 8px 8px 0 0;">
            <h1 style="margin: 0;">{title}</h1>
          </div>
          <div style="background: #f9f9f9; padding: 30px; border-radius: 0 0 8px 8px;">
            {body_html}
            <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
            {SIGNATURE_HTML}
          </div>
        </div>
      </body>
    </html>
    """


def build_admin_credentials_email(email: str, password: str) -> Tuple[str, str, str]:
    subject = "Your SUST CSE Carnival Admin Account"
    safe_email = html_lib.escape(email)
    safe_password = html_lib.escape(password)
    text = (
        "Welcome to SUST CSE Carnival Admin Panel\n\n"
        "An admin account has been created for you.\n"
        f"Email: {email}\n"
        f"Temporary Password: {password}\n\n"
        "Please change your password immediately after first login and do not share your credentials.\n\n"
        + SIGNATURE_TEXT
    )
    body = f"""
            <p>Hello,</p>
            <p>An admin account has been created for you to manage the {EVENT_NAME} system.</p>
            <div style="background: #fff; padding: 20px; border-left: 4px solid {BRAND_COLOR}; margin: 20px 0;">
              <h3 style="margin-top: 0;">Your Login Credentials:</h3>
              <p><strong>Email:</strong> {safe_email}</p>
              <p><strong>Temporary Password:</strong> <code style="background: #f0f0f0; padding: 4px 8px; border-radius: 4px;">{safe_password}</code></p>
            </div>
            <ul>
              <li>Please change your password immediately after first login</li>
              <li>Do not share your credentials with anyone</li>
            </ul>
            <p>If you did not expect this email, please contact the super admin immediately.</p>
    """
    return subject, _wrap("Welcome to SUST CSE Carnival Admin Panel", body), text


def build_otp_email(otp: str, validity_minutes: int = 10) -> Tuple[str, str, str]:
    subject = f"{EVENT_NAME} - Email Verification"
    text = (
        "Hello,\n\n"
        f"Your OTP for team registration is: {otp}\n\n"
        f"This OTP is valid for {validity_minutes} minutes.\n\n"
        "If you did not request this, you can safely ignore this email.\n\n"
        + SIGNATURE_TEXT
    )
    body = f"""
            <p>Your OTP for team registration is:</p>
            <p style="text-align: center;">
              <span style="letter-spacing: 5px; font-size: 28px; background: #f0f0f0; padding: 10px 16px; display: inline-block;">{otp}</span>
            </p>
            <p>This OTP is valid for <strong>{validity_minutes} minutes</strong>.</p>
            <p>If you did not request this, you can safely ignore this email.</p>
    """
    return subject, _wrap("Email Verification", body), text


def build_registration_email(
    team_name: str,
    segment: str,
    member_count: int,
    checkout_url: str,
) -> Tuple[str, str, str]:
    subject = f"Registration Confirmed - {team_name} - {EVENT_NAME}"
    safe_team = html_lib.escape(team_name)
    text = (
        "Congratulations!\n\n"
        f"Your team has been successfully registered for {EVENT_NAME}.\n\n"
        f"Team Name: {team_name}\n"
        f"Competition: {segment}\n"
        f"Members: {member_count}\n\n"
        "Complete your payment to confirm participation. You can pay now or later before the deadline:\n"
        f"{checkout_url}\n\n"
        + SIGNATURE_TEXT
    )
    body = f"""
            <p>Congratulations!</p>
            <p>Your team has been successfully registered for {EVENT_NAME}.</p>
            <div style="background: #fff; padding: 20px; border-left: 4px solid {BRAND_COLOR}; margin: 20px 0;">
              <h3 style="margin-top: 0;">Team Details:</h3>
              <p><strong>Team Name:</strong> {safe_team}</p>
              <p><strong>Competition:</strong> {segment}</p>
              <p><strong>Members:</strong> {member_count}</p>
            </div>
            <ul>
              <li>Complete your payment to confirm participation</li>
              <li>You can pay now or later before the deadline</li>
              <li>Keep this email safe - it contains your unique payment link</li>
            </ul>
            <p style="text-align: center; margin: 24px 0;">
              <a href="{checkout_url}" style="display:inline-block;padding:12px 24px;background:{BRAND_COLOR};color:#fff;text-decoration:none;border-radius:4px;">Complete Payment</a>
            </p>
            <p style="color: #666; font-size: 14px; word-break: break-all;"><em>You can also copy this link: {checkout_url}</em></p>
    """
    return subject, _wrap("Registration Successful!", body), text


def build_payment_confirmation_email(
    team_name: str,
    segment: str,
    transaction_id: str,
    amount: int,
    currency: str,
) -> Tuple[str, str, str]:
    subject = f"Payment Received - {team_name} - {EVENT_NAME}"
    safe_team = html_lib.escape(team_name)
    text = (
        "Hello,\n\n"
        f"We have received the registration fee for team {team_name} ({segment}).\n"
        f"Transaction ID: {transaction_id}\n"
        f"Amount: {amount} {currency}\n\n"
        "Your receipt is attached. Present the QR code at the registration desk for check-in.\n\n"
        + SIGNATURE_TEXT
    )
    body = f"""
            <p>Hello,</p>
            <p>We have received the registration fee for team <strong>{safe_team}</strong> ({segment}).</p>
            <div style="background: #fff; padding: 20px; border-left: 4px solid {BRAND_COLOR}; margin: 20px 0;">
              <p><strong>Transaction ID:</strong> {transaction_id}</p>
              <p><strong>Amount:</strong> {amount} {currency}</p>
            </div>
            <p>Your receipt is attached. Present the QR code at the registration desk for check-in.</p>
    """
    return subject, _wrap("Payment Confirmed", body), text


def recipient_emails(members: Iterable) -> list:
    return [m.email for m in members if getattr(m, "email", None)]
