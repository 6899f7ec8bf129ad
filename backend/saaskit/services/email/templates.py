from html import escape


def _layout(title: str, body_html: str) -> str:
    return (
        "<!doctype html><html><body style=\"font-family:Arial,sans-serif;background:#f5f7fa;margin:0\">"
        f"<div style=\"background:#0061EB;padding:32px 0;color:#fff;font-size:24px;text-align:center\">{escape(title)}</div>"
        "<div style=\"background:#fff;border-radius:8px;max-width:480px;margin:32px auto;padding:32px 24px\">"
        f"{body_html}"
        "</div></body></html>"
    )


def verification_email(verify_url: str) -> str:
    return _layout(
        "Verify your email",
        "<p>Thanks for signing up. Confirm your email address to activate your account.</p>"
        f"<p><a href=\"{escape(verify_url)}\">Verify email</a></p>",
    )


def magic_link_email(login_url: str) -> str:
    return _layout(
        "Login to your account",
        "<p>You can log in to your account by clicking the link below. It expires in one hour.</p>"
        f"<p><a href=\"{escape(login_url)}\">Log in</a></p>",
    )


def reset_password_email(reset_url: str, email: str) -> str:
    return _layout(
        "Reset your password",
        f"<p>We received a request to reset the password for {escape(email)}.</p>"
        f"<p><a href=\"{escape(reset_url)}\">Reset password</a></p>"
        "<p>If you did not request this, you can ignore this email. The link expires in one hour.</p>",
    )


def subscription_updated_email(plan: str) -> str:
    return _layout(
        "Your subscription was updated",
        f"<p>Your subscription is now on the <strong>{escape(plan)}</strong> plan.</p>",
    )
