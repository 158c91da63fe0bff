from typing import Dict, Optional, Tuple

import resend


def send_email_via_resend(payload: Dict[str, object], api_key: str) -> Tuple[bool, Optional[str]]:
    configured_api_key = (api_key or "").strip()
    if not configured_api_key:
        return False, "Resend API key is not configured."

    previous_api_key = getattr(resend, "api_key", None)
    resend.api_key = configured_api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        return False, str(exc)
    finally:
        resend.api_key = previous_api_key

    if not isinstance(response, dict) or not response.get("id"):
        return False, str(response)

    return True, None


def send_otp_email(
    recipient_email: str,
    otp: str,
    *,
    sender_email: str,
    api_key: str,
    expiration_minutes: int,
) -> Tuple[bool, Optional[str]]:
    text_body = (
        f"Your OTP is: {otp}. "
        f"It expires in {expiration_minutes} minutes. "
        "If you did not request a profile update you can ignore this email."
    )
    html_body = (
        "<p>Use the code below to confirm your profile update.</p>"
        f"<p style=\"font-size:28px;letter-spacing:0.3em;font-weight:700;\">{otp}</p>"
        f"<p>The code expires in {expiration_minutes} minutes.</p>"
    )
    payload: Dict[str, object] = {
        "from": sender_email,
        "to": [recipient_email],
        "subject": "Your OTP for Profile Update",
        "html": html_body,
        "text": text_body,
    }
    return send_email_via_resend(payload, api_key)
