"""
MJML Email Templates
All ExhiBae email templates using MJML for responsive, cross-client compatibility
"""

from typing import Callable, Optional

from .config import FRONTEND_URL
from .utils.sanitization import sanitize_string

# ExhiBae theme colors - Indigo/Slate color scheme
THEME = {
    "primary": "#4f46e5",
    "primary_dark": "#4338ca",
    "primary_light": "#e0e7ff",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

LOGO_URL = "https://exhibae.com/logo.png"

STATUS_COLORS = {
    "approved": THEME["success"],
    "booking_confirmed": THEME["success"],
    "payment_pending": THEME["warning"],
    "rejected": THEME["danger"],
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image src="{LOGO_URL}" alt="ExhiBae" width="140px" href="{FRONTEND_URL}" padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © ExhiBae. You're receiving this because you have an ExhiBae account.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _paragraphs(*lines: str) -> str:
    return "\n".join(f"<mj-text>{line}</mj-text>" for line in lines if line)


def _link(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{FRONTEND_URL}{path}"


def welcome_template(data: dict) -> tuple[str, str]:
    """Welcome email for a new organiser or brand"""
    name = sanitize_string(data.get("name") or "there")
    role = data.get("role", "brand")
    intro = (
        "List your exhibitions, lay out stalls and review brand applications in one place."
        if role == "organiser"
        else "Discover exhibitions, apply for stalls and manage your bookings in one place."
    )
    content = _paragraphs(f"Hi {name},", "Welcome to ExhiBae! We're excited to have you on board.", intro)
    return "Welcome to ExhiBae", get_base_template(
        title="Welcome to ExhiBae!",
        preview_text="Your account has been created successfully",
        content_sections=content,
        cta_url=_link(f"/dashboard/{role}"),
        cta_label="Go to Dashboard",
    )


def exhibition_reminder_template(data: dict) -> tuple[str, str]:
    """Reminder sent to brands a few days before an exhibition starts"""
    name = sanitize_string(data.get("name") or "there")
    title = sanitize_string(data.get("exhibition_title") or "your exhibition")
    days = data.get("days_until", 1)
    day_label = "tomorrow" if days == 1 else f"in {days} days"
    content = _paragraphs(
        f"Hi {name},",
        f"<strong>{title}</strong> starts {day_label}.",
        f"Date: {sanitize_string(str(data.get('start_date', '')))}",
        f"Venue: {sanitize_string(data.get('venue') or '')}",
        "Make sure your stall setup and materials are ready.",
    )
    return f"Reminder: {data.get('exhibition_title', 'Exhibition')} starts {day_label}", get_base_template(
        title="Exhibition Reminder",
        preview_text=f"{title} starts {day_label}",
        content_sections=content,
        cta_url=_link(data.get("link")),
        cta_label="View Exhibition",
    )


def new_exhibition_template(data: dict) -> tuple[str, str]:
    """Announcement of a newly published exhibition"""
    title = sanitize_string(data.get("exhibition_title") or "A new exhibition")
    content = _paragraphs(
        f"<strong>{title}</strong> is now open for stall applications.",
        sanitize_string(data.get("description") or ""),
        f"Dates: {sanitize_string(str(data.get('start_date', '')))} to {sanitize_string(str(data.get('end_date', '')))}",
    )
    return f"New exhibition: {data.get('exhibition_title', '')}".strip(), get_base_template(
        title="New Exhibition",
        preview_text=f"{title} is accepting applications",
        content_sections=content,
        cta_url=_link(data.get("link")),
        cta_label="View Stalls",
    )


def stall_status_template(data: dict) -> tuple[str, str]:
    """Application status update sent to the brand"""
    status = data.get("status", "approved")
    status_label = status.replace("_", " ").title()
    color = STATUS_COLORS.get(status, THEME["primary"])
    stall_name = sanitize_string(data.get("stall_name") or "your stall")
    exhibition_title = sanitize_string(data.get("exhibition_title") or "the exhibition")
    content = _paragraphs(
        f"Hi {sanitize_string(data.get('name') or 'there')},",
        f"Your application for <strong>{stall_name}</strong> at <strong>{exhibition_title}</strong> "
        f'is now <span style="color: {color}; font-weight: 600;">{status_label}</span>.',
    )
    if data.get("comments"):
        content += f"""
    <mj-text color="{THEME['text_muted']}" padding="8px 0 0 0">
      Organiser comments: {sanitize_string(data['comments'])}
    </mj-text>
    """
    if status == "payment_pending":
        content += _paragraphs("Please complete your payment to secure the stall.")
    return f"Stall application {status_label}", get_base_template(
        title=f"Application {status_label}",
        preview_text=f"{stall_name} at {exhibition_title}: {status_label}",
        content_sections=content,
        cta_url=_link(data.get("link")),
        cta_label="View Application",
    )


def application_received_template(data: dict) -> tuple[str, str]:
    """New application notice sent to the organiser"""
    brand_name = sanitize_string(data.get("brand_name") or "A brand")
    stall_name = sanitize_string(data.get("stall_name") or "a stall")
    exhibition_title = sanitize_string(data.get("exhibition_title") or "your exhibition")
    content = _paragraphs(
        f"<strong>{brand_name}</strong> applied for <strong>{stall_name}</strong> at {exhibition_title}.",
        sanitize_string(data.get("message") or ""),
    )
    return "New stall application received", get_base_template(
        title="New Stall Application",
        preview_text=f"{brand_name} applied for {stall_name}",
        content_sections=content,
        cta_url=_link(data.get("link")),
        cta_label="Review Application",
    )


def payment_submitted_template(data: dict) -> tuple[str, str]:
    """Payment submission notice sent to the organiser"""
    brand_name = sanitize_string(data.get("brand_name") or "A brand")
    content = _paragraphs(
        f"<strong>{brand_name}</strong> submitted a payment of {sanitize_string(str(data.get('amount', '')))} "
        f"for {sanitize_string(data.get('stall_name') or 'a stall')}.",
        f"Reference: {sanitize_string(data.get('reference_number') or 'n/a')}",
        "Verify the payment and confirm the booking.",
    )
    return "Stall payment submitted", get_base_template(
        title="Payment Submitted",
        preview_text=f"{brand_name} submitted a stall payment",
        content_sections=content,
        cta_url=_link(data.get("link")),
        cta_label="Review Payment",
    )


def test_email_template(data: dict) -> tuple[str, str]:
    """Transport check email"""
    content = _paragraphs(
        "This is a test email from the ExhiBae email service.",
        f"Sent at: {sanitize_string(str(data.get('sent_at', '')))}",
    )
    return "ExhiBae test email", get_base_template(
        title="Test Email",
        preview_text="Email service is working",
        content_sections=content,
    )


# Template id -> renderer returning (subject, mjml)
TEMPLATES: dict[str, Callable[[dict], tuple[str, str]]] = {
    "welcome": welcome_template,
    "exhibition-reminder": exhibition_reminder_template,
    "new-exhibition": new_exhibition_template,
    "stall-status": stall_status_template,
    "application-received": application_received_template,
    "payment-submitted": payment_submitted_template,
    "test": test_email_template,
}

# Sample data used for previews and template test sends
TEMPLATE_TEST_DATA = {
    "welcome": {"name": "Test User", "role": "brand"},
    "exhibition-reminder": {
        "name": "Test Brand",
        "exhibition_title": "Spring Craft Fair",
        "days_until": 3,
        "start_date": "2026-04-01",
        "venue": "Exhibition Centre, Hall 2",
    },
    "new-exhibition": {
        "exhibition_title": "Spring Craft Fair",
        "description": "Handmade goods from independent makers.",
        "start_date": "2026-04-01",
        "end_date": "2026-04-03",
    },
    "stall-status": {
        "name": "Test Brand",
        "status": "approved",
        "stall_name": "Corner Stall A1",
        "exhibition_title": "Spring Craft Fair",
    },
    "application-received": {
        "brand_name": "Test Brand",
        "stall_name": "Corner Stall A1",
        "exhibition_title": "Spring Craft Fair",
    },
    "payment-submitted": {
        "brand_name": "Test Brand",
        "amount": "250.00",
        "stall_name": "Corner Stall A1",
        "reference_number": "TXN-0001",
    },
    "test": {"sent_at": "now"},
}


def render_template(template_id: str, data: Optional[dict] = None) -> tuple[str, str]:
    """Render a registered template; raises KeyError for unknown ids"""
    renderer = TEMPLATES[template_id]
    return renderer(data or {})


def default_subject(template_id: str) -> str:
    return template_id.replace("-", " ").replace("_", " ").title()
