"""
MJML Email Templates
Booking and form notification templates using MJML for responsive, cross-client compatibility
"""

from typing import Optional

# App theme colors - Indigo/Slate color scheme
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
    "warning": "#f59e0b",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    business_name: str,
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
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="14px" font-weight="600" color="{THEME['text_muted']}" padding="0">
              {business_name}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="16px 0 32px 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you booked with {business_name}.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def booking_reminder_template(
    contact_name: str,
    business_name: str,
    service_name: str,
    booking_date: str,
    start_time: str,
    end_time: str,
) -> str:
    """Upcoming appointment reminder for the contact"""
    content = f"""
    <mj-text>
      Hi {contact_name},
    </mj-text>

    <mj-text>
      This is a friendly reminder about your upcoming appointment with <strong>{business_name}</strong>.
    </mj-text>

    <mj-text align="center" font-size="18px" font-weight="600" color="{THEME['warning']}" padding="20px 0">
      🔔 {service_name}
    </mj-text>

    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0">
      📅 {booking_date}
    </mj-text>

    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0 0 20px 0">
      ⏰ {start_time} - {end_time}
    </mj-text>

    <mj-text>
      If you need to reschedule, please contact us as soon as possible.
    </mj-text>
    """

    return get_base_template(
        title="Appointment Reminder",
        preview_text=f"Reminder: {service_name} on {booking_date} at {start_time}",
        content_sections=content,
        business_name=business_name,
    )


def booking_confirmation_template(
    contact_name: str,
    business_name: str,
    service_name: str,
    booking_date: str,
    start_time: str,
    end_time: str,
) -> str:
    """Booking confirmed notification for the contact"""
    content = f"""
    <mj-text>
      Hi {contact_name},
    </mj-text>

    <mj-text>
      Your booking with <strong>{business_name}</strong> is confirmed.
    </mj-text>

    <mj-text align="center" font-size="18px" font-weight="600" color="{THEME['primary']}" padding="20px 0">
      ✓ {service_name}
    </mj-text>

    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0 0 20px 0">
      📅 {booking_date} ⏰ {start_time} - {end_time}
    </mj-text>
    """

    return get_base_template(
        title="Booking Confirmed",
        preview_text=f"Booking Confirmed - {business_name}",
        content_sections=content,
        business_name=business_name,
    )


def form_request_template(
    contact_name: str, business_name: str, form_name: str, form_link: str
) -> str:
    """Ask the contact to fill in a post-booking form"""
    content = f"""
    <mj-text>
      Hi {contact_name},
    </mj-text>

    <mj-text>
      Before your appointment, <strong>{business_name}</strong> needs you to complete
      <strong>{form_name}</strong>.
    </mj-text>
    """

    return get_base_template(
        title="Please Complete Your Form",
        preview_text=f"{form_name} - {business_name}",
        content_sections=content,
        business_name=business_name,
        cta_url=form_link,
        cta_label="Open Form",
    )


def form_reminder_template(
    contact_name: str, business_name: str, form_name: str, form_link: str
) -> str:
    """Reminder for a form that is still pending or overdue"""
    content = f"""
    <mj-text>
      Hi {contact_name},
    </mj-text>

    <mj-text>
      Please complete your pending form: <strong>{form_name}</strong>.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      It only takes a few minutes and helps us prepare for your visit.
    </mj-text>
    """

    return get_base_template(
        title="Reminder: Complete Your Form",
        preview_text=f"Reminder: complete your form - {business_name}",
        content_sections=content,
        business_name=business_name,
        cta_url=form_link,
        cta_label="Open Form",
    )
