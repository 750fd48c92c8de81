"""
MJML Email Templates
All booking notifications use MJML for responsive, cross-client compatibility
"""

from typing import Optional

# Foundation brand colors
THEME = {
    "primary": "#7c3aed",
    "primary_dark": "#6d28d9",
    "primary_light": "#ede9fe",
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

LOGO_URL = "https://quierotrabajo.org/wp-content/uploads/logo-fqt.png"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    is_staff_email: bool = False,
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

    footer_notice = ""
    if is_staff_email:
        footer_notice = """
        <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
          You're receiving this because you are part of the volunteering team.
        </mj-text>
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
            <mj-image
              src="{LOGO_URL}"
              alt="Fundación Quiero Trabajo"
              width="140px"
              href="https://quierotrabajo.org"
              padding="0" />
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
              © Fundación Quiero Trabajo. All rights reserved.
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _session_details(
    date: str,
    start_time: str,
    end_time: str,
    office: Optional[str] = None,
    meet_link: Optional[str] = None,
) -> str:
    """Date, time and where the session happens"""
    location = ""
    if meet_link:
        location = f"""
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0 0 20px 0">
      💻 <a href="{meet_link}" style="color: {THEME['primary']};">Join the video call</a>
    </mj-text>
    """
    elif office:
        location = f"""
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0 0 20px 0">
      📍 {office} office
    </mj-text>
    """

    return f"""
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="20px 0 0 0">
      📅 {date}
    </mj-text>

    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0">
      ⏰ {start_time} - {end_time}
    </mj-text>
    {location}
    """


def booking_confirmation_template(
    volunteer_name: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    office: Optional[str] = None,
    meet_link: Optional[str] = None,
    host_email: Optional[str] = None,
    **_,
) -> str:
    """Booking confirmed, sent to the volunteer"""
    host_line = ""
    if host_email:
        host_line = f"""
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Your host for this session is {host_email}. Reply to this email if you have any questions.
    </mj-text>
    """

    content = f"""
    <mj-text>
      Hi {volunteer_name},
    </mj-text>

    <mj-text>
      Thank you for volunteering with <strong>{company_name}</strong>! Your
      <strong>{service_name}</strong> session is confirmed.
    </mj-text>

    <mj-text align="center" font-size="18px" font-weight="600" color="{THEME['success']}" padding="20px 0 0 0">
      ✓ Session confirmed
    </mj-text>
    {_session_details(date, start_time, end_time, office, meet_link)}
    {host_line}
    """

    return get_base_template(
        title="Your session is booked! 🎉",
        preview_text=f"{service_name} with {company_name} on {date}",
        content_sections=content,
    )


def host_assignment_template(
    volunteer_name: str,
    volunteer_email: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    volunteer_phone: Optional[str] = None,
    office: Optional[str] = None,
    meet_link: Optional[str] = None,
    **_,
) -> str:
    """New session assigned, sent to the host"""
    content = f"""
    <mj-text>
      You have been assigned as host for a new <strong>{service_name}</strong> session.
    </mj-text>

    <mj-text padding="0 0 0 20px">
      • Volunteer: {volunteer_name}<br/>
      • Email: {volunteer_email}<br/>
      • Phone: {volunteer_phone or "Not provided"}<br/>
      • Company: {company_name}
    </mj-text>
    {_session_details(date, start_time, end_time, office, meet_link)}
    """

    return get_base_template(
        title="New session assigned",
        preview_text=f"{volunteer_name} - {company_name} on {date}",
        content_sections=content,
        is_staff_email=True,
    )


def host_reassigned_template(
    volunteer_name: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    new_host_email: Optional[str] = None,
    **_,
) -> str:
    """Session moved to another host, sent to the previous host"""
    content = f"""
    <mj-text>
      The <strong>{service_name}</strong> session with {volunteer_name} ({company_name}) on
      {date} at {start_time} - {end_time} has been reassigned to {new_host_email or "another host"}.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      The event has been removed from your calendar. No action is needed.
    </mj-text>
    """

    return get_base_template(
        title="Session reassigned",
        preview_text=f"{volunteer_name} - {company_name} was reassigned",
        content_sections=content,
        is_staff_email=True,
    )


def cancellation_volunteer_template(
    volunteer_name: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    reason: Optional[str] = None,
    **_,
) -> str:
    """Booking cancelled, sent to the volunteer"""
    reason_line = ""
    if reason:
        reason_line = f"""
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Reason: {reason}
    </mj-text>
    """

    content = f"""
    <mj-text>
      Hi {volunteer_name},
    </mj-text>

    <mj-text>
      Your <strong>{service_name}</strong> session with <strong>{company_name}</strong> on
      {date} at {start_time} has been cancelled.
    </mj-text>
    {reason_line}
    <mj-text>
      You are welcome to book another session whenever it suits you.
    </mj-text>
    """

    return get_base_template(
        title="Your session was cancelled",
        preview_text=f"{service_name} with {company_name} on {date} was cancelled",
        content_sections=content,
    )


def cancellation_host_template(
    volunteer_name: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    reason: Optional[str] = None,
    **_,
) -> str:
    """Booking cancelled, sent to the host"""
    content = f"""
    <mj-text>
      The <strong>{service_name}</strong> session with {volunteer_name} ({company_name}) on
      {date} at {start_time} has been cancelled.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Reason: {reason or "Not provided"}
    </mj-text>
    """

    return get_base_template(
        title="Session cancelled",
        preview_text=f"Cancelled: {volunteer_name} - {company_name}",
        content_sections=content,
        is_staff_email=True,
    )


def booking_reminder_template(
    volunteer_name: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    office: Optional[str] = None,
    meet_link: Optional[str] = None,
    **_,
) -> str:
    """Session tomorrow, sent to volunteer and host"""
    content = f"""
    <mj-text>
      Hi {volunteer_name},
    </mj-text>

    <mj-text>
      This is a reminder that your <strong>{service_name}</strong> session with
      <strong>{company_name}</strong> is tomorrow.
    </mj-text>
    {_session_details(date, start_time, end_time, office, meet_link)}
    """

    return get_base_template(
        title="Your session is tomorrow",
        preview_text=f"Reminder: {service_name} with {company_name} on {date}",
        content_sections=content,
    )


def session_starting_soon_template(
    volunteer_name: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    office: Optional[str] = None,
    meet_link: Optional[str] = None,
    hours: int = 2,
    **_,
) -> str:
    """Session starts in a couple of hours, sent to the volunteer"""
    arrival = "Please join a few minutes early." if meet_link else "Please arrive a few minutes early."

    content = f"""
    <mj-text>
      Hi {volunteer_name},
    </mj-text>

    <mj-text>
      Your <strong>{service_name}</strong> session with <strong>{company_name}</strong>
      starts in about {hours} hours.
    </mj-text>
    {_session_details(date, start_time, end_time, office, meet_link)}
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      {arrival}
    </mj-text>
    """

    return get_base_template(
        title="Your session starts soon ⏰",
        preview_text=f"{service_name} with {company_name} at {start_time}",
        content_sections=content,
    )


def host_session_starting_soon_template(
    volunteer_name: str,
    volunteer_email: str,
    company_name: str,
    service_name: str,
    date: str,
    start_time: str,
    end_time: str,
    volunteer_phone: Optional[str] = None,
    office: Optional[str] = None,
    meet_link: Optional[str] = None,
    hours: int = 2,
    **_,
) -> str:
    """Session starts in a couple of hours, sent to the host"""
    content = f"""
    <mj-text>
      Your <strong>{service_name}</strong> session with {company_name} starts in about {hours} hours.
    </mj-text>

    <mj-text padding="0 0 0 20px">
      • Volunteer: {volunteer_name}<br/>
      • Email: {volunteer_email}<br/>
      • Phone: {volunteer_phone or "Not provided"}
    </mj-text>
    {_session_details(date, start_time, end_time, office, meet_link)}
    """

    return get_base_template(
        title="Session starting soon",
        preview_text=f"{volunteer_name} - {company_name} at {start_time}",
        content_sections=content,
        is_staff_email=True,
    )
