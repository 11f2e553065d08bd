"""
services/trial_messages.py

Notification titles and email bodies for start-of-trial and countdown
reminders. Every interpolated value is HTML-escaped.
"""

from __future__ import annotations

from trial_scheduler.core.config import settings
from trial_scheduler.db.models import Case, NotificationCategory, RecipientType
from trial_scheduler.services.fanout_service import OutboundMessage, Recipient
from trial_scheduler.utils.helpers import (
    format_trial_date,
    format_trial_time,
    html_text,
    pluralize_days,
)

BRAND = "Quick Verdicts"

_HEADING = '<h2 style="color: #16305B; margin-top: 0;">{}</h2>'
_PARAGRAPH = '<p style="color: #666; line-height: 1.6;">{}</p>'
_PANEL = (
    '<div style="background: {bg}; border-left: 4px solid {border}; padding: 20px; '
    'margin: 25px 0; border-radius: 4px; color: {fg};">{body}</div>'
)
_BUTTON = (
    '<div style="text-align: center; margin: 35px 0;"><a href="{href}" '
    'style="display: inline-block; background: #16305B; color: white; padding: 16px 40px; '
    'text-decoration: none; border-radius: 8px; font-weight: bold; font-size: 18px;">{label}</a></div>'
)


_PANEL_COLORS = {
    "warning": ("#fef3c7", "#f59e0b", "#92400e"),
    "success": ("#f0fdf4", "#16a34a", "#16a34a"),
    "info": ("#eff6ff", "#3b82f6", "#1e40af"),
}


def _panel(kind: str, lines: list[str], extra: str = "") -> str:
    bg, border, fg = _PANEL_COLORS[kind]
    body = "".join(f'<p style="margin: 5px 0;">{line}</p>' for line in lines) + extra
    return _PANEL.format(bg=bg, border=border, fg=fg, body=body)


def _checklist(title: str, items: list[str]) -> str:
    lis = "".join(f'<li style="margin: 5px 0;">{html_text(i)}</li>' for i in items)
    return _panel(
        "warning",
        [f"<strong>{html_text(title)}</strong>"],
        extra=f'<ul style="margin: 10px 0 0 20px; padding: 0;">{lis}</ul>',
    )


def _link(path: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}{path}"


def _sign_off(team: str = "Team") -> str:
    return _PARAGRAPH.format(f"Best regards,<br/>{BRAND} {team}")


def _when(case: Case) -> tuple[str, str]:
    return html_text(format_trial_date(case.scheduled_date)), html_text(format_trial_time(case.scheduled_time))


# ============================================================================
# Start of trial
# ============================================================================

def build_start_message(
    case: Case,
    recipient: Recipient,
    notify_minutes: int,
    juror_count: int,
    attorney_name: str,
) -> OutboundMessage:
    title = html_text(case.case_title)
    trial_date, trial_time = _when(case)

    if recipient.type == RecipientType.juror:
        html_body = "".join([
            _HEADING.format("Trial Starting Soon!"),
            _PARAGRAPH.format(f"Dear {html_text(recipient.name)},"),
            _PARAGRAPH.format(
                f"The trial for <strong>&quot;{title}&quot;</strong> is starting in "
                f"<strong>{notify_minutes} minutes</strong>!"
            ),
            _panel("warning", [
                "<strong>Action Required:</strong> Join the trial NOW",
                f"Trial Date: {trial_date}",
                f"Trial Time: {trial_time}",
            ]),
            _BUTTON.format(href=_link("/juror"), label="Join Trial Now"),
            _PARAGRAPH.format("Please ensure your camera and microphone are working properly before joining."),
            _sign_off(),
        ])
        return OutboundMessage(
            category=NotificationCategory.trial_starting,
            title="Trial Starting Soon - Join Now!",
            message=(
                f'The trial for "{case.case_title}" is starting in {notify_minutes} minutes! '
                "Please join the trial room now."
            ),
            subject=f"Trial Starting in {notify_minutes} Minutes - Join Now!",
            html_body=html_body,
        )

    if recipient.type == RecipientType.attorney:
        html_body = "".join([
            _HEADING.format("Trial Room Ready"),
            _PARAGRAPH.format(f"Dear {html_text(recipient.name)},"),
            _PARAGRAPH.format(
                f"The trial room for <strong>&quot;{title}&quot;</strong> is now active and ready to begin!"
            ),
            _panel("success", [
                "<strong>Trial Status:</strong> Ready to Start",
                f"<strong>Trial Date:</strong> {trial_date}",
                f"<strong>Trial Time:</strong> {trial_time}",
                f"<strong>Jurors:</strong> All {juror_count} approved jurors notified",
            ]),
            _BUTTON.format(href=_link("/attorney"), label="Start Trial"),
            _PARAGRAPH.format(
                "You can start the trial when you're ready. All participants have been notified and can join."
            ),
            _sign_off(),
        ])
        return OutboundMessage(
            category=NotificationCategory.trial_starting,
            title="Trial Room Ready - Start Trial",
            message=f'Your trial for "{case.case_title}" is ready to start! All jurors have been notified.',
            subject="Trial Room Ready - You Can Start Now",
            html_body=html_body,
        )

    html_body = "".join([
        _HEADING.format("Trial Started"),
        _PARAGRAPH.format("Hello Admin,"),
        _PARAGRAPH.format(
            f"The trial for <strong>&quot;{title}&quot;</strong> has automatically transitioned to live status."
        ),
        _panel("info", [
            "<strong>Trial Details:</strong>",
            f"Case ID: {case.id}",
            f"Attorney: {html_text(attorney_name)}",
            f"Type: {html_text(case.case_type)} | County: {html_text(case.county)}",
            f"Scheduled: {trial_date} at {trial_time}",
            f"Jurors Notified: {juror_count}",
        ]),
        _PARAGRAPH.format("All participants have been notified and can join the trial room."),
        _sign_off("System"),
    ])
    return OutboundMessage(
        category=NotificationCategory.trial_started,
        title="Trial Started - Case Now Live",
        message=(
            f'Trial "{case.case_title}" has transitioned to join_trial status. '
            f"Attorney {attorney_name} and all jurors have been notified."
        ),
        subject=f"Trial Started - {case.case_title}",
        html_body=html_body,
    )


# ============================================================================
# Countdown reminders
# ============================================================================

def build_reminder_message(
    case: Case,
    recipient: Recipient,
    days_before: int,
    juror_count: int,
) -> OutboundMessage:
    title = html_text(case.case_title)
    trial_date, trial_time = _when(case)
    span = pluralize_days(days_before)
    span_lower = span.lower()

    details = [
        "<strong>Trial Details:</strong>",
        f"<strong>Case:</strong> {title}",
        f"<strong>Date:</strong> {trial_date}",
        f"<strong>Time:</strong> {trial_time}",
        f"<strong>Type:</strong> {html_text(case.case_type)}",
        f"<strong>County:</strong> {html_text(case.county)}",
    ]

    if recipient.type == RecipientType.attorney:
        html_body = "".join([
            _HEADING.format(f"Trial Reminder - {span} Until Trial"),
            _PARAGRAPH.format(f"Dear {html_text(recipient.name)},"),
            _PARAGRAPH.format(
                f"This is a friendly reminder that your trial <strong>&quot;{title}&quot;</strong> "
                f"is coming up in <strong>{span_lower}</strong>."
            ),
            _panel("info", details + [f"<strong>Approved Jurors:</strong> {juror_count}"]),
            _checklist("Preparation Checklist:", [
                "Review all case materials and evidence",
                "Ensure all witnesses are prepared",
                "Test your camera and microphone",
                "Check your internet connection",
                "Review jury charge questions",
            ]),
            _BUTTON.format(href=_link(f"/attorney/cases/{case.id}/war-room"), label="View War Room"),
            _PARAGRAPH.format(
                "If you have any questions or need to reschedule, please contact us as soon as possible."
            ),
            _sign_off(),
        ])
        return OutboundMessage(
            category=NotificationCategory.trial_reminder,
            title=f"Trial Reminder: {span} Until Trial",
            message=f'Your trial "{case.case_title}" is coming up in {span_lower}.',
            subject=f'Trial Reminder: {span} Until "{case.case_title}"',
            html_body=html_body,
        )

    html_body = "".join([
        _HEADING.format(f"Trial Reminder - {span} Until Trial"),
        _PARAGRAPH.format(f"Dear {html_text(recipient.name)},"),
        _PARAGRAPH.format(
            f"This is a friendly reminder that the trial for <strong>&quot;{title}&quot;</strong> "
            f"is coming up in <strong>{span_lower}</strong>."
        ),
        _panel("info", details),
        _checklist("Important Reminders:", [
            "Test your camera and microphone before the trial",
            "Ensure you have a stable internet connection",
            "Find a quiet location for the trial",
            "Be ready to join 10 minutes early",
            "Have a notepad ready to take notes",
        ]),
        _BUTTON.format(href=_link("/juror"), label="Go to Dashboard"),
        _PARAGRAPH.format("Thank you for your participation as a juror. Your service is greatly appreciated."),
        _sign_off(),
    ])
    return OutboundMessage(
        category=NotificationCategory.trial_reminder,
        title=f"Trial Reminder: {span} Until Trial",
        message=f'The trial for "{case.case_title}" is coming up in {span_lower}.',
        subject=f"Trial Reminder: {span} Until Trial",
        html_body=html_body,
    )
