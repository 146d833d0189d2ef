"""
Best-effort email notifications.

Each helper queues a Celery task and returns immediately. A broker outage is
logged and never fails the operation that triggered the email. Callers must
commit their database changes before notifying.
"""

import logging

from flask import current_app
from kombu.exceptions import OperationalError

from models import iso
from settings_store import get_site_settings

logger = logging.getLogger(__name__)


def _queue_email(recipient, subject, body, html=None):
    # Import locally to avoid circular dependency with celery_worker
    from tasks import send_email_task

    try:
        send_email_task.delay(recipient, subject, body, html)
    except OperationalError as e:
        logger.error("Could not queue email '%s' to %s: %s", subject, recipient, e)
        return False
    logger.debug("Queued email '%s' to %s", subject, recipient)
    return True


def _booking_lines(booking):
    return (
        f"Booking: #{booking.id}\n"
        f"Car: {booking.car_name}\n"
        f"From: {iso(booking.start_date)}\n"
        f"To: {iso(booking.end_date)}\n"
        f"Total: {booking.total_price:.2f} {get_site_settings().default_currency}\n"
    )


def send_password_reset(email, token):
    title = get_site_settings().site_title
    reset_url = f"{current_app.config['PASSWORD_RESET_URL_BASE']}/{token}"
    body = (
        f"You are receiving this email because you (or someone else) requested a password "
        f"reset for your account on {title}.\n\n"
        f"Open the following link within one hour to choose a new password:\n\n{reset_url}\n\n"
        f"If you did not request this, ignore this email and your password will remain unchanged.\n"
    )
    html = (
        f"<p>You are receiving this email because you (or someone else) requested a password "
        f"reset for your account on <strong>{title}</strong>.</p>"
        f"<p><a href=\"{reset_url}\">{reset_url}</a></p>"
        f"<p>If you did not request this, ignore this email.</p>"
    )
    return _queue_email(email, f"Reset your {title} password", body, html)


def send_booking_confirmed(booking, email):
    title = get_site_settings().site_title
    body = f"Hello {booking.user_name},\n\nYour booking is confirmed.\n\n{_booking_lines(booking)}\nRegards,\n{title}"
    return _queue_email(email, f"{title}: Booking #{booking.id} confirmed", body)


def send_cancellation_requested(booking, email):
    title = get_site_settings().site_title
    # No admin mailbox is configured; staff see the request in the bookings list
    logger.info("ADMIN NOTICE: cancellation requested for booking %s by user %s", booking.id, booking.user_id)
    body = (
        f"Hello {booking.user_name},\n\nWe received your cancellation request. "
        f"Our team will review it shortly.\n\n{_booking_lines(booking)}\nRegards,\n{title}"
    )
    return _queue_email(email, f"{title}: Cancellation requested for booking #{booking.id}", body)


def send_cancellation_approved(booking, email):
    title = get_site_settings().site_title
    logger.info("SIMULATED REFUND: %.2f for booking %s to user %s",
                booking.total_price, booking.id, booking.user_id)
    body = (
        f"Hello {booking.user_name},\n\nYour cancellation was approved. "
        f"A refund of {booking.total_price:.2f} {get_site_settings().default_currency} "
        f"has been initiated.\n\n{_booking_lines(booking)}\nRegards,\n{title}"
    )
    return _queue_email(email, f"{title}: Booking #{booking.id} cancelled", body)


def send_cancellation_rejected(booking, email):
    title = get_site_settings().site_title
    body = (
        f"Hello {booking.user_name},\n\nYour cancellation request was not approved and "
        f"your booking remains confirmed.\n\n{_booking_lines(booking)}\nRegards,\n{title}"
    )
    return _queue_email(email, f"{title}: Cancellation request for booking #{booking.id} declined", body)


def send_report_export(email, filters):
    """Queues the CSV report job; the task emails the file when done."""
    from tasks import export_report_csv

    try:
        export_report_csv.delay(email, filters)
    except OperationalError as e:
        logger.error("Could not queue report export for %s: %s", email, e)
        return False
    return True
