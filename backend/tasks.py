import csv
import io
import logging
import smtplib

from flask_mail import Connection, Message

from app import app, mail
from celery_worker import celery
from bookings import booking_report, expire_stale_holds
from models import iso
from settings_store import get_site_settings

logger = logging.getLogger(__name__)


def _mail_state():
    """
    Builds a Flask-Mail state from app config with the SMTP fields of the
    site settings layered on top (settings win when set).
    """
    settings = get_site_settings()
    config = dict(app.config)
    overrides = {
        'MAIL_SERVER': settings.smtp_host,
        'MAIL_PORT': settings.smtp_port,
        'MAIL_USERNAME': settings.smtp_user,
        'MAIL_PASSWORD': settings.smtp_pass,
        'MAIL_DEFAULT_SENDER': settings.email_from,
    }
    config.update({key: value for key, value in overrides.items() if value})
    if settings.smtp_secure is not None:
        config['MAIL_USE_SSL'] = settings.smtp_secure
        config['MAIL_USE_TLS'] = config.get('MAIL_USE_TLS', False) and not settings.smtp_secure
    elif settings.smtp_port:
        config['MAIL_USE_SSL'] = settings.smtp_port == 465
    return mail.init_mail(config, debug=app.debug, testing=app.testing)


def _deliver(msg, state):
    # Best effort: a failed send is logged and never retried
    try:
        with Connection(state) as conn:
            conn.send(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Error sending email '%s' to %s via %s: %s",
                     msg.subject, msg.recipients, state.server, e)
        return False
    logger.info("Email '%s' sent to %s", msg.subject, msg.recipients)
    return True


@celery.task
def send_email_task(recipient, subject, body, html=None):
    state = _mail_state()
    msg = Message(subject=subject, recipients=[recipient], body=body, html=html,
                  sender=state.default_sender)
    return "Sent" if _deliver(msg, state) else "Failed"


@celery.task
def expire_pending_bookings():
    """
    Scheduled Task: cancels checkouts that were never paid so the car is
    released again.
    """
    count = expire_stale_holds(app.config['PAYMENT_HOLD_MINUTES'])
    return f"Expired {count} unpaid bookings."


@celery.task
def export_report_csv(recipient, filters):
    """
    Triggered by staff from the reports page. Runs the booking report with the
    given filters, converts it to CSV and emails it as an attachment.
    """
    logger.info("Starting CSV report export for %s with filters %s", recipient, filters)
    rows = booking_report(filters)

    # Create the file in memory instead of saving to disk
    output_buffer = io.StringIO()
    csv_writer = csv.writer(output_buffer)
    csv_writer.writerow([
        'Booking ID', 'Car', 'Customer', 'Start', 'End', 'Status', 'Total Price'
    ])
    for record in rows:
        csv_writer.writerow([
            record.id,
            record.car_name,
            record.user_name,
            iso(record.start_date),
            iso(record.end_date),
            record.status,
            f"{record.total_price:.2f}",
        ])

    state = _mail_state()
    title = get_site_settings().site_title
    msg = Message(
        subject=f"{title}: Booking report export",
        recipients=[recipient],
        body=f"Hello,\n\nPlease find attached the booking report you requested ({len(rows)} bookings).\n\nRegards,\n{title}",
        sender=state.default_sender,
    )
    msg.attach("booking_report.csv", "text/csv", output_buffer.getvalue())
    return "Export sent." if _deliver(msg, state) else "Export email failed."
