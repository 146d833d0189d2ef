"""
Availability & booking engine.

Pricing, the overlap check, the compare-and-swap insert and every booking
status transition (payment, cancellation, staff decisions) live here so the
routes never touch booking.status directly.
"""

import datetime
import logging
import math

from sqlalchemy import func, update

import notifications
from catalog import get_car
from database import db
from errors import Conflict, NotFound, PermissionDenied, ValidationError
from models import Booking, BookingStatus, Car, User, utcnow
from permissions import Capability, role_can
from schemas import ReportParams
from settings_store import get_site_settings

logger = logging.getLogger(__name__)

ONE_HOUR = datetime.timedelta(hours=1)

# Staff decisions on PUT /api/admin/bookings/<id>/status
ADMIN_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.AWAITING_PAYMENT: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLATION_REQUESTED: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
}


# ==========================================
# PRICING
# ==========================================

def rental_hours(start, end):
    """Whole hours between start and end, rounded down."""
    return math.floor((end - start) / ONE_HOUR)


def effective_discount(car):
    if car.discount_percent is not None:
        return car.discount_percent
    return get_site_settings().global_discount_percent or 0


def quote(car, start, end):
    """Price breakdown for renting car over [start, end); writes nothing."""
    if end <= start:
        raise ValidationError('End date must be after start date.')
    hours = rental_hours(start, end)
    if hours < 1:
        raise ValidationError('Minimum rental duration is 1 hour.')
    discount = effective_discount(car)
    total = round(hours * car.price_per_hour * (1 - discount / 100), 2)
    return {
        'carId': str(car.id),
        'hours': hours,
        'pricePerHour': car.price_per_hour,
        'discountPercent': discount,
        'totalPrice': total,
    }


# ==========================================
# CREATION
# ==========================================

def _reserve(car, booking):
    """
    Inserts booking if car is still free, in one transaction guarded by the
    car's booking_version. A concurrent insert for the same car bumps the
    version first and makes the guarded UPDATE match no rows.
    """
    version = car.booking_version
    if Booking.blocking_overlaps(booking.start_date, booking.end_date, car_id=car.id).first():
        db.session.rollback()
        raise Conflict('Car is not available for the selected dates.')

    db.session.add(booking)
    db.session.flush()
    result = db.session.execute(
        update(Car)
        .where(Car.id == car.id, Car.booking_version == version)
        .values(booking_version=version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        logger.warning("Booking version race lost for car %s (version %s)", car.id, version)
        raise Conflict('Car is not available for the selected dates.')
    db.session.commit()
    return booking


def create_booking(car_id, start, end, requester, status=None, payment_provider=None):
    """
    Books car_id for [start, end) on behalf of requester. Direct bookings are
    Confirmed; checkout bookings pass status=Awaiting Payment. Only users who
    may backdate bookings can pick a past start or another initial status.
    """
    car = get_car(car_id)
    privileged = role_can(requester.role, Capability.BACKDATE_BOOKINGS)

    if start <= utcnow() and not privileged:
        raise ValidationError('Start date must be in the future.')
    price = quote(car, start, end)

    if status is None or (not privileged and status != BookingStatus.AWAITING_PAYMENT):
        status = BookingStatus.CONFIRMED

    booking = Booking(
        car_id=car.id,
        car_name=car.name,
        car_image_url=car.primary_image_url,
        user_id=requester.id,
        user_name=requester.name,
        start_date=start,
        end_date=end,
        total_price=price['totalPrice'],
        status=status,
        payment_provider=payment_provider,
    )
    _reserve(car, booking)
    logger.info("Booking #%s created for car %s by user %s with status %s",
                booking.id, car.id, requester.id, status)

    if status == BookingStatus.CONFIRMED:
        notifications.send_booking_confirmed(booking, requester.email)
    return booking


# ==========================================
# LOOKUPS
# ==========================================

def get_booking(booking_id):
    try:
        booking = db.session.get(Booking, int(booking_id))
    except (TypeError, ValueError):
        booking = None
    if booking is None:
        raise NotFound('Booking not found')
    return booking


def bookings_for_user(user):
    return Booking.query.filter_by(user_id=user.id).order_by(Booking.start_date.desc()).all()


def list_bookings(params):
    """Paginated staff view, newest first, optionally filtered by status."""
    query = Booking.query
    if params.status and params.status != 'All':
        query = query.filter(Booking.status == params.status)
    total = query.count()
    rows = (query.order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset((params.page - 1) * params.limit).limit(params.limit).all())
    return {
        'data': [b.to_dict() for b in rows],
        'totalItems': total,
        'totalPages': math.ceil(total / params.limit) if total else 0,
        'currentPage': params.page,
    }


def booking_report(filters):
    """Bookings created within the (inclusive) date range, newest first."""
    params = filters if isinstance(filters, ReportParams) else ReportParams.model_validate(filters)
    query = Booking.query
    if params.start_date:
        query = query.filter(Booking.created_at >= datetime.datetime.combine(params.start_date, datetime.time.min))
    if params.end_date:
        next_day = params.end_date + datetime.timedelta(days=1)
        query = query.filter(Booking.created_at < datetime.datetime.combine(next_day, datetime.time.min))
    if params.status and params.status != 'All':
        query = query.filter(Booking.status == params.status)
    return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


def report_summary(params):
    rows = booking_report(params)
    currency = get_site_settings().default_currency
    revenue = sum(b.total_price for b in rows if b.status == BookingStatus.COMPLETED)
    return {
        'totalBookings': len(rows),
        'totalRevenue': round(revenue, 2),
        'currency': currency,
        'bookings': [b.to_dict() for b in rows],
    }


def dashboard_stats():
    revenue = db.session.query(func.sum(Booking.total_price)).filter(
        Booking.status == BookingStatus.COMPLETED
    ).scalar() or 0.0
    return {
        'totalUsers': User.query.count(),
        'totalCars': Car.query.count(),
        'pendingBookingsCount': Booking.query.filter(
            Booking.status.in_([BookingStatus.PENDING, BookingStatus.CANCELLATION_REQUESTED])
        ).count(),
        'awaitingPaymentCount': Booking.query.filter_by(status=BookingStatus.AWAITING_PAYMENT).count(),
        'totalRevenue': round(revenue, 2),
        'defaultCurrency': get_site_settings().default_currency,
    }


# ==========================================
# STATUS TRANSITIONS
# ==========================================

def _owner_email(booking):
    return booking.user.email if booking.user else None


def confirm_payment(booking, **payment_refs):
    """
    The single Awaiting Payment -> Confirmed trigger for every provider.
    Confirming an already confirmed booking is a no-op.
    """
    if booking.status == BookingStatus.CONFIRMED:
        logger.info("Booking #%s already confirmed; ignoring repeated confirmation", booking.id)
        return booking
    if booking.status != BookingStatus.AWAITING_PAYMENT:
        raise Conflict(f"Booking cannot be confirmed from status '{booking.status}'.")

    for field, value in payment_refs.items():
        setattr(booking, field, value)
    booking.status = BookingStatus.CONFIRMED
    db.session.commit()
    logger.info("Payment confirmed for booking #%s", booking.id)

    email = _owner_email(booking)
    if email:
        notifications.send_booking_confirmed(booking, email)
    return booking


def cancel_unpaid(booking, reason):
    """Releases the car held by a checkout that will not be paid."""
    if booking.status != BookingStatus.AWAITING_PAYMENT:
        return booking
    booking.status = BookingStatus.CANCELLED
    db.session.commit()
    logger.info("Booking #%s cancelled before payment: %s", booking.id, reason)
    return booking


def expire_stale_holds(hold_minutes):
    cutoff = utcnow() - datetime.timedelta(minutes=hold_minutes)
    stale = Booking.query.filter(
        Booking.status == BookingStatus.AWAITING_PAYMENT,
        Booking.created_at < cutoff,
    ).all()
    for booking in stale:
        booking.status = BookingStatus.CANCELLED
    db.session.commit()
    if stale:
        logger.info("Expired %d unpaid bookings older than %d minutes", len(stale), hold_minutes)
    return len(stale)


def request_cancellation(booking, user):
    if booking.user_id != user.id:
        raise PermissionDenied('Forbidden: You can only cancel your own bookings')
    if booking.status != BookingStatus.CONFIRMED:
        raise ValidationError(f'Cannot request cancellation for booking with status: {booking.status}')
    if booking.start_date <= utcnow():
        raise ValidationError('Cannot request cancellation for bookings that have already started or are in the past.')

    booking.status = BookingStatus.CANCELLATION_REQUESTED
    db.session.commit()
    logger.info("Cancellation requested for booking #%s by user %s", booking.id, user.id)
    notifications.send_cancellation_requested(booking, user.email)
    return booking


def set_status(booking, new_status):
    """
    Applies a staff decision. Returns (booking, changed); repeating the
    current status changes nothing.
    """
    old_status = booking.status
    if new_status == old_status:
        return booking, False
    if new_status not in ADMIN_TRANSITIONS.get(old_status, set()):
        raise Conflict(f"Cannot change booking status from '{old_status}' to '{new_status}'.")

    booking.status = new_status
    db.session.commit()
    logger.info("Booking #%s status changed: %s -> %s", booking.id, old_status, new_status)

    email = _owner_email(booking)
    if email:
        if old_status == BookingStatus.CANCELLATION_REQUESTED and new_status == BookingStatus.CANCELLED:
            notifications.send_cancellation_approved(booking, email)
        elif old_status == BookingStatus.CANCELLATION_REQUESTED and new_status == BookingStatus.CONFIRMED:
            notifications.send_cancellation_rejected(booking, email)
        elif new_status == BookingStatus.CONFIRMED:
            notifications.send_booking_confirmed(booking, email)
    return booking, True
