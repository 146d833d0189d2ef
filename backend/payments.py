"""
Payment adapters.

Both providers feed the same booking state machine: a checkout creates an
Awaiting Payment booking, and only a verified provider signal (Razorpay
signature check, Stripe webhook) confirms it through bookings.confirm_payment.
"""

import hashlib
import hmac
import logging

import stripe
from flask import current_app

from bookings import cancel_unpaid, confirm_payment, create_booking, get_booking
from database import db
from errors import ConfigurationError, PaymentError, PermissionDenied, ValidationError
from models import BookingStatus, iso
from permissions import Capability, role_can
from settings_store import get_site_settings

logger = logging.getLogger(__name__)

_razorpay_client = None


def to_minor_units(amount):
    return int(round(amount * 100))


# ==========================================
# RAZORPAY (order / verify)
# ==========================================

def razorpay_client():
    """Process-wide Razorpay client, created on first use."""
    global _razorpay_client
    if _razorpay_client is None:
        key_id = current_app.config.get('RAZORPAY_KEY_ID')
        key_secret = current_app.config.get('RAZORPAY_KEY_SECRET')
        if not key_id or not key_secret:
            raise ConfigurationError('Razorpay is not configured on the server.')
        # Import locally; the SDK is only needed once a checkout happens
        import razorpay
        _razorpay_client = razorpay.Client(auth=(key_id, key_secret))
    return _razorpay_client


def expected_razorpay_signature(order_id, payment_id, secret):
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_razorpay_signature(order_id, payment_id, signature):
    secret = current_app.config.get('RAZORPAY_KEY_SECRET')
    if not secret:
        raise ConfigurationError('Razorpay is not configured on the server.')
    expected = expected_razorpay_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.encode())


def start_razorpay_checkout(user, data):
    client = razorpay_client()
    booking = create_booking(data.car_id, data.start_date, data.end_date, user,
                             status=BookingStatus.AWAITING_PAYMENT, payment_provider='razorpay')
    currency = get_site_settings().default_currency
    amount = to_minor_units(booking.total_price)

    try:
        order = client.order.create({
            'amount': amount,
            'currency': currency,
            'receipt': f"booking_{booking.id}",
            'notes': {'bookingId': str(booking.id), 'userId': str(user.id)},
        })
    except Exception as e:
        # Any SDK or transport failure ends this checkout attempt
        logger.exception("Razorpay order creation failed for booking #%s", booking.id)
        cancel_unpaid(booking, 'payment order creation failed')
        raise PaymentError('Could not create payment order. Please try again.') from e

    booking.razorpay_order_id = order['id']
    db.session.commit()
    logger.info("Razorpay order %s created for booking #%s", order['id'], booking.id)
    return {
        'bookingId': str(booking.id),
        'razorpayOrderId': order['id'],
        'amount': amount,
        'currency': currency,
        'keyId': current_app.config['RAZORPAY_KEY_ID'],
        'userName': user.name,
        'userEmail': user.email,
    }


def complete_razorpay_payment(user, data):
    booking = get_booking(data.booking_id)
    if booking.user_id != user.id and not role_can(user.role, Capability.CHANGE_BOOKING_STATUS):
        raise PermissionDenied('Forbidden: This booking belongs to another user.')
    if booking.razorpay_order_id != data.razorpay_order_id:
        raise ValidationError('Payment order does not match this booking.')
    if not verify_razorpay_signature(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature):
        logger.warning("Invalid Razorpay signature for booking #%s", booking.id)
        raise ValidationError('Payment verification failed: invalid signature.')
    return confirm_payment(booking, razorpay_payment_id=data.razorpay_payment_id)


# ==========================================
# STRIPE (hosted checkout + webhook)
# ==========================================

def stripe_api():
    secret = current_app.config.get('STRIPE_SECRET_KEY')
    if not secret:
        raise ConfigurationError('Stripe is not configured on the server.')
    stripe.api_key = secret
    return stripe


def start_stripe_checkout(user, data):
    api = stripe_api()
    booking = create_booking(data.car_id, data.start_date, data.end_date, user,
                             status=BookingStatus.AWAITING_PAYMENT, payment_provider='stripe')
    currency = get_site_settings().default_currency
    app_url = current_app.config['APP_URL']

    try:
        session = api.checkout.Session.create(
            mode='payment',
            payment_method_types=['card'],
            line_items=[{
                'price_data': {
                    'currency': currency.lower(),
                    'product_data': {
                        'name': booking.car_name,
                        'description': f"Rental from {iso(booking.start_date)} to {iso(booking.end_date)}",
                    },
                    'unit_amount': to_minor_units(booking.total_price),
                },
                'quantity': 1,
            }],
            customer_email=user.email,
            client_reference_id=str(booking.id),
            metadata={'bookingId': str(booking.id), 'userId': str(user.id)},
            success_url=f"{app_url}/booking/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{app_url}/cars/{booking.car_id}?checkout=cancelled",
        )
    except stripe.StripeError as e:
        logger.exception("Stripe session creation failed for booking #%s", booking.id)
        cancel_unpaid(booking, 'checkout session creation failed')
        raise PaymentError('Could not create checkout session. Please try again.') from e

    booking.stripe_session_id = session['id']
    db.session.commit()
    logger.info("Stripe session %s created for booking #%s", session['id'], booking.id)
    return {'bookingId': str(booking.id), 'sessionId': session['id'], 'url': session['url']}


def _field(obj, name):
    try:
        return obj[name]
    except (KeyError, TypeError):
        return None


def _booking_for_session(session):
    metadata = _field(session, 'metadata') or {}
    booking_id = _field(metadata, 'bookingId') or _field(session, 'client_reference_id')
    if not booking_id:
        raise ValidationError('Checkout session carries no booking reference.')
    return get_booking(booking_id)


def handle_stripe_webhook(payload, signature_header):
    """
    Verifies and applies a Stripe event. Only checkout.session.completed
    (paid) and checkout.session.expired change bookings.
    """
    secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if not secret:
        raise ConfigurationError('Stripe webhook secret is not configured on the server.')
    try:
        event = stripe.Webhook.construct_event(payload, signature_header, secret)
    except ValueError:
        raise ValidationError('Invalid webhook payload.')
    except stripe.SignatureVerificationError:
        logger.warning("Rejected Stripe webhook with invalid signature")
        raise ValidationError('Invalid webhook signature.')

    event_type = event['type']
    session = event['data']['object']

    if event_type == 'checkout.session.completed':
        booking = _booking_for_session(session)
        if _field(session, 'payment_status') != 'paid':
            logger.info("Checkout session %s completed without payment; booking #%s stays %s",
                        _field(session, 'id'), booking.id, booking.status)
            return event_type
        confirm_payment(booking,
                        stripe_session_id=_field(session, 'id'),
                        stripe_payment_intent_id=_field(session, 'payment_intent'))
    elif event_type == 'checkout.session.expired':
        booking = _booking_for_session(session)
        cancel_unpaid(booking, 'checkout session expired')
    else:
        logger.debug("Ignoring Stripe event %s", event_type)
    return event_type
