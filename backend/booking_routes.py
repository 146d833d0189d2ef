from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

import bookings
from permissions import Capability, current_user, requires
from schemas import BookingIn

bookings_bp = Blueprint('bookings', __name__, url_prefix='/api/bookings')


# ==========================================
# USER ROUTES (Booking)
# ==========================================

@bookings_bp.route('', methods=['POST'])
@jwt_required()
@requires(Capability.BOOK)
def create_booking():
    """Direct booking without a payment step; the booking is Confirmed."""
    data = BookingIn.model_validate(request.get_json(silent=True) or {})
    booking = bookings.create_booking(data.car_id, data.start_date, data.end_date,
                                      current_user(), status=data.status)
    return jsonify(booking.to_dict()), 201


@bookings_bp.route('/<int:booking_id>/request-cancellation', methods=['POST'])
@jwt_required()
@requires(Capability.BOOK)
def request_cancellation(booking_id):
    booking = bookings.get_booking(booking_id)
    bookings.request_cancellation(booking, current_user())
    return jsonify({
        'message': 'Cancellation requested successfully. Admin will review your request.',
        'booking': booking.to_dict(),
    }), 200
