from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

import payments
from permissions import Capability, current_user, requires
from schemas import CheckoutIn, RazorpayVerifyIn

checkout_bp = Blueprint('checkout', __name__, url_prefix='/api/checkout')


# ==========================================
# CHECKOUT ROUTES (Payments)
# ==========================================

@checkout_bp.route('/razorpay-order', methods=['POST'])
@jwt_required()
@requires(Capability.BOOK)
def create_razorpay_order():
    data = CheckoutIn.model_validate(request.get_json(silent=True) or {})
    return jsonify(payments.start_razorpay_checkout(current_user(), data)), 201


@checkout_bp.route('/razorpay-verify', methods=['POST'])
@jwt_required()
@requires(Capability.BOOK)
def verify_razorpay_payment():
    data = RazorpayVerifyIn.model_validate(request.get_json(silent=True) or {})
    booking = payments.complete_razorpay_payment(current_user(), data)
    return jsonify({'message': 'Payment verified and booking confirmed.', 'booking': booking.to_dict()}), 200


@checkout_bp.route('/sessions', methods=['POST'])
@jwt_required()
@requires(Capability.BOOK)
def create_stripe_session():
    data = CheckoutIn.model_validate(request.get_json(silent=True) or {})
    return jsonify(payments.start_stripe_checkout(current_user(), data)), 201


@checkout_bp.route('/stripe-webhook', methods=['POST'])
def stripe_webhook():
    # Authenticated by the Stripe signature, not a JWT
    event_type = payments.handle_stripe_webhook(request.get_data(), request.headers.get('Stripe-Signature', ''))
    return jsonify({'received': True, 'type': event_type}), 200
