import logging

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

import auth
import bookings
import catalog
import notifications
from database import db
from errors import Conflict, NotFound, UpstreamError
from models import Booking, BookingStatus, Car, User, UserDocument, utcnow
from permissions import Capability, current_user, requires
from schemas import (BookingStatusIn, CarIn, DocumentReviewIn, PageParams, ReportParams, SettingsIn,
                     UserCreateIn, UserUpdateIn)
from settings_store import get_site_settings, update_site_settings

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

# Columns that may be cleared by sending null
_NULLABLE_SETTINGS = {'smtp_host', 'smtp_port', 'smtp_user', 'smtp_secure', 'email_from'}


def _get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


# ==========================================
# ADMIN ROUTES (Cars)
# ==========================================

@admin_bp.route('/cars', methods=['GET'])
@jwt_required()
@requires(Capability.VIEW_CARS)
def fetch_all_cars_admin():
    cars = Car.query.order_by(Car.id).all()
    return jsonify([c.to_dict() for c in cars]), 200


@admin_bp.route('/cars', methods=['POST'])
@jwt_required()
@requires(Capability.MANAGE_CARS)
def add_new_car():
    data = CarIn.model_validate(request.get_json(silent=True) or {})
    car = catalog.create_car(data)
    return jsonify({'message': 'Car created successfully', 'car': car.to_dict()}), 201


@admin_bp.route('/cars/<int:car_id>', methods=['GET'])
@jwt_required()
@requires(Capability.VIEW_CARS)
def get_car_details(car_id):
    return jsonify(catalog.get_car(car_id).to_dict()), 200


@admin_bp.route('/cars/<int:car_id>', methods=['PUT'])
@jwt_required()
@requires(Capability.MANAGE_CARS)
def modify_car(car_id):
    car = catalog.get_car(car_id)
    car = catalog.update_car(car, request.get_json(silent=True) or {})
    return jsonify({'message': 'Car updated', 'car': car.to_dict()}), 200


@admin_bp.route('/cars/<int:car_id>', methods=['DELETE'])
@jwt_required()
@requires(Capability.MANAGE_CARS)
def remove_car(car_id):
    catalog.delete_car(catalog.get_car(car_id))
    return jsonify({'message': 'Car deleted'}), 200


# ==========================================
# ADMIN ROUTES (Users)
# ==========================================

@admin_bp.route('/users', methods=['GET'])
@jwt_required()
@requires(Capability.VIEW_USERS)
def list_registered_users():
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify([u.to_dict() for u in users]), 200


@admin_bp.route('/users', methods=['POST'])
@jwt_required()
@requires(Capability.MANAGE_USERS)
def create_user_account():
    data = UserCreateIn.model_validate(request.get_json(silent=True) or {})
    user = auth.create_user(data.name, data.email, data.password, role=data.role)
    return jsonify({'message': 'User created successfully', 'user': user.to_dict()}), 201


@admin_bp.route('/users/<int:user_id>', methods=['GET'])
@jwt_required()
@requires(Capability.VIEW_USERS)
def get_user_details(user_id):
    return jsonify(_get_user(user_id).to_dict()), 200


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@jwt_required()
@requires(Capability.MANAGE_USERS)
def modify_user(user_id):
    user = _get_user(user_id)
    data = UserUpdateIn.model_validate(request.get_json(silent=True) or {})

    if data.name is not None:
        user.name = data.name
    if data.role is not None:
        user.role = data.role
    db.session.commit()
    logger.info("User %s updated by admin %s", user.id, current_user().id)
    return jsonify({'message': 'User updated successfully', 'user': user.to_dict()}), 200


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@jwt_required()
@requires(Capability.MANAGE_USERS)
def remove_user(user_id):
    user = _get_user(user_id)
    if user.id == current_user().id:
        raise Conflict('You cannot delete your own account.')
    active = Booking.query.filter(
        Booking.user_id == user.id,
        Booking.status.in_(BookingStatus.BLOCKING),
    ).count()
    if active:
        raise Conflict('Cannot delete user: they have active bookings.')

    # Past bookings keep their user name snapshot; documents go with the user
    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted by admin", user_id)
    return jsonify({'message': 'User deleted'}), 200


@admin_bp.route('/users/<int:user_id>/documents/<doc_type>', methods=['PUT'])
@jwt_required()
@requires(Capability.REVIEW_DOCUMENTS)
def review_user_document(user_id, doc_type):
    user = _get_user(user_id)
    data = DocumentReviewIn.model_validate(request.get_json(silent=True) or {})
    document = UserDocument.query.filter_by(user_id=user.id, doc_type=doc_type).first()
    if document is None:
        raise NotFound('Document not found for this user')

    document.status = data.status
    document.admin_comments = data.admin_comments
    document.verified_at = utcnow()
    document.verified_by = current_user().id
    db.session.commit()
    logger.info("Document %s of user %s marked %s", doc_type, user.id, data.status)
    return jsonify({'message': f'Document {data.status.lower()}', 'user': user.to_dict()}), 200


# ==========================================
# ADMIN ROUTES (Settings)
# ==========================================

@admin_bp.route('/settings', methods=['GET'])
@jwt_required()
@requires(Capability.MANAGE_SETTINGS)
def fetch_settings_admin():
    return jsonify(get_site_settings().admin_dict()), 200


@admin_bp.route('/settings', methods=['PUT'])
@jwt_required()
@requires(Capability.MANAGE_SETTINGS)
def modify_settings():
    data = SettingsIn.model_validate(request.get_json(silent=True) or {})
    changes = {
        field: value for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in _NULLABLE_SETTINGS
    }
    # An empty password field means "keep the stored one"
    if not changes.get('smtp_pass'):
        changes.pop('smtp_pass', None)

    settings = update_site_settings(changes)
    return jsonify({'message': 'Settings updated successfully', 'settings': settings.admin_dict()}), 200


# ==========================================
# ADMIN ROUTES (Bookings)
# ==========================================

@admin_bp.route('/bookings', methods=['GET'])
@jwt_required()
@requires(Capability.VIEW_ALL_BOOKINGS)
def list_all_bookings():
    params = PageParams.model_validate(request.args.to_dict())
    return jsonify(bookings.list_bookings(params)), 200


@admin_bp.route('/bookings/<int:booking_id>/status', methods=['PUT'])
@jwt_required()
@requires(Capability.CHANGE_BOOKING_STATUS)
def change_booking_status(booking_id):
    data = BookingStatusIn.model_validate(request.get_json(silent=True) or {})
    booking = bookings.get_booking(booking_id)
    booking, changed = bookings.set_status(booking, data.status)
    message = 'Booking status updated' if changed else 'Booking already has this status'
    return jsonify({'message': message, 'booking': booking.to_dict()}), 200


# ==========================================
# DASHBOARD & REPORTS
# ==========================================

@admin_bp.route('/stats', methods=['GET'])
@jwt_required()
@requires(Capability.VIEW_REPORTS)
def admin_dashboard_stats():
    return jsonify(bookings.dashboard_stats()), 200


@admin_bp.route('/reports', methods=['GET'])
@jwt_required()
@requires(Capability.VIEW_REPORTS)
def booking_reports():
    params = ReportParams.model_validate(request.args.to_dict())
    return jsonify(bookings.report_summary(params)), 200


@admin_bp.route('/reports/export', methods=['POST'])
@jwt_required()
@requires(Capability.VIEW_REPORTS)
def trigger_report_export():
    """Starts the background CSV export job; the file arrives by email."""
    params = ReportParams.model_validate(request.get_json(silent=True) or {})
    user = current_user()
    logger.info("Queueing CSV report export for user %s", user.id)

    if not notifications.send_report_export(user.email, params.model_dump(mode='json')):
        raise UpstreamError('Report export could not be queued. Please try again later.')
    return jsonify({'message': 'Export started. Check your email.'}), 202
