import logging

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

import bookings
import catalog
from database import db
from errors import ValidationError
from models import DocumentStatus, DocumentType, UserDocument
from permissions import Capability, current_user, requires
from schemas import FavoriteIn, ProfileUpdateIn
from uploads import save_upload

logger = logging.getLogger(__name__)

profile_bp = Blueprint('profile', __name__, url_prefix='/api/profile')


# ==========================================
# PROFILE
# ==========================================

@profile_bp.route('', methods=['GET'])
@jwt_required()
@requires(Capability.MANAGE_OWN_PROFILE)
def my_profile():
    return jsonify(current_user().to_dict()), 200


@profile_bp.route('', methods=['PUT'])
@jwt_required()
@requires(Capability.MANAGE_OWN_PROFILE)
def update_my_profile():
    data = ProfileUpdateIn.model_validate(request.get_json(silent=True) or {})
    user = current_user()

    if data.name is not None:
        user.name = data.name
    if data.address is not None:
        user.address = data.address.model_dump()
    if data.location is not None:
        user.location = data.location

    db.session.commit()
    return jsonify({'message': 'Profile updated successfully', 'user': user.to_dict()}), 200


@profile_bp.route('/bookings', methods=['GET'])
@jwt_required()
@requires(Capability.MANAGE_OWN_PROFILE)
def my_bookings_history():
    """Fetches booking history for the current user, latest start first."""
    history = bookings.bookings_for_user(current_user())
    return jsonify([b.to_dict() for b in history]), 200


# --- Favorites (set semantics) ---

@profile_bp.route('/favorites', methods=['GET'])
@jwt_required()
@requires(Capability.MANAGE_OWN_PROFILE)
def my_favorites():
    return jsonify([car.to_dict() for car in current_user().favorite_cars]), 200


@profile_bp.route('/favorites', methods=['POST'])
@jwt_required()
@requires(Capability.MANAGE_OWN_PROFILE)
def add_favorite():
    data = FavoriteIn.model_validate(request.get_json(silent=True) or {})
    car = catalog.get_car(data.car_id)
    user = current_user()

    if car not in user.favorite_cars:
        user.favorite_cars.append(car)
        db.session.commit()
    return jsonify({'message': 'Car added to favorites', 'favoriteCarIds': [str(c.id) for c in user.favorite_cars]}), 200


@profile_bp.route('/favorites/<int:car_id>', methods=['DELETE'])
@jwt_required()
@requires(Capability.MANAGE_OWN_PROFILE)
def remove_favorite(car_id):
    user = current_user()
    car = next((c for c in user.favorite_cars if c.id == car_id), None)

    if car is not None:
        user.favorite_cars.remove(car)
        db.session.commit()
    return jsonify({'message': 'Car removed from favorites', 'favoriteCarIds': [str(c.id) for c in user.favorite_cars]}), 200


# --- Verification documents ---

@profile_bp.route('/documents', methods=['POST'])
@jwt_required()
@requires(Capability.MANAGE_OWN_PROFILE)
def upload_document():
    """A new upload of a type the user already has replaces the old one."""
    doc_type = request.form.get('documentType')
    if doc_type not in DocumentType.ALL:
        raise ValidationError('Invalid document type.', errors={'documentType': [f"Must be one of {', '.join(DocumentType.ALL)}"]})

    stored = save_upload(request.files.get('file'), kind='documents')
    user = current_user()

    UserDocument.query.filter_by(user_id=user.id, doc_type=doc_type).delete()
    document = UserDocument(
        user_id=user.id,
        doc_type=doc_type,
        file_name=stored['originalName'],
        file_path=stored['filePath'],
        status=DocumentStatus.PENDING,
    )
    db.session.add(document)
    db.session.commit()
    logger.info("User %s uploaded %s document", user.id, doc_type)

    return jsonify({'message': 'Document uploaded successfully', 'document': document.to_dict(),
                    'user': user.to_dict()}), 201
