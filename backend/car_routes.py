from flask import Blueprint, jsonify, request

import bookings
import catalog
from schemas import AvailabilityWindow, CarSearchParams

cars_bp = Blueprint('cars', __name__, url_prefix='/api/cars')


# ==========================================
# PUBLIC CATALOG
# ==========================================

@cars_bp.route('', methods=['GET'])
def browse_cars():
    """Search with filters; pagination happens after the availability check."""
    params = CarSearchParams.model_validate(request.args.to_dict())
    return jsonify(catalog.search_cars(params)), 200


@cars_bp.route('/<int:car_id>', methods=['GET'])
def car_details(car_id):
    car = catalog.get_car(car_id)
    return jsonify(car.to_dict()), 200


@cars_bp.route('/<int:car_id>/quote', methods=['GET'])
def price_quote(car_id):
    car = catalog.get_car(car_id)
    window = AvailabilityWindow.model_validate(request.args.to_dict())
    return jsonify(bookings.quote(car, window.start_date, window.end_date)), 200
