"""
Car catalog: admin CRUD and the public search.
"""

import logging
import math

from sqlalchemy import or_

from database import db
from errors import Conflict, NotFound
from models import Booking, BookingStatus, Car, CarAvailability
from schemas import CarIn

logger = logging.getLogger(__name__)


def get_car(car_id):
    try:
        car = db.session.get(Car, int(car_id))
    except (TypeError, ValueError):
        car = None
    if car is None:
        raise NotFound('Car not found')
    return car


def _apply(car, data: CarIn):
    car.name = data.name
    car.car_type = data.type
    car.description = data.description
    car.long_description = data.long_description
    car.price_per_hour = data.price_per_hour
    car.min_negotiable_price = data.min_negotiable_price
    car.max_negotiable_price = data.max_negotiable_price
    car.discount_percent = data.discount_percent
    car.image_urls = list(data.image_urls)
    car.features = list(data.features)
    car.seats = data.seats
    car.engine = data.engine
    car.transmission = data.transmission
    car.fuel_type = data.fuel_type
    car.rating = data.rating
    car.reviews = data.reviews
    car.location = data.location
    car.ai_hint = data.ai_hint
    # Replacing the collection deletes the old windows (delete-orphan)
    car.availability = [
        CarAvailability(start_date=w.start_date, end_date=w.end_date) for w in data.availability
    ]


def create_car(data: CarIn):
    car = Car(booking_version=0)
    _apply(car, data)
    db.session.add(car)
    db.session.commit()
    logger.info("Car %s created: %s", car.id, car.name)
    return car


def update_car(car, changes):
    """
    Partial update. The changes are merged over the stored record and the
    result is validated as a whole, so cross-field rules such as the
    negotiable price bounds hold for the merged car.
    """
    merged = car.to_dict()
    merged.pop('id', None)
    # Field names and camelCase aliases are both accepted
    aliases = {name: field.alias or name for name, field in CarIn.model_fields.items()}
    merged.update({aliases.get(key, key): value for key, value in (changes or {}).items()})
    data = CarIn.model_validate(merged)
    _apply(car, data)
    db.session.commit()
    logger.info("Car %s updated", car.id)
    return car


def delete_car(car):
    active = Booking.query.filter(
        Booking.car_id == car.id,
        Booking.status.in_(BookingStatus.BLOCKING),
    ).count()
    if active:
        raise Conflict('Cannot delete car: it has active bookings.')
    car_id = car.id
    db.session.delete(car)
    db.session.commit()
    logger.info("Car %s deleted", car_id)


def search_cars(params):
    query = Car.query
    if params.q:
        query = query.filter(or_(
            Car.name.icontains(params.q, autoescape=True),
            Car.description.icontains(params.q, autoescape=True),
        ))
    if params.type:
        query = query.filter(Car.car_type == params.type)
    if params.min_price is not None:
        query = query.filter(Car.price_per_hour >= params.min_price)
    if params.max_price is not None:
        query = query.filter(Car.price_per_hour <= params.max_price)
    if params.location:
        query = query.filter(Car.location.icontains(params.location, autoescape=True))

    cars = query.order_by(Car.id).all()

    if params.start_date is not None:
        start, end = params.start_date, params.end_date
        busy = {
            row.car_id for row in
            Booking.blocking_overlaps(start, end).with_entities(Booking.car_id).distinct()
        }
        cars = [
            c for c in cars
            if c.id not in busy and any(w.covers(start, end) for w in c.availability)
        ]

    # Paginate only after the availability filter
    total = len(cars)
    offset = (params.page - 1) * params.limit
    page = cars[offset:offset + params.limit]
    return {
        'data': [c.to_dict() for c in page],
        'totalItems': total,
        'totalPages': math.ceil(total / params.limit) if total else 0,
        'currentPage': params.page,
    }
