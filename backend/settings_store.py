"""
Site settings store.

Settings are loaded at most once per request (kept on flask.g) and, when a
redis cache is configured, shared across requests until an admin update
invalidates them.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import redis
from flask import current_app, g
from sqlalchemy.exc import SQLAlchemyError

from database import db
from models import SETTINGS_DOC_ID, SiteSettings

logger = logging.getLogger(__name__)

CACHE_KEY = 'site_settings'


@dataclass(frozen=True)
class SiteSettingsView:
    site_title: str = 'Travel Yatra'
    default_currency: str = 'INR'
    maintenance_mode: bool = False
    session_timeout_minutes: int = 60
    global_discount_percent: float = 0.0
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_secure: Optional[bool] = None
    email_from: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            site_title=row.site_title,
            default_currency=row.default_currency,
            maintenance_mode=row.maintenance_mode,
            session_timeout_minutes=row.session_timeout_minutes,
            global_discount_percent=row.global_discount_percent,
            smtp_host=row.smtp_host,
            smtp_port=row.smtp_port,
            smtp_user=row.smtp_user,
            smtp_pass=row.smtp_pass,
            smtp_secure=row.smtp_secure,
            email_from=row.email_from,
            updated_at=row.updated_at.isoformat() + 'Z' if row.updated_at else None,
        )

    def public_dict(self):
        """Fields safe to show to anonymous visitors (no SMTP details)."""
        return {
            'siteTitle': self.site_title,
            'defaultCurrency': self.default_currency,
            'maintenanceMode': self.maintenance_mode,
            'sessionTimeoutMinutes': self.session_timeout_minutes,
            'globalDiscountPercent': self.global_discount_percent,
        }

    def admin_dict(self):
        data = self.public_dict()
        data.update({
            'id': SETTINGS_DOC_ID,
            'smtpHost': self.smtp_host,
            'smtpPort': self.smtp_port,
            'smtpUser': self.smtp_user,
            'smtpPassSet': bool(self.smtp_pass),
            'smtpSecure': self.smtp_secure,
            'emailFrom': self.email_from,
            'updatedAt': self.updated_at,
        })
        return data


def _cache():
    return current_app.extensions.get('redis_cache')


def _read_cached():
    cache = _cache()
    if cache is None:
        return None
    try:
        raw = cache.get(CACHE_KEY)
    except redis.RedisError as e:
        logger.warning("Redis read for site settings failed: %s", e)
        return None
    if not raw:
        return None
    logger.debug("Cache HIT for site settings")
    return SiteSettingsView(**json.loads(raw))


def _write_cached(settings):
    cache = _cache()
    if cache is None:
        return
    try:
        cache.setex(CACHE_KEY, current_app.config['SETTINGS_CACHE_SECONDS'], json.dumps(asdict(settings)))
    except redis.RedisError as e:
        logger.warning("Redis write for site settings failed: %s", e)


def invalidate_site_settings():
    g.pop('site_settings', None)
    cache = _cache()
    if cache is None:
        return
    try:
        cache.delete(CACHE_KEY)
    except redis.RedisError as e:
        logger.warning("Redis cache clear failed: %s", e)


def _load_from_db():
    try:
        row = db.session.get(SiteSettings, SETTINGS_DOC_ID)
    except SQLAlchemyError:
        # Serve defaults rather than failing every caller of the settings
        logger.exception("Error fetching site settings; using defaults")
        db.session.rollback()
        return SiteSettingsView()
    return SiteSettingsView.from_row(row) if row else SiteSettingsView()


def get_site_settings():
    settings = g.get('site_settings')
    if settings is not None:
        return settings
    settings = _read_cached()
    if settings is None:
        settings = _load_from_db()
        _write_cached(settings)
    g.site_settings = settings
    return settings


def update_site_settings(changes):
    """Upserts the singleton row with the given snake_case field changes."""
    row = db.session.get(SiteSettings, SETTINGS_DOC_ID)
    if row is None:
        row = SiteSettings(id=SETTINGS_DOC_ID)
        db.session.add(row)
    for field, value in changes.items():
        setattr(row, field, value)
    db.session.commit()
    invalidate_site_settings()
    logger.info("Site settings updated: %s", sorted(changes))
    return get_site_settings()
