import logging
import os
import time
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from errors import PayloadTooLarge, ValidationError

logger = logging.getLogger(__name__)

IMAGE_TYPES = {'image/jpeg', 'image/png', 'image/gif', 'image/webp'}
DOCUMENT_TYPES = IMAGE_TYPES | {'application/pdf'}

# Sub-folder of UPLOAD_FOLDER -> accepted mime types
KINDS = {
    'images': IMAGE_TYPES,
    'documents': DOCUMENT_TYPES,
}


def _size_of(file_storage):
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def save_upload(file_storage, kind='images'):
    """
    Stores an uploaded file under UPLOAD_FOLDER/<kind> with a unique name and
    returns its public path.
    """
    if file_storage is None or not file_storage.filename:
        raise ValidationError('No file uploaded.')

    allowed = KINDS[kind]
    if file_storage.mimetype not in allowed:
        raise ValidationError(f"Invalid file type. Allowed: {', '.join(sorted(allowed))}.")

    limit = current_app.config['MAX_UPLOAD_BYTES']
    if _size_of(file_storage) > limit:
        raise PayloadTooLarge(f"File too large. Maximum size is {limit // (1024 * 1024)}MB.")

    original_name = file_storage.filename
    stem, ext = os.path.splitext(secure_filename(original_name) or 'upload')
    stored_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{stem}{ext.lower()}"

    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], kind)
    os.makedirs(folder, exist_ok=True)
    file_storage.save(os.path.join(folder, stored_name))
    logger.info("Stored upload %s as %s/%s", original_name, kind, stored_name)

    return {
        'success': True,
        'filePath': f"/assets/{kind}/{stored_name}",
        'fileName': stored_name,
        'originalName': original_name,
    }
