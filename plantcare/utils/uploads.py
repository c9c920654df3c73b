import os
import random
import time

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import NotFoundError, ValidationError


def is_image(file_storage):
    return bool(file_storage and (file_storage.mimetype or "").startswith("image/"))


def _file_size(file_storage):
    stream = file_storage.stream
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


def unique_name(prefix, original):
    ext = os.path.splitext(secure_filename(original or ""))[1].lower()
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


def save_image(file_storage, prefix, folder=None, max_size=None):
    """Validate and store an uploaded image, returning the stored filename.

    Returns ``None`` when no file was sent.
    """
    if file_storage is None or not file_storage.filename:
        return None
    if not is_image(file_storage):
        raise ValidationError("Only image files are allowed!")
    max_size = max_size or current_app.config["MAX_IMAGE_SIZE"]
    if _file_size(file_storage) > max_size:
        raise ValidationError(f"File is too large. Maximum size is {max_size // (1024 * 1024)}MB.")

    folder = folder or current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    filename = unique_name(prefix, file_storage.filename)
    file_storage.save(os.path.join(folder, filename))
    current_app.logger.info("File uploaded: %s", filename)
    return filename


def upload_path(filename, folder=None):
    folder = os.path.abspath(folder or current_app.config["UPLOAD_FOLDER"])
    path = os.path.abspath(os.path.join(folder, filename))
    if os.path.dirname(path) != folder:
        raise NotFoundError("Image not found")
    return path


def remove_upload(filename, folder=None):
    """Delete a stored upload. A missing file is not an error."""
    if not filename:
        return False
    path = upload_path(filename, folder)
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    current_app.logger.info("Removed upload: %s", filename)
    return True
