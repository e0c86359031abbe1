import os
import uuid
from flask import current_app
from werkzeug.utils import secure_filename

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
ALLOWED_MIME_TYPES = {'image/jpeg', 'image/png', 'image/gif', 'image/webp'}


def allowed_file(file):
    """Check both the extension and the sniffed content type of an uploaded image."""
    # libmagic is only needed once a file actually arrives
    import magic

    filename_ok = '.' in file.filename and file.filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS
    mime = magic.from_buffer(file.read(2048), mime=True)
    file.seek(0)
    return filename_ok and mime in ALLOWED_MIME_TYPES


def save_file(file, folder, old_url=None):
    """
    Store ``file`` under UPLOAD_FOLDER/<folder> with a uuid prefix.

    Returns the public ``/uploads/<folder>/<name>`` URL. A previous file
    referenced by ``old_url`` is removed once the new one is written.
    """
    root = current_app.config.get('UPLOAD_FOLDER', 'uploads')
    filename = secure_filename(file.filename)
    unique_filename = f"{uuid.uuid4().hex}_{filename}"
    upload_folder = os.path.join(root, folder)
    os.makedirs(upload_folder, exist_ok=True)
    file.save(os.path.join(upload_folder, unique_filename))

    if old_url and old_url.startswith(f"/uploads/{folder}/"):
        old_path = os.path.join(root, old_url[len("/uploads/"):])
        if os.path.exists(old_path):
            try:
                os.remove(old_path)
            except OSError:
                current_app.logger.warning("Could not remove replaced upload %s", old_path)

    return f"/uploads/{folder}/{unique_filename}"
