from flask import Blueprint, request, jsonify, current_app, send_from_directory
from flask_jwt_extended import set_access_cookies, unset_jwt_cookies
from datetime import datetime
import os

from .auth import auth_required, current_user_id, issue_token, user_from_token, bearer_token
from .errors import APIError, AuthenticationError, NotFoundError, ValidationError
from .models import db, User, Plant, Reminder, SUNLIGHT_LEVELS, REMINDER_TYPES
from .services import plant_health
from .utils.due_dates import parse_datetime, due_soon_notification, calendar_events, is_due_soon_or_overdue
from .utils.uploads import save_image, remove_upload, upload_path

api = Blueprint("api", __name__)

MIN_PASSWORD_LENGTH = 6


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _truthy(value):
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _auth_response(user, status):
    token = issue_token(user)
    response = jsonify({"token": token, "user": user.to_dict()})
    set_access_cookies(response, token)
    return response, status


@api.route("/", methods=["GET"])
def home():
    return jsonify({"message": "Plant Care API is live!"})


# --- Auth -----------------------------------------------------------

@api.route("/users/register", methods=["POST"])
def register():
    data = _payload()
    name = _clean(data.get("name"))
    email = (_clean(data.get("email")) or "").lower()
    password = data.get("password") or ""

    if not name or not email or not password:
        raise ValidationError("Please provide all required fields")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if User.query.filter_by(email=email).first():
        raise ValidationError("User already exists")

    user = User(name=name, email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("New user registered: %s", user.email)
    return _auth_response(user, 201)


@api.route("/users/login", methods=["POST"])
def login():
    data = _payload()
    email = (_clean(data.get("email")) or "").lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first() if email else None
    if not user or not user.check_password(password):
        raise ValidationError("Invalid credentials")
    return _auth_response(user, 200)


@api.route("/auth/session", methods=["GET"])
def session_status():
    token = bearer_token() or request.cookies.get(current_app.config["JWT_ACCESS_COOKIE_NAME"])
    if not token:
        return jsonify({})
    try:
        user = user_from_token(token)
    except AuthenticationError as e:
        current_app.logger.info("Session lookup without a valid user: %s", e.details)
        return jsonify({})
    return jsonify({"user": user.to_dict()})


@api.route("/auth/logout", methods=["POST"])
def logout():
    response = jsonify({"message": "Logged out"})
    unset_jwt_cookies(response)
    return response


# --- Profile --------------------------------------------------------

def _me():
    user = db.session.get(User, current_user_id())
    if user is None:
        raise NotFoundError("User not found")
    return user


@api.route("/users/me", methods=["GET"])
@auth_required
def get_profile():
    return jsonify(_me().to_dict())


@api.route("/users/me", methods=["PUT"])
@auth_required
def update_name():
    name = _clean(_payload().get("name"))
    if not name:
        raise ValidationError("Name is required")
    user = _me()
    user.name = name
    db.session.commit()
    return jsonify(user.to_dict())


@api.route("/users/me/password", methods=["PUT"])
@auth_required
def update_password():
    data = _payload()
    current_password = data.get("currentPassword")
    new_password = data.get("newPassword")

    if not current_password or not new_password:
        raise ValidationError("Current and new passwords are required")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")

    user = _me()
    if not user.check_password(current_password):
        raise ValidationError("Incorrect current password")
    user.set_password(new_password)
    db.session.commit()
    return jsonify({"message": "Password updated successfully"})


@api.route("/users/me/avatar", methods=["PUT"])
@auth_required
def update_avatar():
    filename = save_image(request.files.get("avatar"), "avatar")
    if not filename:
        raise ValidationError("No avatar file uploaded")
    user = _me()
    old = user.avatar
    user.avatar = filename
    db.session.commit()
    remove_upload(old)
    return jsonify(user.to_dict())


# --- Plants ---------------------------------------------------------

PLANT_FIELDS = {
    "name": "name",
    "species": "species",
    "location": "location",
    "waterFrequency": "water_frequency",
    "sunlight": "sunlight",
    "notes": "notes",
}


def _owned_plant(plant_id):
    plant = Plant.query.filter_by(id=plant_id, user_id=current_user_id()).first()
    if plant is None:
        raise NotFoundError("Plant not found")
    return plant


def _apply_plant_fields(plant, data):
    for key, attr in PLANT_FIELDS.items():
        if key in data:
            setattr(plant, attr, _clean(data[key]))
    if plant.sunlight is not None:
        plant.sunlight = plant.sunlight.lower()
        if plant.sunlight not in SUNLIGHT_LEVELS:
            raise ValidationError(f"sunlight must be one of: {', '.join(SUNLIGHT_LEVELS)}")
    if not plant.name:
        raise ValidationError("Plant name is required")


@api.route("/plants", methods=["GET"])
@auth_required
def get_plants():
    plants = (Plant.query.filter_by(user_id=current_user_id())
              .order_by(Plant.created_at.desc(), Plant.id.desc()).all())
    return jsonify([p.to_dict() for p in plants])


@api.route("/plants", methods=["POST"])
@auth_required
def create_plant():
    data = _payload()
    plant = Plant(user_id=current_user_id())
    _apply_plant_fields(plant, data)

    plant.image = save_image(request.files.get("plantImage"), "plant")
    db.session.add(plant)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        remove_upload(plant.image)
        raise
    return jsonify(plant.to_dict()), 201


@api.route("/plants/<int:plant_id>", methods=["GET"])
@auth_required
def get_plant(plant_id):
    return jsonify(_owned_plant(plant_id).to_dict())


@api.route("/plants/<int:plant_id>", methods=["PUT"])
@auth_required
def update_plant(plant_id):
    plant = _owned_plant(plant_id)
    data = _payload()
    _apply_plant_fields(plant, data)

    stale_image = None
    new_image = save_image(request.files.get("plantImage"), "plant")
    if new_image:
        stale_image, plant.image = plant.image, new_image
    elif _truthy(data.get("deleteImage", "")):
        stale_image, plant.image = plant.image, None

    db.session.commit()
    remove_upload(stale_image)
    return jsonify(plant.to_dict())


@api.route("/plants/<int:plant_id>/water", methods=["POST"])
@auth_required
def water_plant(plant_id):
    plant = _owned_plant(plant_id)
    plant.last_watered = datetime.utcnow()
    db.session.commit()
    return jsonify(plant.to_dict())


@api.route("/plants/<int:plant_id>", methods=["DELETE"])
@auth_required
def delete_plant(plant_id):
    plant = _owned_plant(plant_id)
    image = plant.image
    removed_reminders = len(plant.reminders)
    # Reminders go with the plant through the relationship cascade.
    db.session.delete(plant)
    db.session.commit()
    remove_upload(image)
    return jsonify({"message": "Plant removed", "removedReminders": removed_reminders})


# --- Reminders ------------------------------------------------------

def _owned_reminder(reminder_id):
    reminder = Reminder.query.filter_by(id=reminder_id, user_id=current_user_id()).first()
    if reminder is None:
        raise NotFoundError("Reminder not found")
    return reminder


def _user_reminders():
    return (Reminder.query.filter_by(user_id=current_user_id())
            .order_by(Reminder.due_date.asc(), Reminder.id.asc()).all())


def _reminder_type(value):
    value = (_clean(value) or "").lower()
    if value not in REMINDER_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(REMINDER_TYPES)}")
    return value


def _due_date(value):
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError("dueDate must be an ISO-8601 date")


@api.route("/reminders", methods=["GET"])
@auth_required
def get_reminders():
    now = datetime.utcnow()
    return jsonify([r.to_dict(now) for r in _user_reminders()])


@api.route("/reminders/due", methods=["GET"])
@auth_required
def get_due_reminders():
    now = datetime.utcnow()
    due = [r.to_dict(now) for r in _user_reminders()
           if is_due_soon_or_overdue(now, r.due_date, r.completed)]
    return jsonify({"reminders": due, "notification": due_soon_notification(due, now)})


@api.route("/reminders/schedule", methods=["GET"])
@auth_required
def get_schedule():
    query = Reminder.query.filter_by(user_id=current_user_id())
    if request.args.get("start"):
        query = query.filter(Reminder.due_date >= _due_date(request.args["start"]))
    if request.args.get("end"):
        query = query.filter(Reminder.due_date <= _due_date(request.args["end"]))
    reminders = query.order_by(Reminder.due_date.asc()).all()
    return jsonify(calendar_events([r.to_dict() for r in reminders]))


@api.route("/reminders", methods=["POST"])
@auth_required
def create_reminder():
    data = _payload()
    plant_id = data.get("plantId")
    if not plant_id or not data.get("type") or not data.get("dueDate"):
        raise ValidationError("plantId, type and dueDate are required")
    try:
        plant = _owned_plant(int(plant_id))
    except (TypeError, ValueError):
        raise ValidationError("plantId must be an integer")

    reminder = Reminder(
        user_id=current_user_id(),
        plant_id=plant.id,
        type=_reminder_type(data["type"]),
        due_date=_due_date(data["dueDate"]),
        completed=False,
        notes=_clean(data.get("notes")),
    )
    db.session.add(reminder)
    db.session.commit()
    return jsonify(reminder.to_dict()), 201


@api.route("/reminders/<int:reminder_id>", methods=["GET"])
@auth_required
def get_reminder(reminder_id):
    return jsonify(_owned_reminder(reminder_id).to_dict())


@api.route("/reminders/<int:reminder_id>", methods=["PUT"])
@auth_required
def update_reminder(reminder_id):
    reminder = _owned_reminder(reminder_id)
    data = _payload()

    if "plantId" in data:
        try:
            reminder.plant_id = _owned_plant(int(data["plantId"])).id
        except (TypeError, ValueError):
            raise ValidationError("plantId must be an integer")
    if "type" in data:
        reminder.type = _reminder_type(data["type"])
    if "dueDate" in data:
        reminder.due_date = _due_date(data["dueDate"])
    if "completed" in data:
        reminder.completed = _truthy(data["completed"])
    if "notes" in data:
        reminder.notes = _clean(data["notes"])

    db.session.commit()
    return jsonify(reminder.to_dict())


@api.route("/reminders/<int:reminder_id>/complete", methods=["PATCH"])
@auth_required
def complete_reminder(reminder_id):
    reminder = _owned_reminder(reminder_id)
    reminder.completed = True
    db.session.commit()
    return jsonify(reminder.to_dict())


@api.route("/reminders/<int:reminder_id>", methods=["DELETE"])
@auth_required
def delete_reminder(reminder_id):
    reminder = _owned_reminder(reminder_id)
    db.session.delete(reminder)
    db.session.commit()
    return jsonify({"message": "Reminder removed"})


# --- Uploads --------------------------------------------------------

@api.route("/uploads/<path:filename>", methods=["GET"])
def serve_upload(filename):
    path = upload_path(filename)
    if not os.path.isfile(path):
        raise NotFoundError("Image not found")
    return send_from_directory(os.path.dirname(path), os.path.basename(path))


# --- AI analysis ----------------------------------------------------

@api.route("/ai/analyze-plant-status", methods=["POST"])
def analyze_plant_status():
    if not current_app.config.get("GEMINI_API_KEY"):
        raise APIError("AI Service is not configured (missing API key).", 500)

    image = request.files.get("plantImage")
    if image is None or not image.filename:
        raise ValidationError("No image file uploaded for analysis.")
    language = _clean(request.form.get("language")) or "English"

    temp_folder = current_app.config["TEMP_UPLOAD_FOLDER"]
    filename = save_image(image, "analyze", folder=temp_folder,
                          max_size=current_app.config["MAX_ANALYSIS_IMAGE_SIZE"])
    try:
        with open(os.path.join(temp_folder, filename), "rb") as f:
            analysis = plant_health.analyze(f.read(), image.mimetype, language)
    finally:
        remove_upload(filename, folder=temp_folder)
    return jsonify({"analysis": analysis})
