from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime

from .utils.due_dates import classify_reminder, hours_until

db = SQLAlchemy()

SUNLIGHT_LEVELS = ("low", "medium", "high")
REMINDER_TYPES = ("watering", "fertilizing", "repotting", "pruning", "other")


def _iso(value):
    return value.isoformat() if value else None


def upload_url(filename):
    return f"/api/uploads/{filename}" if filename else None


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    avatar = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    plants = db.relationship("Plant", backref="owner", lazy=True, cascade="all, delete-orphan")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "avatarUrl": upload_url(self.avatar),
            "createdAt": _iso(self.created_at),
        }


class Plant(db.Model):
    __tablename__ = "plants"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    species = db.Column(db.String(100))
    location = db.Column(db.String(100))
    water_frequency = db.Column(db.String(100))
    sunlight = db.Column(db.String(10))
    notes = db.Column(db.Text)
    image = db.Column(db.String(255))
    last_watered = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    reminders = db.relationship("Reminder", backref="plant", lazy=True, cascade="all, delete-orphan")

    def summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "species": self.species,
            "image": self.image,
            "imageUrl": upload_url(self.image),
        }

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "species": self.species,
            "location": self.location,
            "waterFrequency": self.water_frequency,
            "sunlight": self.sunlight,
            "notes": self.notes,
            "image": self.image,
            "imageUrl": upload_url(self.image),
            "lastWatered": _iso(self.last_watered),
            "createdAt": _iso(self.created_at),
        }


class Reminder(db.Model):
    __tablename__ = "reminders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    plant_id = db.Column(db.Integer, db.ForeignKey("plants.id"), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)
    completed = db.Column(db.Boolean, default=False, nullable=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self, now=None):
        now = now or datetime.utcnow()
        return {
            "id": self.id,
            "userId": self.user_id,
            "plantId": self.plant_id,
            "plant": self.plant.summary() if self.plant else None,
            "type": self.type,
            "dueDate": _iso(self.due_date),
            "completed": self.completed,
            "notes": self.notes,
            "status": classify_reminder(now, self.due_date, self.completed).value,
            "hoursUntilDue": hours_until(now, self.due_date),
            "createdAt": _iso(self.created_at),
        }
