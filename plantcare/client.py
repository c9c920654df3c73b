"""Python client for the Plant Care API.

:class:`SessionResolver` reconciles the client's identity sources into one
effective user. Precedence is fixed: the user this client logged in with,
then the server's session endpoint, then the cached user file, then a
synthesized guest. The first non-empty source wins.
"""
import json
import logging
import os
import secrets
from collections import namedtuple
from datetime import datetime

import requests

from .utils.due_dates import due_soon_notification, highlight_rows

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = os.path.join(os.path.expanduser("~"), ".plantcare", "user.json")

EffectiveUser = namedtuple("EffectiveUser", ["user", "source"])


class ClientError(Exception):
    def __init__(self, status_code, message):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class LoginRequired(Exception):
    """No identity source produced a user and guests are not allowed."""


def make_guest_user():
    return {
        "id": "temp-user-id",
        "name": "Guest User",
        "email": "guest@example.com",
        "accessToken": f"temp-token-{secrets.token_hex(8)}",
        "guest": True,
    }


def pick_effective_user(library=None, fetched=None, cached=None):
    for source, user in (("library", library), ("session", fetched), ("cache", cached)):
        if user:
            return EffectiveUser(user, source)
    return None


class UserCache:
    """JSON file holding the last signed-in user."""

    def __init__(self, path=DEFAULT_CACHE_PATH):
        self.path = path

    def load(self):
        try:
            with open(self.path) as f:
                user = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.error("Discarding unreadable cached user %s: %s", self.path, e)
            self.clear()
            return None
        if not isinstance(user, dict):
            logger.error("Discarding malformed cached user %s", self.path)
            self.clear()
            return None
        return user

    def save(self, user):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(user, f)

    def clear(self):
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


class SessionResolver:
    def __init__(self, client, cache=None, allow_guest=True):
        self.client = client
        self.cache = cache if cache is not None else client.cache
        self.allow_guest = allow_guest

    def fetch_session_user(self):
        try:
            data = self.client.session_status()
        except (requests.RequestException, ClientError, ValueError) as e:
            logger.warning("Failed to fetch direct session: %s", e)
            return None
        return data.get("user") if isinstance(data, dict) else None

    def resolve(self):
        """Return the current :class:`EffectiveUser`.

        Re-evaluated on every call; the answer changes as sources fill in.
        """
        library = self.client.user
        fetched = None if library else self.fetch_session_user()
        cached = None if (library or fetched) else self.cache.load()

        effective = pick_effective_user(library, fetched, cached)
        if effective:
            return effective
        if not self.allow_guest:
            raise LoginRequired("Not logged in")
        logger.info("No stored user found, using guest user")
        return EffectiveUser(make_guest_user(), "guest")


class PlantCareClient:
    def __init__(self, base_url="http://localhost:5000/api", token=None, cache=None,
                 session=None, timeout=30):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.user = None
        self.cache = cache if cache is not None else UserCache()
        self.http = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, **kwargs):
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = self.http.request(method, f"{self.base_url}{path}", headers=headers,
                                 timeout=self.timeout, **kwargs)
        if not resp.ok:
            try:
                message = resp.json().get("error") or resp.reason
            except ValueError:
                message = resp.text or resp.reason
            raise ClientError(resp.status_code, message)
        return resp.json()

    # --- auth

    def _signed_in(self, data):
        self.token = data["token"]
        self.user = dict(data["user"], accessToken=self.token)
        try:
            self.cache.save(self.user)
        except OSError as e:
            logger.error("Error saving user cache: %s", e)
        return self.user

    def register(self, name, email, password):
        return self._signed_in(self._request("POST", "/users/register",
                                             json={"name": name, "email": email, "password": password}))

    def login(self, email, password):
        return self._signed_in(self._request("POST", "/users/login",
                                             json={"email": email, "password": password}))

    def logout(self):
        try:
            self._request("POST", "/auth/logout")
        finally:
            self.token = None
            self.user = None
            self.cache.clear()

    def session_status(self):
        return self._request("GET", "/auth/session")

    def resolver(self, allow_guest=True):
        return SessionResolver(self, allow_guest=allow_guest)

    # --- profile

    def me(self):
        return self._request("GET", "/users/me")

    def update_name(self, name):
        return self._request("PUT", "/users/me", json={"name": name})

    def update_password(self, current_password, new_password):
        return self._request("PUT", "/users/me/password",
                             json={"currentPassword": current_password, "newPassword": new_password})

    def update_avatar(self, fileobj, filename, mimetype="image/jpeg"):
        return self._request("PUT", "/users/me/avatar", files={"avatar": (filename, fileobj, mimetype)})

    # --- plants

    def plants(self):
        return self._request("GET", "/plants")

    def plant(self, plant_id):
        return self._request("GET", f"/plants/{plant_id}")

    def create_plant(self, image=None, **fields):
        files = {"plantImage": image} if image else None
        return self._request("POST", "/plants", data=fields, files=files)

    def update_plant(self, plant_id, image=None, delete_image=False, **fields):
        if delete_image:
            fields["deleteImage"] = "true"
        files = {"plantImage": image} if image else None
        return self._request("PUT", f"/plants/{plant_id}", data=fields, files=files)

    def water_plant(self, plant_id):
        return self._request("POST", f"/plants/{plant_id}/water")

    def delete_plant(self, plant_id):
        return self._request("DELETE", f"/plants/{plant_id}")

    # --- reminders

    def reminders(self):
        return self._request("GET", "/reminders")

    def reminder(self, reminder_id):
        return self._request("GET", f"/reminders/{reminder_id}")

    def create_reminder(self, plant_id, type, due_date, notes=None):
        if isinstance(due_date, datetime):
            due_date = due_date.isoformat()
        body = {"plantId": plant_id, "type": type, "dueDate": due_date}
        if notes:
            body["notes"] = notes
        return self._request("POST", "/reminders", json=body)

    def update_reminder(self, reminder_id, **fields):
        return self._request("PUT", f"/reminders/{reminder_id}", json=fields)

    def complete_reminder(self, reminder_id):
        return self._request("PATCH", f"/reminders/{reminder_id}/complete")

    def delete_reminder(self, reminder_id):
        return self._request("DELETE", f"/reminders/{reminder_id}")

    def schedule(self, start=None, end=None):
        params = {k: v.isoformat() if isinstance(v, datetime) else v
                  for k, v in (("start", start), ("end", end)) if v}
        return self._request("GET", "/reminders/schedule", params=params)

    def due_reminders(self, now=None):
        """Fetch reminders and flag the ones due soon or overdue.

        Returns ``(rows, notification)`` where ``rows`` pairs every reminder
        with its highlight flag and ``notification`` is the one summary
        message for this pass (or ``None``).
        """
        reminders = self.reminders()
        return highlight_rows(reminders, now), due_soon_notification(reminders, now)

    # --- AI

    def analyze_plant(self, fileobj, filename, mimetype="image/jpeg", language="English"):
        return self._request("POST", "/ai/analyze-plant-status",
                             files={"plantImage": (filename, fileobj, mimetype)},
                             data={"language": language})
