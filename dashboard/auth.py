"""
Dashboard sign-in.

The dashboard only depends on the CredentialVerifier interface. The default
implementation reads its users from the DASHBOARD_USERS environment variable:

    DASHBOARD_USERS="alice:admin:<sha256 hex>,bob:viewer:<sha256 hex>"

Passwords are never stored in clear text; generate a hash with
`python -c "import hashlib; print(hashlib.sha256(b'secret').hexdigest())"`.
"""
import hashlib
import hmac
import os

from dotenv import load_dotenv

load_dotenv()

PERMISSIONS = {
    "admin":  {"view", "add", "remove", "export", "archive", "manage_users", "manage_accounts"},
    "viewer": {"view"},
}


class InvalidCredentials(Exception):
    pass


class CredentialVerifier:
    """Anything that turns a username/password into a user dict or raises InvalidCredentials."""

    def verify(self, username, password):
        raise NotImplementedError


def hash_password(password):
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class StaticCredentialVerifier(CredentialVerifier):
    def __init__(self, users):
        """`users` maps username -> {"role": ..., "password_sha256": ..., "name": ...}."""
        for username, user in users.items():
            if user["role"] not in PERMISSIONS:
                raise ValueError(f"Unknown role {user['role']!r} for user {username!r}")
        self.users = users

    @classmethod
    def from_env(cls, value=None):
        value = value if value is not None else os.getenv("DASHBOARD_USERS", "")
        users = {}
        for entry in filter(None, (e.strip() for e in value.split(","))):
            try:
                username, role, digest = entry.split(":")
            except ValueError:
                raise ValueError(f"Malformed DASHBOARD_USERS entry: {entry!r}") from None
            users[username] = {"role": role, "password_sha256": digest.lower(), "name": username}
        return cls(users)

    def verify(self, username, password):
        user = self.users.get(username)
        # Compare against a dummy digest for unknown users too
        expected = user["password_sha256"] if user else hash_password("")
        matches = hmac.compare_digest(expected, hash_password(password))
        if user is None or not matches:
            raise InvalidCredentials("Invalid credentials")
        return {"username": username, "name": user.get("name", username), "role": user["role"]}


def has_permission(user, action):
    if not user:
        return False
    return action in PERMISSIONS.get(user["role"], set())


def is_admin(user):
    return bool(user) and user["role"] == "admin"
