import bcrypt

from heritage_lanka.config.settings import get_settings


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=get_settings().security.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed or not hashed.startswith(("$2b$", "$2a$", "$2y$")):
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
