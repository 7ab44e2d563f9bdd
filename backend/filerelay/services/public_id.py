"""Public file identifiers: 8 random alphanumerics plus the original extension."""
import secrets
import string

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
ID_LENGTH = 8


def file_extension(filename: str) -> str:
    """Return ``.ext`` from the last dot, or "" when there is none or it ends the name."""
    dot = filename.rfind(".")
    if dot == -1 or dot == len(filename) - 1:
        return ""
    return filename[dot:]


def generate_public_id(filename: str) -> str:
    random_part = "".join(secrets.choice(ALPHABET) for _ in range(ID_LENGTH))
    return random_part + file_extension(filename)


def split_hash(public_id: str) -> str:
    """The random part shown to clients as ``hash``."""
    return public_id.split(".", 1)[0]
