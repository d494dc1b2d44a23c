"""Password hashing with bcrypt."""

import bcrypt

# bcrypt only looks at the first 72 bytes and newer releases raise on longer input
_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted one-way password hashing.

    ``rounds`` is the bcrypt cost factor (2^rounds iterations). 12 in production, tests
    drop it to 4 so the suite doesn't spend seconds hashing.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(self._encode(password), bcrypt.gensalt(rounds=self.rounds)).decode(
            "ascii"
        )

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(self._encode(password), password_hash.encode("ascii"))
        except ValueError:
            # Not a bcrypt hash at all
            return False
