import secrets
import threading
import time
from typing import Callable, Dict, Optional

import bcrypt

OTP_CODE_LENGTH = 6


class OtpError(Exception):
    pass


class OtpStore:
    """In-memory one-time codes keyed by account identifier.

    Entries hold a bcrypt hash of the code, an arbitrary payload and an
    expiry. Expiry is checked on lookup; nothing survives a restart.
    """

    def __init__(
        self,
        ttl_seconds: int = 600,
        max_attempts: int = 5,
        code_length: int = OTP_CODE_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.code_length = code_length
        self._clock = clock
        self._entries: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def generate_code(self) -> str:
        upper_bound = 10**self.code_length
        return f"{secrets.randbelow(upper_bound):0{self.code_length}d}"

    def issue(self, key: str, payload: Optional[Dict] = None) -> str:
        code = self.generate_code()
        entry = {
            "code_hash": bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt()),
            "payload": dict(payload or {}),
            "expires_at": self._clock() + self.ttl_seconds,
            "failed_attempts": 0,
        }
        with self._lock:
            self._drop_expired(self._clock())
            self._entries[key] = entry
        return code

    def verify(self, key: str, code: str) -> Dict:
        candidate = str(code or "").strip()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                raise OtpError("No verification request found. Please request a new code.")

            if entry["expires_at"] <= self._clock():
                del self._entries[key]
                raise OtpError("The verification code has expired. Please request a new one.")

            if not (candidate.isdigit() and len(candidate) == self.code_length) or not bcrypt.checkpw(
                candidate.encode("utf-8"), entry["code_hash"]
            ):
                entry["failed_attempts"] += 1
                if entry["failed_attempts"] >= self.max_attempts:
                    del self._entries[key]
                    raise OtpError(
                        "Too many incorrect attempts. Please request a new verification code."
                    )
                raise OtpError("The verification code is incorrect.")

            return dict(entry["payload"])

    def discard(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _drop_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry["expires_at"] <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def purge_expired(self) -> int:
        with self._lock:
            return self._drop_expired(self._clock())
