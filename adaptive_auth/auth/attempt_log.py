# =============================================================================
# ADAPTIVE AUTH - FAILED ATTEMPT LOG
# =============================================================================
# File: auth/attempt_log.py
# Description: Append-only text file of failed login attempts
# =============================================================================

from typing import Optional
from datetime import datetime
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

UNKNOWN_IP = "IP_INCONNUE"


def format_attempt_line(login: str, ip: Optional[str], moment: Optional[datetime] = None) -> str:
    """
    Build one log line.

    Example:
        [2024-05-01 13:37:00] Tentative échouée - IP: 10.0.0.1, Login: alice
    """
    stamp = (moment or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    return f"[{stamp}] Tentative échouée - IP: {ip or UNKNOWN_IP}, Login: {login}\n"


class AttemptLogWriter:
    """
    Appends a line per failed login to a UTF-8 text file.

    The file is an audit trail for administrators; a write failure is
    reported through ``logging`` and never interrupts authentication.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def write(self, login: str, ip: Optional[str]) -> bool:
        line = format_attempt_line(login, ip)
        try:
            if self.path.parent != Path("."):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)
            return True
        except OSError as e:
            logger.warning(f"Could not write failed attempt to {self.path}: {e}")
            return False
