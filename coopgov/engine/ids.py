# coopgov/engine/ids.py
import secrets
import string
import threading

ALPHABET = string.ascii_letters + string.digits
ID_PREFIX = "prop_"
ID_LENGTH = 6

# Every id handed out stays here for the life of the process (one short
# string per proposal); dropping entries would allow a repeat. Across
# restarts the proposals primary key is what rejects a collision.
_issued: set[str] = set()
_lock = threading.Lock()


def generate_proposal_id() -> str:
    """prop_ + 6 alphanumerics, never repeated within this process."""
    with _lock:
        while True:
            pid = ID_PREFIX + "".join(secrets.choice(ALPHABET) for _ in range(ID_LENGTH))
            if pid not in _issued:
                _issued.add(pid)
                return pid
