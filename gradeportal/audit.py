"""
Audit logging for grade and attendance changes.
Entries are appended to a local log file, one line per change.
"""
import os
import json
import logging
from datetime import datetime

from .config import config

logger = logging.getLogger(__name__)


def audit_log(action: str, details: str = "", user: str = "instructor"):
    """Append one audit entry. Failures are logged and never raised."""
    try:
        timestamp = datetime.now().isoformat()
        log_entry = f"{timestamp} | {user} | {action} | {details}\n"

        os.makedirs(os.path.dirname(config.audit_log_file) or ".", exist_ok=True)
        with open(config.audit_log_file, 'a') as f:
            f.write(log_entry)
    except OSError as e:
        logger.warning("Audit log error: %s", e)


def audit_change(user, entity_type: str, entity_id, old_values, new_values):
    """Record an UPDATE entry with before/after values."""
    details = "{}:{} {} -> {}".format(
        entity_type,
        entity_id,
        json.dumps(old_values, sort_keys=True),
        json.dumps(new_values, sort_keys=True),
    )
    audit_log("UPDATE", details, user=str(user))


def get_audit_logs(limit: int = 100):
    """Retrieve recent audit log entries, newest first."""
    if not os.path.exists(config.audit_log_file):
        return []

    with open(config.audit_log_file, 'r') as f:
        lines = f.readlines()

    recent = lines[-limit:] if len(lines) > limit else lines
    logs = []
    for line in recent:
        parts = line.rstrip('\n').split(' | ', 3)
        if len(parts) == 4:
            logs.append({
                'timestamp': parts[0],
                'user': parts[1],
                'action': parts[2],
                'details': parts[3],
            })
    return logs[::-1]
