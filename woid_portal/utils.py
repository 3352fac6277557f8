import json
import logging
import os
import re
from typing import Any, Dict

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name: str, log_dir: str = 'logs') -> logging.Logger:
    """Sets up a named logger that writes to logs/<name>.log."""
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)
    log = logging.getLogger(name)
    log.setLevel(logging.INFO)
    if not log.handlers:
        handler = logging.FileHandler(os.path.join(log_dir, f"{name}.log"))
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    return log


def parse_report_details(raw: Any) -> Dict[str, Any]:
    """
    Parses the structured "details" column of a daily report.
    The mobile app writes it as a JSON object, sometimes wrapped in other
    text, so the first {...} blob is extracted before decoding.
    Anything unparseable yields an empty dict.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)

    match = re.search(r'\{.*\}', str(raw), re.DOTALL)
    if not match:
        return {}

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Failed to decode report details: %s", raw)
        return {}

    return data if isinstance(data, dict) else {}


def humanize_key(key: str) -> str:
    """Turns a details key like 'pipeLength' or 'pipe_length' into 'Pipe Length'."""
    spaced = re.sub(r'(?<=[a-z0-9])(?=[A-Z])', ' ', key).replace('_', ' ')
    return ' '.join(word.capitalize() for word in spaced.split())
