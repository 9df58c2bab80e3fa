"""File-name sanitizing for stored image artifacts"""

import re
from datetime import date


MAX_FILENAME_LENGTH = 100


def sanitize_filename(name: str) -> str:
    """Replace path-hostile characters and whitespace with '-', collapse dashes, cap length."""
    text = re.sub(r'[<>:"/\\|?*]', '-', name)
    text = re.sub(r'\s+', '-', text)
    text = re.sub(r'-+', '-', text).strip('-')
    return text[:MAX_FILENAME_LENGTH] or 'unnamed'


def image_filename(summary: str, day: date, extension: str = 'png') -> str:
    """Return 'YYYYMMDD_<summary>.<ext>' for a generated image."""
    return f"{day:%Y%m%d}_{sanitize_filename(summary)}.{extension}"
