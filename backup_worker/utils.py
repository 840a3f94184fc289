import re


def safe_component(value: str) -> str:
    """
    Makes a string safe to embed in a backup filename.
    - Replaces path separators and whitespace with hyphens.
    - Leaves everything else untouched so names stay recognizable.
    """
    return re.sub(r'[\s/\\]+', '-', value or "")
