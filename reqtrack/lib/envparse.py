"""
Safe .env file parser.

Reads tracker.env (KEY=value lines) without handing anything to a shell.
Values that look like shell syntax are rejected outright, so a settings
file copied between machines cannot smuggle in a command.
"""

import re
from pathlib import Path

# label -> pattern; the label ends up in the error message
FORBIDDEN_PATTERNS = {
    "backtick": re.compile(r'`'),
    "command substitution": re.compile(r'\$\('),
    "variable expansion": re.compile(r'\$\{'),
    "command chaining": re.compile(r';|&&'),
    "pipe": re.compile(r'\|'),
}

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')

# Trailing " # comment" after an unquoted value
INLINE_COMMENT = re.compile(r'\s+#.*$')

QUOTES = ('"', "'")


def _parse_value(raw: str) -> str:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] in QUOTES and raw[-1] == raw[0]:
        return raw[1:-1]
    return INLINE_COMMENT.sub('', raw)


def _check_value(lineno: int, key: str, value: str) -> None:
    for label, pattern in FORBIDDEN_PATTERNS.items():
        if pattern.search(value):
            raise ValueError(f"Line {lineno}: Forbidden pattern in value for {key} ({label})")


def parse_env(text: str) -> dict[str, str]:
    """Parse env-file text.

    Blank lines and # comments are skipped, an ``export`` prefix is
    accepted, and quotes around a value are removed. Later keys win.

    Raises:
        ValueError: if syntax invalid or forbidden pattern found
    """
    env: dict[str, str] = {}

    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue

        key, sep, raw = line.removeprefix('export ').partition('=')
        if not sep:
            raise ValueError(f"Line {lineno}: Invalid syntax (no '=')")

        key = key.strip()
        if not KEY_PATTERN.match(key):
            raise ValueError(f"Line {lineno}: Invalid key '{key}'")

        value = _parse_value(raw)
        _check_value(lineno, key, value)
        env[key] = value

    return env


def load_env(filepath: str) -> dict[str, str]:
    """
    Parse an env file.

    Raises:
        FileNotFoundError: if file doesn't exist
        ValueError: if syntax invalid or forbidden pattern found
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")
    return parse_env(path.read_text(encoding="utf-8"))
