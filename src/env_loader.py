from __future__ import annotations

import os
from pathlib import Path


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def load_dotenv_if_present(path: str | None = None) -> None:
    """
    Lightweight .env loader used for local runs.

    - Reads KEY=VALUE pairs from the given file (default: ".env" in CWD).
    - Accepts an optional leading "export " and single/double quoted values.
    - Ignores empty lines and comments starting with "#".
    - Does *not* overwrite variables that are already present in os.environ.
    """
    env_path = Path(path or ".env")
    if not env_path.exists():
        return

    try:
        text = env_path.read_text(encoding="utf-8")
    except OSError:
        return

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        os.environ.setdefault(key, _strip_quotes(value.strip()))


def env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to `default` when unset or invalid."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[config] Ignoring non-integer value for {name}: {raw!r}")
        return default


__all__ = ["load_dotenv_if_present", "env_int"]
