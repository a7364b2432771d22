from __future__ import annotations

import random
import time
from typing import Mapping, Optional, Sequence

import requests

TRANSIENT_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)


def _compute_sleep_seconds(
    attempt: int,
    *,
    backoff_base: float,
    backoff_max: float,
) -> float:
    # Exponential backoff with jitter
    base = backoff_base * (2 ** max(0, attempt - 1))
    jitter = random.uniform(0, backoff_base)
    return min(backoff_max, base + jitter)


def _retry_after_seconds(resp: requests.Response) -> Optional[float]:
    retry_after = resp.headers.get("Retry-After")
    if retry_after is None:
        return None
    try:
        return max(0.0, float(retry_after))
    except ValueError:
        return None


def http_get_with_retries(
    url: str,
    *,
    params: Optional[Mapping[str, str | int]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: int = 60,
    max_attempts: int = 4,
    backoff_base: float = 0.5,
    backoff_max: float = 8.0,
    status_forcelist: Sequence[int] = (429, 500, 502, 503, 504),
) -> requests.Response:
    """
    Perform a GET with lightweight retries for transient failures.

    Retries on:
    - Connection/timeout errors (Requests exceptions)
    - HTTP status in `status_forcelist` (e.g., 429/5xx)

    Uses exponential backoff with jitter and honors `Retry-After` when present.
    Returns the last response (caller should still call raise_for_status()).
    Raises the last exception if all attempts fail.
    """
    last_exc: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            resp = requests.get(url, params=params, headers=headers, timeout=timeout)
        except TRANSIENT_EXCEPTIONS as exc:
            last_exc = exc
            if attempt >= max_attempts:
                break
            sleep_sec = _compute_sleep_seconds(
                attempt, backoff_base=backoff_base, backoff_max=backoff_max
            )
            print(f"[http] {type(exc).__name__} fetching {url}; retry {attempt}/{max_attempts - 1} in {sleep_sec:.1f}s")
            time.sleep(sleep_sec)
            continue

        if resp.status_code in status_forcelist and attempt < max_attempts:
            sleep_sec = _retry_after_seconds(resp)
            if sleep_sec is None:
                sleep_sec = _compute_sleep_seconds(
                    attempt, backoff_base=backoff_base, backoff_max=backoff_max
                )
            print(f"[http] HTTP {resp.status_code} from {url}; retry {attempt}/{max_attempts - 1} in {sleep_sec:.1f}s")
            time.sleep(sleep_sec)
            continue
        return resp

    # Exhausted attempts on transient errors
    assert last_exc is not None
    raise last_exc


__all__ = ["http_get_with_retries"]
