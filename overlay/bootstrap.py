"""Machine identity and credential resolution."""

import json
import logging
from dataclasses import dataclass
from http.cookiejar import MozillaCookieJar
from pathlib import Path
from typing import Mapping
from urllib.parse import unquote

logger = logging.getLogger("overlay.bootstrap")


class CredentialsNotFoundError(RuntimeError):
    """No usable credentials for the machine. Fatal at startup."""


@dataclass(frozen=True)
class Credentials:
    api_key_id: str
    api_key: str
    host: str
    machine_id: str | None = None

    def __repr__(self) -> str:
        # Never log the key itself
        return f"Credentials(api_key_id={self.api_key_id!r}, host={self.host!r})"


def machine_key_from_path(path: str) -> str | None:
    """Machine key from a ``/machine/<key>/...`` style path (second segment)."""
    parts = path.split("/")
    if len(parts) < 3 or not parts[2]:
        return None
    return parts[2]


def credentials_from_cookie(cookies: Mapping[str, str], machine_key: str) -> Credentials:
    """Parse the JSON credentials cookie stored under ``machine_key``.

    Cookie layout: ``{"apiKey": {"id", "key"}, "machineId", "hostname"}``.
    """
    raw = cookies.get(machine_key)
    if raw is None:
        raise CredentialsNotFoundError(f"No credentials cookie for machine '{machine_key}'")
    try:
        data = json.loads(raw)
        return Credentials(
            api_key_id=data["apiKey"]["id"],
            api_key=data["apiKey"]["key"],
            host=data["hostname"],
            machine_id=data.get("machineId"),
        )
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise CredentialsNotFoundError(
            f"Malformed credentials cookie for machine '{machine_key}': {e}"
        ) from e


def load_cookie_jar(path: str | Path) -> dict[str, str]:
    """Read a Netscape/Mozilla cookies.txt into name → decoded value."""
    jar = MozillaCookieJar(str(path))
    try:
        jar.load(ignore_discard=True, ignore_expires=True)
    except (OSError, ValueError) as e:
        raise CredentialsNotFoundError(f"Could not read cookie file {path}: {e}") from e
    return {cookie.name: unquote(cookie.value or "") for cookie in jar}


def resolve_credentials(
    api_key_id: str = "",
    api_key: str = "",
    host: str = "",
    machine_path: str = "",
    cookies: Mapping[str, str] | None = None,
) -> Credentials:
    """Explicit credentials win; otherwise look the machine up in ``cookies``.

    Raises:
        CredentialsNotFoundError: when neither source yields credentials
    """
    if api_key_id and api_key and host:
        logger.info(f"Using configured credentials for {host}")
        return Credentials(api_key_id=api_key_id, api_key=api_key, host=host)

    machine_key = machine_key_from_path(machine_path) if machine_path else None
    if machine_key and cookies is not None:
        creds = credentials_from_cookie(cookies, machine_key)
        logger.info(f"Using cookie credentials for machine '{machine_key}' ({creds.host})")
        return creds

    raise CredentialsNotFoundError("credentials not found")
