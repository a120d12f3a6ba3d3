"""HTTP client for the external comorbidity analysis backend."""

import logging
from typing import Any

import requests

from clinaudit.config import settings

log = logging.getLogger(__name__)

_session: requests.Session | None = None


class BackendError(Exception):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, payload: Any):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Backend responded with status: {status_code}")


class BackendUnavailable(Exception):
    """The backend could not be reached."""


def get_session() -> requests.Session:
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def close_session() -> None:
    global _session
    if _session is not None:
        _session.close()
        _session = None


def _url(path: str) -> str:
    return f"{settings.backend.api_url}/{path.lstrip('/')}"


def _error_payload(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {"error": resp.text}


def _request(method: str, path: str, **kwargs: Any) -> requests.Response:
    url = _url(path)
    log.info("Backend %s %s", method, url)
    try:
        resp = get_session().request(method, url, timeout=settings.backend.timeout_s, **kwargs)
    except requests.RequestException as exc:
        log.error("Backend %s %s failed: %s", method, url, exc)
        raise BackendUnavailable(str(exc)) from exc
    if not resp.ok:
        log.warning("Backend %s %s -> %d: %s", method, url, resp.status_code, resp.text[:500])
        raise BackendError(resp.status_code, _error_payload(resp))
    return resp


def get_json(path: str, params: dict | None = None) -> Any:
    return _request("GET", path, params=params).json()


def post_json(path: str, body: Any) -> Any:
    return _request("POST", path, json=body).json()


def put_json(path: str, body: Any) -> Any:
    return _request("PUT", path, json=body).json()


def delete_json(path: str) -> Any:
    return _request("DELETE", path).json()


def post_file(
    path: str,
    filename: str,
    content: bytes,
    fields: dict[str, str | None] | None = None,
) -> Any:
    """Forward one uploaded file as multipart ``file`` plus non-empty form fields."""
    data = {k: v for k, v in (fields or {}).items() if v}
    files = {"file": (filename, content)}
    return _request("POST", path, files=files, data=data).json()


def get_bytes(path: str) -> bytes:
    return _request("GET", path).content


def post_json_for_bytes(path: str, body: Any) -> bytes:
    return _request("POST", path, json=body).content
