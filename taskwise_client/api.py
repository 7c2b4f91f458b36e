"""HTTP client for the TaskWise server API."""

import logging
from typing import Any, Dict, List, Optional

import requests
import urllib3

from .config import Config
from .shapes import task_from_wire, task_to_wire, updates_to_wire

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = 'taskwise_session'


class ApiError(Exception):
    """A request failed or the server answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TaskwiseClient:
    """Cookie-session client for the TaskWise API.

    Read helpers return empty results on failure so a caller can keep
    showing what it has; mutating helpers raise ApiError so the caller
    can tell the user the change stayed local.
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None,
                 verify: Optional[bool] = None, timeout: float = 15.0, config: Optional[Config] = None):
        cfg = config or Config()
        self.config = cfg
        self.base_url = (base_url or cfg.server_url).rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        verify = cfg.verify_tls if verify is None else verify
        self.session.verify = verify
        if not verify:
            # self-signed development certificates
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        self.user: Optional[Dict[str, Any]] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api{path}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            try:
                detail = resp.json().get('error')
            except ValueError:
                detail = resp.text
            raise ApiError(f"{method} {path} -> {resp.status_code}: {detail}", status_code=resp.status_code)
        return resp

    # --- auth -----------------------------------------------------------

    def login(self, username: Optional[str], password: str, remember: bool = False) -> bool:
        """Log in, defaulting to the username saved in the client config.

        ``remember`` saves the username for the next run.
        """
        username = username or self.config.username
        if not username:
            logger.info('login skipped: no username given or saved')
            return False
        try:
            data = self._request('POST', '/auth/login', json={'username': username, 'password': password}).json()
        except ApiError as e:
            logger.info('login failed: %s', e)
            return False
        self.user = data.get('user')
        if remember and data.get('success'):
            self.config.username = username
        return bool(data.get('success'))

    def logout(self) -> None:
        try:
            self._request('POST', '/auth/logout')
        except ApiError:
            logger.exception('logout failed')
        self.session.cookies.clear()
        self.user = None

    def check_session(self) -> Optional[Dict[str, Any]]:
        """Return the session's user, or None when not logged in."""
        try:
            data = self._request('GET', '/auth/session').json()
        except ApiError:
            return None
        if not data.get('authenticated'):
            return None
        self.user = data.get('user')
        return self.user

    def setup_required(self) -> bool:
        try:
            return bool(self._request('GET', '/auth/setup-required').json().get('setupRequired'))
        except ApiError:
            logger.exception('setup check failed')
            return False

    def setup_admin(self, username: str, password: str) -> Dict[str, Any]:
        data = self._request('POST', '/auth/setup-admin', json={'username': username, 'password': password}).json()
        self.user = data.get('user')
        return data

    def password_needed(self, username: str) -> bool:
        try:
            return bool(self._request('GET', '/auth/password-needed', params={'username': username}).json().get('needsSetup'))
        except ApiError:
            return False

    def set_password(self, username: str, password: str) -> Dict[str, Any]:
        data = self._request('POST', '/auth/set-password', json={'username': username, 'password': password}).json()
        self.user = data.get('user')
        return data

    # --- tasks ----------------------------------------------------------

    def get_all_tasks(self) -> List[Dict[str, Any]]:
        try:
            return [task_from_wire(t) for t in self._request('GET', '/tasks').json()]
        except ApiError:
            logger.exception('failed to fetch tasks')
            return []

    def create_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        return task_from_wire(self._request('POST', '/tasks', json=task_to_wire(task)).json())

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return task_from_wire(self._request('PUT', f'/tasks/{int(task_id)}', json=updates_to_wire(updates)).json())

    def delete_task(self, task_id: str) -> None:
        self._request('DELETE', f'/tasks/{int(task_id)}')

    def toggle_task_completion(self, task_id: str) -> Dict[str, Any]:
        return task_from_wire(self._request('PATCH', f'/tasks/{int(task_id)}').json())

    # --- categories -----------------------------------------------------

    def get_all_categories(self) -> Dict[str, str]:
        """Categories as a {name: icon} mapping."""
        try:
            rows = self._request('GET', '/categories').json()
        except ApiError:
            logger.exception('failed to fetch categories')
            return {}
        return {c['name']: c['icon'] for c in rows}

    def save_category(self, name: str, icon: str) -> Dict[str, Any]:
        return self._request('POST', '/categories', json={'name': name, 'icon': icon}).json()

    def delete_category(self, name: str) -> None:
        self._request('DELETE', '/categories', params={'name': name})

    # --- settings -------------------------------------------------------

    def get_all_settings(self) -> Dict[str, Any]:
        try:
            return self._request('GET', '/user-settings').json()
        except ApiError:
            logger.exception('failed to fetch settings')
            return {}

    def get_setting(self, key: str) -> Optional[Any]:
        try:
            return self._request('GET', f'/user-settings/{key}').json().get('value')
        except ApiError as e:
            if e.status_code != 404:
                logger.exception('failed to fetch setting %s', key)
            return None

    def save_setting(self, key: str, value: Any) -> None:
        self._request('POST', '/user-settings', json={'key': key, 'value': value})

    def delete_setting(self, key: str) -> None:
        self._request('DELETE', f'/user-settings/{key}')
