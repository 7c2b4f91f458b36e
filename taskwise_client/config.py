"""Configuration management for the TaskWise client."""

import os
import json
from typing import Dict, Any, Optional


DEFAULT_SERVER_URL = os.getenv('TASKWISE_API_URL', 'http://localhost:8000')


class Config:
    """JSON-file backed client settings (server url, username)."""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file or os.getenv('TASKWISE_CLIENT_CONFIG') or os.path.join(
            os.path.expanduser('~'), '.taskwise', 'client.json'
        )
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    self._config = json.load(f)
            except (OSError, ValueError):
                # corrupted file: start over with defaults
                self._config = {}
        else:
            self._config = {}

    def save(self) -> None:
        directory = os.path.dirname(self.config_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.config_file, 'w') as f:
            json.dump(self._config, f, indent=2)

    @property
    def server_url(self) -> str:
        return self._config.get('server_url', DEFAULT_SERVER_URL)

    @server_url.setter
    def server_url(self, value: str):
        self._config['server_url'] = value
        self.save()

    @property
    def username(self) -> Optional[str]:
        return self._config.get('username')

    @username.setter
    def username(self, value: str):
        self._config['username'] = value
        self.save()

    @property
    def verify_tls(self) -> bool:
        return bool(self._config.get('verify_tls', True))

    @verify_tls.setter
    def verify_tls(self, value: bool):
        self._config['verify_tls'] = bool(value)
        self.save()
