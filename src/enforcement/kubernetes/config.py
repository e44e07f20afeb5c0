"""
Webhook Configuration Module

Loads the webhook's settings from environment variables, optionally on top of a
YAML configuration file, and sets up process logging.
"""

import os
import sys
import logging
from typing import Dict, Any, Optional, Mapping

import yaml

from src.admission import ConfigurationError


LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'warn': logging.WARNING,
    'error': logging.ERROR,
}

# YAML key -> environment variable
ENV_VARS = {
    'tls_cert_path': 'TLS_CRT',
    'tls_key_path': 'TLS_KEY',
    'host': 'HOST',
    'port': 'PORT',
    'log_level': 'LOG_LEVEL',
    'kubeconfig': 'KUBECONFIG',
}


class WebhookConfig:
    """Settings for running the admission webhook server."""

    def __init__(self,
                 tls_cert_path: str,
                 tls_key_path: str,
                 host: str = "0.0.0.0",
                 port: int = 443,
                 log_level: str = "info",
                 kubeconfig: Optional[str] = None):
        if not tls_cert_path or not tls_key_path:
            raise ConfigurationError("both a TLS certificate and a TLS key are required")
        if not 0 < port < 65536:
            raise ConfigurationError(f"invalid port {port}")
        if log_level.lower() not in LOG_LEVELS:
            raise ConfigurationError(f"unknown log level {log_level}")

        self.tls_cert_path = tls_cert_path
        self.tls_key_path = tls_key_path
        self.host = host
        self.port = port
        self.log_level = log_level.lower()
        self.kubeconfig = kubeconfig

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None) -> 'WebhookConfig':
        """
        Load the configuration.

        Values come from the YAML file named by WEBHOOK_CONFIG_FILE, if any,
        and are overridden by the matching environment variables.

        Args:
            environ: Environment to read, defaults to os.environ

        Returns:
            WebhookConfig

        Raises:
            ConfigurationError: If the file cannot be read or a value is invalid
        """
        environ = os.environ if environ is None else environ

        settings: Dict[str, Any] = {}
        config_file = environ.get('WEBHOOK_CONFIG_FILE')
        if config_file:
            settings.update(cls._read_yaml(config_file))

        for key, env_var in ENV_VARS.items():
            if environ.get(env_var):
                settings[key] = environ[env_var]

        if 'port' in settings:
            try:
                settings['port'] = int(settings['port'])
            except (TypeError, ValueError):
                raise ConfigurationError(f"invalid port {settings['port']!r}")

        for required in ('tls_cert_path', 'tls_key_path'):
            if not settings.get(required):
                raise ConfigurationError(f"{ENV_VARS[required]} env var not found")

        return cls(**settings)

    @staticmethod
    def _read_yaml(path: str) -> Dict[str, Any]:
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"unable to read config file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"config file {path} must contain a mapping")
        unknown = set(data) - set(ENV_VARS)
        if unknown:
            raise ConfigurationError(f"unknown config keys in {path}: {', '.join(sorted(unknown))}")
        return data

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tls_cert_path': self.tls_cert_path,
            'tls_key_path': self.tls_key_path,
            'host': self.host,
            'port': self.port,
            'log_level': self.log_level,
            'kubeconfig': self.kubeconfig
        }


def configure_logging(level: str = "info"):
    """Send logs to stdout at the given level."""
    logging.basicConfig(
        stream=sys.stdout,
        level=LOG_LEVELS.get(level.lower(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
