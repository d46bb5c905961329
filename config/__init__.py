"""Configuration module for loading and managing application settings"""
from typing import Dict, Any
import logging
import secrets

from .lib.load_settings_conf import (
    load_settings_conf, validate_settings, SettingsError, DEFAULTS
)

__all__ = ['settings_conf', 'jwt_secret_generated', 'load_settings_conf', 'validate_settings', 'SettingsError', 'DEFAULTS']

logger = logging.getLogger(__name__)

try:
    settings_conf: Dict[str, Any] = load_settings_conf()
except SettingsError as e:
    # Re-raise the error but provide more context
    raise type(e)(
        f"Configuration Error\n"
        "=================\n\n"
        f"{str(e)}\n\n"
        "Please check settings.conf (or the file named by $FOODSHARE_SETTINGS).\n"
        "Run `python -m config` to write an example configuration."
    )

# True when settings.conf left jwt_secret empty
jwt_secret_generated = False

if not settings_conf['jwt_secret']:
    # Tokens issued by one process will not verify in another
    logger.warning("jwt_secret not configured, generating a random secret")
    settings_conf['jwt_secret'] = secrets.token_urlsafe(32)
    jwt_secret_generated = True
