"""
Configuration package for spotifetch

Three components:

1. Settings (settings.py): dataclass sections loaded from YAML and
   environment variables, exposed through get_settings()/reload_settings()
2. Authentication (auth.py): OAuth2 grant exchange, token state machine and
   the refresh token cache
3. Callback listener (callback.py): one-shot local HTTP server capturing the
   authorization code of the user flow

Usage:

    from spotifetch.config import get_settings, TokenManager

    settings = get_settings()
"""

from .settings import get_settings, reload_settings, Settings

from .auth import (
    AuthResult,
    AuthState,
    Credentials,
    TokenCache,
    TokenManager,
    TokenState,
)
from .callback import CallbackResult, LocalCallbackListener

__all__ = [
    # Settings
    'get_settings',
    'reload_settings',
    'Settings',

    # Authentication
    'AuthResult',
    'AuthState',
    'Credentials',
    'TokenCache',
    'TokenManager',
    'TokenState',

    # Redirect capture
    'CallbackResult',
    'LocalCallbackListener',
]
