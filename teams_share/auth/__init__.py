from teams_share.auth.cache import TokenCacheStore
from teams_share.auth.callback import CallbackListener
from teams_share.auth.session import Authenticator, classify_auth_error, normalize_scopes

__all__ = [
    "Authenticator",
    "CallbackListener",
    "TokenCacheStore",
    "classify_auth_error",
    "normalize_scopes",
]
