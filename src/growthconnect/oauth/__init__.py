"""OAuth connection flow: signed single-use state, token exchange and encrypted storage.

Submodules are imported directly (``growthconnect.oauth.service`` and so on);
only the error taxonomy and configuration are re-exported here.
"""

from growthconnect.oauth.config import ClientCredentials, OAuthConfig
from growthconnect.oauth.exceptions import OAuthFlowError

__all__ = ["ClientCredentials", "OAuthConfig", "OAuthFlowError"]
