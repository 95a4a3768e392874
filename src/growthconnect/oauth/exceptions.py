"""Exception hierarchy for the OAuth connection flow.

Each error carries the ``error_type`` flag surfaced to the dashboard in the
callback redirect. Messages are for server-side logs only and never leave
the process.
"""


class OAuthFlowError(Exception):
    """Base exception for all OAuth flow errors."""

    error_type = "oauth_error"


class OAuthDeniedError(OAuthFlowError):
    """Provider reported that the user declined consent."""

    error_type = "oauth_denied"


class MissingParamsError(OAuthFlowError):
    """Callback invoked without code or state."""

    error_type = "missing_params"


class OAuthConfigError(OAuthFlowError):
    """Client credentials or server secrets are not configured."""

    error_type = "config_error"


class UnsupportedProviderError(OAuthFlowError):
    """Provider is not in the registry."""

    error_type = "unsupported_provider"


class InvalidStateError(OAuthFlowError):
    """State is malformed, unsigned, or its nonce does not exist."""

    error_type = "invalid_state"


class ReplayDetectedError(OAuthFlowError):
    """Nonce was already consumed."""

    error_type = "replay_detected"


class StateExpiredError(OAuthFlowError):
    """Nonce exists but is past its TTL."""

    error_type = "state_expired"


class InvalidRedirectError(OAuthFlowError):
    """Redirect URL is not on the allow-list."""

    error_type = "invalid_redirect"


class TokenExchangeError(OAuthFlowError):
    """Provider rejected the code, or the exchange call failed or timed out."""

    error_type = "token_exchange_failed"


class TokenSaveError(OAuthFlowError):
    """Tokens were obtained but could not be persisted."""

    error_type = "save_failed"


class TokenDecryptionError(OAuthFlowError):
    """Stored ciphertext failed authentication or is malformed."""

    error_type = "decryption_failed"
