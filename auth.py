import base64
import json
import time
from typing import Callable, Iterable, Optional

import requests
from google.auth import crypt

from errors import AuthError
from models import Credential, Token


# =============================================================================
# Service Account Token Exchange
# =============================================================================

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
SPEECH_SCOPES = (CLOUD_PLATFORM_SCOPE,)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600


def _b64url(data: bytes) -> str:
    """Base64url without padding, as JWT requires."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_json(payload: dict) -> str:
    return _b64url(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


class TokenProvider:
    """Exchanges a signed service-account assertion for a bearer token.

    No retries are attempted here; a caller that wants retry/backoff
    wraps ``get_access_token`` itself.
    """

    def __init__(self, timeout: float = 60,
                 clock: Callable[[], float] = time.time,
                 log: Optional[Callable[[str], None]] = None):
        self.timeout = timeout
        self.clock = clock
        self.log = log or (lambda _msg: None)

    def build_assertion(self, credential: Credential, scopes: Iterable[str]) -> str:
        """Build the three-part RS256 JWT for ``credential``.

        Raises AuthError if the private key cannot be parsed or used.
        """
        now = int(self.clock())
        header = {"alg": "RS256", "typ": "JWT"}
        claims = {
            "iss": credential.client_email,
            "scope": " ".join(scopes),
            "aud": credential.token_uri,
            "iat": now,
            "exp": now + ASSERTION_LIFETIME_SECONDS,
        }
        signing_input = f"{_b64url_json(header)}.{_b64url_json(claims)}"

        try:
            signer = crypt.RSASigner.from_string(credential.private_key)
            signature = signer.sign(signing_input.encode("ascii"))
        except Exception as e:
            raise AuthError(f"Could not sign token assertion for {credential.client_email}: {e}") from e

        return f"{signing_input}.{_b64url(signature)}"

    def get_access_token(self, credential: Credential,
                         scopes: Iterable[str] = SPEECH_SCOPES) -> Token:
        """Sign an assertion and exchange it at the OAuth2 token endpoint."""
        scopes = list(scopes)
        assertion = self.build_assertion(credential, scopes)
        issued_at = self.clock()

        self.log(f"Requesting access token for {credential.client_email}...")
        try:
            response = requests.post(
                credential.token_uri,
                data={"grant_type": JWT_BEARER_GRANT_TYPE, "assertion": assertion},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise AuthError(f"Token endpoint timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise AuthError(f"Cannot reach token endpoint {credential.token_uri}: {e}") from e

        if not response.ok:
            raise AuthError(
                "Token exchange rejected",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            result = response.json()
        except ValueError:
            result = {}

        access_token = result.get("access_token") if isinstance(result, dict) else None
        if not access_token:
            raise AuthError(
                "No access_token in token endpoint response",
                status_code=response.status_code,
                response_body=response.text,
            )

        expires_in = result.get("expires_in", ASSERTION_LIFETIME_SECONDS)
        try:
            expires_at = issued_at + float(expires_in)
        except (TypeError, ValueError):
            expires_at = issued_at + ASSERTION_LIFETIME_SECONDS

        return Token(value=access_token, expires_at=expires_at)
