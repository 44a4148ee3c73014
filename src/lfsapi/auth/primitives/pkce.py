"""PKCE (Proof Key for Code Exchange) generator for the SPA flow.

Implements the RFC 7636 S256 method so public clients can complete the
authorization code flow without holding a client secret.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from collections.abc import Callable

from lfsapi.auth.models.errors import PKCEError
from lfsapi.auth.models.security import PKCEPair

# 28 random bytes hex-encode to a 56-character verifier
VERIFIER_BYTES = 28


class PKCEGenerator:
    """Generates PKCE verifier/challenge pairs.

    The random source is injectable so the generator runs anywhere a
    cryptographically secure byte source exists, and so tests can pin it.
    """

    def __init__(self, random_bytes: Callable[[int], bytes] = secrets.token_bytes):
        self._random_bytes = random_bytes

    def generate_verifier(self) -> str:
        """Generate a code verifier.

        RFC 7636 Section 4.1: 43-128 characters from the unreserved set.
        Hex digits are a subset of it.

        Returns:
            A 56-character hex code verifier
        """
        return self._random_bytes(VERIFIER_BYTES).hex()

    @staticmethod
    def derive_challenge(code_verifier: str) -> str:
        """Derive the S256 code challenge for a verifier.

        RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
        without padding.
        """
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def generate_pair(self) -> PKCEPair:
        """Generate a fresh verifier and its challenge.

        Raises:
            PKCEError: If the random source fails
        """
        try:
            code_verifier = self.generate_verifier()
            return PKCEPair(
                code_verifier=code_verifier,
                code_challenge=self.derive_challenge(code_verifier),
            )
        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e
