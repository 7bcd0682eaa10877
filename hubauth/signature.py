"""GitHub webhook signature verification."""

import hashlib
import hmac
import logging
from typing import Callable

from hubauth.encoding import from_hex, secret_equal, to_hex
from hubauth.errors import MalformedSignatureHeader, SignatureMismatch

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS: dict[str, Callable] = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}

SIGNATURE_HEADERS = {
    "sha1": "X-Hub-Signature",
    "sha256": "X-Hub-Signature-256",
}


def canonicalize_body(body: bytes) -> bytes:
    """Normalize CRLF line endings to LF, as the platform signs them."""
    return body.replace(b"\r\n", b"\n")


class SignatureVerifier:
    """Checks request bodies against the keyed-hash signature header."""

    def __init__(
        self,
        secret: bytes,
        algorithm: str = "sha1",
        normalize_line_endings: bool = True,
    ) -> None:
        """Initialize the verifier.

        Args:
            secret: Shared webhook secret
            algorithm: The one algorithm tag accepted in the header
            normalize_line_endings: Canonicalize CRLF to LF before hashing

        Raises:
            ValueError: If the algorithm is not supported
        """
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported signature algorithm: {algorithm}")

        self._secret = secret
        self.algorithm = algorithm
        self.normalize_line_endings = normalize_line_endings

    def __repr__(self) -> str:
        return f"SignatureVerifier(algorithm={self.algorithm!r})"

    @property
    def header_name(self) -> str:
        """Name of the request header carrying the signature."""
        return SIGNATURE_HEADERS[self.algorithm]

    @property
    def digest_size(self) -> int:
        return SUPPORTED_ALGORITHMS[self.algorithm]().digest_size

    def parse_header(self, header: str | None) -> bytes:
        """Extract the expected digest from a signature header.

        Args:
            header: Header value of the form "<algorithm>=<hex-digest>"

        Returns:
            Expected digest bytes

        Raises:
            MalformedSignatureHeader: If the header is not "<algorithm>=<digest>"
                or names another algorithm
            InvalidSignatureEncoding: If the digest is not valid hex
        """
        if not header:
            raise MalformedSignatureHeader(header, "missing")

        values = [v.strip() for v in header.split("=")]

        if len(values) != 2:
            raise MalformedSignatureHeader(header, "expected exactly one '='")

        if values[0] != self.algorithm:
            raise MalformedSignatureHeader(
                header, f"unsupported algorithm, expected '{self.algorithm}'"
            )

        return from_hex(values[1])

    def compute(self, body: bytes) -> bytes:
        """Compute the keyed hash of a request body.

        Args:
            body: Raw request body

        Returns:
            Digest bytes
        """
        if self.normalize_line_endings:
            body = canonicalize_body(body)

        return hmac.new(self._secret, body, SUPPORTED_ALGORITHMS[self.algorithm]).digest()

    def sign(self, body: bytes) -> str:
        """Build the signature header value for a body."""
        return f"{self.algorithm}={to_hex(self.compute(body))}"

    def verify(self, body: bytes, header: str | None) -> None:
        """Verify that a request body matches its signature header.

        Args:
            body: Buffered raw request body
            header: Signature header value

        Raises:
            MalformedSignatureHeader: If the header cannot be parsed
            InvalidSignatureEncoding: If the digest is not valid hex
            SignatureMismatch: If the digest does not match the body
        """
        expected = self.parse_header(header)
        actual = self.compute(body)

        if not secret_equal(expected, actual):
            error = SignatureMismatch(to_hex(expected), to_hex(actual))
            logger.warning(str(error))
            raise error
