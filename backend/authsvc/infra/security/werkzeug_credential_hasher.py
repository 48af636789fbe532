# authsvc/infra/security/werkzeug_credential_hasher.py
from __future__ import annotations

from dataclasses import dataclass

from werkzeug.security import check_password_hash, generate_password_hash

from authsvc.services._shared.ports import CredentialHasher


@dataclass(frozen=True, slots=True)
class WerkzeugCredentialHasher(CredentialHasher):
    """
    Salted refresh-token digests via :mod:`werkzeug.security`.

    The whole token is hashed; signed JWTs are far longer than the 72 bytes
    bcrypt would silently keep.

    :param method: Werkzeug hash method, e.g. ``"scrypt"`` or
        ``"pbkdf2:sha256:600000"``.
    """

    method: str = "scrypt"

    def hash(self, secret: str) -> str:
        return generate_password_hash(secret, method=self.method)

    def compare(self, secret: str, digest: str) -> bool:
        return check_password_hash(digest, secret)
