from __future__ import annotations

from typing import Protocol


class CredentialHasher(Protocol):
    """
    One-way, salted, work-factor hashing for opaque secrets at rest.

    ``hash`` is randomized: hashing the same secret twice yields different
    digests, so digests can only be checked through ``compare``.
    """

    def hash(self, secret: str) -> str: ...

    def compare(self, secret: str, digest: str) -> bool: ...
