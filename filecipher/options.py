"""
Option validation for the file cipher pipeline.

Raw caller options (any mapping) are checked field by field in a fixed order
and turned into an immutable `CipherOptions`. Only the first problem is
reported, and every message names the option it is about, so callers can
map the error straight back to their input.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from . import backends


class CipherError(Exception):
    """Base class for every failure raised by filecipher itself."""


class CipherValidationError(CipherError, ValueError):
    """Raised when caller options are missing, mistyped or unsupported."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if not value:
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    if parsed <= 0:
        return None
    return parsed


def _env_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


DEFAULT_SALT = "filecipher"
DEFAULT_ITERATIONS = 1000
DEFAULT_KEYLEN = 512
DEFAULT_DIGEST = "sha1"
DEFAULT_ALGORITHM = "aes-256-cbc"

DEFAULTS: Mapping[str, Any] = MappingProxyType({
    "salt": _env_str("FILECIPHER_SALT") or DEFAULT_SALT,
    "iterations": _env_int("FILECIPHER_ITERATIONS") or DEFAULT_ITERATIONS,
    "keylen": _env_int("FILECIPHER_KEYLEN") or DEFAULT_KEYLEN,
    "digest": _env_str("FILECIPHER_DIGEST") or DEFAULT_DIGEST,
    "algorithm": _env_str("FILECIPHER_ALGORITHM") or DEFAULT_ALGORITHM,
})

Salt = Union[str, bytes]


@dataclass(frozen=True)
class CipherOptions:
    input: str
    output: str
    password: str = field(repr=False)
    salt: Salt = DEFAULTS["salt"]
    iterations: int = DEFAULTS["iterations"]
    keylen: int = DEFAULTS["keylen"]
    digest: str = DEFAULTS["digest"]
    algorithm: str = DEFAULTS["algorithm"]

    def to_dict(self) -> dict:
        return asdict(self)

    def replace(self, **changes: Any) -> "CipherOptions":
        """Copy with ``changes`` applied, validated like fresh input."""
        merged = self.to_dict()
        merged.update(changes)
        return validate_options(merged)


def _present(raw: Mapping[str, Any], key: str) -> bool:
    return raw.get(key) is not None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_path(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, os.PathLike):
        resolved = os.fspath(value)
        if isinstance(resolved, str):
            return resolved
    return None


def _require_string(raw: Mapping[str, Any], key: str) -> str:
    if not _present(raw, key):
        raise CipherValidationError(f'"{key}" is required.', key)
    value = _as_path(raw[key]) if key in ("input", "output") else raw[key]
    if not isinstance(value, str):
        raise CipherValidationError(f'"{key}" must be a string.', key)
    return value


def _positive_int(raw: Mapping[str, Any], key: str) -> int:
    if not _present(raw, key):
        return DEFAULTS[key]
    value = raw[key]
    if not _is_int(value):
        raise CipherValidationError(f'"{key}" must be an integer.', key)
    if value <= 0:
        raise CipherValidationError(f'"{key}" must be a positive integer.', key)
    return value


def _same_file(first: str, second: str) -> bool:
    if os.path.exists(first) and os.path.exists(second):
        try:
            return os.path.samefile(first, second)
        except OSError:
            return False
    return os.path.realpath(first) == os.path.realpath(second)


def validate_options(raw: Union[Mapping[str, Any], CipherOptions, None]) -> CipherOptions:
    """
    Check ``raw`` and return the fully resolved `CipherOptions`.

    Raises `CipherValidationError` for the first rule ``raw`` breaks. Unset
    optional fields are filled from `DEFAULTS`.
    """
    if raw is None:
        raw = {}
    elif isinstance(raw, CipherOptions):
        raw = raw.to_dict()
    elif not isinstance(raw, Mapping):
        raise CipherValidationError('"options" must be a mapping.', "options")

    input_path = _require_string(raw, "input")
    output_path = _require_string(raw, "output")
    password = _require_string(raw, "password")
    if password == "":
        raise CipherValidationError('"password" is not allowed to be empty.', "password")

    salt = DEFAULTS["salt"]
    if _present(raw, "salt"):
        salt = raw["salt"]
        if isinstance(salt, (bytearray, memoryview)):
            salt = bytes(salt)
        elif not isinstance(salt, (str, bytes)):
            raise CipherValidationError('"salt" must be a string or buffer.', "salt")

    iterations = _positive_int(raw, "iterations")
    keylen = _positive_int(raw, "keylen")

    digest = DEFAULTS["digest"]
    if _present(raw, "digest"):
        digest = raw["digest"]
        if not isinstance(digest, str):
            raise CipherValidationError('"digest" must be a string.', "digest")
    if digest not in backends.supported_digests():
        raise CipherValidationError(f'"{digest}" is not a valid digest.', "digest")

    algorithm = DEFAULTS["algorithm"]
    if _present(raw, "algorithm"):
        algorithm = raw["algorithm"]
        if not isinstance(algorithm, str):
            raise CipherValidationError('"algorithm" must be a string.', "algorithm")
    if algorithm not in backends.supported_ciphers():
        raise CipherValidationError(f'"{algorithm}" is not a valid cipher algorithm.', "algorithm")

    if _same_file(input_path, output_path):
        raise CipherValidationError('"input" and "output" must not reference the same file.', "output")

    return CipherOptions(
        input=input_path,
        output=output_path,
        password=password,
        salt=salt,
        iterations=iterations,
        keylen=keylen,
        digest=digest,
        algorithm=algorithm,
    )
