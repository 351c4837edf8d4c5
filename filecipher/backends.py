"""
Cipher and digest name tables backed by the `cryptography` package.

Names follow the OpenSSL spelling (``aes-256-cbc``, ``sha256``...). Each table
entry is probed once against the installed backend; only entries the backend
can actually run are reported as supported, so validation and the name
listings always agree with what the pipeline can execute.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

try:
    from cryptography.hazmat.decrepit.ciphers import algorithms as _decrepit_algorithms
except ImportError:  # cryptography < 43
    _decrepit_algorithms = None
try:
    from cryptography.hazmat.decrepit.ciphers import modes as _decrepit_modes
except ImportError:  # modes still live under primitives
    _decrepit_modes = None

# Modes that operate on whole blocks and therefore need PKCS7 padding.
_PADDED_MODES = frozenset({"cbc", "ecb"})


def _resolve(attr: str, *namespaces):
    """First namespace that still exports ``attr``; decrepit homes win."""
    for namespace in namespaces:
        found = getattr(namespace, attr, None) if namespace is not None else None
        if found is not None:
            return found
    return None


def _algorithm_class(family: str):
    return _resolve(family, _decrepit_algorithms, algorithms)


def _mode_class(attr: str):
    return _resolve(attr, _decrepit_modes, modes)


@dataclass(frozen=True)
class CipherSpec:
    name: str
    family: str
    key_size: int
    iv_size: int
    mode: Optional[str]
    block_size: int

    @property
    def padded(self) -> bool:
        return self.mode in _PADDED_MODES

    def build(self, key, iv) -> Cipher:
        """Return a `Cipher` bound to the given key and IV."""
        if self.family == "chacha20":
            return Cipher(algorithms.ChaCha20(key, bytes(iv)), mode=None)
        algorithm = _algorithm_class(self.family)(key)
        if self.mode == "ecb":
            return Cipher(algorithm, modes.ECB())
        return Cipher(algorithm, _MODE_CLASSES[self.mode](bytes(iv)))


_MODE_CLASSES: Dict[str, Callable] = {
    name: _mode_class(attr)
    for name, attr in (
        ("cbc", "CBC"),
        ("cfb", "CFB"),
        ("cfb8", "CFB8"),
        ("ofb", "OFB"),
        ("ctr", "CTR"),
    )
    if _mode_class(attr) is not None
}


def _block_cipher_specs(prefix: str, family: str, key_bits, mode_names) -> Dict[str, CipherSpec]:
    if _algorithm_class(family) is None:
        return {}
    specs = {}
    for bits in key_bits:
        for mode in mode_names:
            if mode != "ecb" and mode not in _MODE_CLASSES:
                continue
            name = f"{prefix}-{bits}-{mode}" if bits else f"{prefix}-{mode}"
            specs[name] = CipherSpec(
                name=name,
                family=family,
                key_size=(bits or 128) // 8,
                iv_size=0 if mode == "ecb" else 16,
                mode=mode,
                block_size=128,
            )
    return specs


def _build_cipher_table() -> Dict[str, CipherSpec]:
    table: Dict[str, CipherSpec] = {}
    table.update(_block_cipher_specs(
        "aes", "AES", (128, 192, 256), ("cbc", "ecb", "cfb", "cfb8", "ofb", "ctr")
    ))
    table.update(_block_cipher_specs(
        "camellia", "Camellia", (128, 192, 256), ("cbc", "ecb", "cfb", "ofb", "ctr")
    ))
    table.update(_block_cipher_specs(
        "sm4", "SM4", (None,), ("cbc", "ecb", "cfb", "ofb", "ctr")
    ))
    # OpenSSL short aliases for the CBC variants.
    for alias, target in (("aes128", "aes-128-cbc"), ("aes192", "aes-192-cbc"), ("aes256", "aes-256-cbc"), ("sm4", "sm4-cbc")):
        if target in table:
            base = table[target]
            table[alias] = CipherSpec(alias, base.family, base.key_size, base.iv_size, base.mode, base.block_size)
    if getattr(algorithms, "ChaCha20", None) is not None:
        table["chacha20"] = CipherSpec("chacha20", "chacha20", 32, 16, None, 8)
    return table


_DIGEST_FACTORIES: Dict[str, Callable[[], hashes.HashAlgorithm]] = {
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "sha512-224": hashes.SHA512_224,
    "sha512-256": hashes.SHA512_256,
    "sha3-224": hashes.SHA3_224,
    "sha3-256": hashes.SHA3_256,
    "sha3-384": hashes.SHA3_384,
    "sha3-512": hashes.SHA3_512,
    "sm3": hashes.SM3,
    "blake2b512": lambda: hashes.BLAKE2b(64),
    "blake2s256": lambda: hashes.BLAKE2s(32),
}


def _cipher_runs(spec: CipherSpec) -> bool:
    try:
        spec.build(bytes(spec.key_size), bytes(spec.iv_size)).encryptor()
    except (UnsupportedAlgorithm, ValueError, TypeError):
        return False
    return True


def _digest_runs(factory: Callable[[], hashes.HashAlgorithm]) -> bool:
    try:
        PBKDF2HMAC(algorithm=factory(), length=1, salt=bytes(8), iterations=1).derive(b"probe")
    except (UnsupportedAlgorithm, ValueError, TypeError):
        return False
    return True


@functools.lru_cache(maxsize=None)
def _supported_cipher_table() -> Dict[str, CipherSpec]:
    return {name: spec for name, spec in _build_cipher_table().items() if _cipher_runs(spec)}


@functools.lru_cache(maxsize=None)
def supported_ciphers() -> FrozenSet[str]:
    return frozenset(_supported_cipher_table())


@functools.lru_cache(maxsize=None)
def supported_digests() -> FrozenSet[str]:
    return frozenset(name for name, factory in _DIGEST_FACTORIES.items() if _digest_runs(factory))


def cipher_spec(name: str) -> Optional[CipherSpec]:
    return _supported_cipher_table().get(name)


def digest_algorithm(name: str) -> Optional[hashes.HashAlgorithm]:
    """Fresh hash instance for ``name``, or None when the backend lacks it."""
    if name not in supported_digests():
        return None
    return _DIGEST_FACTORIES[name]()
