"""
FILECIPHER - streaming password-based file encryption

This module provides the public entry points for encrypting and decrypting
files with OpenSSL-named ciphers and PBKDF2-derived keys.
"""

from .main import *
from .options import DEFAULTS as config

def validate_options(options): return filecipher.validate_options(options)


def encrypt(options, callback=None, scope=None, *, chunk_size: int | None = None, silent: bool | None = None):
    """
    Encrypt a file on a background worker.

    Args:
        options: Mapping with input, output and password (salt, iterations,
            keylen, digest and algorithm fall back to `config`)
        callback: Called once as callback(error, options) when done
        scope: When given, passed first: callback(scope, error, options)
        chunk_size: Bytes read per step (default STREAM_CHUNK_SIZE)
        silent: Suppress warnings for this call only

    Returns:
        concurrent.futures.Future resolving to the resolved CipherOptions

    Note:
        - Validation errors arrive through the callback/future, never raised here
        - Reverse with decrypt() using the same options
    """
    return filecipher.encrypt(options, callback, scope, chunk_size=chunk_size, silent=silent)


def decrypt(options, callback=None, scope=None, *, chunk_size: int | None = None, silent: bool | None = None):
    """
    Decrypt a file on a background worker.

    Args:
        options: The same parameters used to encrypt, with input and output swapped
        callback: Called once as callback(error, options) when done
        scope: When given, passed first: callback(scope, error, options)
        chunk_size: Bytes read per step (default STREAM_CHUNK_SIZE)
        silent: Suppress warnings for this call only

    Returns:
        concurrent.futures.Future resolving to the resolved CipherOptions

    Note:
        - A wrong password fails with TransformError only for cbc/ecb ciphers
        - Stream modes (ctr, cfb, ofb, chacha20) write garbage instead
    """
    return filecipher.decrypt(options, callback, scope, chunk_size=chunk_size, silent=silent)


def encrypt_sync(options, *, chunk_size: int | None = None, silent: bool | None = None):
    """
    Encrypt a file and block until the output is written.

    Args:
        options: Mapping with input, output and password
        chunk_size: Bytes read per step (default STREAM_CHUNK_SIZE)
        silent: Suppress warnings for this call only

    Returns:
        Resolved CipherOptions, defaults filled in

    Note:
        - Raises CipherValidationError, DerivationError, TransformError or OSError
    """
    return filecipher.encrypt_sync(options, chunk_size=chunk_size, silent=silent)


def decrypt_sync(options, *, chunk_size: int | None = None, silent: bool | None = None):
    """
    Decrypt a file and block until the output is written.

    Args:
        options: The same parameters used to encrypt, with input and output swapped
        chunk_size: Bytes read per step (default STREAM_CHUNK_SIZE)
        silent: Suppress warnings for this call only

    Returns:
        Resolved CipherOptions, defaults filled in

    Note:
        - Raises TransformError when padding check fails (wrong password on cbc/ecb)
        - Partial output is left in place on failure
    """
    return filecipher.decrypt_sync(options, chunk_size=chunk_size, silent=silent)


def list_algorithms(): return filecipher.list_algorithms()
def list_hashes(): return filecipher.list_hashes()

encryptSync = encrypt_sync
decryptSync = decrypt_sync
listAlgorithms = list_algorithms
listHashes = list_hashes
