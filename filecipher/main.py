# FILECIPHER STREAM ENGINE ->

import os as _os_module

from .options import (
    DEFAULTS,
    CipherError,
    CipherOptions,
    CipherValidationError,
    validate_options,
)


class DerivationError(CipherError, ValueError):
    """Raised when PBKDF2 cannot derive a key from the given parameters."""


class TransformError(CipherError, ValueError):
    """Raised when the cipher stream rejects its input (bad padding, truncated block)."""


class filecipher:
    import concurrent.futures
    import pathlib
    import sys
    import threading
    import typing
    from cryptography.exceptions import UnsupportedAlgorithm
    from cryptography.hazmat.primitives import hashes, padding
    from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
    from . import backends

    @staticmethod
    def _env_int(name: str) -> "filecipher.typing.Optional[int]":
        value = _os_module.getenv(name)
        if not value:
            return None
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return None
        if parsed <= 0:
            return None
        return parsed

    ENGINE_VERSION = "1.0.0"
    MODES = ("encrypt", "decrypt")
    STREAM_CHUNK_SIZE = 1 << 20  # 1 MiB streaming blocks
    _STREAM_CHUNK_SIZE_ENV = _env_int("FILECIPHER_CHUNK_SIZE")
    if _STREAM_CHUNK_SIZE_ENV is not None:
        STREAM_CHUNK_SIZE = _STREAM_CHUNK_SIZE_ENV
    DEFAULTS = DEFAULTS
    _CPU_COUNT = max(1, _os_module.cpu_count() or 1)
    _SILENT_MODE: typing.ClassVar[bool] = False
    _EXECUTOR: typing.ClassVar["typing.Optional[concurrent.futures.ThreadPoolExecutor]"] = None
    _EXECUTOR_LOCK = threading.Lock()

    @staticmethod
    def _warn(message: str, silent: "filecipher.typing.Optional[bool]" = None) -> None:
        quiet = filecipher._SILENT_MODE if silent is None else silent
        if not quiet:
            print(f"⚠️  {message}", file=filecipher.sys.stderr)

    @staticmethod
    def _wipe(buf: "filecipher.typing.Optional[bytearray]") -> None:
        if buf:
            buf[:] = bytes(len(buf))

    @staticmethod
    def _ensure_existing_file(path: "filecipher.pathlib.Path") -> None:
        if not path.exists() or not path.is_file():
            raise FileNotFoundError(f"Input file not found: {path}")

    # ---------- Key derivation ---------------------------------------------

    @staticmethod
    def _derive_key(
            password: str,
            salt: "filecipher.typing.Union[str, bytes]",
            iterations: int,
            keylen: int,
            digest: str
    ) -> bytearray:
        """PBKDF2-HMAC over ``digest``; same inputs always give the same ``keylen`` bytes."""
        algorithm = filecipher.backends.digest_algorithm(digest)
        if algorithm is None:
            raise DerivationError(f'"{digest}" is not a supported digest.')
        salt_bytes = salt.encode("utf-8") if isinstance(salt, str) else bytes(salt)
        try:
            kdf = filecipher.PBKDF2HMAC(
                algorithm=algorithm,
                length=keylen,
                salt=salt_bytes,
                iterations=iterations
            )
            return bytearray(kdf.derive(password.encode("utf-8")))
        except (filecipher.UnsupportedAlgorithm, ValueError, TypeError) as exc:
            raise DerivationError(f"Key derivation failed: {exc}") from exc

    @staticmethod
    def _key_and_iv(
            material: bytearray,
            key_size: int,
            iv_size: int
    ) -> "filecipher.typing.Tuple[bytearray, bytearray]":
        # OpenSSL EVP_BytesToKey: MD5, one round, no salt.
        needed = key_size + iv_size
        stream = bytearray()
        block = b""
        while len(stream) < needed:
            digest = filecipher.hashes.Hash(filecipher.hashes.MD5())
            digest.update(block)
            digest.update(material)
            block = digest.finalize()
            stream += block
        key = stream[:key_size]
        iv = stream[key_size:needed]
        filecipher._wipe(stream)
        return key, iv

    # ---------- Streaming ----------------------------------------------------

    class _StreamTransform:
        """Cipher context plus PKCS7 padding for the block modes that need it."""

        def __init__(self, spec, key, iv, *, decrypt: bool = False):
            cipher = spec.build(key, iv)
            self._decrypt = decrypt
            self._context = cipher.decryptor() if decrypt else cipher.encryptor()
            self._padding = None
            if spec.padded:
                pkcs7 = filecipher.padding.PKCS7(spec.block_size)
                self._padding = pkcs7.unpadder() if decrypt else pkcs7.padder()

        def _fail(self, exc: Exception) -> "TransformError":
            label = "Decryption" if self._decrypt else "Encryption"
            return TransformError(f"{label} failed: {exc}")

        def update(self, chunk: bytes) -> bytes:
            try:
                if self._padding is None:
                    return self._context.update(chunk)
                if self._decrypt:
                    return self._padding.update(self._context.update(chunk))
                return self._context.update(self._padding.update(chunk))
            except ValueError as exc:
                raise self._fail(exc) from exc

        def finalize(self) -> bytes:
            try:
                if self._padding is None:
                    return self._context.finalize()
                if self._decrypt:
                    data = self._padding.update(self._context.finalize())
                    return data + self._padding.finalize()
                data = self._context.update(self._padding.finalize())
                return data + self._context.finalize()
            except ValueError as exc:
                raise self._fail(exc) from exc

    @staticmethod
    def _open_transform(mode: str, options: CipherOptions) -> "filecipher._StreamTransform":
        spec = filecipher.backends.cipher_spec(options.algorithm)
        if spec is None:
            raise CipherValidationError(
                f'"{options.algorithm}" is not a valid cipher algorithm.', "algorithm"
            )
        derived = filecipher._derive_key(
            options.password,
            options.salt,
            options.iterations,
            options.keylen,
            options.digest
        )
        key = iv = None
        try:
            key, iv = filecipher._key_and_iv(derived, spec.key_size, spec.iv_size)
            return filecipher._StreamTransform(spec, key, iv, decrypt=(mode == "decrypt"))
        finally:
            filecipher._wipe(derived)
            filecipher._wipe(key)
            filecipher._wipe(iv)

    @staticmethod
    def _run_pipeline(
            mode: str,
            options: CipherOptions,
            *,
            chunk_size: "filecipher.typing.Optional[int]" = None,
            silent: "filecipher.typing.Optional[bool]" = None
    ) -> CipherOptions:
        if mode not in filecipher.MODES:
            raise ValueError(f"Unsupported pipeline mode: {mode!r}")
        chunk = filecipher.STREAM_CHUNK_SIZE if chunk_size is None else max(1, int(chunk_size))
        transform = filecipher._open_transform(mode, options)
        spec = filecipher.backends.cipher_spec(options.algorithm)
        if spec.mode == "ecb":
            filecipher._warn(f"{options.algorithm} encrypts identical blocks identically", silent)
        if mode == "decrypt" and not spec.padded:
            filecipher._warn(
                f"{options.algorithm} has no padding check; a wrong password yields garbage instead of an error",
                silent
            )
        filecipher._ensure_existing_file(filecipher.pathlib.Path(options.input))
        with open(options.input, "rb") as source, open(options.output, "wb") as dest:
            try:
                while True:
                    block = source.read(chunk)
                    if not block:
                        break
                    out = transform.update(block)
                    if out:
                        dest.write(out)
                tail = transform.finalize()
            except TransformError:
                filecipher._warn(f"{mode} failed; partial output left at {options.output}", silent)
                raise
            if tail:
                dest.write(tail)
        return options

    @staticmethod
    def _run(
            mode: str,
            raw,
            *,
            chunk_size: "filecipher.typing.Optional[int]" = None,
            silent: "filecipher.typing.Optional[bool]" = None
    ) -> CipherOptions:
        options = validate_options(raw)
        return filecipher._run_pipeline(mode, options, chunk_size=chunk_size, silent=silent)

    # ---------- Non-blocking dispatch ----------------------------------------

    @staticmethod
    def _executor() -> "filecipher.concurrent.futures.ThreadPoolExecutor":
        with filecipher._EXECUTOR_LOCK:
            if filecipher._EXECUTOR is None:
                filecipher._EXECUTOR = filecipher.concurrent.futures.ThreadPoolExecutor(
                    max_workers=filecipher._CPU_COUNT,
                    thread_name_prefix="filecipher"
                )
            return filecipher._EXECUTOR

    @staticmethod
    def _deliver(future, callback, scope) -> None:
        error = future.exception()
        resolved = future.result() if error is None else None
        if scope is None:
            callback(error, resolved)
        else:
            callback(scope, error, resolved)

    @staticmethod
    def _submit(mode: str, raw, callback=None, scope=None, **kwargs):
        future = filecipher._executor().submit(filecipher._run, mode, raw, **kwargs)
        if callback is not None:
            future.add_done_callback(lambda done: filecipher._deliver(done, callback, scope))
        return future

    # ---------- Public API ---------------------------------------------------

    @staticmethod
    def validate_options(raw) -> CipherOptions:
        return validate_options(raw)

    @staticmethod
    def encrypt_sync(options, *, chunk_size=None, silent=None) -> CipherOptions:
        """Encrypt ``options.input`` into ``options.output`` and return the resolved options."""
        return filecipher._run("encrypt", options, chunk_size=chunk_size, silent=silent)

    @staticmethod
    def decrypt_sync(options, *, chunk_size=None, silent=None) -> CipherOptions:
        """Decrypt ``options.input`` into ``options.output`` and return the resolved options."""
        return filecipher._run("decrypt", options, chunk_size=chunk_size, silent=silent)

    @staticmethod
    def encrypt(options, callback=None, scope=None, *, chunk_size=None, silent=None):
        """
        Encrypt on a worker thread.

        Returns a `concurrent.futures.Future` for the resolved options. When
        ``callback`` is given it is called as ``callback(error, options)``, or
        ``callback(scope, error, options)`` when a ``scope`` is supplied.
        Validation failures arrive through the same channel.
        """
        return filecipher._submit("encrypt", options, callback, scope, chunk_size=chunk_size, silent=silent)

    @staticmethod
    def decrypt(options, callback=None, scope=None, *, chunk_size=None, silent=None):
        """Decrypt on a worker thread; see `encrypt` for the callback contract."""
        return filecipher._submit("decrypt", options, callback, scope, chunk_size=chunk_size, silent=silent)

    @staticmethod
    def list_algorithms() -> "list[str]":
        return sorted(filecipher.backends.supported_ciphers())

    @staticmethod
    def list_hashes() -> "list[str]":
        return sorted(filecipher.backends.supported_digests())


def cli(argv=None) -> int:
    import argparse
    import getpass

    import colorama

    colorama.init()

    parser = argparse.ArgumentParser(prog="filecipher", description="Password-based file encryption")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command in filecipher.MODES:
        sub = subparsers.add_parser(command, help=f"{command.capitalize()} a file")
        sub.add_argument("input", help="Source file path")
        sub.add_argument("output", help="Destination file path (created or truncated)")
        sub.add_argument(
            "-p", "--password",
            default=None,
            help="Password text (prompted for when omitted)"
        )
        sub.add_argument("--algorithm", default=None, help=f"Cipher name (default {DEFAULTS['algorithm']})")
        sub.add_argument("--salt", default=None, help="KDF salt text")
        sub.add_argument("--iterations", type=int, default=None, help="PBKDF2 iteration count")
        sub.add_argument("--keylen", type=int, default=None, help="PBKDF2 output length in bytes")
        sub.add_argument("--digest", default=None, help=f"PBKDF2 digest (default {DEFAULTS['digest']})")
        sub.add_argument("--silent", action="store_true", help="Suppress warnings")

    subparsers.add_parser("algorithms", help="List supported cipher algorithms")
    subparsers.add_parser("hashes", help="List supported PBKDF2 digests")

    args = parser.parse_args(argv)

    if args.command == "algorithms":
        print("\n".join(filecipher.list_algorithms()))
        return 0
    if args.command == "hashes":
        print("\n".join(filecipher.list_hashes()))
        return 0

    filecipher._SILENT_MODE = args.silent
    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
    options = {
        "input": args.input,
        "output": args.output,
        "password": password,
        "algorithm": args.algorithm,
        "salt": args.salt,
        "iterations": args.iterations,
        "keylen": args.keylen,
        "digest": args.digest,
    }
    runner = filecipher.encrypt_sync if args.command == "encrypt" else filecipher.decrypt_sync
    try:
        runner(options)
    except (CipherError, OSError) as exc:
        print(f"{colorama.Fore.RED}FAIL!{colorama.Fore.RESET} {exc}")
        return 1
    print(f"{colorama.Fore.GREEN}SUCCESS!{colorama.Fore.RESET}")
    return 0


def main(argv=None) -> int:
    return cli(argv)


if __name__ == "__main__":
    raise SystemExit(main())
