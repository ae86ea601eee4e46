"""GPG signing pipeline.

Signing is enabled when primary key material is provided. Each run:
1. Imports the primary secret key into the keyring
2. Generates a fresh, unprotected ephemeral key for the temp identity
3. Exports every configured identity's public key to <staging>/gpg/<name>.asc
4. Produces two detached signatures per top-level staging file:
   <file>.sig (main identity) and <file>.tmp.sig (temp identity)

Every step is fatal on failure: a partial signature set is never published.
gpg itself is an external process; no cryptography happens in-process.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from blockbuild.config import MAIN_IDENTITY, TEMP_IDENTITY
from blockbuild.errors import SigningError
from blockbuild.process import CommandRunner, require_success
from blockbuild.types import SignatureRecord

logger = logging.getLogger(__name__)

SIGNATURE_SUFFIX = ".sig"
TEMP_SIGNATURE_SUFFIX = ".tmp.sig"

EPHEMERAL_KEY_TYPE = "RSA"
EPHEMERAL_KEY_LENGTH = 4096
EPHEMERAL_KEY_NAME = "blockbuild"


def compose_key_params(email: str, name: str = EPHEMERAL_KEY_NAME) -> str:
    """Compose the unattended key generation parameters for gpg --gen-key."""
    return "\n".join(
        [
            f"Key-Type: {EPHEMERAL_KEY_TYPE}",
            f"Key-Length: {EPHEMERAL_KEY_LENGTH}",
            f"Name-Real: {name}",
            f"Name-Email: {email}",
            "Expire-Date: 0",
            "%no-protection",
            "%commit",
        ]
    )


def signature_paths(file_path: Path) -> tuple[Path, Path]:
    """Return the (main, temp) signature paths of a file."""
    return (
        file_path.with_name(file_path.name + SIGNATURE_SUFFIX),
        file_path.with_name(file_path.name + TEMP_SIGNATURE_SUFFIX),
    )


def files_to_sign(staging_dir: Path) -> list[Path]:
    """Return the top-level files of the staging area (directories excluded)."""
    return sorted(
        p for p in staging_dir.iterdir() if p.is_file() and not p.is_symlink()
    )


class Signer:
    """Sequences gpg invocations for one run.

    Attributes:
        runner: Command runner.
        identities: Identity name -> email; must contain 'main' and 'temp'.
        gnupg_home: Optional GnuPG home passed with --homedir.
    """

    def __init__(
        self,
        runner: CommandRunner,
        identities: Mapping[str, str],
        gnupg_home: Path | None = None,
    ) -> None:
        missing = [k for k in (MAIN_IDENTITY, TEMP_IDENTITY) if k not in identities]
        if missing:
            raise SigningError(
                f"Signing identities not configured: {', '.join(missing)}",
                code="missing_identity",
            )
        self.runner = runner
        self.identities = dict(identities)
        self.gnupg_home = gnupg_home

    def _gpg(self, *args: str) -> list[str]:
        cmd = ["gpg", "--batch", "--yes"]
        if self.gnupg_home is not None:
            cmd.extend(["--homedir", str(self.gnupg_home)])
        cmd.extend(args)
        return cmd

    def import_key(self, key_material: bytes, scratch_dir: Path) -> None:
        """Import the primary secret key.

        Raises:
            SigningError: If gpg rejects the key.
        """
        logger.info("Importing secret key...")
        scratch_dir.mkdir(parents=True, exist_ok=True)
        key_path = scratch_dir / "secret.key"
        key_path.write_bytes(key_material)
        key_path.chmod(0o600)
        try:
            result = self.runner.run(self._gpg("--import", str(key_path)))
            require_success(result, "Failed to import secret key", SigningError)
        finally:
            key_path.unlink(missing_ok=True)

    def generate_ephemeral_key(self, scratch_dir: Path) -> None:
        """Generate the temporary signing key.

        Raises:
            SigningError: If key generation fails.
        """
        logger.info("Generating temporary key...")
        scratch_dir.mkdir(parents=True, exist_ok=True)
        params_path = scratch_dir / "gpg.conf"
        params_path.write_text(compose_key_params(self.identities[TEMP_IDENTITY]))
        result = self.runner.run(self._gpg("--gen-key", str(params_path)))
        require_success(result, "Failed to generate temporary key", SigningError)

    def export_public_keys(self, keys_dir: Path) -> list[Path]:
        """Export every identity's public key as <name>.asc.

        Raises:
            SigningError: If an export fails or produces no key.
        """
        logger.info("Exporting keys...")
        keys_dir.mkdir(parents=True, exist_ok=True)
        exported: list[Path] = []
        for name, email in self.identities.items():
            dest = keys_dir / f"{name}.asc"
            result = self.runner.run(
                self._gpg("--armor", "--output", str(dest), "--export", email)
            )
            require_success(result, f"Failed to export key {name}", SigningError)
            if not dest.exists() or dest.stat().st_size == 0:
                raise SigningError(
                    f"No public key exported for {name} <{email}>",
                    code="missing_key",
                )
            exported.append(dest)
        return exported

    def list_keys(self) -> str:
        """Return the keyring listing for the run summary."""
        result = self.runner.run(self._gpg("--list-keys"))
        require_success(result, "Failed to list keys", SigningError)
        return result.stdout

    def sign_file(self, file_path: Path) -> list[SignatureRecord]:
        """Produce the main and temp detached signatures of a file.

        Raises:
            SigningError: If either signature fails.
        """
        logger.info("Signing %s...", file_path.name)
        records: list[SignatureRecord] = []
        main_sig, temp_sig = signature_paths(file_path)
        for identity, sig_path in ((MAIN_IDENTITY, main_sig), (TEMP_IDENTITY, temp_sig)):
            result = self.runner.run(
                self._gpg(
                    "--output",
                    str(sig_path),
                    "--local-user",
                    self.identities[identity],
                    "--detach-sign",
                    str(file_path),
                )
            )
            require_success(
                result,
                f"Failed to sign {file_path.name} with {identity} key",
                SigningError,
            )
            records.append(
                SignatureRecord(path=file_path, signer=identity, signature_path=sig_path)
            )
        return records

    def prepare_keys(
        self, key_material: bytes, scratch_dir: Path, keys_dir: Path
    ) -> str:
        """Import, generate and export keys.

        Returns:
            The keyring listing after the keys are in place.
        """
        self.import_key(key_material, scratch_dir)
        self.generate_ephemeral_key(scratch_dir)
        self.export_public_keys(keys_dir)
        return self.list_keys()

    def sign_staging(self, staging_dir: Path) -> list[SignatureRecord]:
        """Dual-sign every top-level staging file.

        The file list is taken before signing, so signatures are not
        signed themselves.
        """
        records: list[SignatureRecord] = []
        for file_path in files_to_sign(staging_dir):
            records.extend(self.sign_file(file_path))
        return records


__all__ = [
    "SIGNATURE_SUFFIX",
    "TEMP_SIGNATURE_SUFFIX",
    "Signer",
    "compose_key_params",
    "files_to_sign",
    "signature_paths",
]
