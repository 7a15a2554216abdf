"""
Profile manager -- store, restore, verify, delete, list, and watch.

This is the command center. It wires the archive codec, verification
gate, and transfer protocol together, and hands watch mode to the save
scheduler.

    claude-profiles store work    ->  verify local -> build -> size check -> upload
    claude-profiles restore work  ->  download -> extract -> verify -> copy back
    claude-profiles watch work    ->  notify -> debounce/throttle -> save
"""

from __future__ import annotations

import json
import logging
import shutil
import sys
import tempfile
import threading
from pathlib import Path
from typing import Optional

from .archive import build_archive, extract_archive
from .config import ProfilesConfig, create_store, load_config
from .credentials import CredentialSource, credential_source_for, uses_keychain
from .errors import ExtractionFailed, NoContent, ProfileTooLarge, VerificationFailed
from .fingerprint import compute_fingerprint
from .models import (
    GIST_SIZE_LIMIT_API,
    RestoreResult,
    StoreResult,
    VerificationResult,
    WatchedSource,
    validate_profile_name,
)
from .paths import KEYCHAIN_CREDENTIALS_ENTRY, default_sources, home_dir, resolve_sources
from .scheduler import SaveScheduler
from .sink import LogSink
from .stores import RemoteStore
from .transfer import TransferProtocol, check_size, format_bytes
from .verify import essential_checks, verify_local, verify_tree
from .watcher import CredentialPoller, FileChangeNotifier

logger = logging.getLogger("claude_profiles.profiles")


class ProfileManager:
    """Runs every profile operation against one remote slot.

    Args:
        config: Tool configuration. Loaded from disk when omitted.
        store: Remote store. Built from ``config`` when omitted.
        credential_source: Keychain access. Picked by platform when omitted.
        platform: ``sys.platform`` override.
        sources: Watched sources. Defaults to the standard Claude paths.
        sink: Where watch-mode progress goes.
    """

    def __init__(
        self,
        config: Optional[ProfilesConfig] = None,
        store: Optional[RemoteStore] = None,
        credential_source: Optional[CredentialSource] = None,
        platform: Optional[str] = None,
        sources: Optional[list[WatchedSource]] = None,
        sink: Optional[LogSink] = None,
    ):
        self.config = config or load_config()
        self.platform = platform or sys.platform
        self.home = home_dir(self.config.home)
        self.sources = sources or default_sources()
        self.credential_source = credential_source or credential_source_for(self.platform)
        self.transfer = TransferProtocol(
            store or create_store(self.config), self.config.slot_description
        )
        self.sink = sink or LogSink("claude_profiles.watch")
        self._last_saved_fingerprint: Optional[str] = None

    # -- helpers --------------------------------------------------------

    def keychain_credentials(self) -> Optional[dict]:
        """Credentials from the keychain, on keychain platforms only."""
        if not uses_keychain(self.platform):
            return None
        return self.credential_source.read()

    def fingerprint(self) -> str:
        """Fingerprint of the current local state."""
        return compute_fingerprint(
            self.sources,
            self.home,
            credentials=self.keychain_credentials(),
            skip_projects=self.config.skip_projects,
        )

    def verify_local(self) -> VerificationResult:
        """Run the verification gate against live local files."""
        return verify_local(
            self.sources,
            self.home,
            keychain_credentials=self.keychain_credentials(),
            platform=self.platform,
        )

    # -- operations -----------------------------------------------------

    def list_profiles(self) -> list[str]:
        """Names of all stored profiles."""
        return self.transfer.list()

    def store(self, name: str) -> StoreResult:
        """Save the current local configuration as a profile.

        Raises:
            InvalidProfileName: Before anything else, for a bad name.
            VerificationFailed: If essential local files are missing.
            NoContent: If there was nothing to archive.
            ProfileTooLarge: If the encoded archive is over the API ceiling.
        """
        validate_profile_name(name)
        verification = self.verify_local()
        if not verification.valid:
            raise VerificationFailed(
                verification.issues, "Cannot create profile - essential files are missing"
            )
        return self._save(name)

    def save_once(self, name: str) -> str:
        """One watch-mode save.

        Returns:
            ``"skipped"`` when the content matches the last upload,
            otherwise ``"saved"``.
        """
        if self.config.skip_unchanged and self._last_saved_fingerprint is not None:
            if self.fingerprint() == self._last_saved_fingerprint:
                return "skipped"
        result = self._save(name)
        self.sink.info(
            "Archive created: %s", format_bytes(result.archive_size), detail=True
        )
        return "saved"

    def _save(self, name: str) -> StoreResult:
        credentials = self.keychain_credentials()
        fingerprint = compute_fingerprint(
            self.sources,
            self.home,
            credentials=credentials,
            skip_projects=self.config.skip_projects,
        )
        blob = build_archive(
            self.sources,
            self.home,
            credentials=credentials,
            skip_projects=self.config.skip_projects,
        )

        size = check_size(blob)
        if not size.within_limit:
            raise ProfileTooLarge(size.encoded_size, GIST_SIZE_LIMIT_API)
        if size.is_large:
            logger.warning(
                "Large profile: %s encoded%s",
                format_bytes(size.encoded_size),
                " (too large for the gist web interface)"
                if size.exceeds_web_interface_limit else "",
            )

        self.transfer.upload(name, blob)
        self._last_saved_fingerprint = fingerprint
        logger.debug("Profile uploaded - Size: %s", format_bytes(len(blob)))
        return StoreResult(
            profile=name,
            archive_size=len(blob),
            size_check=size,
            fingerprint=fingerprint,
        )

    def verify(self, name: str) -> VerificationResult:
        """Download a profile and check it without touching local state."""
        validate_profile_name(name)
        blob = self.transfer.download(name)
        with tempfile.TemporaryDirectory(prefix="claude-verify-") as tmp:
            extract_dir = Path(tmp) / "extract"
            try:
                extract_archive(blob, extract_dir)
            except ExtractionFailed as exc:
                return VerificationResult(valid=False, issues=[str(exc)])
            return verify_tree(extract_dir, essential_checks(self.platform))

    def restore(self, name: str) -> RestoreResult:
        """Replace local configuration with a stored profile.

        The archive is extracted and verified in a temporary directory
        first. Local files are only touched once it passes.

        Raises:
            ProfileNotFound: If the profile does not exist.
            VerificationFailed: If the archive is corrupt or incomplete.
        """
        validate_profile_name(name)
        blob = self.transfer.download(name)

        with tempfile.TemporaryDirectory(prefix="claude-restore-") as tmp:
            extract_dir = Path(tmp) / "extract"
            try:
                extract_archive(blob, extract_dir)
            except ExtractionFailed as exc:
                raise VerificationFailed(
                    [str(exc)], "Cannot restore profile - verification failed"
                ) from exc

            verification = verify_tree(extract_dir, essential_checks(self.platform))
            if not verification.valid:
                raise VerificationFailed(
                    verification.issues, "Cannot restore profile - verification failed"
                )

            restored = self._copy_back(extract_dir)
            creds_restored = self._restore_keychain(extract_dir)

        self._last_saved_fingerprint = self.fingerprint()
        return RestoreResult(
            profile=name,
            restored=restored,
            credentials_restored=creds_restored,
            verification=verification,
        )

    def _copy_back(self, extract_dir: Path) -> list[str]:
        restored = []
        for source, dest in resolve_sources(self.sources, self.home):
            src = extract_dir / source.entry_name
            try:
                if src.is_dir():
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copytree(src, dest, dirs_exist_ok=True)
                elif src.is_file():
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(src, dest)
                else:
                    continue
            except OSError as exc:
                logger.warning("Could not restore %s: %s", source.logical_path, exc)
                continue
            restored.append(source.logical_path)
            logger.debug("Restored %s", source.logical_path)
        return restored

    def _restore_keychain(self, extract_dir: Path) -> bool:
        if not uses_keychain(self.platform):
            return False
        creds_file = extract_dir / KEYCHAIN_CREDENTIALS_ENTRY
        if not creds_file.is_file():
            return False
        try:
            creds = json.loads(creds_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to restore macOS credentials: %s", exc)
            return False
        if not self.credential_source.write(creds):
            logger.warning("Could not restore macOS Keychain credentials")
            return False
        return True

    def delete(self, name: str) -> None:
        """Remove a stored profile."""
        self.transfer.delete(name)

    def watch(
        self,
        name: str,
        stop_event: Optional[threading.Event] = None,
        scheduler: Optional[SaveScheduler] = None,
    ) -> int:
        """Keep a profile in sync with local edits until stopped.

        Save failures are reported and watching continues. Only setup
        problems raise.

        Args:
            name: Profile to keep updated.
            stop_event: Set it to end watch mode. Ctrl+C also ends it.
            scheduler: Pre-built scheduler (tests inject a fast one).

        Returns:
            int: Number of completed saves.

        Raises:
            VerificationFailed: If essential local files are missing.
            NoContent: If none of the sources exists to be watched.
        """
        validate_profile_name(name)
        verification = self.verify_local()
        if not verification.valid:
            raise VerificationFailed(
                verification.issues, "Cannot start watch mode - essential files are missing"
            )

        scheduler = scheduler or SaveScheduler(
            lambda: self.save_once(name),
            settle=self.config.settle_seconds,
            min_interval=self.config.min_save_interval,
            sink=self.sink,
        )
        notifier = FileChangeNotifier(self.sources, scheduler.notify_change, self.home)
        watched = notifier.start()
        if watched == 0:
            notifier.stop()
            raise NoContent("No files to watch")

        self.sink.info("Starting watch mode for profile: %s", name)
        self.sink.info("Watching %d paths for changes", watched)

        poller = None
        if uses_keychain(self.platform) and self.credential_source.available:
            poller = CredentialPoller(
                self.fingerprint,
                scheduler.notify_change,
                interval=self.config.keychain_poll_interval,
            )
            poller.start()
            self.sink.info("Monitoring macOS Keychain for credential changes")

        stop_event = stop_event or threading.Event()
        try:
            while not stop_event.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            pass
        finally:
            self.sink.info("Stopping watch mode...")
            notifier.stop()
            if poller is not None:
                poller.stop()
            scheduler.stop()
            scheduler.wait_idle(timeout=300)

        self.sink.info("Watch mode ended - Total saves: %d", scheduler.save_count)
        return scheduler.save_count
