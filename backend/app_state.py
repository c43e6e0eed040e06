"""Backend application state for vault-scoped services."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from branch_store import BranchStore
from services import SynapseService
from settings import DEFAULT_SETTINGS_PATH, SynapseSettings, load_settings, save_settings
from storage import NoteStorage

logger = logging.getLogger(__name__)


@dataclass
class VaultServices:
    storage: NoteStorage
    branch: BranchStore
    synapse: SynapseService


class SynapseAppState:
    """Holds the currently-open vault and all vault-scoped services.

    Settings passed in directly are only written back when a ``settings_path``
    is given as well; loaded settings are written back to where they came from.
    """

    def __init__(
        self,
        settings: Optional[SynapseSettings] = None,
        settings_path: Optional[Path] = None,
    ):
        self._lock = threading.RLock()
        self._services: Optional[VaultServices] = None
        if settings is None:
            settings_path = settings_path or DEFAULT_SETTINGS_PATH
            settings = load_settings(settings_path)
        self._settings_path = settings_path
        self._load_vault(settings)

    def current(self) -> VaultServices:
        with self._lock:
            assert self._services is not None
            return self._services

    def open_vault(self, vault_path: str) -> VaultServices:
        root = Path(vault_path).expanduser()
        if not root.is_dir():
            raise FileNotFoundError(f"Vault folder not found: {vault_path}")

        with self._lock:
            settings = self.current().synapse.settings.model_copy(
                update={"vault_path": str(root.resolve())}
            )
            self._load_vault(settings)
            if self._settings_path is not None:
                save_settings(settings, self._settings_path)
            logger.info("Opened vault %s", settings.vault_path)
            assert self._services is not None
            return self._services

    def _load_vault(self, settings: SynapseSettings) -> None:
        storage = NoteStorage(root=Path(settings.vault_path))
        branch = BranchStore(state_path=settings.branch_state_path)
        branch.prune(handle.path for handle in storage.list_handles())
        synapse = SynapseService(
            storage=storage,
            branch=branch,
            settings=settings,
            settings_path=self._settings_path,
        )

        self._services = VaultServices(
            storage=storage,
            branch=branch,
            synapse=synapse,
        )
