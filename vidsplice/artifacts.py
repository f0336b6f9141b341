"""In-memory artifact namespace shared by a job and the media engine."""

import logging
from typing import Iterable

from vidsplice.errors import ArtifactNotFoundError, DuplicateNameError
from vidsplice.models import Artifact, ArtifactRole

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Tracks named buffers (inputs, intermediates, outputs) for one job.

    Names are unique: registering an occupied name raises
    :class:`DuplicateNameError`. Reads of absent names raise
    :class:`ArtifactNotFoundError`.
    """

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}

    def register(self, name: str, data: bytes, role: ArtifactRole) -> Artifact:
        if name in self._artifacts:
            raise DuplicateNameError(name)
        artifact = Artifact(name=name, data=bytes(data), role=ArtifactRole(role))
        self._artifacts[name] = artifact
        logger.debug("Registered %s artifact %s (%d bytes)", artifact.role.value, name, artifact.size)
        return artifact

    def get(self, name: str) -> Artifact:
        try:
            return self._artifacts[name]
        except KeyError:
            raise ArtifactNotFoundError(name) from None

    def resolve(self, name: str) -> bytes:
        return self.get(name).data

    def release(self, name: str) -> None:
        """Drop *name* from the namespace; releasing an absent name is a no-op."""
        if self._artifacts.pop(name, None) is not None:
            logger.debug("Released artifact %s", name)

    def release_all(self, keep: Iterable[str] = ()) -> list[str]:
        """Release everything except *keep*; returns the released names."""
        keep = set(keep)
        released = [name for name in self._artifacts if name not in keep]
        for name in released:
            del self._artifacts[name]
        if released:
            logger.debug("Released %d artifact(s): %s", len(released), ", ".join(released))
        return released

    def names(self, role: ArtifactRole | None = None) -> list[str]:
        return [
            a.name for a in self._artifacts.values()
            if role is None or a.role == role
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._artifacts

    def __len__(self) -> int:
        return len(self._artifacts)
