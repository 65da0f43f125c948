"""
Named local storage for model parameters.

Each model name maps to two blobs, one for the online network and one for
the target network. Blobs are written with torch.save to a temporary file
and moved into place, so a reader never sees a half-written blob. The pair
itself is not transactional: last writer wins.
"""

import os
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import torch


class ModelStore:
    """
    Directory-backed store of (online, target) parameter blobs.

    Args:
        root: Directory holding the blobs

    Example:
        >>> store = ModelStore("models")
        >>> store.save("dino-dqn", online_blob, target_blob)
        >>> online_blob, target_blob = store.load("dino-dqn")
    """

    SLOTS = ("online", "target")

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def path_for(self, name: str, slot: str) -> Path:
        if slot not in self.SLOTS:
            raise ValueError(f"Unknown slot '{slot}', expected one of {self.SLOTS}")
        return self.root / f"{name}-{slot}.pt"

    def exists(self, name: str) -> bool:
        return all(self.path_for(name, slot).exists() for slot in self.SLOTS)

    def save(
        self,
        name: str,
        online: Dict[str, Any],
        target: Dict[str, Any]
    ) -> None:
        """
        Write both blobs, online first.

        Raises:
            OSError: If the directory or a blob cannot be written
        """
        self.root.mkdir(parents=True, exist_ok=True)
        for slot, blob in zip(self.SLOTS, (online, target)):
            path = self.path_for(name, slot)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            try:
                torch.save(blob, tmp_path)
                os.replace(tmp_path, path)
            except Exception:
                tmp_path.unlink(missing_ok=True)
                raise

    def load(
        self,
        name: str,
        map_location: Union[str, torch.device] = "cpu"
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Read both blobs.

        Raises:
            FileNotFoundError: If either blob is missing
        """
        online = torch.load(self.path_for(name, "online"), map_location=map_location)
        target = torch.load(self.path_for(name, "target"), map_location=map_location)
        return online, target
