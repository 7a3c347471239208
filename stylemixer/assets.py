"""Uploaded garment/subject images and the scene description."""

import mimetypes
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from stylemixer.config import SUPPORTED_IMAGE_TYPES


class Slot(str, Enum):
    GARMENT = "garment"
    SUBJECT = "subject"


@dataclass(frozen=True)
class UploadedAsset:
    """One uploaded image. Replaced wholesale on re-upload."""

    data: bytes
    mime_type: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if not self.data:
            raise ValueError("Image payload is empty")
        if self.mime_type not in SUPPORTED_IMAGE_TYPES:
            raise ValueError(f"Unsupported image type: {self.mime_type}")

    @classmethod
    def from_file(cls, path, mime_type: Optional[str] = None) -> "UploadedAsset":
        """Read an image file, guessing the mime type from its name."""
        path = Path(path)
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), mime_type=mime_type or "")


@dataclass(frozen=True)
class GenerationRequest:
    """Everything one composition call needs. Built per call, never kept."""

    garment: UploadedAsset
    subject: UploadedAsset
    scene_description: str


class AssetStore:
    """Holds the two image slots and the scene description text."""

    def __init__(self):
        self._assets: dict[Slot, UploadedAsset] = {}
        self._scene_description = ""
        self.revision = 0  # bumped on every mutation

    @property
    def scene_description(self) -> str:
        return self._scene_description

    @scene_description.setter
    def scene_description(self, text: str):
        self._scene_description = text or ""
        self.revision += 1

    def get_asset(self, slot: Slot) -> Optional[UploadedAsset]:
        return self._assets.get(Slot(slot))

    def set_asset(self, slot: Slot, asset: UploadedAsset):
        self._assets[Slot(slot)] = asset
        self.revision += 1

    def clear_asset(self, slot: Slot):
        if self._assets.pop(Slot(slot), None) is not None:
            self.revision += 1

    def current_request_ready(self) -> bool:
        return (
            Slot.GARMENT in self._assets
            and Slot.SUBJECT in self._assets
            and bool(self._scene_description.strip())
        )

    def build_request(self) -> GenerationRequest:
        """Snapshot the current slots into a request.

        Raises:
            ValueError: if either slot is empty or the description is blank
        """
        if not self.current_request_ready():
            raise ValueError("Garment, subject and scene description are all required")
        return GenerationRequest(
            garment=self._assets[Slot.GARMENT],
            subject=self._assets[Slot.SUBJECT],
            scene_description=self._scene_description,
        )
