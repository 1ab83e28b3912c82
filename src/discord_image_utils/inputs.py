# inputs.py
# The two shapes an image can arrive in, decided once at the API boundary
from dataclasses import dataclass
from typing import Union

from .errors import ValidationError


@dataclass(frozen=True)
class InMemoryBytes:
    """Image data already in memory; never touches the network."""
    data: bytes

    def __repr__(self):
        return f"InMemoryBytes(<{len(self.data)} bytes>)"


@dataclass(frozen=True)
class RemoteReference:
    """An http(s) URL still to be fetched."""
    url: str

    @property
    def is_https(self) -> bool:
        return self.url.lower().startswith("https://")


ImageInput = Union[InMemoryBytes, RemoteReference]


def to_image_input(value) -> ImageInput:
    """
    Classify a raw argument (bytes-like, URL string, or an existing ImageInput).
    Only shape is checked here; emptiness and URL scheme are the resolver's job.
    """
    if isinstance(value, (InMemoryBytes, RemoteReference)):
        return value
    if value is None:
        raise ValidationError("image is required", "image", value)
    if isinstance(value, bytes):
        return InMemoryBytes(value)
    if isinstance(value, (bytearray, memoryview)):
        return InMemoryBytes(bytes(value))
    if isinstance(value, str):
        url = value.strip()
        if not url:
            raise ValidationError("image is required", "image", value)
        return RemoteReference(url)
    raise ValidationError(
        f"image must be bytes or a URL string, got {type(value).__name__}",
        "image",
        repr(value),
    )
