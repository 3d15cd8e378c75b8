from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import io
import numpy as np
from PIL import Image

WHITE = (255, 255, 255, 255)


@dataclass(frozen=True)
class EmbeddedImage:
    """Encoded image bytes (PNG/JPEG/...) carried inside the scene file."""
    data: bytes


@dataclass(frozen=True)
class ImageFile:
    """Image resource referenced by path, resolved at voxelization time."""
    path: Path


Texture = Union[EmbeddedImage, ImageFile]


@dataclass
class Raster:
    pixels: np.ndarray   # (H, W, 4) uint8, row 0 at v = 0

    def __post_init__(self) -> None:
        px = np.asarray(self.pixels, dtype=np.uint8)
        if px.ndim != 3 or px.shape[2] != 4 or px.shape[0] == 0 or px.shape[1] == 0:
            raise ValueError(f"Raster must be a non-empty (H, W, 4) array, got {px.shape}")
        self.pixels = px

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @staticmethod
    def from_image(image: Image.Image) -> "Raster":
        return Raster(np.asarray(image.convert("RGBA"), dtype=np.uint8))

    def sample(self, uv: np.ndarray) -> np.ndarray:
        """Nearest-pixel lookup; (2,) -> (4,) or (K, 2) -> (K, 4).

        column = floor(u * W) and row = floor(v * H), both clamped into the
        raster. No filtering.
        """
        uv = np.asarray(uv, dtype=np.float64)
        cols = np.clip(np.floor(uv[..., 0] * self.width), 0, self.width - 1).astype(np.int64)
        rows = np.clip(np.floor(uv[..., 1] * self.height), 0, self.height - 1).astype(np.int64)
        return self.pixels[rows, cols]


def decode_texture(texture: Texture) -> Raster:
    try:
        if isinstance(texture, EmbeddedImage):
            with Image.open(io.BytesIO(texture.data)) as img:
                return Raster.from_image(img)
        if isinstance(texture, ImageFile):
            with Image.open(texture.path) as img:
                return Raster.from_image(img)
    except OSError as exc:
        raise ValueError(f"Failed to decode texture image: {exc}") from exc
    raise TypeError(f"Unsupported texture source: {type(texture).__name__}")


@dataclass(frozen=True)
class SolidColor:
    rgba: tuple[int, int, int, int] = WHITE

    def sample(self, uv: np.ndarray) -> np.ndarray:
        n = np.asarray(uv).reshape(-1, 2).shape[0]
        return np.tile(np.asarray(self.rgba, dtype=np.uint8), (n, 1))


@dataclass(frozen=True)
class TextureColor:
    raster: Raster

    def sample(self, uv: np.ndarray) -> np.ndarray:
        return self.raster.sample(np.asarray(uv).reshape(-1, 2))


ColorSource = Union[TextureColor, SolidColor]


def color_source(texture: Optional[Texture], fallback: tuple[int, int, int, int] = WHITE) -> ColorSource:
    """Decode once per mesh; untextured meshes paint every hit ``fallback``."""
    if texture is None:
        return SolidColor(tuple(int(c) for c in fallback))  # type: ignore[arg-type]
    return TextureColor(decode_texture(texture))
