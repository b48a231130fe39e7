from PIL import Image, ImageSequence, UnidentifiedImageError
from typing import Optional
import io

from src.thumbnails.errors import TransformError
from src.thumbnails.models import ThumbnailSpec

# Extension -> Pillow encoder
ENCODERS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "gif": "GIF",
}


def encoder_for(extension: str) -> Optional[str]:
    """Pillow format for an extension like '.JPG' or 'png', None if unsupported."""
    return ENCODERS.get(extension.strip().lstrip(".").lower())


def thumbnail_height(source_width: int, source_height: int, target_width: int) -> int:
    """Height that keeps the aspect ratio, rounded to the nearest pixel (halves up)."""
    if source_width <= 0 or source_height <= 0 or target_width <= 0:
        raise ValueError("Dimensions must be positive")
    # Integer form of floor(h * t / w + 0.5)
    height = (2 * source_height * target_width + source_width) // (2 * source_width)
    return max(height, 1)


class ThumbnailTransformer:
    """Resizes an image to a fixed width and re-encodes it."""

    def __init__(self, quality: int = 85):
        self.quality = quality

    def transform(self, data: bytes, spec: ThumbnailSpec, source_url: str = "") -> bytes:
        """
        Decode, resize to spec.width (aspect ratio preserved) and encode as spec.image_format.
        - Animated GIFs keep every frame
        - JPEG output drops alpha / palette
        Every frame is decoded before encoding starts.
        """
        img = None
        frames = None
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
            if spec.image_format == "GIF" and getattr(img, "n_frames", 1) > 1:
                frames = self._read_frames(img)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, IndexError, EOFError) as e:
            if img is not None:
                img.close()
            raise TransformError("decode", source_url, str(e)) from e

        try:
            height = thumbnail_height(img.width, img.height, spec.width)
            size = (spec.width, height)
            buffer = io.BytesIO()

            if frames is not None:
                self._save_animated(frames, size, img.info.get("loop", 0), buffer)
            else:
                resized = img.resize(size, Image.Resampling.LANCZOS)
                try:
                    self._save(resized, spec.image_format, buffer)
                finally:
                    resized.close()
            return buffer.getvalue()
        except (OSError, ValueError, KeyError) as e:
            raise TransformError("encode", source_url, str(e)) from e
        finally:
            for frame, _ in frames or []:
                frame.close()
            img.close()

    def _save(self, img: Image.Image, image_format: str, buffer: io.BytesIO) -> None:
        if image_format == "JPEG":
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            img.save(buffer, format="JPEG", quality=self.quality, optimize=True)
        else:
            img.save(buffer, format=image_format, optimize=True)

    @staticmethod
    def _read_frames(img: Image.Image) -> list[tuple[Image.Image, int]]:
        """(RGBA copy, duration in ms) of every frame."""
        frames = []
        try:
            for frame in ImageSequence.Iterator(img):
                duration = frame.info.get("duration", img.info.get("duration", 100))
                frames.append((frame.convert("RGBA"), duration))
        except BaseException:
            for frame, _ in frames:
                frame.close()
            raise
        return frames

    def _save_animated(self, frames: list[tuple[Image.Image, int]], size: tuple[int, int], loop: int, buffer: io.BytesIO) -> None:
        resized = [frame.resize(size, Image.Resampling.LANCZOS) for frame, _ in frames]
        try:
            resized[0].save(
                buffer,
                format="GIF",
                save_all=True,
                append_images=resized[1:],
                duration=[duration for _, duration in frames],
                loop=loop,
                disposal=2,
            )
        finally:
            for frame in resized:
                frame.close()
