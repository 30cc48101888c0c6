"""Image derivative generation (fixed-width thumbnails)."""
import io

from PIL import Image

THUMBNAIL_WIDTHS = (500, 250, 100)


def make_thumbnail(image_bytes: bytes, width: int) -> bytes:
    """Resize to `width` pixels wide, keeping the aspect ratio and the source format.

    Raises whatever Pillow raises for unreadable input.
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        fmt = img.format or "PNG"
        height = max(1, round(img.height * width / img.width))
        resized = img.resize((width, height))
        if fmt == "JPEG" and resized.mode not in ("RGB", "L"):
            resized = resized.convert("RGB")
        out = io.BytesIO()
        resized.save(out, format=fmt)
        return out.getvalue()
