from __future__ import annotations

from pathlib import Path


class GeofilterError(ValueError):
    pass


def load_geofilter(value: str, from_file: bool = False) -> str:
    """Return the WKT boundary text, read from ``value`` as a path when ``from_file``.

    The text is passed to the service as-is; geometry is not validated here.
    """
    if from_file:
        text = Path(value).read_text(encoding="utf-8")
    else:
        text = value

    text = text.strip()
    if not text:
        source = f"file {value}" if from_file else "argument"
        raise GeofilterError(f"Bounding polygon {source} is empty")
    return text
