"""Probe technique registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    import httpx

    from fastmirror.techniques.base import ProbeTechnique


def _technique_classes() -> dict:
    from fastmirror.techniques.content_fetch import ContentFetchTechnique
    from fastmirror.techniques.image_load import ImageLoadTechnique
    from fastmirror.techniques.resource_timing import ResourceTimingTechnique

    return {
        "resource-timing": ResourceTimingTechnique,
        "content-fetch": ContentFetchTechnique,
        "image-load": ImageLoadTechnique,
    }


def list_techniques() -> list[str]:
    """Return the technique names in race order."""
    return list(_technique_classes())


def get_technique(
    name: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProbeTechnique:
    """Instantiate a technique by name.

    *transport* is handed to the HTTP-based techniques; the
    resource-timing technique talks to sockets directly and ignores it.
    """
    classes = _technique_classes()
    if name not in classes:
        raise ValueError(f"Unknown technique: {name!r}. Available: {list(classes)}")
    if name == "resource-timing":
        return classes[name]()
    return classes[name](transport=transport)


def default_techniques(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[ProbeTechnique]:
    """All three techniques, ready to race."""
    return [get_technique(name, transport) for name in list_techniques()]
