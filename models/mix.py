"""
Mix-related request models
"""
from dataclasses import dataclass, field
from typing import Any, List, Literal

from services.errors import InvalidInput

DEFAULT_VOLUME = 1.0

# A stem arrives either as a bare URL string or as an object with a "url" field
StemKind = Literal["url", "record"]


@dataclass(frozen=True)
class ResolvedStem:
    """
    A stem descriptor resolved once at the validation boundary.

    `kind` records which shape the caller sent and is only used for tracing.
    """
    index: int
    url: str
    kind: StemKind = "url"


@dataclass
class MixRequest:
    """Validated body of POST /mix"""
    stems: List[ResolvedStem]
    volumes: List[Any] = field(default_factory=list)

    def volume_for(self, index: int) -> float:
        """
        Gain for the stem at `index`.

        Missing, out of range, null or non-numeric entries fall back to unity gain.
        Values are not clamped, so anything above 1.0 amplifies and 0 mutes.
        """
        if index < 0 or index >= len(self.volumes):
            return DEFAULT_VOLUME
        value = self.volumes[index]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return DEFAULT_VOLUME
        return float(value)

    def resolved_volumes(self) -> List[float]:
        return [self.volume_for(stem.index) for stem in self.stems]


def resolve_stem(index: int, descriptor: Any) -> ResolvedStem:
    if isinstance(descriptor, str):
        url, kind = descriptor.strip(), "url"
    elif isinstance(descriptor, dict) and isinstance(descriptor.get("url"), str):
        url, kind = descriptor["url"].strip(), "record"
    else:
        url, kind = "", "url"

    if not url:
        raise InvalidInput(
            f"stems[{index}] must be a non-empty URL string or an object with a non-empty url",
            received=descriptor,
            index=index,
        )
    return ResolvedStem(index=index, url=url, kind=kind)


def parse_mix_request(body: Any) -> MixRequest:
    """
    Validate a decoded JSON body into a MixRequest.

    Raises:
        InvalidInput: if stems is missing, not a list, empty, or holds an
            element that is neither a URL string nor an object with a url.
            The first bad element aborts the whole request.
    """
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object", received=body)

    stems = body.get("stems")
    if not isinstance(stems, list) or not stems:
        raise InvalidInput("stems array is required and must not be empty", received=stems)

    resolved = [resolve_stem(index, descriptor) for index, descriptor in enumerate(stems)]

    volumes = body.get("volumes")
    if not isinstance(volumes, list):
        volumes = []

    return MixRequest(stems=resolved, volumes=volumes)
