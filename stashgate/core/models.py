"""
Data model for the Stashgate caching gateway.

Defines request descriptors, responses, cache entries, the classification and
strategy enums, lifecycle states, and the generation naming scheme.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set
from urllib.parse import urldefrag, urljoin, urlparse


class ResourceKind(str, Enum):
    """Kind of resource the requester expects to receive."""
    STYLE = "style"
    SCRIPT = "script"
    IMAGE = "image"
    FONT = "font"
    DOCUMENT = "document"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ResourceKind":
        """Map a destination string (e.g. a Sec-Fetch-Dest value) to a kind."""
        if not value:
            return cls.OTHER
        try:
            return cls(value.lower())
        except ValueError:
            return cls.OTHER


class Classification(str, Enum):
    STATIC_ASSET = "static-asset"
    API = "api"
    NAVIGATION = "navigation"
    OTHER = "other"


class Strategy(str, Enum):
    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"


class LifecycleState(str, Enum):
    """
    Lifecycle states of one gateway instance.

    REDUNDANT marks an instance that was active and has been superseded by a
    newer instance for the same origin.
    """
    UNINSTALLED = "uninstalled"
    INSTALLING = "installing"
    INSTALLED_WAITING = "installed-waiting"
    ACTIVE = "active"
    REDUNDANT = "redundant"


STATIC_RESOURCE_KINDS = frozenset({
    ResourceKind.STYLE,
    ResourceKind.SCRIPT,
    ResourceKind.IMAGE,
    ResourceKind.FONT,
})


@dataclass(frozen=True)
class RequestDescriptor:
    """
    An outbound request issued by the host application.

    Attributes:
        url: Absolute URL, or a URL relative to the application origin
        method: HTTP method
        kind: Resource kind the requester expects
        navigation: True for top-level navigations
        headers: Request headers forwarded to the network
        body: Request body (only forwarded for pass-through requests)
    """
    url: str
    method: str = "GET"
    kind: ResourceKind = ResourceKind.OTHER
    navigation: bool = False
    headers: Dict[str, str] = field(default_factory=dict, compare=False)
    body: Optional[bytes] = field(default=None, compare=False)

    @property
    def is_get(self) -> bool:
        return self.method.upper() == "GET"

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"

    @property
    def cache_key(self) -> str:
        """Canonical identity: method plus URL without fragment."""
        return canonical_key(self.url, self.method)

    def resolve(self, origin: str) -> "RequestDescriptor":
        """Return a copy whose URL is absolute, resolved against *origin*."""
        absolute = urljoin(origin.rstrip("/") + "/", self.url)
        if absolute == self.url:
            return self
        return replace(self, url=absolute)


def canonical_key(url: str, method: str = "GET") -> str:
    """
    Build the canonical cache key for a request.

    Args:
        url: Request URL
        method: HTTP method

    Returns:
        "<METHOD> <url-without-fragment>"
    """
    return f"{method.upper()} {urldefrag(url)[0]}"


@dataclass
class Response:
    """
    An HTTP response, from the network, the store, or fabricated locally.

    Attributes:
        status: HTTP status code
        headers: Response headers in arrival order
        body: Raw body bytes
        url: URL the response was obtained from, if known
    """
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def copy(self) -> "Response":
        """Return an independent copy, safe to store while the original is returned."""
        return Response(
            status=self.status,
            headers=dict(self.headers),
            body=bytes(self.body),
            url=self.url,
        )

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass
class CacheEntry:
    """
    A stored response keyed by canonical request identity.

    Attributes:
        key: Canonical request key
        response: The stored response
        stored_at: When the entry was written (UTC)
    """
    key: str
    response: Response
    stored_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary (body is hex-encoded)."""
        return {
            "key": self.key,
            "status": self.response.status,
            "headers": [[k, v] for k, v in self.response.headers.items()],
            "body": self.response.body.hex(),
            "url": self.response.url,
            "stored_at": self.stored_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Create CacheEntry from dictionary."""
        response = Response(
            status=int(data["status"]),
            headers={k: v for k, v in data.get("headers", [])},
            body=bytes.fromhex(data.get("body", "")),
            url=data.get("url"),
        )
        stored_at = data.get("stored_at")
        return cls(
            key=data["key"],
            response=response,
            stored_at=_parse_timestamp(stored_at) if stored_at else datetime.now(timezone.utc),
        )


def _parse_timestamp(value: str) -> datetime:
    # Older entries carry a trailing "Z" on a naive timestamp
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class GenerationNames:
    """
    Names of the current generations for one deployed version.

    static and dynamic are "<app>-<role>-<version>"; the umbrella generation
    is "<app>-<version>".
    """
    app_name: str
    version: str

    @property
    def static(self) -> str:
        return f"{self.app_name}-static-{self.version}"

    @property
    def dynamic(self) -> str:
        return f"{self.app_name}-dynamic-{self.version}"

    @property
    def umbrella(self) -> str:
        return f"{self.app_name}-{self.version}"

    def current(self) -> Set[str]:
        return {self.static, self.dynamic, self.umbrella}

    def is_current(self, name: str) -> bool:
        return name in self.current()
