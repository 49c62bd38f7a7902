"""
Upstream selection for package lookups.

Decides whether a package belongs to the private or the public registry and
builds the request targets used by the registry client.
"""

from typing import Iterable, Optional, Tuple
from urllib.parse import quote

import httpx

from .models import RegistryClass, UpstreamTarget


# encodeURIComponent leaves these alongside alphanumerics untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"

_DEFAULT_PORTS = {"http": 80, "https": 443}


def is_scoped_package_name(package_name: str) -> bool:
    return package_name.startswith("@")


def encode_package_name(package_name: str) -> str:
    """Percent-encode a package name for use as a single URL path segment.

    The leading ``@`` of a scoped name stays literal, so ``@scope/pkg``
    becomes ``@scope%2Fpkg``.
    """
    if is_scoped_package_name(package_name):
        return "@" + quote(package_name[1:], safe=_URI_COMPONENT_SAFE)
    return quote(package_name, safe=_URI_COMPONENT_SAFE)


def tarball_file_name(package_name: str) -> str:
    """Public registries name scoped tarballs after the unscoped part."""
    if is_scoped_package_name(package_name):
        return package_name.split("/")[1]
    return package_name


def parse_private_port(registry_url: str) -> Optional[int]:
    """Take the port from the last ``:``-separated segment of a host:port URL."""
    candidate = registry_url.rstrip("/").split(":")[-1]
    try:
        return int(candidate)
    except ValueError:
        return None


class UpstreamSelector:
    """Routes package names to registries and builds request targets."""

    def __init__(
        self,
        public_registry_url: str,
        private_registry_url: str,
        private_scopes: Iterable[str],
    ):
        self.private_scopes: Tuple[str, ...] = tuple(scope for scope in private_scopes if scope)
        self._public = self._split_base_url(public_registry_url)
        self._private = self._split_base_url(private_registry_url)

        private_port = parse_private_port(private_registry_url)
        if private_port is None:
            # URLs with a path after the port, or no port at all
            private_port = self._private[2] or _DEFAULT_PORTS.get(self._private[0])
        self.private_port = private_port

    @staticmethod
    def _split_base_url(registry_url: str) -> Tuple[str, str, Optional[int], str]:
        url = httpx.URL(registry_url)
        return url.scheme, url.host, url.port, url.path.rstrip("/")

    def classify(self, package_name: str) -> RegistryClass:
        """Private when any configured scope token occurs anywhere in the name."""
        if any(scope in package_name for scope in self.private_scopes):
            return RegistryClass.PRIVATE
        return RegistryClass.PUBLIC

    def build_metadata_target(self, package_name: str, registry_class: RegistryClass) -> UpstreamTarget:
        return self._target(registry_class, f"/{encode_package_name(package_name)}")

    def build_tarball_target(
        self,
        package_name: str,
        version: str,
        registry_class: RegistryClass,
    ) -> UpstreamTarget:
        if registry_class is RegistryClass.PRIVATE:
            file_name = package_name
        else:
            file_name = tarball_file_name(package_name)
        return self._target(registry_class, f"/{package_name}/-/{file_name}-{version}.tgz")

    def _target(self, registry_class: RegistryClass, relative_path: str) -> UpstreamTarget:
        if registry_class is RegistryClass.PRIVATE:
            scheme, host, _, base_path = self._private
            port = self.private_port
        else:
            scheme, host, port, base_path = self._public

        return UpstreamTarget(
            registry_class=registry_class,
            scheme=scheme,
            host=host,
            port=port,
            path=f"{base_path}{relative_path}",
        )
