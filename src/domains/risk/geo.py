"""IP address to country resolution for location consistency checks."""

import ipaddress


class GeoResolver:
    """Resolves an IP to an ISO country code.

    Longest configured prefix wins; public addresses with no matching prefix
    fall back to the default country. Private, loopback and malformed
    addresses resolve to None.
    """

    def __init__(
        self,
        default_country: str | None = "KE",
        prefix_countries: dict[str, str] | None = None,
    ) -> None:
        self._default_country = default_country
        self._prefixes = sorted(
            (prefix_countries or {}).items(), key=lambda item: len(item[0]), reverse=True
        )

    async def resolve(self, ip_address: str | None) -> str | None:
        if not ip_address:
            return None
        try:
            addr = ipaddress.ip_address(ip_address)
        except ValueError:
            return None
        if addr.is_private or addr.is_loopback or addr.is_unspecified:
            return None
        for prefix, country in self._prefixes:
            if ip_address.startswith(prefix):
                return country
        return self._default_country
