# unifi_client/guests.py

import logging

from .models import GuestEntry, first

logger = logging.getLogger(__name__)


class GuestApi:
    """
    Hotspot guest authorizations for the client's site.
    Guests are identified by MAC address; the controller expects lowercase.
    """
    def __init__(self, client):
        self.client = client

    def _stamgr(self):
        return self.client.site_path("cmd/stamgr")

    def authorize(self, mac, minutes=None, up=None, down=None, megabytes=None, ap_mac=None):
        """
        Authorizes a guest device. minutes defaults to the site's guest policy,
        up/down are kbps limits and megabytes a data quota.
        Returns the GuestEntry the controller created.
        """
        payload = {"cmd": "authorize-guest", "mac": mac.lower()}
        optional = {"minutes": minutes, "up": up, "down": down, "bytes": megabytes, "ap_mac": ap_mac}
        for key, value in optional.items():
            if value is not None:
                payload[key] = value.lower() if key == "ap_mac" else value

        logger.info("Authorizing guest %s for %s minutes", payload["mac"], minutes or "default")
        entries = self.client.post_json(self._stamgr(), payload, model=GuestEntry.from_dict)
        return first(entries, "authorize guest response")

    def list(self, within_hours=None):
        """Guests authorized within the last within_hours hours (controller default if None)."""
        params = {"within": within_hours} if within_hours is not None else None
        return self.client.get_json(self.client.site_path("stat/guest"), params=params, model=GuestEntry.from_dict) or []

    def unauthorize(self, mac):
        logger.info("Unauthorizing guest %s", mac.lower())
        self.client.post_json(self._stamgr(), {"cmd": "unauthorize-guest", "mac": mac.lower()})

    def unauthorize_all(self):
        """Unauthorizes every listed guest, one request each; stops at the first error."""
        guests = self.list()
        for guest in guests:
            self.unauthorize(guest.mac)
        return len(guests)
