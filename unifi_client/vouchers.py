# unifi_client/vouchers.py

import logging

from .errors import DecodeError
from .models import Voucher, first

logger = logging.getLogger(__name__)


class VoucherApi:
    """Hotspot vouchers for the client's site."""
    def __init__(self, client):
        self.client = client

    def _hotspot(self):
        return self.client.site_path("cmd/hotspot")

    def create(self, count, minutes, quota=1, note=None, up=None, down=None, megabytes=None):
        """
        Creates count vouchers valid for minutes each and returns their
        create_time, which list(create_time=...) uses to fetch the codes.
        quota: 0 = multi-use, 1 = single use, n = n uses.
        """
        payload = {"cmd": "create-voucher", "n": count, "expire": minutes, "quota": quota}
        optional = {"note": note, "up": up, "down": down, "bytes": megabytes}
        payload.update({key: value for key, value in optional.items() if value is not None})

        logger.info("Creating %d voucher(s) valid for %d minutes", count, minutes)
        created = first(self.client.post_json(self._hotspot(), payload), "voucher create response")
        try:
            return int(created["create_time"])
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Voucher create response has no create_time: {created!r}") from e

    def list(self, create_time=None):
        params = {"create_time": create_time} if create_time is not None else None
        return self.client.get_json(self.client.site_path("stat/voucher"), params=params, model=Voucher.from_dict) or []

    def delete(self, voucher_id):
        logger.info("Deleting voucher %s", voucher_id)
        self.client.post_json(self._hotspot(), {"cmd": "delete-voucher", "_id": voucher_id})

    def delete_all(self):
        vouchers = self.list()
        for voucher in vouchers:
            self.delete(voucher.id)
        return len(vouchers)
