# unifi_client/models.py

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ApiError


class GuestStatus(enum.Enum):
    NEW = "new" # just authorized, no traffic recorded yet
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class GuestEntry:
    id: str
    mac: str
    authorized_by: str
    start: int
    end: int
    site_id: str
    expired: bool = False
    bytes: Optional[int] = None
    rx_bytes: Optional[int] = None
    tx_bytes: Optional[int] = None
    unauthorized_by: Optional[str] = None
    status: GuestStatus = GuestStatus.NEW

    @classmethod
    def from_dict(cls, data):
        if "expired" not in data:
            status = GuestStatus.NEW
        elif not data["expired"] and "tx_bytes" in data:
            status = GuestStatus.ACTIVE
        else:
            status = GuestStatus.INACTIVE
        return cls(
            id=data["_id"],
            mac=data["mac"],
            authorized_by=data["authorized_by"],
            start=int(data["start"]),
            end=int(data["end"]),
            site_id=data["site_id"],
            expired=bool(data.get("expired", False)),
            bytes=data.get("bytes"),
            rx_bytes=data.get("rx_bytes"),
            tx_bytes=data.get("tx_bytes"),
            unauthorized_by=data.get("unauthorized_by"),
            status=status,
        )

    @property
    def expires_at(self):
        return self.end

    @property
    def is_expired(self):
        return self.expired

    @property
    def was_unauthorized(self):
        return self.unauthorized_by is not None


@dataclass
class Site:
    id: str
    name: str # the short name used in /api/s/<name>/ paths
    desc: str # friendly name
    role: Optional[str] = None
    hidden: Optional[bool] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data):
        known = {"_id", "name", "desc", "role", "hidden"}
        return cls(
            id=data["_id"],
            name=data["name"],
            desc=data["desc"],
            role=data.get("role"),
            hidden=data.get("hidden"),
            attributes={k: v for k, v in data.items() if k not in known},
        )

    def __str__(self):
        return f"{self.desc} ({self.name})"


@dataclass
class SubsystemHealth:
    subsystem: str
    status: str
    num_user: Optional[int] = None
    num_guest: Optional[int] = None
    num_ap: Optional[int] = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            subsystem=data["subsystem"],
            status=data["status"],
            num_user=data.get("num_user"),
            num_guest=data.get("num_guest"),
            num_ap=data.get("num_ap"),
        )


class VoucherStatus(enum.Enum):
    VALID_ONE = "VALID_ONE"
    VALID_MULTI = "VALID_MULTI"
    USED = "USED"
    USED_MULTIPLE = "USED_MULTIPLE"
    EXPIRED = "EXPIRED"

    def __str__(self):
        return self.value.replace("_", " ").title()


@dataclass
class Voucher:
    id: str
    code: str
    create_time: int
    duration: int # minutes
    quota: int # 0 = unlimited uses, 1 = single use, n = n uses
    used: int
    status: VoucherStatus
    note: Optional[str] = None
    admin_name: Optional[str] = None
    site_id: Optional[str] = None
    qos_overwrite: Optional[bool] = None
    qos_rate_max_up: Optional[int] = None
    qos_rate_max_down: Optional[int] = None
    qos_usage_quota: Optional[int] = None
    status_expires: Optional[int] = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data["_id"],
            code=data["code"],
            create_time=int(data["create_time"]),
            duration=int(data["duration"]),
            quota=int(data["quota"]),
            used=int(data.get("used", 0)),
            status=VoucherStatus(data["status"]),
            note=data.get("note"),
            admin_name=data.get("admin_name"),
            site_id=data.get("site_id"),
            qos_overwrite=data.get("qos_overwrite"),
            qos_rate_max_up=data.get("qos_rate_max_up"),
            qos_rate_max_down=data.get("qos_rate_max_down"),
            qos_usage_quota=data.get("qos_usage_quota"),
            status_expires=data.get("status_expires"),
        )

    @property
    def formatted_code(self):
        """Code as printed on vouchers, e.g. 12345-67890"""
        if len(self.code) == 10:
            return f"{self.code[:5]}-{self.code[5:]}"
        return self.code

    def __str__(self):
        return f"Code: {self.formatted_code} ({self.status})"


def first(items: List, what: str):
    if not items:
        raise ApiError(200, f"No {what} returned by controller")
    return items[0]
