"""Push token device types."""

from __future__ import annotations

import sys
from enum import StrEnum


class DeviceType(StrEnum):
    ANDROID = "android"
    IOS = "ios"
    HUAWEI = "huawei"
    OTHER = "other"

    @classmethod
    def from_platform(cls, platform: str) -> DeviceType:
        lowered = platform.lower()
        if "ios" in lowered or "iphone" in lowered or "ipad" in lowered or lowered == "darwin":
            return cls.IOS
        if "android" in lowered:
            return cls.ANDROID
        if "huawei" in lowered or "harmony" in lowered:
            return cls.HUAWEI
        return cls.OTHER

    @classmethod
    def current(cls) -> DeviceType:
        return cls.from_platform(sys.platform)

    @property
    def uses_firebase(self) -> bool:
        return self in (DeviceType.ANDROID, DeviceType.IOS)
