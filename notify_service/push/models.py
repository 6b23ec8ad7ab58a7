from dataclasses import dataclass, field
from typing import Optional


@dataclass
class DeviceToken:
    """A registered device of a user (from the device registry)"""
    platform: str               # "IOS" / "ANDROID" / "WEB"
    token: str


@dataclass
class PushPayload:
    title: str
    body: str
    data: Optional[dict] = None


@dataclass
class PushResult:
    """Per-batch outcome of a multicast send"""
    success_count: int = 0
    failure_count: int = 0
    failed_tokens: list[str] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        """At least one device reached, or no device to fail."""
        return self.success_count > 0 or self.failure_count == 0


@dataclass
class ServiceAccountCredentials:
    project_id: str
    client_email: str
    private_key: str
    token_uri: str = "https://oauth2.googleapis.com/token"
