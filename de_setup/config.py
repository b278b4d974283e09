from dataclasses import dataclass


# ----------------------------------------------------------------
# Configuration Dataclass
# ----------------------------------------------------------------
@dataclass
class Config:
    LOG_FILE: str = "/var/log/de-setup.log"
    OS_RELEASE: str = "/etc/os-release"

    # Index refresh on apt hosts is retried, everything else fails fast
    REFRESH_MAX_ATTEMPTS: int = 6
    REFRESH_BACKOFF: float = 2.0

    REBOOT_DELAY: int = 6

    # Richest UI backend, installed on demand
    UPGRADE_PACKAGE: str = "gum"
    SERVICE_MANAGER: str = "systemctl"

    def __post_init__(self):
        if self.REFRESH_MAX_ATTEMPTS < 1:
            raise ValueError("REFRESH_MAX_ATTEMPTS must be at least 1")
