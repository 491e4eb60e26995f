"""Configuration parameters for a running reconciler process.

`ReconcilerConfig` collects the settings of the `run` command: where the
desired state lives, which address to advertise on, how often to poll the
desired-state file, and what to do with the advertised records on exit.
"""

from pathlib import Path
from typing import Optional

from mdns_reconciler.runtime.file_watcher import DEFAULT_POLL_INTERVAL_SECONDS

DEFAULT_CONFIG_PATH = "config.json"


class ReconcilerConfig:
    """Holds the settings for `mdns-reconciler run`.

    Values are validated once, at construction.
    """

    def __init__(
        self,
        config_path: str | Path = DEFAULT_CONFIG_PATH,
        *,
        ip_address: Optional[str] = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        withdraw_on_exit: bool = True,
        dry_run: bool = False,
    ) -> None:
        """Initializes the configuration.

        Args:
            config_path: Path of the desired-state document.
            ip_address: Address to advertise on. Discovered from the network
                interfaces when None or empty.
            poll_interval_seconds: Delay between two checks of
                |config_path|. Must be positive.
            withdraw_on_exit: Whether to withdraw all records on a clean
                shutdown instead of letting them expire.
            dry_run: Log record operations instead of sending them.

        Raises:
            ValueError: If a value is out of range.
        """
        if not str(config_path):
            raise ValueError("config_path cannot be empty.")
        if poll_interval_seconds <= 0:
            raise ValueError(
                "poll_interval_seconds must be positive, "
                f"got {poll_interval_seconds}."
            )

        self.__config_path = Path(config_path)
        self.__ip_address = ip_address or None
        self.__poll_interval_seconds = float(poll_interval_seconds)
        self.__withdraw_on_exit = withdraw_on_exit
        self.__dry_run = dry_run

    @property
    def config_path(self) -> Path:
        return self.__config_path

    @property
    def ip_address(self) -> Optional[str]:
        return self.__ip_address

    @property
    def poll_interval_seconds(self) -> float:
        return self.__poll_interval_seconds

    @property
    def withdraw_on_exit(self) -> bool:
        return self.__withdraw_on_exit

    @property
    def dry_run(self) -> bool:
        return self.__dry_run

    def __repr__(self) -> str:
        return (
            f"<ReconcilerConfig config_path='{self.__config_path}', "
            f"ip_address={self.__ip_address!r}, "
            f"poll_interval={self.__poll_interval_seconds}s, "
            f"withdraw_on_exit={self.__withdraw_on_exit}, "
            f"dry_run={self.__dry_run}>"
        )
