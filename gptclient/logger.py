"""Human and JSON logging helpers."""
from __future__ import annotations

import copy
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from rich.console import Console
from rich.theme import Theme

_STYLES = {
    "error": "red",
    "warn": "yellow",
    "model": "cyan",
    "tool": "green",
}


@dataclass
class HumanEntry:
    title: Optional[str] = None
    body: Optional[str] = None
    variant: str = "info"


class Logger:
    """Console and JSONL sink shared by the executor and the runner.

    Both channels are off unless asked for: human logs need
    ``enable_human_logs`` and JSON logs need a ``log_json_path``.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        log_json_path: Optional[str] = None,
        enable_human_logs: bool = False,
        enable_file_logs: bool = True,
        pretty: bool = False,
    ) -> None:
        self.model = model
        self.log_path = Path(log_json_path) if log_json_path else None
        self.enable_human_logs = enable_human_logs
        self.enable_file_logs = enable_file_logs and self.log_path is not None
        self.pretty = pretty
        self.console = Console(theme=_theme(), highlight=False) if pretty else None
        self._write_lock = threading.Lock()

    def start_spinner(self) -> Callable[[], None]:
        if not self.pretty or not self.enable_human_logs or not self.console:
            return lambda: None
        status = self.console.status("waiting", spinner="dots")
        status.start()
        return status.stop

    def human(self, entry: HumanEntry) -> None:
        if not self.enable_human_logs:
            return
        title = entry.title or "info"
        body = entry.body or ""
        variant = entry.variant or "info"
        if self.console:
            self.console.print(f"[{variant}] {title}", markup=False)
            if body:
                self.console.print(body, style=_STYLES.get(variant, "cyan"), markup=False)
            return
        print(f"{title}: {body}")

    def json(self, entry: Dict[str, Any]) -> None:
        if not self.enable_file_logs or self.log_path is None:
            return
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "model": self.model,
            **entry,
        }
        line = json.dumps(payload, default=str) + "\n"
        try:
            with self._write_lock, self.log_path.open("a", encoding="utf8") as fh:
                fh.write(line)
        except OSError:
            if self.console:
                self.console.print("log write failed", style="red")

    def for_model(self, model: Optional[str]) -> "Logger":
        """Return a logger writing to the same sinks (and sharing the write lock), stamped with ``model``."""
        clone = copy.copy(self)
        clone.model = model
        return clone


def _theme() -> Theme:
    return Theme(
        {
            "info": "cyan",
            "warn": "yellow",
            "error": "red",
            "model": "cyan",
            "tool": "green",
        }
    )
