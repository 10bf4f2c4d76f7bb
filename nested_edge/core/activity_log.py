"""Activity log — shared console + log file writer for every concurrent call."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import IO, Optional

from rich.console import Console


class ActivityLog:
    """Append-only progress log shared by all orchestrators.

    Every line goes to the log file. ``print`` also goes to the console;
    ``print_verbose`` only does when verbose mode is on. Writes from worker
    threads are serialized so lines never interleave.
    """

    def __init__(
        self,
        base_path: Path,
        log_file: IO[str],
        verbose: bool = False,
        console: Optional[Console] = None,
    ):
        self.base_path = base_path
        self.verbose = verbose
        self.console = console or Console()
        self._log_file = log_file
        self._lock = threading.Lock()

    @classmethod
    def open(
        cls,
        base_path: str | Path,
        verbose: bool = False,
        console: Optional[Console] = None,
    ) -> ActivityLog:
        """Create ``base_path`` and a fresh ``log_<unix-seconds>.txt`` inside it."""
        base = Path(base_path)
        base.mkdir(parents=True, exist_ok=True)
        log_path = base / f"log_{int(time.time())}.txt"
        return cls(base, open(str(log_path), "w", encoding="utf-8"), verbose, console)

    @property
    def log_path(self) -> Optional[Path]:
        name = getattr(self._log_file, "name", None)
        return Path(name) if isinstance(name, str) else None

    def create_folder(self, name: str) -> Path:
        """Create ``name`` directly under the base path.

        Raises ValueError when ``name`` would land anywhere else.
        """
        folder = self.base_path / name
        if folder.resolve().parent != self.base_path.resolve():
            raise ValueError(f"Folder {name!r} is outside {self.base_path}")
        folder.mkdir(parents=True, exist_ok=True)
        return folder

    def print(self, text: str, style: Optional[str] = None) -> None:
        self._emit(text, to_console=True, style=style)

    def print_verbose(self, text: str) -> None:
        self._emit(text, to_console=self.verbose)

    def close(self) -> None:
        with self._lock:
            if not self._log_file.closed:
                self._log_file.close()

    def __enter__(self) -> ActivityLog:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _emit(self, text: str, to_console: bool, style: Optional[str] = None) -> None:
        with self._lock:
            if to_console:
                self.console.print(text, style=style, markup=False, highlight=False)
            self._log_file.write(f"{text}\n")
            self._log_file.flush()
