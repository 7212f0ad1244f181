import logging
import os
from dataclasses import asdict, dataclass, field
from typing import List, Optional

import pandas as pd

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
HANDLER_NAME = "entitlement-batch"

CREATED = "created"
SKIPPED = "skipped"
FAILED = "failed"


def configure_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Console logging for a job run, copied to ``log_file`` when given."""
    root = logging.getLogger()
    reset_logging()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        folder = os.path.dirname(log_file)
        if folder:
            os.makedirs(folder, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.set_name(HANDLER_NAME)
        root.addHandler(handler)

    # keep token and connection chatter out of the run log
    for noisy in ("msal", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def reset_logging() -> None:
    """Detach and close the handlers added by configure_logging."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == HANDLER_NAME:
            root.removeHandler(handler)
            handler.close()


@dataclass
class Outcome:
    row: int
    name: str
    status: str
    message: str = ""


@dataclass
class RunReport:
    job: str
    outcomes: List[Outcome] = field(default_factory=list)

    def add(self, row: int, name: str, status: str, message: str = "") -> Outcome:
        outcome = Outcome(row=row, name=name, status=status, message=message)
        self.outcomes.append(outcome)
        return outcome

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    def summary(self) -> str:
        return (
            f"{self.job}: {len(self.outcomes)} record(s), {self.count(CREATED)} created, "
            f"{self.count(SKIPPED)} skipped, {self.count(FAILED)} failed"
        )

    def write_csv(self, path: str) -> None:
        folder = os.path.dirname(path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        df = pd.DataFrame([asdict(o) for o in self.outcomes], columns=["row", "name", "status", "message"])
        df.to_csv(path, index=False)
