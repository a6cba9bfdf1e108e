"""Build-pipeline surface: progress log, annotations, outputs and step summary"""
import logging
import sys
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, TextIO

logger = logging.getLogger(__name__)


def escape_data(value: str) -> str:
    """Escape a workflow command message."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class Pipeline:
    """
    Talks to the invoking build pipeline.

    Progress lines and workflow commands go to the log stream (stdout by
    default). Outputs and the step summary are appended to the files named
    by GITHUB_OUTPUT and GITHUB_STEP_SUMMARY; when those are not set, as on
    a developer machine, they are echoed to the log stream instead.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        output_file: str = "",
        summary_file: str = "",
    ):
        self.stream = stream or sys.stdout
        self.output_file = output_file
        self.summary_file = summary_file
        self.exit_code = 0

    def _emit(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def info(self, message: str) -> None:
        self._emit(message)

    def warning(self, message: str) -> None:
        self._emit(f"::warning::{escape_data(message)}")

    def error(self, message: str) -> None:
        self._emit(f"::error::{escape_data(message)}")

    @contextmanager
    def group(self, title: str) -> Iterator[None]:
        """Collapse everything logged inside the block under one heading."""
        self._emit(f"::group::{escape_data(title)}")
        try:
            yield
        finally:
            self._emit("::endgroup::")

    def set_output(self, name: str, value: str) -> None:
        """Expose a value to downstream steps."""
        if not self.output_file:
            self.info(f"Output {name}={value}")
            return

        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
        else:
            entry = f"{name}={value}\n"
        with open(self.output_file, "a", encoding="utf-8") as f:
            f.write(entry)
        logger.debug(f"Output {name} written to {self.output_file}")

    def write_summary(self, markdown: str) -> None:
        """Append markdown to the persistent step summary."""
        if not self.summary_file:
            self.info(markdown)
            return

        path = Path(self.summary_file)
        with path.open("a", encoding="utf-8") as f:
            f.write(markdown)
            if not markdown.endswith("\n"):
                f.write("\n")
        logger.debug(f"Step summary written to {path}")

    def set_failed(self, message: str) -> None:
        """Report a failure annotation and mark the invocation as failed."""
        self.error(message)
        self.exit_code = 1
