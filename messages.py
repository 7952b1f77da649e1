# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : messages.py
from dataclasses import dataclass
from typing import NamedTuple, Union

from errors import ProtocolViolation
from sort_config import SortConfig


class Envelope(NamedTuple):
    """What a probe tells us about a pending message before its payload is read."""
    tag: int
    source: int


@dataclass(frozen=True)
class Assignment:
    """A chunk of `payload_size` arrays starting at `job_index`."""
    job_index: int


@dataclass(frozen=True)
class Terminate:
    """Tells a worker to leave its receive loop."""


Message = Union[Assignment, Terminate]


class TagCodec:
    """
    Maps protocol messages to MPI tags and back.

    Job indices travel as the tag itself, the termination signal uses the
    reserved die tag. Tags are decoded once at the transport boundary so the
    worker and coordinator loops only ever see `Assignment` or `Terminate`.
    """

    def __init__(self, config: SortConfig):
        self.config = config

    def encode(self, message: Message) -> int:
        if isinstance(message, Terminate):
            return self.config.die_tag
        self._check_job_index(message.job_index)
        return message.job_index

    def decode(self, tag: int, source: int = None) -> Message:
        if tag == self.config.die_tag:
            return Terminate()
        self._check_job_index(tag, source)
        return Assignment(tag)

    def _check_job_index(self, job_index, source=None):
        if not (0 <= job_index < self.config.total_arrays) \
        or job_index % self.config.payload_size != 0:
            raise ProtocolViolation(
                f"tag {job_index} is neither a job index nor the die tag "
                f"({self.config.die_tag})",
                tag=job_index, source=source,
            )
