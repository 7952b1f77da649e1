# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : errors.py


class SortPipelineError(Exception):
    """Base class for every failure of the distributed sort. All of them are fatal."""


class AllocationFailure(SortPipelineError):
    """A data buffer or the sort thread pool could not be created."""


class TransportFailure(SortPipelineError):
    """A send, receive or probe could not complete."""


class ProtocolViolation(SortPipelineError):
    """
    A message did not fit the work-queue protocol.

    Raised for tags outside the job-index/termination range, messages from an
    unexpected rank, payloads of the wrong size and results for jobs that were
    never assigned to the sending worker.
    """

    def __init__(self, message, tag=None, source=None):
        super().__init__(message)
        self.tag = tag
        self.source = source


class VerificationFailure(SortPipelineError):
    """The sorted dataset is out of order or no longer holds the original values."""
