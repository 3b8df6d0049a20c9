"""
Error types for the grade import pipeline.

MalformedInputError fails a whole parse. UnresolvedReferenceError and
CommitItemError are collected and returned to the caller as structured data.
"""


class PortalError(Exception):
    """Base class for grade portal errors."""


class AuthenticationError(PortalError):
    """A request's bearer token is missing, invalid or lacks the portal claims."""


class MalformedInputError(PortalError):
    """The uploaded grade sheet cannot be parsed."""


class UnresolvedReferenceError(PortalError):
    """A student or assignment reference does not resolve to a stored record."""

    def __init__(self, kind: str, reference, reason: str = ""):
        self.kind = kind
        self.reference = reference
        self.reason = reason or f"{kind} not found: {reference}"
        super().__init__(self.reason)

    def to_diagnostic(self) -> dict:
        return {
            "kind": self.kind,
            "reference": str(self.reference),
            "reason": self.reason,
        }


class CommitItemError(PortalError):
    """One approved change could not be applied."""

    def __init__(self, student: str, assignment: str, reason: str):
        self.student = student
        self.assignment = assignment
        self.reason = reason
        super().__init__(f"{student} / {assignment}: {reason}")

    def to_dict(self) -> dict:
        return {
            "student": self.student,
            "assignment": self.assignment,
            "reason": self.reason,
        }
