"""Short explanations for common kubectl failures, matched on stderr."""

import re
from dataclasses import dataclass

from loguru import logger


@dataclass(frozen=True)
class FailureHint:
    kind: str
    explanation: str
    suggestion: str | None = None  # Read-only command worth running next


# First match wins, so narrower patterns come before broader ones
_PATTERNS: tuple[tuple[re.Pattern, FailureHint], ...] = (
    (
        re.compile(r"current-context is not set"),
        FailureHint(
            "no context",
            "kubectl has no current context selected.",
            "kubectl config get-contexts",
        ),
    ),
    (
        re.compile(r"\bforbidden\b|User \S+ cannot", re.I),
        FailureHint(
            "forbidden",
            "Your credentials are not allowed to do this (RBAC). Ask a cluster admin for access.",
            "kubectl auth can-i --list -n {namespace}",
        ),
    ),
    (
        re.compile(r"You must be logged in|\(Unauthorized\)|\bUnauthorized\b"),
        FailureHint(
            "unauthorized",
            "The cluster rejected your credentials. They may have expired; log in again.",
        ),
    ),
    (
        re.compile(
            r"Unable to connect to the server|The connection to the server \S+ was refused|"
            r"connection refused|no such host|i/o timeout|"
            r"TLS handshake timeout|dial tcp",
            re.I,
        ),
        FailureHint(
            "unreachable",
            "The API server could not be reached. Check your network, VPN and the context's server address.",
            "kubectl cluster-info",
        ),
    ),
    (
        re.compile(r"the server doesn't have a resource type|no matches for kind", re.I),
        FailureHint(
            "unknown type",
            "This cluster does not know that resource type. Check the spelling or the API version.",
            "kubectl api-resources",
        ),
    ),
    (
        re.compile(r"\(NotFound\)|\bnot found\b", re.I),
        FailureHint(
            "not found",
            "Nothing by that name exists here. Check the name and the namespace.",
            "kubectl get all -n {namespace}",
        ),
    ),
    (
        re.compile(r"\(AlreadyExists\)|already exists", re.I),
        FailureHint(
            "already exists",
            "A resource with that name already exists. Use apply to update it, or pick another name.",
        ),
    ),
    (
        re.compile(r"\(Conflict\)|the object has been modified", re.I),
        FailureHint(
            "conflict",
            "The object changed while you were updating it. Run the command again.",
        ),
    ),
    (
        re.compile(r"\(Invalid\)|\bis invalid\b|Invalid value", re.I),
        FailureHint(
            "invalid",
            "The API server rejected a field value. Read the error above for the field.",
        ),
    ),
    (
        re.compile(r"unknown (?:flag|shorthand flag|command)", re.I),
        FailureHint(
            "bad arguments",
            "kubectl did not accept the arguments. Check the flags for this verb.",
        ),
    ),
)


def explain_failure(stderr: str, namespace: str = "default") -> FailureHint | None:
    """
    Match kubectl's stderr against known failure patterns.

    Returns the first matching hint with ``{namespace}`` filled into its
    suggestion, or None when the error is not recognised.
    """
    if not stderr.strip():
        return None
    for pattern, hint in _PATTERNS:
        if pattern.search(stderr):
            logger.debug(f"Matched kubectl failure pattern: {hint.kind}")
            if hint.suggestion is None:
                return hint
            return FailureHint(hint.kind, hint.explanation, hint.suggestion.format(namespace=namespace))
    return None
