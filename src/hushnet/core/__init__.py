"""Hushnet core - configuration, persistence, logging and shared primitives."""

from .canon import JSONValue, canonicalize
from .exceptions import (
    CanonicalizationError,
    ChallengeError,
    ChallengeExpired,
    ChallengeNotFound,
    ConfigException,
    HostConflict,
    HushnetException,
    IdentityMismatch,
    LookupUnavailable,
    MalformedInput,
    NodeNotFound,
    ProbeError,
    ProbeTimeout,
    RegistryError,
    SignatureInvalid,
    StoreUnavailable,
)

__all__ = [
    "CanonicalizationError",
    "ChallengeError",
    "ChallengeExpired",
    "ChallengeNotFound",
    "ConfigException",
    "HostConflict",
    "HushnetException",
    "IdentityMismatch",
    "JSONValue",
    "LookupUnavailable",
    "MalformedInput",
    "NodeNotFound",
    "ProbeError",
    "ProbeTimeout",
    "RegistryError",
    "SignatureInvalid",
    "StoreUnavailable",
    "canonicalize",
]
