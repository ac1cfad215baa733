"""Precheck that the image repository's domain resolves."""

from __future__ import annotations

import ipaddress
import re
import socket

from rainbondop.cluster import (
    RainbondCluster,
    RainbondClusterCondition,
    RainbondClusterConditionType,
)
from rainbondop.meta import ConditionStatus, now
from rainbondop.precheck.base import PreChecker, fail_condition

_NAME_TOTAL_LENGTH_MAX = 255

_ALPHANUMERIC = r"[a-z0-9]+"
_SEPARATOR = r"(?:[._]|__|[-]*)"
_NAME_COMPONENT = rf"{_ALPHANUMERIC}(?:{_SEPARATOR}{_ALPHANUMERIC})*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_DOMAIN = rf"{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?"
_TAG = r"[\w][\w.-]{0,127}"
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
_NAME = rf"(?:{_DOMAIN}/)?{_NAME_COMPONENT}(?:/{_NAME_COMPONENT})*"

_REFERENCE_RE = re.compile(rf"({_NAME})(?::({_TAG}))?(?:@({_DIGEST}))?", re.ASCII)
_ANCHORED_NAME_RE = re.compile(
    rf"(?:({_DOMAIN})/)?({_NAME_COMPONENT}(?:/{_NAME_COMPONENT})*)", re.ASCII
)
_LABEL_RE = re.compile(r"[A-Za-z0-9_-]+", re.ASCII)
_NON_NUMERIC_RE = re.compile(r"[A-Za-z_-]", re.ASCII)


class InvalidReferenceError(ValueError):
    """An image reference does not follow the reference grammar."""


class DNSLookupError(OSError):
    """A host name could not be resolved."""


def repository_domain(reference: str) -> str:
    """Return the domain part of an image reference, or "" if it has none."""
    if not reference:
        raise InvalidReferenceError("repository name must have at least one component")
    match = _REFERENCE_RE.fullmatch(reference)
    if match is None:
        if _REFERENCE_RE.fullmatch(reference.lower()) is not None:
            raise InvalidReferenceError(
                "invalid reference format: repository name must be lowercase"
            )
        raise InvalidReferenceError("invalid reference format")
    name = match.group(1)
    if len(name) > _NAME_TOTAL_LENGTH_MAX:
        raise InvalidReferenceError(
            f"repository name must not be more than {_NAME_TOTAL_LENGTH_MAX} characters"
        )
    name_match = _ANCHORED_NAME_RE.fullmatch(name)
    if name_match is None:
        raise InvalidReferenceError("invalid reference format")
    return name_match.group(1) or ""


def _is_domain_name(name: str) -> bool:
    if not name or len(name) > 254 or (len(name) == 254 and not name.endswith(".")):
        return False
    if name.endswith("."):
        name = name[:-1]
    non_numeric = False
    for label in name.split("."):
        if not 1 <= len(label) <= 63:
            return False
        if label.startswith("-") or label.endswith("-"):
            return False
        if not _LABEL_RE.fullmatch(label):
            return False
        if _NON_NUMERIC_RE.search(label):
            non_numeric = True
    return non_numeric


def nslookup(target: str) -> list[str]:
    """Resolve a host name to its IP addresses; raise DNSLookupError on failure."""
    try:
        return [str(ipaddress.ip_address(target))]
    except ValueError:
        pass
    if not _is_domain_name(target):
        raise DNSLookupError(f"lookup {target}: no such host")
    try:
        infos = socket.getaddrinfo(target, None)
    except socket.gaierror as err:
        raise DNSLookupError(f"lookup {target}: {err.strerror or err}") from err
    addresses = list(dict.fromkeys(info[4][0] for info in infos))
    if not addresses:
        raise DNSLookupError(f"lookup {target}: no such host")
    return addresses


class DNSPrechecker(PreChecker):
    """Checks that the domain of the Rainbond image repository resolves."""

    def __init__(self, cluster: RainbondCluster) -> None:
        self.cluster = cluster

    def check(self) -> RainbondClusterCondition:
        condition = RainbondClusterCondition(
            type=RainbondClusterConditionType.DNS,
            status=ConditionStatus.TRUE,
            last_heartbeat_time=now(),
        )
        try:
            domain = repository_domain(self.cluster.spec.rainbond_image_repository)
            nslookup(domain)
        except (InvalidReferenceError, DNSLookupError) as err:
            return fail_condition(condition, "DNSFailed", str(err))
        return condition