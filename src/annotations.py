"""Typed extraction of operator settings from Ingress annotations.

All parsing is fail-open: a missing key and a value that does not parse are
both treated as "not set", so a malformed annotation only disables the
feature it controls instead of blocking reconciliation.
"""

import json
import logging
from collections.abc import Mapping

from constants import ANNOTATION_PREFIX
from models import Header, HealthCheckSettings, IngressSettings

logger = logging.getLogger(__name__)

# Access control
SSO = ANNOTATION_PREFIX + "sso"
SSL = ANNOTATION_PREFIX + "ssl"
BLOCK_ACCESS = ANNOTATION_PREFIX + "block-access"
EMAIL_WHITELIST_ENABLED = ANNOTATION_PREFIX + "email-whitelist-enabled"
APPLY_RULES = ANNOTATION_PREFIX + "apply-rules"
ENABLED = ANNOTATION_PREFIX + "enabled"

# Proxy settings
STICKY_SESSION = ANNOTATION_PREFIX + "sticky-session"
TLS_SERVER_NAME = ANNOTATION_PREFIX + "tls-server-name"
SET_HOST_HEADER = ANNOTATION_PREFIX + "set-host-header"
HEADERS = ANNOTATION_PREFIX + "headers"
POST_AUTH_PATH = ANNOTATION_PREFIX + "post-auth-path"

# Health checks
HC_ENABLED = ANNOTATION_PREFIX + "healthcheck-enabled"
HC_PATH = ANNOTATION_PREFIX + "healthcheck-path"
HC_SCHEME = ANNOTATION_PREFIX + "healthcheck-scheme"
HC_MODE = ANNOTATION_PREFIX + "healthcheck-mode"
HC_HOSTNAME = ANNOTATION_PREFIX + "healthcheck-hostname"
HC_PORT = ANNOTATION_PREFIX + "healthcheck-port"
HC_INTERVAL = ANNOTATION_PREFIX + "healthcheck-interval"
HC_UNHEALTHY_INTERVAL = ANNOTATION_PREFIX + "healthcheck-unhealthy-interval"
HC_TIMEOUT = ANNOTATION_PREFIX + "healthcheck-timeout"
HC_HEADERS = ANNOTATION_PREFIX + "healthcheck-headers"
HC_FOLLOW_REDIRECTS = ANNOTATION_PREFIX + "healthcheck-follow-redirects"
HC_METHOD = ANNOTATION_PREFIX + "healthcheck-method"
HC_STATUS = ANNOTATION_PREFIX + "healthcheck-status"
HC_TLS_SERVER_NAME = ANNOTATION_PREFIX + "healthcheck-tls-server-name"

# Same vocabulary as Go's strconv.ParseBool
_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_bool(annotations: Mapping[str, str], key: str) -> bool | None:
    """Return the boolean value of an annotation, or None if unset/invalid."""
    value = annotations.get(key)
    if not value:
        return None
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.debug("Ignoring invalid boolean annotation %s=%r", key, value)
    return None


def parse_string(annotations: Mapping[str, str], key: str) -> str | None:
    """Return the annotation value as-is, or None if the key is absent."""
    return annotations.get(key)


def parse_int(annotations: Mapping[str, str], key: str) -> int | None:
    """Return the integer value of an annotation, or None if unset/invalid."""
    value = annotations.get(key)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.debug("Ignoring invalid integer annotation %s=%r", key, value)
        return None


def parse_headers(annotations: Mapping[str, str], key: str) -> tuple[Header, ...] | None:
    """Parse a JSON array of {"name": ..., "value": ...} objects.

    Malformed JSON, or any entry that is not a name/value object, yields None.
    """
    value = annotations.get(key)
    if not value:
        return None
    try:
        raw = json.loads(value)
    except json.JSONDecodeError:
        logger.debug("Ignoring malformed header annotation %s", key)
        return None

    if not isinstance(raw, list):
        return None

    headers = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        name = item.get("name", "")
        header_value = item.get("value", "")
        if not isinstance(name, str) or not isinstance(header_value, str):
            return None
        headers.append(Header(name=name, value=header_value))
    return tuple(headers)


def extract_health_check(annotations: Mapping[str, str]) -> HealthCheckSettings:
    """Extract target health-check settings."""
    return HealthCheckSettings(
        enabled=parse_bool(annotations, HC_ENABLED),
        path=parse_string(annotations, HC_PATH),
        scheme=parse_string(annotations, HC_SCHEME),
        mode=parse_string(annotations, HC_MODE),
        hostname=parse_string(annotations, HC_HOSTNAME),
        port=parse_int(annotations, HC_PORT),
        interval=parse_int(annotations, HC_INTERVAL),
        unhealthy_interval=parse_int(annotations, HC_UNHEALTHY_INTERVAL),
        timeout=parse_int(annotations, HC_TIMEOUT),
        headers=parse_headers(annotations, HC_HEADERS),
        follow_redirects=parse_bool(annotations, HC_FOLLOW_REDIRECTS),
        method=parse_string(annotations, HC_METHOD),
        status=parse_int(annotations, HC_STATUS),
        tls_server_name=parse_string(annotations, HC_TLS_SERVER_NAME),
    )


def extract_settings(annotations: Mapping[str, str] | None) -> IngressSettings:
    """Parse all recognized annotations into typed settings in one pass."""
    annotations = annotations or {}
    return IngressSettings(
        enabled=parse_bool(annotations, ENABLED),
        sso=parse_bool(annotations, SSO),
        ssl=parse_bool(annotations, SSL),
        block_access=parse_bool(annotations, BLOCK_ACCESS),
        email_whitelist_enabled=parse_bool(annotations, EMAIL_WHITELIST_ENABLED),
        apply_rules=parse_bool(annotations, APPLY_RULES),
        sticky_session=parse_bool(annotations, STICKY_SESSION),
        tls_server_name=parse_string(annotations, TLS_SERVER_NAME),
        set_host_header=parse_string(annotations, SET_HOST_HEADER),
        headers=parse_headers(annotations, HEADERS),
        post_auth_path=parse_string(annotations, POST_AUTH_PATH),
        health_check=extract_health_check(annotations),
    )
