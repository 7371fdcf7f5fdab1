"""Canonical structured logging field names.

Keeping names centralized prevents drift between components emitting the same
facts (for example the datastore or generation touched by a rotation).
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Envelope/correlation fields.
TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
PRINCIPAL = "principal"

# Public API invocation fields.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"

# Credential lifecycle fields.
ROLE = "role"
DATASTORE = "datastore"
LEASE_ID = "lease_id"
GENERATION = "generation"
OUTCOME = "outcome"

# Common service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"
