"""Shared error code constants.

Codes here are domain-agnostic. Credential-specific codes live with the
credential authority service and extend this set rather than editing it.
"""

# Validation
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_ARGUMENT = "INVALID_ARGUMENT"

# Not found
NOT_FOUND = "NOT_FOUND"

# Conflict
CONFLICT = "CONFLICT"

# Policy / authorization
POLICY_VIOLATION = "POLICY_VIOLATION"

# Dependency / external system
DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"

# Internal
INTERNAL_ERROR = "INTERNAL_ERROR"
