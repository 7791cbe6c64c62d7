from __future__ import annotations

# Registry HTTP operations (gate check, upload), per attempt
REGISTRY_TIMEOUT_SECONDS = 60.0

# Name availability probe
AVAILABILITY_TIMEOUT_SECONDS = 5.0

# cargo build + cargo package
BUILD_TIMEOUT_SECONDS = 30 * 60.0

# Retry policy for transient registry failures
REGISTRY_RETRY_ATTEMPTS = 3
REGISTRY_RETRY_BACKOFF_SECONDS = 1.0
