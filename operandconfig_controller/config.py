"""Configuration settings for the OperandConfig Controller."""

# CommonService CRD settings (tenants)
CS_GROUP = "operator.ibm.com"
CS_VERSION = "v3"
CS_PLURAL = "commonservices"
CS_KIND = "CommonService"

# OperandConfig CRD settings (canonical config)
OPCON_GROUP = "operator.ibm.com"
OPCON_VERSION = "v1alpha1"
OPCON_PLURAL = "operandconfigs"
OPCON_KIND = "OperandConfig"
OPCON_NAME = "common-service"

# Tenants carrying this label are clones of another CommonService
CS_CLONED_FROM_LABEL = "operator.ibm.com/common-services.cloned-from"

# Default services namespace holding the OperandConfig
DEFAULT_SERVICES_NAMESPACE = "ibm-common-services"

# Controller modes
PROFILE_CONTROLLER_KEY = "profileController"
DEFAULT_CONTROLLER_MODE = "default"
INDEPENDENT_CONTROLLER_MODES = frozenset({"turbo", "turbonomic", "vpa"})

# Scalar fields a tenant may raise or lower through the comparator
COMPARABLE_KEYS = frozenset({
    "replicas",
    "cpu",
    "memory",
    "profile",
    "fipsEnabled",
    "fips_enabled",
    "instances",
    "max_connections",
    "shared_buffers",
})

# Fields owned by an independent controller
RESET_KEYS = frozenset({"replicas", "cpu", "memory"})

# Size profiles from smallest to largest
SIZE_PROFILES = ("starterset", "small", "medium", "large")

# Tenant status phases
PHASE_SUCCEEDED = "Succeeded"
PHASE_FAILED = "Failed"

# Watch settings
WATCH_TIMEOUT_SECONDS = 300
RESYNC_INTERVAL_SECONDS = 300

# Conflict retry settings
MAX_CONFLICT_RETRIES = 5
CONFLICT_RETRY_SECONDS = 1
