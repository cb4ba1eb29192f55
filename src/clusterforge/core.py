from pulumi import automation as auto
from tenacity import (
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

# Shared retry configuration for stack operations
# usage: @retry(**RETRY_CONFIG)
# Only a stack locked by another update is retried; engine errors propagate.
RETRY_CONFIG = {
    "stop": stop_after_attempt(3),
    "wait": wait_exponential(multiplier=1, min=4, max=10),
    "retry": retry_if_exception_type(auto.ConcurrentUpdateError),
    "reraise": True,
}

DEFAULT_PROJECT_NAME = "k8s-cluster"
DEFAULT_KUBERNETES_VERSION = "1.29"
MANAGED_BY = "pulumi"

# Default RFC1918 allocation
DEFAULT_VPC_CIDR = "10.0.0.0/16"
DEFAULT_PRIVATE_SUBNET_CIDRS = [
    "10.0.1.0/24",
    "10.0.2.0/24",
    "10.0.3.0/24",
]
DEFAULT_PUBLIC_SUBNET_CIDRS = [
    "10.0.101.0/24",
    "10.0.102.0/24",
    "10.0.103.0/24",
]

# GKE secondary ranges (VPC-native pods/services)
GKE_PODS_RANGE = ("pods", "10.1.0.0/16")
GKE_SERVICES_RANGE = ("services", "10.2.0.0/20")
GKE_MASTER_CIDR = "172.16.0.0/28"
GKE_DEFAULT_ZONE_SUFFIX = "b"

# AKS in-cluster service network
AKS_SERVICE_CIDR = "10.96.0.0/16"
AKS_DNS_SERVICE_IP = "10.96.0.10"
AKS_POOL_NAME_MAX = 12
