from .builders.aks import create_aks_cluster
from .builders.eks import create_eks_cluster
from .builders.gke import create_gke_cluster
from .errors import ConfigurationError
from .logger import logger
from .schemas.cluster import CloudProvider, ClusterConfig
from .schemas.outputs import ClusterOutput


def build_cluster(config: ClusterConfig) -> ClusterOutput:
    """Dispatcher: runs exactly the topology builder for config.provider."""
    provider = getattr(config.provider, "value", config.provider)
    logger.debug(f"Dispatching {config.cluster_name} to the {provider} builder")

    if provider == CloudProvider.AWS.value:
        return create_eks_cluster(config)
    elif provider == CloudProvider.GCP.value:
        return create_gke_cluster(config)
    elif provider == CloudProvider.AZURE.value:
        return create_aks_cluster(config)
    else:
        raise ConfigurationError("cloudProvider", f"unknown cloud provider: {provider}")
