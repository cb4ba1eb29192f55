import pulumi

from .config import load_config
from .dispatch import build_cluster
from .schemas.cluster import ClusterConfig
from .schemas.outputs import ClusterOutput


def export_outputs(config: ClusterConfig, cluster: ClusterOutput) -> None:
    """Exports the uniform stack outputs. The kubeconfig is always a secret."""
    pulumi.export("clusterName", cluster.cluster_name)
    pulumi.export("kubeconfig", pulumi.Output.secret(cluster.kubeconfig))
    pulumi.export("clusterEndpoint", cluster.endpoint)
    pulumi.export("clusterId", cluster.cluster_id)
    pulumi.export("cloudProvider", config.provider.value)
    pulumi.export("environment", config.environment)


def pulumi_program() -> None:
    """
    Cloud-agnostic Kubernetes cluster deployment.

    Deploys a managed cluster to exactly one of AWS (EKS), GCP (GKE) or
    Azure (AKS), selected by the ``cloudProvider`` stack setting.
    """
    config = load_config()
    cluster = build_cluster(config)
    export_outputs(config, cluster)
