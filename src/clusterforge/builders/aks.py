import base64
from collections.abc import Sequence
from typing import Any

import pulumi_azure_native as azure_native

from ..core import AKS_DNS_SERVICE_IP, AKS_SERVICE_CIDR
from ..errors import ProviderMismatchError
from ..logger import logger
from ..schemas.cluster import (
    CloudProvider,
    ClusterConfig,
    NodePoolConfig,
    sanitize_pool_name,
)
from ..schemas.outputs import ClusterOutput
from ..sizes import machine_type
from ..taints import taint_string

# The first pool is embedded in the managed cluster as the System pool
FOLDS_FIRST_POOL = True


def decode_kubeconfig(credentials: Sequence[Any] | None) -> str:
    """
    Decodes the first base64 kubeconfig blob of a user-credentials listing.
    An empty listing yields an empty string.
    """
    if not credentials:
        logger.warning("AKS returned no user credentials; kubeconfig is empty")
        return ""
    return base64.b64decode(credentials[0].value).decode("utf-8")


def _pool_settings(pool: NodePoolConfig) -> dict[str, Any]:
    """Agent pool properties shared by the system profile and user pools."""
    return {
        "count": pool.desired_size,
        "min_count": pool.min_size,
        "max_count": pool.max_size,
        "enable_auto_scaling": True,
        "vm_size": machine_type(CloudProvider.AZURE, pool.instance_size),
        "os_disk_size_gb": pool.disk_size_gb,
        "os_type": "Linux",
        "node_labels": pool.labels,
        "node_taints": [taint_string(t) for t in pool.taints],
    }


def create_aks_cluster(config: ClusterConfig) -> ClusterOutput:
    """
    Creates an AKS cluster with its resource group, VNet, identity and pools.
    """
    if config.azure is None or config.provider is not CloudProvider.AZURE:
        raise ProviderMismatchError("Azure", "AKS")

    name = config.cluster_name
    tags = config.tags
    system_pool, extra_pools = config.split_node_pools(FOLDS_FIRST_POOL)

    logger.info(
        f"Declaring AKS cluster [bold]{name}[/bold] in {config.region} "
        f"(1 system + {len(extra_pools)} user pool(s), "
        f"resource group {config.azure.resource_group_name})"
    )

    # 1. Resource group and network
    resource_group = azure_native.resources.ResourceGroup(
        "rg",
        resource_group_name=config.azure.resource_group_name,
        location=config.region,
        tags=tags,
    )

    vnet = azure_native.network.VirtualNetwork(
        "vnet",
        virtual_network_name=f"{name}-vnet",
        resource_group_name=resource_group.name,
        location=config.region,
        address_space=azure_native.network.AddressSpaceArgs(
            address_prefixes=[config.network.vpc_cidr],
        ),
        tags=tags,
    )

    subnet = azure_native.network.Subnet(
        "aks-subnet",
        subnet_name=f"{name}-aks-subnet",
        resource_group_name=resource_group.name,
        virtual_network_name=vnet.name,
        address_prefix=config.network.private_subnet_cidrs[0],
    )

    # 2. Identity
    identity = azure_native.managedidentity.UserAssignedIdentity(
        "aks-identity",
        resource_name_=f"{name}-identity",
        resource_group_name=resource_group.name,
        location=config.region,
        tags=tags,
    )

    # 3. Managed cluster with the system pool embedded
    cluster = azure_native.containerservice.ManagedCluster(
        "aks-cluster",
        resource_name_=name,
        resource_group_name=resource_group.name,
        location=config.region,
        kubernetes_version=config.kubernetes_version,
        dns_prefix=name,
        identity=azure_native.containerservice.ManagedClusterIdentityArgs(
            type="UserAssigned",
            user_assigned_identities=[identity.id],
        ),
        network_profile=azure_native.containerservice.ContainerServiceNetworkProfileArgs(
            network_plugin="azure",
            network_policy="azure",
            service_cidr=AKS_SERVICE_CIDR,
            dns_service_ip=AKS_DNS_SERVICE_IP,
        ),
        agent_pool_profiles=[
            azure_native.containerservice.ManagedClusterAgentPoolProfileArgs(
                name=sanitize_pool_name(system_pool.name),
                mode="System",
                vnet_subnet_id=subnet.id,
                **_pool_settings(system_pool),
            )
        ],
        enable_rbac=True,
        aad_profile=(
            azure_native.containerservice.ManagedClusterAADProfileArgs(
                managed=True,
                enable_azure_rbac=True,
            )
            if config.azure.enable_azure_ad
            else None
        ),
        auto_upgrade_profile=azure_native.containerservice.ManagedClusterAutoUpgradeProfileArgs(
            upgrade_channel="patch",
        ),
        sku=azure_native.containerservice.ManagedClusterSKUArgs(
            name="Base",
            tier="Free",
        ),
        tags=tags,
    )

    # 4. Remaining pools as user agent pools on the same subnet
    for pool in extra_pools:
        pool_name = sanitize_pool_name(pool.name)
        logger.debug(
            f"Agent pool {pool.name} -> {pool_name}: {pool.instance_size.value} "
            f"{pool.min_size}-{pool.max_size}"
        )
        azure_native.containerservice.AgentPool(
            f"nodepool-{pool.name}",
            agent_pool_name=pool_name,
            resource_group_name=resource_group.name,
            resource_name_=cluster.name,
            mode="User",
            vnet_subnet_id=subnet.id,
            **_pool_settings(pool),
        )

    credentials = azure_native.containerservice.list_managed_cluster_user_credentials_output(
        resource_group_name=resource_group.name,
        resource_name=cluster.name,
    )

    return ClusterOutput(
        cluster_name=cluster.name,
        kubeconfig=credentials.kubeconfigs.apply(decode_kubeconfig),
        endpoint=cluster.fqdn.apply(lambda fqdn: f"https://{fqdn}"),
        cluster_id=cluster.id,
    )
