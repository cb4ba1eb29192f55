import base64
import json
import re
from types import SimpleNamespace

import pytest

from clusterforge.builders.aks import (
    create_aks_cluster,
    decode_kubeconfig,
    sanitize_pool_name,
)
from clusterforge.config import parse_cluster_config
from clusterforge.errors import ConfigurationError, ProviderMismatchError

POOLS = [
    {
        "name": "primary-pool",
        "instanceSize": "medium",
        "minSize": 1,
        "maxSize": 3,
        "desiredSize": 1,
        "diskSizeGb": 64,
    },
    {
        "name": "Memory_Optimized_Workers",
        "instanceSize": "xlarge",
        "minSize": 0,
        "maxSize": 4,
        "desiredSize": 2,
        "diskSizeGb": 128,
        "labels": {"tier": "memory"},
        "taints": [{"key": "tier", "value": "memory", "effect": "NoSchedule"}],
    },
]


def azure_config(**overrides):
    raw = {
        "cloudProvider": "azure",
        "environment": "dev",
        "region": "eastus",
        "azureResourceGroup": "rg-clusters",
    }
    raw.update(overrides)
    return parse_cluster_config(raw)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("primary-pool", "primarypool"),
        ("default", "default"),
        ("GPU", "gpu"),
        ("Memory_Optimized_Workers", "memoryoptim"),
    ],
)
def test_sanitize_pool_name(name, expected):
    assert sanitize_pool_name(name) == expected


@pytest.mark.parametrize(
    "name", ["a" * 40, "Pool.With.Dots", "UPPER-lower_123", "ünïcödé-pool", ""]
)
def test_sanitized_names_are_valid(name):
    assert re.fullmatch(r"[a-z0-9]{0,12}", sanitize_pool_name(name))


def test_default_topology(deploy, mocks):
    output, resolved = deploy(
        create_aks_cluster, azure_config(), resolve=("cluster_name", "endpoint")
    )

    rg = mocks.named("rg")
    assert rg.inputs["resourceGroupName"] == "rg-clusters"
    assert rg.inputs["location"] == "eastus"

    vnet = mocks.named("vnet")
    assert vnet.inputs["addressSpace"] == {"addressPrefixes": ["10.0.0.0/16"]}
    assert mocks.named("aks-subnet").inputs["addressPrefix"] == "10.0.1.0/24"

    cluster = mocks.named("aks-cluster")
    assert cluster.inputs["resourceName"] == "k8s-cluster-dev"
    assert cluster.inputs["kubernetesVersion"] == "1.29"
    assert cluster.inputs["enableRBAC"] is True
    assert "aadProfile" not in cluster.inputs
    assert cluster.inputs["networkProfile"]["networkPlugin"] == "azure"

    profiles = cluster.inputs["agentPoolProfiles"]
    assert len(profiles) == 1
    system = profiles[0]
    assert system["name"] == "default"
    assert system["mode"] == "System"
    assert system["vmSize"] == "Standard_B4s_v2"
    assert system["count"] == 2
    assert system["minCount"] == 1
    assert system["maxCount"] == 5
    assert system["enableAutoScaling"] is True
    assert system["osDiskSizeGB"] == 20

    assert cluster.inputs["identity"]["type"] == "UserAssigned"
    assert cluster.inputs["identity"]["userAssignedIdentities"] == ["aks-identity_id"]

    assert mocks.of_type("azure-native:containerservice:AgentPool") == []

    assert resolved["cluster_name"] == "k8s-cluster-dev"
    assert resolved["endpoint"] == "https://k8s-cluster-dev-abc123.hcp.eastus.azmk8s.io"


def test_extra_pools_become_user_agent_pools(deploy, mocks):
    deploy(create_aks_cluster, azure_config(nodePools=json.dumps(POOLS)))

    system = mocks.named("aks-cluster").inputs["agentPoolProfiles"][0]
    assert system["name"] == "primarypool"

    pools = mocks.of_type("azure-native:containerservice:AgentPool")
    assert len(pools) == 1
    pool = pools[0]
    assert pool.name == "nodepool-Memory_Optimized_Workers"
    assert pool.inputs["agentPoolName"] == "memoryoptim"
    assert pool.inputs["mode"] == "User"
    assert pool.inputs["vmSize"] == "Standard_D4s_v3"
    assert pool.inputs["nodeLabels"] == {"tier": "memory"}
    assert pool.inputs["nodeTaints"] == ["tier=memory:NoSchedule"]
    assert pool.inputs["resourceName"] == "k8s-cluster-dev"


def test_azure_ad_profile(deploy, mocks):
    deploy(create_aks_cluster, azure_config(azureEnableAd="true"))

    cluster = mocks.named("aks-cluster")
    assert cluster.inputs["aadProfile"] == {"managed": True, "enableAzureRBAC": True}


def test_requires_azure_block():
    config = parse_cluster_config(
        {"cloudProvider": "aws", "environment": "dev", "region": "us-east-1"}
    )

    with pytest.raises(ProviderMismatchError, match="Azure configuration is required"):
        create_aks_cluster(config)


def test_decode_kubeconfig_uses_first_entry():
    text = "apiVersion: v1\nkind: Config\n"
    credentials = [
        SimpleNamespace(name="clusterUser", value=base64.b64encode(text.encode()).decode()),
        SimpleNamespace(name="other", value=base64.b64encode(b"ignored").decode()),
    ]

    assert decode_kubeconfig(credentials) == text


@pytest.mark.parametrize("credentials", [[], None])
def test_decode_kubeconfig_empty(credentials):
    assert decode_kubeconfig(credentials) == ""


def test_pool_names_colliding_after_sanitizing_rejected():
    pools = [dict(POOLS[0], name="pool-a"), dict(POOLS[0], name="poola")]

    with pytest.raises(ConfigurationError, match="both map to AKS agent pool name 'poola'"):
        azure_config(nodePools=json.dumps(pools))


def test_pool_name_without_valid_characters_rejected():
    pools = [dict(POOLS[0], name="---")]

    with pytest.raises(ConfigurationError, match="no characters valid"):
        azure_config(nodePools=json.dumps(pools))


def test_sanitized_collisions_allowed_outside_azure():
    pools = [dict(POOLS[0], name="pool-a"), dict(POOLS[0], name="poola")]

    config = parse_cluster_config(
        {
            "cloudProvider": "aws",
            "environment": "dev",
            "region": "us-east-1",
            "nodePools": json.dumps(pools),
        }
    )

    assert [p.name for p in config.node_pools] == ["pool-a", "poola"]
