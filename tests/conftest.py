import asyncio
import base64

import pulumi
import pytest
from pulumi.runtime.mocks import MockMonitor

CA_CERTIFICATE = "LS0tLS1CRUdJTiBDRVJUSUZJQ0FURS0tLS0t"
AKS_KUBECONFIG = "apiVersion: v1\nkind: Config\ncurrent-context: k8s-cluster-dev\n"
EKS_ENDPOINT = "https://ABCDEF0123456789.gr7.us-east-1.eks.amazonaws.com"
AKS_IDENTITY_ID = (
    "/subscriptions/0000/resourceGroups/rg-clusters/providers/"
    "Microsoft.ManagedIdentity/userAssignedIdentities/k8s-cluster-dev-identity"
)

# Marker the engine uses for resource references inside property maps
RESOURCE_REF_KEY = "4dabf18193072939515e22adb298388d"
RESOURCE_REF_SIG = "5cf8f73096256a8f31e491e813e4eb8e"

EKS_CONTROL_PLANE_TYPE = "aws:eks/cluster:Cluster"

# Provider-computed attributes the engine would fill in after creation
COMPUTED_STATE = {
    "eks:index:Cluster": {
        "kubeconfig": {"apiVersion": "v1", "kind": "Config"},
    },
    "gcp:container/cluster:Cluster": {
        "endpoint": "34.1.2.3",
        "masterAuth": {"clusterCaCertificate": CA_CERTIFICATE},
    },
    "azure-native:containerservice:ManagedCluster": {
        "name": "k8s-cluster-dev",
        "fqdn": "k8s-cluster-dev-abc123.hcp.eastus.azmk8s.io",
        # Input is a list of identity ids, the response is keyed by id
        "identity": {
            "type": "UserAssigned",
            "userAssignedIdentities": {
                AKS_IDENTITY_ID: {"clientId": "client-1", "principalId": "principal-1"},
            },
        },
    },
}

INVOKE_RESULTS = {
    "aws:index/getAvailabilityZones:getAvailabilityZones": {
        "names": ["us-east-1a", "us-east-1b"],
        "id": "us-east-1",
    },
    "azure-native:containerservice:listManagedClusterUserCredentials": {
        "kubeconfigs": [
            {
                "name": "clusterUser",
                "value": base64.b64encode(AKS_KUBECONFIG.encode()).decode(),
            }
        ],
    },
}


class RecordingMocks(pulumi.runtime.Mocks):
    """Mock engine that records every declared resource."""

    def __init__(self) -> None:
        self.resources: list[pulumi.runtime.MockResourceArgs] = []
        self.monitor = MockMonitor(self)

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.resources.append(args)
        state = {**args.inputs, **COMPUTED_STATE.get(args.typ, {})}
        if args.typ == "eks:index:Cluster":
            state["eksCluster"] = self._eks_control_plane(args.name)
        return [f"{args.name}_id", state]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return INVOKE_RESULTS.get(args.token, {})

    def _eks_control_plane(self, name: str) -> dict:
        """
        The EKS component hands back its aws.eks.Cluster as a resource
        reference. The control plane is registered with the monitor so the
        reference can be read back through getResource.
        """
        urn = self.monitor.make_urn("", EKS_CONTROL_PLANE_TYPE, f"{name}-eksCluster")
        self.monitor.resources[urn] = MockMonitor.ResourceRegistration(
            urn,
            name,
            {"name": name, "endpoint": EKS_ENDPOINT, "arn": f"arn:aws:eks:::{name}"},
        )
        return {RESOURCE_REF_KEY: RESOURCE_REF_SIG, "urn": urn, "id": name}

    def of_type(self, typ: str) -> list[pulumi.runtime.MockResourceArgs]:
        return [r for r in self.resources if r.typ == typ]

    def named(self, name: str) -> pulumi.runtime.MockResourceArgs:
        return next(r for r in self.resources if r.name == name)


@pytest.fixture
def mocks():
    # Each test gets its own event loop so getResource resolves on the loop
    # pulumi.runtime.test runs on
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    recording = RecordingMocks()
    pulumi.runtime.set_mocks(
        recording,
        project="clusterforge",
        stack="test",
        preview=False,
        monitor=recording.monitor,
    )
    return recording


def run_builder(builder, config, resolve=()):
    """
    Runs a topology builder under the mock engine.
    Returns the ClusterOutput plus the resolved values of the requested fields.
    All resource registrations have completed when this returns.
    """
    result = {}
    resolved = {}

    @pulumi.runtime.test
    def _run():
        result["output"] = builder(config)
        fields = [getattr(result["output"], f) for f in resolve]
        return pulumi.Output.all(*fields).apply(
            lambda values: resolved.update(zip(resolve, values))
        )

    _run()
    return result["output"], resolved


@pytest.fixture
def deploy(mocks):
    """run_builder bound to a fresh mock engine."""
    return run_builder
