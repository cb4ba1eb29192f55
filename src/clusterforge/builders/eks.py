import json

import pulumi
import pulumi_aws as aws
import pulumi_eks as eks

from ..errors import ConfigurationError, ProviderMismatchError
from ..logger import logger
from ..schemas.cluster import CloudProvider, ClusterConfig, NodeTaint
from ..schemas.outputs import ClusterOutput
from ..sizes import machine_type
from ..taints import normalize_taint_effect

# The first node pool sizes the cluster's own default node group
FOLDS_FIRST_POOL = True

NODE_POLICY_ARNS = {
    "worker": "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
    "cni": "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
    "ecr": "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
}
EBS_CSI_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AmazonEBSCSIDriverPolicy"


def _named(tags: dict[str, str], name: str) -> dict[str, str]:
    return {**tags, "Name": name}


def _taints(taints: list[NodeTaint]) -> list[aws.eks.NodeGroupTaintArgs]:
    return [
        aws.eks.NodeGroupTaintArgs(
            key=t.key,
            value=t.value,
            effect=normalize_taint_effect(t.effect),
        )
        for t in taints
    ]


def _node_role(config: ClusterConfig, ebs_csi: bool) -> aws.iam.Role:
    """Instance role shared by the default group and every managed node group."""
    role = aws.iam.Role(
        "node-role",
        assume_role_policy=json.dumps(
            {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"Service": "ec2.amazonaws.com"},
                        "Action": "sts:AssumeRole",
                    }
                ],
            }
        ),
        tags=_named(config.tags, f"{config.cluster_name}-node-role"),
    )

    policies = dict(NODE_POLICY_ARNS)
    if ebs_csi:
        policies["ebs-csi"] = EBS_CSI_POLICY_ARN

    for key, arn in policies.items():
        aws.iam.RolePolicyAttachment(
            f"node-role-{key}",
            role=role.name,
            policy_arn=arn,
        )

    return role


def create_eks_cluster(config: ClusterConfig) -> ClusterOutput:
    """
    Creates an EKS cluster with its VPC, subnets, NAT and node groups.
    """
    if config.aws is None or config.provider is not CloudProvider.AWS:
        raise ProviderMismatchError("AWS", "EKS")

    if not config.network.public_subnet_cidrs:
        raise ConfigurationError(
            "publicSubnetCidrs", "EKS needs at least one public subnet for the NAT gateway"
        )

    tags = config.tags
    name = config.cluster_name
    system_pool, extra_pools = config.split_node_pools(FOLDS_FIRST_POOL)

    logger.info(
        f"Declaring EKS cluster [bold]{name}[/bold] in {config.region} "
        f"(1 default + {len(extra_pools)} managed node group(s))"
    )

    azs = aws.get_availability_zones_output(state="available")

    def _zone(index: int) -> pulumi.Output[str]:
        return azs.names.apply(lambda names: names[index % len(names)])

    # 1. Network container
    vpc = aws.ec2.Vpc(
        "vpc",
        cidr_block=config.network.vpc_cidr,
        enable_dns_hostnames=True,
        enable_dns_support=True,
        tags=_named(tags, f"{name}-vpc"),
    )

    igw = aws.ec2.InternetGateway(
        "igw",
        vpc_id=vpc.id,
        tags=_named(tags, f"{name}-igw"),
    )

    # 2. Subnets (AZ round-robin)
    public_subnets = []
    for index, cidr in enumerate(config.network.public_subnet_cidrs):
        public_subnets.append(
            aws.ec2.Subnet(
                f"public-subnet-{index}",
                vpc_id=vpc.id,
                cidr_block=cidr,
                availability_zone=_zone(index),
                map_public_ip_on_launch=True,
                tags={
                    **_named(tags, f"{name}-public-{index}"),
                    "kubernetes.io/role/elb": "1",
                    f"kubernetes.io/cluster/{name}": "shared",
                },
            )
        )

    private_subnets = []
    for index, cidr in enumerate(config.network.private_subnet_cidrs):
        private_subnets.append(
            aws.ec2.Subnet(
                f"private-subnet-{index}",
                vpc_id=vpc.id,
                cidr_block=cidr,
                availability_zone=_zone(index),
                tags={
                    **_named(tags, f"{name}-private-{index}"),
                    "kubernetes.io/role/internal-elb": "1",
                    f"kubernetes.io/cluster/{name}": "shared",
                },
            )
        )

    # 3. Egress for private subnets (single NAT, not per-AZ)
    eip = aws.ec2.Eip(
        "nat-eip",
        domain="vpc",
        tags=_named(tags, f"{name}-nat-eip"),
    )

    nat_gateway = aws.ec2.NatGateway(
        "nat-gateway",
        allocation_id=eip.id,
        subnet_id=public_subnets[0].id,
        tags=_named(tags, f"{name}-nat"),
        opts=pulumi.ResourceOptions(depends_on=[igw]),
    )

    # 4. Routing
    public_rt = aws.ec2.RouteTable(
        "public-rt",
        vpc_id=vpc.id,
        routes=[aws.ec2.RouteTableRouteArgs(cidr_block="0.0.0.0/0", gateway_id=igw.id)],
        tags=_named(tags, f"{name}-public-rt"),
    )

    private_rt = aws.ec2.RouteTable(
        "private-rt",
        vpc_id=vpc.id,
        routes=[
            aws.ec2.RouteTableRouteArgs(
                cidr_block="0.0.0.0/0", nat_gateway_id=nat_gateway.id
            )
        ],
        tags=_named(tags, f"{name}-private-rt"),
    )

    for index, subnet in enumerate(public_subnets):
        aws.ec2.RouteTableAssociation(
            f"public-rta-{index}",
            subnet_id=subnet.id,
            route_table_id=public_rt.id,
        )

    for index, subnet in enumerate(private_subnets):
        aws.ec2.RouteTableAssociation(
            f"private-rta-{index}",
            subnet_id=subnet.id,
            route_table_id=private_rt.id,
        )

    # 5. Control plane + default node group from the first pool
    ebs_csi = config.aws.enable_addons.ebs_csi_driver
    node_role = _node_role(config, ebs_csi)

    cluster = eks.Cluster(
        name,
        name=name,
        version=config.kubernetes_version,
        vpc_id=vpc.id,
        # privateSubnetIds/publicSubnetIds are mutually exclusive with subnetIds
        private_subnet_ids=[s.id for s in private_subnets],
        public_subnet_ids=[s.id for s in public_subnets],
        instance_type=machine_type(CloudProvider.AWS, system_pool.instance_size),
        desired_capacity=system_pool.desired_size,
        min_size=system_pool.min_size,
        max_size=system_pool.max_size,
        node_root_volume_size=system_pool.disk_size_gb,
        instance_role=node_role,
        endpoint_private_access=config.aws.private_cluster,
        endpoint_public_access=True,
        tags=tags,
    )

    # 6. Remaining pools as managed node groups
    for pool in extra_pools:
        logger.debug(
            f"Managed node group {pool.name}: {pool.instance_size.value} "
            f"{pool.min_size}-{pool.max_size} ({len(pool.taints)} taint(s))"
        )
        eks.ManagedNodeGroup(
            f"nodegroup-{pool.name}",
            cluster=cluster,
            node_group_name=pool.name,
            node_role=node_role,
            instance_types=[machine_type(CloudProvider.AWS, pool.instance_size)],
            scaling_config=aws.eks.NodeGroupScalingConfigArgs(
                desired_size=pool.desired_size,
                min_size=pool.min_size,
                max_size=pool.max_size,
            ),
            disk_size=pool.disk_size_gb,
            labels=pool.labels,
            taints=_taints(pool.taints),
            tags=tags,
        )

    if ebs_csi:
        aws.eks.Addon(
            "ebs-csi-driver",
            cluster_name=name,
            addon_name="aws-ebs-csi-driver",
            tags=_named(tags, f"{name}-ebs-csi"),
            opts=pulumi.ResourceOptions(depends_on=[cluster]),
        )

    return ClusterOutput(
        cluster_name=pulumi.Output.from_input(name),
        kubeconfig=cluster.kubeconfig.apply(json.dumps),
        endpoint=cluster.eks_cluster.endpoint,
        cluster_id=cluster.eks_cluster.id,
    )
