from .schemas.cluster import CloudProvider, InstanceSize

# Abstract size tier -> provider machine type
INSTANCE_SIZES: dict[CloudProvider, dict[InstanceSize, str]] = {
    CloudProvider.AWS: {
        InstanceSize.SMALL: "t3.small",
        InstanceSize.MEDIUM: "t3.medium",
        InstanceSize.LARGE: "t3.large",
        InstanceSize.XLARGE: "t3.xlarge",
    },
    CloudProvider.GCP: {
        InstanceSize.SMALL: "e2-small",
        InstanceSize.MEDIUM: "e2-medium",
        InstanceSize.LARGE: "e2-standard-2",
        InstanceSize.XLARGE: "e2-standard-4",
    },
    CloudProvider.AZURE: {
        InstanceSize.SMALL: "Standard_B2s_v2",
        InstanceSize.MEDIUM: "Standard_B4s_v2",
        InstanceSize.LARGE: "Standard_D2s_v3",
        InstanceSize.XLARGE: "Standard_D4s_v3",
    },
}


def machine_type(provider: CloudProvider, size: InstanceSize) -> str:
    return INSTANCE_SIZES[provider][size]
