import pulumi
from pydantic import BaseModel, ConfigDict


class ClusterOutput(BaseModel):
    """Uniform result of every topology builder.

    Each field is a pulumi.Output[str] that resolves only after the
    resource graph materializes.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    cluster_name: pulumi.Output
    kubeconfig: pulumi.Output
    endpoint: pulumi.Output
    cluster_id: pulumi.Output
