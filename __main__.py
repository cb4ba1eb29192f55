"""Entry point for the plain `pulumi` CLI (see Pulumi.yaml)."""

from clusterforge.program import pulumi_program

pulumi_program()
