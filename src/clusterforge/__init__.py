import warnings

# Provider SDKs emit DeprecationWarnings for input properties we do not set.
# These clutter the CLI output during previews.
warnings.filterwarnings("ignore", category=DeprecationWarning, module="pulumi_gcp")
warnings.filterwarnings("ignore", category=DeprecationWarning, module="pulumi_aws")
