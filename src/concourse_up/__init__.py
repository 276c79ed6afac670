"""concourse-up - deploy and upgrade Concourse CI on AWS."""

__version__ = "0.9.0"
