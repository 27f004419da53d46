"""chef-analyze: reports and node captures for a Chef Infra Server."""

__version__ = "0.1.0"
