"""Configuration loading and validation, policy parsing, and namespace transaction building, endorsement and merging for Fabric-X administration."""

__version__ = "0.1.0"