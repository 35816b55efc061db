"""E-Certify: certificate issuance, approval and institute transfer service."""

__version__ = "0.1.0"
