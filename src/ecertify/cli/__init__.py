"""Command line interface for E-Certify."""
