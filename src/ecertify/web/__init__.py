"""Web API for E-Certify."""
