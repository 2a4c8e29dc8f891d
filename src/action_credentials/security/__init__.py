"""Redaction, rate limiting and audit for credential handling."""
