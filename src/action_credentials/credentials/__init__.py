"""OAuth credential evaluation, exchange, propagation and orchestration."""
