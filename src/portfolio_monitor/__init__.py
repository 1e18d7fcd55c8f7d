"""Portfolio monitor: REST backend for the market event dashboard."""
