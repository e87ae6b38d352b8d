"""Framework adapters implementing the collector protocols."""
