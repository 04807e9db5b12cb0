"""Search engine adapters and result matching."""
