"""Output emitters for generated FFI surfaces."""
