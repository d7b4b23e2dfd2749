"""Course discovery and ranking engine."""
