"""Infrastructure adapters: stores, navigators and HTTP plumbing."""
