"""Image backends and the chain that combines them."""
