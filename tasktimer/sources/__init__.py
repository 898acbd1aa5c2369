"""Calendar backends and the task model they produce."""
