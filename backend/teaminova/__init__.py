"""TeamInova - project and task tracking service."""
