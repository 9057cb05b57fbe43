"""Creator video performance sync."""
