"""Infrastructure: cache drivers/stores and query execution."""
