"""Read side: filters, query cache and article services."""
