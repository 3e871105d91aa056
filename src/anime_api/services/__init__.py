"""Services module - cache stack, airing engine and catalog read services."""
