"""Terminal and file renderings of filtered threads."""
